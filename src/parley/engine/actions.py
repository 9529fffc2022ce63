"""Next-action decision derived from the message log."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from parley.conversation.messages import MessageKind

if TYPE_CHECKING:
    from parley.conversation.log import MessageLog


class NextAction(str, Enum):
    """What the engine must do next.

    ``AWAIT_USER`` and ``AWAIT_CONFIRMATION`` hand control back to the
    caller; the other two are executed automatically by ``advance()``.
    """

    AWAIT_USER = "await_user"
    AWAIT_CONFIRMATION = "await_confirmation"
    INVOKE_MODEL = "invoke_model"
    RUN_TOOL = "run_tool"

    @property
    def is_terminal(self) -> bool:
        return self in (NextAction.AWAIT_USER, NextAction.AWAIT_CONFIRMATION)


ACTION_FOR_KIND: dict[MessageKind, NextAction] = {
    MessageKind.SYSTEM: NextAction.AWAIT_USER,
    MessageKind.USER: NextAction.INVOKE_MODEL,
    MessageKind.ASSISTANT: NextAction.AWAIT_USER,
    MessageKind.TOOL_REQUEST: NextAction.RUN_TOOL,
    MessageKind.TOOL_RESULT: NextAction.INVOKE_MODEL,
}


def next_action(log: MessageLog, confirmation_pending: bool = False) -> NextAction:
    """Decide the next action from the tail of ``log``.

    Trailing ``info`` messages are skipped; the decision uses the nearest
    substantive message. An empty log (or one holding only info entries)
    waits for the user. A pending confirmation overrides everything.
    """
    if confirmation_pending:
        return NextAction.AWAIT_CONFIRMATION

    last = log.latest_substantive()
    if last is None:
        return NextAction.AWAIT_USER

    if last.kind is MessageKind.TOOL_REQUEST and last.tool_use_id is not None:
        if log.result_for(last.tool_use_id) is not None:
            return NextAction.INVOKE_MODEL

    return ACTION_FOR_KIND.get(last.kind, NextAction.AWAIT_USER)
