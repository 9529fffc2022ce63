"""Confirmation gate holding at most one tool call awaiting approval."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime  # noqa: TC003 - dataclass field type
from typing import TYPE_CHECKING, Any

from parley.conversation.ids import Clock, utc_now
from parley.errors import ConfirmationViolation
from parley.observability.logging import get_logger
from parley.tools.policy import ConfirmationPolicy

if TYPE_CHECKING:
    from parley.tools.base import Tool, ToolCall

log = get_logger(__name__)


@dataclass(frozen=True)
class PendingConfirmation:
    """A tool call suspended until a human decides on it.

    Attributes:
        call: The held tool call.
        reason: Why the policy gated it (e.g., "effect:filesystem_write").
        requested_at: When the gate closed.
    """

    call: ToolCall
    reason: str
    requested_at: datetime

    @property
    def tool_use_id(self) -> str:
        return self.call.id

    @property
    def tool_name(self) -> str:
        return self.call.name

    @property
    def input(self) -> dict[str, Any]:
        return self.call.arguments


class ConfirmationGate:
    """Decides whether calls need approval and owns the single pending slot.

    With ``auto_accept_all`` set, no call is ever gated.
    """

    def __init__(
        self,
        policy: ConfirmationPolicy | None = None,
        auto_accept_all: bool = False,
        clock: Clock | None = None,
    ) -> None:
        self._policy = policy or ConfirmationPolicy()
        self._auto_accept_all = auto_accept_all
        self._clock = clock or utc_now
        self._pending: PendingConfirmation | None = None

    @property
    def policy(self) -> ConfirmationPolicy:
        return self._policy

    @property
    def auto_accept_all(self) -> bool:
        return self._auto_accept_all

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._pending

    def check(self, tool: Tool, arguments: dict[str, Any]) -> str | None:
        """Return the gating reason for this call, or None to run it now."""
        if self._auto_accept_all:
            return None
        return self._policy.reason(tool, arguments)

    def hold(self, call: ToolCall, reason: str) -> PendingConfirmation:
        """Suspend ``call`` until it is released.

        Raises:
            RuntimeError: If another call is already pending. The engine
                never advances past a pending gate, so this indicates a bug.
        """
        if self._pending is not None:
            raise RuntimeError(
                f"Confirmation for {self._pending.tool_use_id!r} is still pending; "
                f"cannot hold {call.id!r}"
            )
        self._pending = PendingConfirmation(call=call, reason=reason, requested_at=self._clock())
        log.info("tool_confirmation_held", tool=call.name, tool_use_id=call.id, reason=reason)
        return self._pending

    def release(self, tool_use_id: str) -> PendingConfirmation:
        """Clear and return the pending call for ``tool_use_id``.

        Raises:
            ConfirmationViolation: If nothing is pending for that id.
        """
        pending = self._pending
        if pending is None or pending.tool_use_id != tool_use_id:
            log.warning(
                "confirmation_violation",
                tool_use_id=tool_use_id,
                pending_id=pending.tool_use_id if pending else None,
            )
            raise ConfirmationViolation(tool_use_id, pending.tool_use_id if pending else None)
        self._pending = None
        return pending
