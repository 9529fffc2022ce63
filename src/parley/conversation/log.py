"""Append-only message log.

The log is the single source of truth for conversation state. Entries are
kept in insertion order with an index by id; nothing is ever reordered,
replaced or removed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from parley.conversation.messages import Message, MessageKind
from parley.errors import MessageLogError

if TYPE_CHECKING:
    from collections.abc import Iterator


class MessageLog:
    """Ordered store of conversation messages.

    Reads return tuples so callers cannot mutate the underlying order.
    ``append`` is the only mutator and enforces the tool pairing
    invariants: every tool-result answers an earlier tool-request, and a
    tool-request is answered at most once.

    Example:
        >>> log = MessageLog()
        >>> log.append(factory.system("You are helpful"))
        'msg-1'
        >>> log.latest().kind
        <MessageKind.SYSTEM: 'system'>
    """

    def __init__(self) -> None:
        self._order: list[str] = []
        self._by_id: dict[str, Message] = {}
        self._requests: dict[str, Message] = {}
        self._results: dict[str, Message] = {}

    def append(self, message: Message) -> str:
        """Append a message and return its id.

        Raises:
            MessageLogError: If the id is already present, or the message is
                a tool-result without a prior request or with a duplicate.
        """
        if message.id in self._by_id:
            raise MessageLogError(f"Duplicate message id {message.id!r}")

        if message.kind is MessageKind.TOOL_REQUEST:
            if not message.tool_use_id:
                raise MessageLogError("tool-request message has no tool_use_id")
            if message.tool_use_id in self._requests:
                raise MessageLogError(f"Duplicate tool-request for {message.tool_use_id!r}")
            self._requests[message.tool_use_id] = message

        elif message.kind is MessageKind.TOOL_RESULT:
            use_id = message.tool_use_id
            if not use_id or use_id not in self._requests:
                raise MessageLogError(f"tool-result for unknown tool_use_id {use_id!r}")
            if use_id in self._results:
                raise MessageLogError(f"tool-request {use_id!r} already has a result")
            self._results[use_id] = message

        self._by_id[message.id] = message
        self._order.append(message.id)
        return message.id

    def all(self) -> tuple[Message, ...]:
        """All messages in chronological order."""
        return tuple(self._by_id[mid] for mid in self._order)

    def by_kind(self, kind: MessageKind) -> tuple[Message, ...]:
        """Messages of one kind, in chronological order."""
        return tuple(m for m in self.all() if m.kind is kind)

    def by_id(self, message_id: str) -> Message | None:
        return self._by_id.get(message_id)

    def latest(self) -> Message | None:
        """Most recent message of any kind."""
        if not self._order:
            return None
        return self._by_id[self._order[-1]]

    def latest_of_kind(self, kind: MessageKind) -> Message | None:
        for message_id in reversed(self._order):
            message = self._by_id[message_id]
            if message.kind is kind:
                return message
        return None

    def latest_substantive(self) -> Message | None:
        """Most recent message that is not an ``info`` annotation."""
        for message_id in reversed(self._order):
            message = self._by_id[message_id]
            if message.kind is not MessageKind.INFO:
                return message
        return None

    def result_for(self, tool_use_id: str) -> Message | None:
        """The tool-result answering ``tool_use_id``, if any."""
        return self._results.get(tool_use_id)

    def request_for(self, tool_use_id: str) -> Message | None:
        return self._requests.get(tool_use_id)

    def unanswered_requests(self) -> tuple[Message, ...]:
        """Tool-requests without a result, oldest first."""
        return tuple(
            m
            for m in self.by_kind(MessageKind.TOOL_REQUEST)
            if m.tool_use_id not in self._results
        )

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.all())
