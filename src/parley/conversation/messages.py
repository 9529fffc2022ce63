"""Message records stored in the conversation log.

A Message is immutable once created. Its ``kind`` drives the engine's
next-action decision; its ``role`` is what the LLM backend sees.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime  # noqa: TC003 - dataclass field type
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from parley.conversation.ids import Clock, IdFactory, utc_now, uuid_ids


class MessageKind(str, Enum):
    """Kinds of entries in the conversation history."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_REQUEST = "tool-request"
    TOOL_RESULT = "tool-result"
    INFO = "info"


class Role(str, Enum):
    """Conversational role attributed to a message when sent to the backend."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


ROLE_FOR_KIND: dict[MessageKind, Role] = {
    MessageKind.SYSTEM: Role.SYSTEM,
    MessageKind.USER: Role.USER,
    MessageKind.ASSISTANT: Role.ASSISTANT,
    MessageKind.TOOL_REQUEST: Role.ASSISTANT,
    MessageKind.TOOL_RESULT: Role.USER,
    MessageKind.INFO: Role.USER,
}


class ToolUse(BaseModel):
    """Structured descriptor of a tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    tool_use_id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Structured outcome of a tool invocation.

    String results are wrapped as ``{"result": <text>}`` so the payload is
    always JSON-object shaped.
    """

    model_config = ConfigDict(frozen=True)

    tool_use_id: str
    content: Any = None
    status: Literal["success", "error"] = "success"

    @property
    def is_error(self) -> bool:
        return self.status == "error"


def wrap_result(content: Any) -> Any:
    """Normalize a tool payload for storage in a ToolResult."""
    if isinstance(content, str):
        return {"result": content}
    return content


@dataclass(frozen=True)
class Message:
    """A single entry in the conversation log.

    Attributes:
        id: Unique identifier, stable in generation order.
        timestamp: When the message was created.
        kind: What the entry represents (drives the next action).
        role: Role presented to the backend.
        content: Text for system/user/assistant/info, ToolUse for
            tool-request, ToolResult for tool-result.
        tool_name: Tool name for tool-request/tool-result entries.
        tool_use_id: Correlates a tool-request with its tool-result.
        error: Error text on failed tool results.
    """

    id: str
    timestamp: datetime
    kind: MessageKind
    role: Role
    content: str | ToolUse | ToolResult
    tool_name: str | None = None
    tool_use_id: str | None = None
    error: str | None = None

    @property
    def text(self) -> str | None:
        """Plain text content, or None for tool entries."""
        return self.content if isinstance(self.content, str) else None

    @property
    def is_tool_message(self) -> bool:
        return self.kind in (MessageKind.TOOL_REQUEST, MessageKind.TOOL_RESULT)


class MessageFactory:
    """Builds Messages with injected id and clock sources."""

    def __init__(self, id_factory: IdFactory | None = None, clock: Clock | None = None) -> None:
        self._next_id = id_factory or uuid_ids()
        self._clock = clock or utc_now

    def _make(
        self, kind: MessageKind, content: str | ToolUse | ToolResult, **extra: Any
    ) -> Message:
        return Message(
            id=self._next_id(),
            timestamp=self._clock(),
            kind=kind,
            role=ROLE_FOR_KIND[kind],
            content=content,
            **extra,
        )

    def system(self, text: str) -> Message:
        return self._make(MessageKind.SYSTEM, text)

    def user(self, text: str) -> Message:
        return self._make(MessageKind.USER, text)

    def assistant(self, text: str) -> Message:
        return self._make(MessageKind.ASSISTANT, text)

    def info(self, text: str) -> Message:
        return self._make(MessageKind.INFO, text)

    def tool_request(self, tool_name: str, tool_use_id: str, arguments: dict[str, Any]) -> Message:
        use = ToolUse(tool_use_id=tool_use_id, name=tool_name, input=dict(arguments))
        return self._make(
            MessageKind.TOOL_REQUEST,
            use,
            tool_name=tool_name,
            tool_use_id=tool_use_id,
        )

    def tool_result(
        self,
        tool_use_id: str,
        content: Any,
        error: str | None = None,
        tool_name: str | None = None,
    ) -> Message:
        """Build a tool-result entry.

        Args:
            tool_use_id: Id of the tool-request being answered.
            content: Result payload. When None and an error is given,
                ``{"error": error}`` is stored instead.
            error: Error text. Its presence marks the result as failed.
            tool_name: Name of the tool that ran.
        """
        if content is None and error is not None:
            content = {"error": error}
        result = ToolResult(
            tool_use_id=tool_use_id,
            content=wrap_result(content),
            status="error" if error is not None else "success",
        )
        return self._make(
            MessageKind.TOOL_RESULT,
            result,
            tool_name=tool_name,
            tool_use_id=tool_use_id,
            error=error,
        )
