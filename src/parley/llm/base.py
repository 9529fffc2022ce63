"""Base protocol and reply types for chat backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

from parley.errors import BackendError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from parley.conversation.messages import Message
    from parley.tools.base import Tool, ToolCall, ToolOutcome


@dataclass
class ContentReply:
    """The model answered with plain content."""

    content: str
    type: Literal["content"] = "content"


@dataclass
class ToolRequestReply:
    """The model asked for one or more tool calls."""

    calls: list[ToolCall] = field(default_factory=list)
    type: Literal["tool-request"] = "tool-request"


ModelReply = ContentReply | ToolRequestReply


@runtime_checkable
class ChatBackend(Protocol):
    """Protocol for the LLM collaborator a session drives.

    The backend owns both the model call and tool execution: the engine
    decides *when* to run an accepted call, and delegates running it to
    ``process_tool_calls``.
    """

    def register_tools(self, tools: Sequence[Tool]) -> None:
        """Make ``tools`` available to the model. Called once per session."""
        ...

    async def invoke_model(self, messages: Sequence[Message]) -> ModelReply:
        """Send the full ordered history and return the model's reply.

        Raises:
            BackendError: If the completion request fails.
        """
        ...

    async def process_tool_calls(self, calls: Sequence[ToolCall]) -> list[ToolOutcome]:
        """Execute accepted tool calls, returning one outcome per call."""
        ...


__all__ = [
    "BackendError",
    "ChatBackend",
    "ContentReply",
    "ModelReply",
    "ToolRequestReply",
]
