"""LangChain adapter for the Parley chat backend protocol."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from parley.conversation.messages import MessageKind, ToolResult, ToolUse
from parley.errors import BackendError
from parley.llm.base import ContentReply, ModelReply, ToolRequestReply
from parley.observability.logging import get_logger
from parley.tools.base import ToolCall
from parley.tools.executor import execute_tool_calls

if TYPE_CHECKING:
    from collections.abc import Sequence

    from langchain_core.language_models import BaseChatModel
    from langchain_core.messages import BaseMessage

    from parley.conversation.messages import Message
    from parley.tools.base import Tool, ToolDefinition, ToolOutcome

log = get_logger(__name__)


class LangChainBackend:
    """Adapts a LangChain chat model to the ChatBackend protocol.

    Any ``BaseChatModel`` that supports ``bind_tools`` works. Tools are
    bound once in ``register_tools``; afterwards every ``invoke_model``
    call sees them.

    Attributes:
        name: Identifier used in BackendError messages.
    """

    def __init__(self, model: BaseChatModel, name: str = "langchain") -> None:
        self._model = model
        self._bound: Any = model
        self._tools: dict[str, Tool] = {}
        self.name = name

    @property
    def tools(self) -> dict[str, Tool]:
        return dict(self._tools)

    def register_tools(self, tools: Sequence[Tool]) -> None:
        """Register tools for execution and bind their schemas to the model."""
        self._tools = {t.definition.name: t for t in tools}
        if not tools:
            self._bound = self._model
            return
        lc_tools = [self._to_langchain_tool(t.definition) for t in tools]
        self._bound = self._model.bind_tools(lc_tools)
        log.debug("tools_bound", backend=self.name, tools=sorted(self._tools))

    async def invoke_model(self, messages: Sequence[Message]) -> ModelReply:
        """Send the conversation to the model.

        Raises:
            BackendError: If the completion fails or returns a nameless
                tool call.
        """
        lc_messages = self._to_langchain_messages(messages)

        try:
            response: AIMessage = await self._bound.ainvoke(lc_messages)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:
            raise BackendError(self.name, f"Completion failed: {e}") from e

        tool_calls = getattr(response, "tool_calls", None)
        if tool_calls:
            calls: list[ToolCall] = []
            for i, tc in enumerate(tool_calls):
                name = tc.get("name")
                if not name:
                    raise BackendError(self.name, f"Received tool call without a name: {tc}")
                calls.append(
                    ToolCall(
                        id=str(tc.get("id") or f"call_{i}"),
                        name=name,
                        arguments=tc.get("args") or {},
                    )
                )
            log.debug("llm_response", backend=self.name, tool_calls=len(calls))
            return ToolRequestReply(calls=calls)

        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        log.debug("llm_response", backend=self.name, content_length=len(str(content)))
        return ContentReply(content=str(content))

    async def process_tool_calls(self, calls: Sequence[ToolCall]) -> list[ToolOutcome]:
        """Run calls against the registered tools."""
        return await execute_tool_calls(self._tools, calls)

    def _to_langchain_tool(self, tool_def: ToolDefinition) -> dict[str, Any]:
        """Convert ToolDefinition to an OpenAI-style function schema."""
        return {
            "type": "function",
            "function": {
                "name": tool_def.name,
                "description": tool_def.description,
                "parameters": tool_def.parameters,
            },
        }

    def _to_langchain_messages(self, messages: Sequence[Message]) -> list[BaseMessage]:
        """Convert log entries to LangChain messages.

        Consecutive tool-requests are folded into a single AIMessage so
        every ToolMessage follows the AIMessage that issued its call.
        Info entries are annotations and are not sent.
        """
        converted: list[BaseMessage] = []
        for msg in messages:
            if msg.kind is MessageKind.INFO:
                continue
            if msg.kind is MessageKind.TOOL_REQUEST:
                if not isinstance(msg.content, ToolUse):
                    raise ValueError(f"tool-request {msg.id} has no ToolUse content")
                call = {
                    "id": msg.content.tool_use_id,
                    "name": msg.content.name,
                    "args": msg.content.input,
                }
                previous = converted[-1] if converted else None
                if isinstance(previous, AIMessage) and previous.tool_calls:
                    previous.tool_calls.append(call)
                else:
                    converted.append(AIMessage(content="", tool_calls=[call]))
            elif msg.kind is MessageKind.TOOL_RESULT:
                if not isinstance(msg.content, ToolResult):
                    raise ValueError(f"tool-result {msg.id} has no ToolResult content")
                converted.append(
                    ToolMessage(
                        content=json.dumps(msg.content.content, default=str),
                        tool_call_id=msg.content.tool_use_id,
                        status=msg.content.status,
                    )
                )
            elif msg.kind is MessageKind.SYSTEM:
                converted.append(SystemMessage(content=msg.text or ""))
            elif msg.kind is MessageKind.ASSISTANT:
                converted.append(AIMessage(content=msg.text or ""))
            else:
                converted.append(HumanMessage(content=msg.text or ""))
        return converted
