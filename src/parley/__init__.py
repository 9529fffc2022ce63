"""Parley: tool-using conversational agent runtime.

Drives a conversation between a user, an LLM backend, and a set of tools,
pausing for human confirmation before gated tool calls run.
"""

from parley.config import RuntimeConfig, load_runtime_config
from parley.conversation import Message, MessageKind, MessageLog
from parley.engine import NextAction, PendingConfirmation
from parley.errors import (
    BackendError,
    ConfigError,
    ConfirmationPendingError,
    ConfirmationViolation,
    MessageLogError,
    ParleyError,
    ToolExecutionError,
    ToolValidationError,
    TurnLimitError,
)
from parley.events import EventHub, EventName
from parley.session import AgentConfig, AgentSession, create_agent
from parley.tools import BaseTool, ConfirmationPolicy, Tool, create_tool

__version__ = "0.1.0"

__all__ = [
    "AgentConfig",
    "AgentSession",
    "BackendError",
    "BaseTool",
    "ConfigError",
    "ConfirmationPendingError",
    "ConfirmationPolicy",
    "ConfirmationViolation",
    "EventHub",
    "EventName",
    "Message",
    "MessageKind",
    "MessageLog",
    "MessageLogError",
    "NextAction",
    "ParleyError",
    "PendingConfirmation",
    "RuntimeConfig",
    "Tool",
    "ToolExecutionError",
    "ToolValidationError",
    "TurnLimitError",
    "__version__",
    "create_agent",
    "create_tool",
    "load_runtime_config",
]
