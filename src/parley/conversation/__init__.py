"""Conversation history primitives.

This package provides the immutable Message record, the factory that
stamps ids and timestamps onto new messages, and the append-only
MessageLog the turn engine reads its state from.
"""

from parley.conversation.ids import counter_ids, utc_now, uuid_ids
from parley.conversation.log import MessageLog
from parley.conversation.messages import (
    Message,
    MessageFactory,
    MessageKind,
    Role,
    ToolResult,
    ToolUse,
)

__all__ = [
    "Message",
    "MessageFactory",
    "MessageKind",
    "MessageLog",
    "Role",
    "ToolResult",
    "ToolUse",
    "counter_ids",
    "utc_now",
    "uuid_ids",
]
