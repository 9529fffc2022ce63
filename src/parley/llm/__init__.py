"""Chat backend integrations using LangChain."""

from parley.llm.base import (
    BackendError,
    ChatBackend,
    ContentReply,
    ModelReply,
    ToolRequestReply,
)
from parley.llm.factory import create_chat_model, get_default_model, parse_provider
from parley.llm.langchain_backend import LangChainBackend

__all__ = [
    "BackendError",
    "ChatBackend",
    "ContentReply",
    "LangChainBackend",
    "ModelReply",
    "ToolRequestReply",
    "create_chat_model",
    "get_default_model",
    "parse_provider",
]
