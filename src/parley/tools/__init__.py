"""Tools for LLM interactions.

This package provides the tool protocol, helpers for building tools from
callables, the confirmation policy, the shared executor, and a few
built-in local tools.
"""

from parley.tools.base import (
    BaseTool,
    Tool,
    ToolCall,
    ToolDefinition,
    ToolOutcome,
    ToolValidation,
)
from parley.tools.builtin import ReadFileTool, RunShellTool, WriteFileTool, get_builtin_tools
from parley.tools.executor import execute_tool, execute_tool_calls
from parley.tools.function import FunctionTool, create_tool
from parley.tools.policy import (
    DEFAULT_ALWAYS_CONFIRM_EFFECTS,
    FILESYSTEM_WRITE,
    PROCESS_EXEC,
    ConfirmationPolicy,
)

__all__ = [
    "DEFAULT_ALWAYS_CONFIRM_EFFECTS",
    "FILESYSTEM_WRITE",
    "PROCESS_EXEC",
    "BaseTool",
    "ConfirmationPolicy",
    "FunctionTool",
    "ReadFileTool",
    "RunShellTool",
    "Tool",
    "ToolCall",
    "ToolDefinition",
    "ToolOutcome",
    "ToolValidation",
    "WriteFileTool",
    "create_tool",
    "execute_tool",
    "execute_tool_calls",
    "get_builtin_tools",
]
