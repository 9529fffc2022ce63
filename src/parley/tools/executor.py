"""Dispatches tool calls to registered tools and wraps errors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from parley.errors import ToolExecutionError
from parley.observability.logging import get_logger
from parley.tools.base import ToolOutcome

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from parley.tools.base import Tool, ToolCall

log = get_logger(__name__)


async def execute_tool(tools: Mapping[str, Tool], call: ToolCall) -> Any:
    """Look up ``call.name`` in ``tools`` and run it.

    A tool may report failure without raising by returning a dict with a
    truthy ``"error"`` key; that is treated the same as raising.

    Returns:
        Whatever the tool's execute returns.

    Raises:
        ToolExecutionError: If the tool is missing, raises, or reports an
            error result.
    """
    tool = tools.get(call.name)
    if tool is None:
        log.warning("tool_call_unknown", tool=call.name)
        raise ToolExecutionError(call.name, f"Unknown tool '{call.name}'")

    try:
        log.debug("tool_call_start", tool=call.name, tool_use_id=call.id)
        result = await tool.execute(call.arguments)
    except (KeyboardInterrupt, SystemExit):
        raise
    except Exception as e:
        log.warning("tool_call_error", tool=call.name, error=str(e))
        raise ToolExecutionError(call.name, f"Error executing {call.name}: {e}") from e

    if isinstance(result, dict) and result.get("error"):
        log.debug("tool_call_reported_error", tool=call.name, error=str(result["error"]))
        raise ToolExecutionError(call.name, str(result["error"]))

    log.debug("tool_call_complete", tool=call.name, tool_use_id=call.id)
    return result


async def execute_tool_calls(
    tools: Mapping[str, Tool],
    calls: Sequence[ToolCall],
) -> list[ToolOutcome]:
    """Run calls one after another and collect an outcome per call.

    Failures never propagate; they become outcomes with ``error`` set.
    """
    outcomes: list[ToolOutcome] = []
    for call in calls:
        try:
            result = await execute_tool(tools, call)
        except ToolExecutionError as e:
            outcomes.append(ToolOutcome(tool_use_id=call.id, error=str(e)))
        else:
            outcomes.append(ToolOutcome(tool_use_id=call.id, content=result))
    return outcomes
