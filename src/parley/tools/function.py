"""Build tools from plain callables."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from typing import Any

from parley.tools.base import BaseTool, ToolValidation

ExecuteFn = Callable[[dict[str, Any]], Any]
ValidateFn = Callable[[dict[str, Any]], ToolValidation]
ConfirmFn = Callable[[dict[str, Any]], bool]


class FunctionTool(BaseTool):
    """A tool whose behavior is supplied as callables.

    ``execute`` may be a plain function or a coroutine function. Without a
    custom ``validate``, arguments are checked against the JSON schema.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any] | None = None,
        *,
        execute: ExecuteFn,
        validate: ValidateFn | None = None,
        requires_confirmation: ConfirmFn | None = None,
        effects: Iterable[str] = (),
    ) -> None:
        if not name:
            raise ValueError("Tool name must be non-empty")
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}}
        self.effects = frozenset(effects)
        self._execute = execute
        self._validate = validate
        self._requires_confirmation = requires_confirmation

    def validate(self, arguments: dict[str, Any]) -> ToolValidation:
        if self._validate is not None:
            return self._validate(arguments)
        return super().validate(arguments)

    async def execute(self, arguments: dict[str, Any]) -> Any:
        result = self._execute(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    def requires_confirmation(self, arguments: dict[str, Any]) -> bool:
        if self._requires_confirmation is not None:
            return bool(self._requires_confirmation(arguments))
        return False

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r})"


def create_tool(
    name: str,
    description: str,
    parameters: dict[str, Any] | None = None,
    *,
    execute: ExecuteFn,
    validate: ValidateFn | None = None,
    requires_confirmation: ConfirmFn | None = None,
    effects: Iterable[str] = (),
) -> FunctionTool:
    """Create a tool from a simple function.

    Example:
        >>> calculator = create_tool(
        ...     "calculator",
        ...     "Add two numbers.",
        ...     {"type": "object", "properties": {"a": {"type": "number"},
        ...      "b": {"type": "number"}}, "required": ["a", "b"]},
        ...     execute=lambda args: {"sum": args["a"] + args["b"]},
        ... )
    """
    return FunctionTool(
        name,
        description,
        parameters,
        execute=execute,
        validate=validate,
        requires_confirmation=requires_confirmation,
        effects=effects,
    )
