"""Base types and protocol for agent tools.

This module defines the core abstractions for tool calling:
- ToolDefinition: JSON Schema-based tool specification plus declared effects
- ToolCall: Represents a tool invocation from the LLM
- ToolValidation: Outcome of checking a call's arguments
- Tool: Protocol for implementing executable tools
- BaseTool: Convenience base class with schema validation built in
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import jsonschema


@dataclass
class ToolDefinition:
    """Definition of a tool that can be bound to an LLM.

    Uses JSON Schema format for parameter definitions, compatible
    with OpenAI/Anthropic function calling specifications.

    Attributes:
        name: Unique tool identifier (e.g., "read_file", "calculator").
        description: Concise description for LLM to understand when to use.
        parameters: JSON Schema object defining accepted arguments.
        effects: Side-effect classes the tool may perform (e.g.,
            "filesystem_write", "process_exec"). The confirmation policy
            gates calls by these.

    Example:
        >>> ToolDefinition(
        ...     name="write_file",
        ...     description="Write text to a file.",
        ...     parameters={
        ...         "type": "object",
        ...         "properties": {"path": {"type": "string"}},
        ...         "required": ["path"],
        ...     },
        ...     effects=frozenset({"filesystem_write"}),
        ... )
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    effects: frozenset[str] = field(default_factory=frozenset)


@dataclass
class ToolCall:
    """Represents a tool invocation requested by the LLM.

    Attributes:
        id: Unique identifier for this call (the tool_use_id).
        name: Name of the tool being called.
        arguments: Parsed arguments dictionary.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolOutcome:
    """Result of running one tool call.

    Attributes:
        tool_use_id: Id of the call this outcome answers.
        content: Result payload from the tool.
        error: Error text if the call failed.
    """

    tool_use_id: str
    content: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ToolValidation:
    """Result of validating tool call arguments.

    Attributes:
        ok: Whether validation passed.
        error: Error message if validation failed.
    """

    ok: bool
    error: str | None = None

    @classmethod
    def passed(cls) -> ToolValidation:
        return cls(ok=True)

    @classmethod
    def failed(cls, error: str) -> ToolValidation:
        return cls(ok=False, error=error)


@runtime_checkable
class Tool(Protocol):
    """Protocol for executable tools.

    Tools provide a definition (for LLM binding), argument validation,
    an async execute method, and their own confirmation predicate.

    This protocol is runtime-checkable, allowing isinstance() checks.
    """

    @property
    def definition(self) -> ToolDefinition:
        """Return the tool definition for LLM binding."""
        ...

    def validate(self, arguments: dict[str, Any]) -> ToolValidation:
        """Check arguments before execution."""
        ...

    async def execute(self, arguments: dict[str, Any]) -> Any:
        """Execute the tool with given arguments.

        Returns:
            The tool result. Returning ``{"error": ...}`` marks the call as
            failed without raising.
        """
        ...

    def requires_confirmation(self, arguments: dict[str, Any]) -> bool:
        """Whether this particular call needs human approval."""
        ...


def schema_errors(schema: dict[str, Any], arguments: dict[str, Any]) -> list[str]:
    """Validate arguments against a JSON schema.

    Returns:
        List of error messages, prefixed with the failing field path when
        there is one. Empty if valid.
    """
    validator = jsonschema.Draft7Validator(schema)
    errors: list[str] = []
    for error in sorted(validator.iter_errors(arguments), key=lambda e: list(e.absolute_path)):
        path = ".".join(str(p) for p in error.absolute_path)
        errors.append(f"{path}: {error.message}" if path else error.message)
    return errors


class BaseTool:
    """Base class supplying default validation and confirmation behavior.

    Subclasses set ``name``, ``description`` and ``parameters`` (and
    optionally ``effects``) as class attributes and implement ``execute``.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}}  # noqa: RUF012
    effects: frozenset[str] = frozenset()

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            effects=self.effects,
        )

    def validate(self, arguments: dict[str, Any]) -> ToolValidation:
        """Validate arguments against ``parameters``, reporting the first error."""
        errors = schema_errors(self.parameters, arguments)
        if errors:
            return ToolValidation.failed(errors[0])
        return ToolValidation.passed()

    async def execute(self, arguments: dict[str, Any]) -> Any:
        raise NotImplementedError(f"{type(self).__name__} must implement execute()")

    def requires_confirmation(self, arguments: dict[str, Any]) -> bool:  # noqa: ARG002
        return False
