"""Confirmation policy for tool calls.

Whether a call needs human approval is decided from data, not tool-name
literals: the tool's own predicate, plus two tables held by the policy.
Any effect listed in ``always_confirm_effects`` gates every tool that
declares it, whatever the tool's own predicate says.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from parley.tools.base import Tool

FILESYSTEM_WRITE = "filesystem_write"
PROCESS_EXEC = "process_exec"

DEFAULT_ALWAYS_CONFIRM_EFFECTS = frozenset({FILESYSTEM_WRITE, PROCESS_EXEC})


@dataclass(frozen=True)
class ConfirmationPolicy:
    """Decides which tool calls must wait for a human decision.

    Attributes:
        always_confirm_effects: Effect classes that are always gated.
        always_confirm_tools: Tool names that are always gated.
    """

    always_confirm_effects: frozenset[str] = DEFAULT_ALWAYS_CONFIRM_EFFECTS
    always_confirm_tools: frozenset[str] = field(default_factory=frozenset)

    def reason(self, tool: Tool, arguments: dict[str, Any]) -> str | None:
        """Why this call needs confirmation, or None if it does not."""
        definition = tool.definition
        gated_effects = definition.effects & self.always_confirm_effects
        if gated_effects:
            return f"effect:{','.join(sorted(gated_effects))}"
        if definition.name in self.always_confirm_tools:
            return "tool_listed"
        if tool.requires_confirmation(arguments):
            return "tool_predicate"
        return None

    def requires_confirmation(self, tool: Tool, arguments: dict[str, Any]) -> bool:
        return self.reason(tool, arguments) is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ConfirmationPolicy:
        """Create from config dict.

        Args:
            data: Dictionary with optional ``always_confirm_effects`` and
                ``always_confirm_tools`` lists. Missing effects fall back to
                the defaults; an explicit empty list disables effect gating.

        Raises:
            ValueError: If a table is not a list of strings.
        """
        if not data:
            return cls()

        effects = data.get("always_confirm_effects")
        tools = data.get("always_confirm_tools", [])
        for key, value in (("always_confirm_effects", effects), ("always_confirm_tools", tools)):
            if value is None:
                continue
            if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
                msg = f"{key} must be a list of strings, got {value!r}"
                raise ValueError(msg)

        return cls(
            always_confirm_effects=(
                DEFAULT_ALWAYS_CONFIRM_EFFECTS if effects is None else frozenset(effects)
            ),
            always_confirm_tools=frozenset(tools or ()),
        )
