"""Tests for ConfirmationPolicy."""

from __future__ import annotations

import pytest

from parley.tools import (
    DEFAULT_ALWAYS_CONFIRM_EFFECTS,
    FILESYSTEM_WRITE,
    PROCESS_EXEC,
    ConfirmationPolicy,
    FunctionTool,
    create_tool,
)


def _tool(name: str = "t", effects: tuple[str, ...] = (), predicate: bool = False) -> FunctionTool:
    return create_tool(
        name,
        "Test tool.",
        execute=lambda _: None,
        effects=effects,
        requires_confirmation=lambda _: predicate,
    )


def test_default_effects() -> None:
    assert DEFAULT_ALWAYS_CONFIRM_EFFECTS == {FILESYSTEM_WRITE, PROCESS_EXEC}
    assert ConfirmationPolicy().always_confirm_effects == DEFAULT_ALWAYS_CONFIRM_EFFECTS


def test_plain_tool_is_not_gated() -> None:
    policy = ConfirmationPolicy()

    assert policy.reason(_tool(), {}) is None
    assert not policy.requires_confirmation(_tool(), {})


def test_effect_overrides_tool_predicate() -> None:
    """A gated effect wins even when the tool says no confirmation is needed."""
    policy = ConfirmationPolicy()

    assert policy.reason(_tool(effects=(FILESYSTEM_WRITE,)), {}) == "effect:filesystem_write"


def test_multiple_gated_effects_are_sorted() -> None:
    reason = ConfirmationPolicy().reason(_tool(effects=(PROCESS_EXEC, FILESYSTEM_WRITE)), {})

    assert reason == "effect:filesystem_write,process_exec"


def test_listed_tool_is_gated() -> None:
    policy = ConfirmationPolicy(always_confirm_tools=frozenset({"deploy"}))

    assert policy.reason(_tool("deploy"), {}) == "tool_listed"
    assert policy.reason(_tool("other"), {}) is None


def test_tool_predicate_is_respected() -> None:
    assert ConfirmationPolicy().reason(_tool(predicate=True), {}) == "tool_predicate"


def test_predicate_sees_arguments() -> None:
    tool = create_tool(
        "rm",
        "Remove.",
        execute=lambda _: None,
        requires_confirmation=lambda args: args.get("recursive", False),
    )
    policy = ConfirmationPolicy()

    assert policy.requires_confirmation(tool, {"recursive": True})
    assert not policy.requires_confirmation(tool, {"recursive": False})


def test_from_dict_defaults() -> None:
    assert ConfirmationPolicy.from_dict(None) == ConfirmationPolicy()
    assert ConfirmationPolicy.from_dict({}) == ConfirmationPolicy()


def test_from_dict_tables() -> None:
    policy = ConfirmationPolicy.from_dict(
        {"always_confirm_effects": ["network"], "always_confirm_tools": ["deploy"]}
    )

    assert policy.always_confirm_effects == frozenset({"network"})
    assert policy.always_confirm_tools == frozenset({"deploy"})


def test_from_dict_empty_effects_disables_effect_gating() -> None:
    policy = ConfirmationPolicy.from_dict({"always_confirm_effects": []})

    assert policy.reason(_tool(effects=(PROCESS_EXEC,)), {}) is None


@pytest.mark.parametrize(
    "data",
    [
        {"always_confirm_effects": "process_exec"},
        {"always_confirm_tools": [1, 2]},
    ],
)
def test_from_dict_rejects_bad_tables(data: dict[str, object]) -> None:
    with pytest.raises(ValueError, match="must be a list of strings"):
        ConfirmationPolicy.from_dict(data)
