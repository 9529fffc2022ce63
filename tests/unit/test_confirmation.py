"""Tests for the ConfirmationGate."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from parley.engine import ConfirmationGate
from parley.errors import ConfirmationViolation
from parley.tools import ConfirmationPolicy, ToolCall, create_tool

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _call(call_id: str = "c1") -> ToolCall:
    return ToolCall(id=call_id, name="shell", arguments={"command": "ls"})


def test_check_uses_policy() -> None:
    gate = ConfirmationGate()
    shell = create_tool("shell", "Run.", execute=lambda _: None, effects=["process_exec"])
    lookup = create_tool("lookup", "Read.", execute=lambda _: None)

    assert gate.check(shell, {}) == "effect:process_exec"
    assert gate.check(lookup, {}) is None


def test_auto_accept_all_never_gates() -> None:
    gate = ConfirmationGate(
        policy=ConfirmationPolicy(always_confirm_tools=frozenset({"shell"})),
        auto_accept_all=True,
    )
    shell = create_tool(
        "shell", "Run.", execute=lambda _: None, requires_confirmation=lambda _: True
    )

    assert gate.auto_accept_all
    assert gate.check(shell, {}) is None


def test_hold_and_release() -> None:
    gate = ConfirmationGate(clock=lambda: NOW)

    pending = gate.hold(_call(), "tool_listed")

    assert gate.pending is pending
    assert pending.tool_use_id == "c1"
    assert pending.tool_name == "shell"
    assert pending.input == {"command": "ls"}
    assert pending.requested_at == NOW

    released = gate.release("c1")

    assert released is pending
    assert gate.pending is None


def test_release_without_pending_raises() -> None:
    gate = ConfirmationGate()

    with pytest.raises(ConfirmationViolation, match="no confirmation is pending") as exc:
        gate.release("c1")

    assert exc.value.tool_use_id == "c1"
    assert exc.value.pending_id is None


def test_release_wrong_id_raises_and_keeps_pending() -> None:
    gate = ConfirmationGate()
    gate.hold(_call("c1"), "tool_listed")

    with pytest.raises(ConfirmationViolation) as exc:
        gate.release("c2")

    assert exc.value.pending_id == "c1"
    assert gate.pending is not None


def test_only_one_call_may_be_held() -> None:
    gate = ConfirmationGate()
    gate.hold(_call("c1"), "tool_listed")

    with pytest.raises(RuntimeError, match="still pending"):
        gate.hold(_call("c2"), "tool_listed")
