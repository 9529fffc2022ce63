"""Tests for TurnEngine against a mocked backend."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from parley.conversation import MessageFactory, MessageKind, MessageLog, ToolResult, counter_ids
from parley.engine import ConfirmationGate, NextAction, TurnEngine
from parley.errors import BackendError, TurnLimitError
from parley.events import EventHub, EventName
from parley.llm.base import ContentReply, ToolRequestReply
from parley.tools import ToolCall, ToolOutcome, create_tool


def _tool(name: str = "lookup", **kwargs: Any) -> Any:
    return create_tool(name, "Look something up.", execute=lambda _: {"found": True}, **kwargs)


def _engine(
    backend: MagicMock,
    tools: list[Any] | None = None,
    gate: ConfirmationGate | None = None,
    max_steps: int | None = None,
) -> tuple[TurnEngine, MessageLog, MessageFactory, EventHub]:
    log = MessageLog()
    factory = MessageFactory(counter_ids())
    hub = EventHub()
    engine = TurnEngine(
        backend=backend,
        tools=tools or [],
        message_log=log,
        factory=factory,
        hub=hub,
        gate=gate or ConfirmationGate(),
        max_steps=max_steps,
    )
    return engine, log, factory, hub


def _backend(*replies: Any) -> MagicMock:
    backend = MagicMock()
    backend.invoke_model = AsyncMock(side_effect=list(replies))
    backend.process_tool_calls = AsyncMock(
        side_effect=lambda calls: [ToolOutcome(tool_use_id=c.id, content={"ok": 1}) for c in calls]
    )
    return backend


# --- advance ---


@pytest.mark.asyncio
async def test_advance_on_awaiting_log_does_nothing() -> None:
    backend = _backend()
    engine, log, factory, _ = _engine(backend)
    log.append(factory.system("s"))

    assert await engine.advance() is NextAction.AWAIT_USER
    backend.invoke_model.assert_not_awaited()


@pytest.mark.asyncio
async def test_advance_sends_full_history() -> None:
    backend = _backend(ContentReply(content="hi"))
    engine, log, factory, _ = _engine(backend)
    log.append(factory.system("s"))
    log.append(factory.user("u"))

    await engine.advance()

    sent = backend.invoke_model.await_args.args[0]
    assert [m.kind for m in sent] == [MessageKind.SYSTEM, MessageKind.USER]


@pytest.mark.asyncio
async def test_run_tool_picks_up_unanswered_request() -> None:
    """A log restored with a dangling request runs the tool before the model."""
    backend = _backend(ContentReply(content="done"))
    engine, log, factory, _ = _engine(backend, tools=[_tool()])
    log.append(factory.user("u"))
    log.append(factory.tool_request("lookup", "call_9", {"q": "x"}))

    assert engine.next_action() is NextAction.RUN_TOOL
    assert await engine.advance() is NextAction.AWAIT_USER

    backend.process_tool_calls.assert_awaited_once()
    call = backend.process_tool_calls.await_args.args[0][0]
    assert call == ToolCall(id="call_9", name="lookup", arguments={"q": "x"})
    assert log.result_for("call_9") is not None


@pytest.mark.asyncio
async def test_empty_tool_request_reply_is_an_error() -> None:
    backend = _backend(ToolRequestReply(calls=[]))
    engine, log, factory, hub = _engine(backend)
    errors: list[Any] = []
    hub.subscribe(EventName.ENGINE_ERROR, lambda p: errors.append(p.error))
    log.append(factory.user("u"))

    assert await engine.advance() is NextAction.INVOKE_MODEL
    assert len(errors) == 1
    assert isinstance(errors[0], BackendError)
    assert len(log) == 1


@pytest.mark.asyncio
async def test_turn_limit_reports_error() -> None:
    replies = [ToolRequestReply(calls=[ToolCall(id=f"c{i}", name="lookup")]) for i in range(5)]
    backend = _backend(*replies)
    engine, log, factory, hub = _engine(backend, tools=[_tool()], max_steps=2)
    errors: list[Any] = []
    hub.subscribe(EventName.ENGINE_ERROR, lambda p: errors.append(p.error))
    log.append(factory.user("u"))

    action = await engine.advance()

    assert action is NextAction.INVOKE_MODEL
    assert backend.invoke_model.await_count == 2
    assert isinstance(errors[0], TurnLimitError)
    assert errors[0].limit == 2


# --- tool execution through the backend ---


@pytest.mark.asyncio
async def test_process_tool_calls_exception_becomes_failed_result() -> None:
    backend = _backend(
        ToolRequestReply(calls=[ToolCall(id="c1", name="lookup")]),
        ContentReply(content="recovered"),
    )
    backend.process_tool_calls = AsyncMock(side_effect=RuntimeError("executor gone"))
    engine, log, factory, hub = _engine(backend, tools=[_tool()])
    failed: list[Any] = []
    hub.subscribe(EventName.TOOL_CALL_FAILED, failed.append)
    log.append(factory.user("u"))

    await engine.advance()

    result = log.result_for("c1")
    assert result is not None
    assert "executor gone" in (result.error or "")
    assert failed[0].tool_use_id == "c1"


@pytest.mark.asyncio
async def test_outcome_matched_by_id() -> None:
    backend = _backend(
        ToolRequestReply(calls=[ToolCall(id="c1", name="lookup")]),
        ContentReply(content="ok"),
    )
    backend.process_tool_calls = AsyncMock(
        return_value=[
            ToolOutcome(tool_use_id="other", content="wrong"),
            ToolOutcome(tool_use_id="c1", content="right"),
        ]
    )
    engine, log, factory, _ = _engine(backend, tools=[_tool()])
    log.append(factory.user("u"))

    await engine.advance()

    result = log.result_for("c1")
    assert result is not None
    assert isinstance(result.content, ToolResult)
    assert result.content.content == {"result": "right"}


@pytest.mark.asyncio
async def test_missing_outcome_is_a_failure() -> None:
    backend = _backend(
        ToolRequestReply(calls=[ToolCall(id="c1", name="lookup")]),
        ContentReply(content="ok"),
    )
    backend.process_tool_calls = AsyncMock(return_value=[])
    engine, log, factory, _ = _engine(backend, tools=[_tool()])
    log.append(factory.user("u"))

    await engine.advance()

    result = log.result_for("c1")
    assert result is not None
    assert result.error == "No result returned for lookup"


@pytest.mark.asyncio
async def test_validate_exception_becomes_failed_result() -> None:
    def _broken(_: dict[str, Any]) -> Any:
        raise KeyError("q")

    backend = _backend(
        ToolRequestReply(calls=[ToolCall(id="c1", name="lookup")]),
        ContentReply(content="ok"),
    )
    engine, log, factory, _ = _engine(backend, tools=[_tool(validate=_broken)])
    log.append(factory.user("u"))

    await engine.advance()

    result = log.result_for("c1")
    assert result is not None
    assert (result.error or "").startswith("Validation of lookup failed")
    backend.process_tool_calls.assert_not_awaited()


@pytest.mark.asyncio
async def test_empty_tool_use_id_is_reissued() -> None:
    backend = _backend(
        ToolRequestReply(calls=[ToolCall(id="", name="lookup")]),
        ContentReply(content="ok"),
    )
    engine, log, factory, _ = _engine(backend, tools=[_tool()])
    log.append(factory.user("u"))

    await engine.advance()

    request = log.latest_of_kind(MessageKind.TOOL_REQUEST)
    assert request is not None
    assert request.tool_use_id == "call_1"
    assert log.result_for("call_1") is not None


# --- confirmation ---


@pytest.mark.asyncio
async def test_gated_call_is_held_not_executed() -> None:
    backend = _backend(ToolRequestReply(calls=[ToolCall(id="c1", name="lookup")]))
    gate = ConfirmationGate()
    engine, log, factory, hub = _engine(
        backend, tools=[_tool(requires_confirmation=lambda _: True)], gate=gate
    )
    requested = MagicMock()
    hub.subscribe(EventName.TOOL_CONFIRMATION_REQUESTED, requested)
    log.append(factory.user("u"))

    assert await engine.advance() is NextAction.AWAIT_CONFIRMATION

    requested.assert_called_once()
    assert gate.pending is not None
    assert gate.pending.reason == "tool_predicate"
    backend.process_tool_calls.assert_not_awaited()
    assert log.result_for("c1") is None
