"""Test CLI commands."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from parley import __version__
from parley.cli import EXIT_COMMANDS, _build_session, _chat_loop, app
from parley.config import RuntimeConfig
from parley.conversation import MessageKind
from parley.errors import BackendError
from parley.llm.base import ContentReply, ModelReply, ToolRequestReply
from parley.tools import ToolCall, ToolOutcome, execute_tool_calls
from parley.tools.base import Tool

if TYPE_CHECKING:
    from pathlib import Path

    from parley.conversation import Message

runner = CliRunner()


class StubBackend:
    """Replays scripted replies; runs registered tools for real."""

    def __init__(self, *replies: ModelReply) -> None:
        self._replies = list(replies)
        self.tools: dict[str, Tool] = {}

    def register_tools(self, tools: Sequence[Tool]) -> None:
        self.tools = {t.definition.name: t for t in tools}

    async def invoke_model(self, messages: Sequence[Message]) -> ModelReply:  # noqa: ARG002
        if not self._replies:
            return ContentReply(content="nothing more")
        return self._replies.pop(0)

    async def process_tool_calls(self, calls: Sequence[ToolCall]) -> list[ToolOutcome]:
        return await execute_tool_calls(self.tools, calls)


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert f"Parley v{__version__}" in result.stdout


def test_no_args_shows_help() -> None:
    result = runner.invoke(app, [])

    # no_args_is_help=True returns exit code 2 (not 0 like --help)
    assert result.exit_code == 2
    assert "Parley" in result.output


# --- chat command ---


def test_chat_reports_config_errors(tmp_path: Path) -> None:
    result = runner.invoke(app, ["chat", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "Error" in result.stdout
    assert "missing.yaml" in result.stdout.replace("\n", "")


def test_chat_reports_backend_errors() -> None:
    with (
        patch("parley.cli.load_runtime_config", return_value=RuntimeConfig()),
        patch("parley.cli._create_backend", side_effect=BackendError("openai", "API key required")),
    ):
        result = runner.invoke(app, ["chat"])

    assert result.exit_code == 1
    assert "API key required" in " ".join(result.stdout.split())


def test_chat_round_trip() -> None:
    backend = StubBackend(ContentReply(content="hello from the model"))

    with (
        patch("parley.cli.load_runtime_config", return_value=RuntimeConfig()),
        patch("parley.cli._create_backend", return_value=backend),
    ):
        result = runner.invoke(app, ["chat", "--no-tools"], input="hi\nexit\n")

    assert result.exit_code == 0
    assert "hello from the model" in result.stdout
    assert backend.tools == {}


def test_chat_confirms_gated_tool(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    backend = StubBackend(
        ToolRequestReply(
            calls=[
                ToolCall(
                    id="call_1",
                    name="write_file",
                    arguments={"path": "out.txt", "content": "written"},
                )
            ]
        ),
        ContentReply(content="file saved"),
    )

    with (
        patch("parley.cli.load_runtime_config", return_value=RuntimeConfig()),
        patch("parley.cli._create_backend", return_value=backend),
    ):
        result = runner.invoke(app, ["chat"], input="save it\ny\nquit\n")

    assert result.exit_code == 0
    assert "write_file" in result.stdout
    assert (tmp_path / "out.txt").read_text(encoding="utf-8") == "written"
    assert "file saved" in result.stdout


def test_chat_decline_gated_tool(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    backend = StubBackend(
        ToolRequestReply(
            calls=[ToolCall(id="call_1", name="run_shell", arguments={"command": "touch x"})]
        ),
        ContentReply(content="understood"),
    )

    with (
        patch("parley.cli.load_runtime_config", return_value=RuntimeConfig()),
        patch("parley.cli._create_backend", return_value=backend),
    ):
        result = runner.invoke(app, ["chat"], input="run it\nn\n")

    assert result.exit_code == 0
    assert not (tmp_path / "x").exists()
    assert "cancelled" in result.stdout


# --- _build_session ---


def test_build_session_applies_overrides(tmp_path: Path) -> None:
    backend = StubBackend()
    runtime = RuntimeConfig(system_prompt="from config", initial_user_messages=["seed"])

    with patch("parley.cli._create_backend", return_value=backend) as create:
        session = _build_session(
            runtime, provider="anthropic/claude-3-haiku", system="override", root=tmp_path
        )

    create.assert_called_once_with("anthropic/claude-3-haiku")
    assert session.messages[0].text == "override"
    assert session.messages[1].text == "seed"
    assert sorted(backend.tools) == ["read_file", "run_shell", "write_file"]


def test_build_session_respects_builtin_tools_flag() -> None:
    backend = StubBackend()

    with patch("parley.cli._create_backend", return_value=backend):
        _build_session(RuntimeConfig(builtin_tools=False))

    assert backend.tools == {}


def test_build_session_uses_env_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PARLEY_PROVIDER", "google/gemini-2.5-flash")

    with patch("parley.cli._create_backend", return_value=StubBackend()) as create:
        _build_session(RuntimeConfig())

    create.assert_called_once_with("google/gemini-2.5-flash")


# --- _chat_loop ---


def _inputs(*lines: str | None) -> Any:
    queue = list(lines)

    async def _read() -> str | None:
        return queue.pop(0) if queue else None

    return _read


@pytest.mark.asyncio
async def test_chat_loop_handles_notes_and_blank_lines() -> None:
    backend = StubBackend(ContentReply(content="ok"))
    with patch("parley.cli._create_backend", return_value=backend):
        session = _build_session(RuntimeConfig(builtin_tools=False))

    await _chat_loop(session, _inputs("", "/note remember this", "hello", None), MagicMock())

    kinds = [m.kind for m in session.messages]
    assert kinds == [
        MessageKind.SYSTEM,
        MessageKind.INFO,
        MessageKind.USER,
        MessageKind.ASSISTANT,
    ]
    assert session.messages[1].text == "remember this"


@pytest.mark.asyncio
@pytest.mark.parametrize("command", sorted(EXIT_COMMANDS))
async def test_chat_loop_exit_commands(command: str) -> None:
    with patch("parley.cli._create_backend", return_value=StubBackend()):
        session = _build_session(RuntimeConfig(builtin_tools=False))

    await _chat_loop(session, _inputs(command.upper(), "never read"), MagicMock())

    assert len(session.messages) == 1


@pytest.mark.asyncio
async def test_chat_loop_asks_for_confirmation_off_the_event_loop(tmp_path: Path) -> None:
    backend = StubBackend(
        ToolRequestReply(
            calls=[ToolCall(id="call_1", name="run_shell", arguments={"command": "true"})]
        ),
        ContentReply(content="skipped"),
    )
    with patch("parley.cli._create_backend", return_value=backend):
        session = _build_session(RuntimeConfig(), root=tmp_path)
    asked_on: list[threading.Thread] = []

    def _decline(pending: Any) -> bool:
        asked_on.append(threading.current_thread())
        return False

    await _chat_loop(session, _inputs("run it", None), _decline)

    assert len(asked_on) == 1
    assert asked_on[0] is not threading.main_thread()
    assert session.pending_confirmation is None
    assert session.last_assistant_content == "skipped"
