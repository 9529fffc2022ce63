"""Parley CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from dotenv import load_dotenv
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax

from parley.config import RuntimeConfig, load_runtime_config
from parley.errors import BackendError, ConfigError
from parley.events import EventName
from parley.llm.factory import create_chat_model, parse_provider
from parley.llm.langchain_backend import LangChainBackend
from parley.observability import close_file_logging, configure_logging, get_logger
from parley.session import AgentConfig, AgentSession
from parley.tools.builtin import get_builtin_tools

if TYPE_CHECKING:
    from parley.engine.gate import PendingConfirmation
    from parley.events import (
        AssistantMessageAppended,
        EngineError,
        ToolCallFailed,
        ToolCallFinished,
        ToolCallStarted,
        ToolConfirmationRequested,
    )
    from parley.llm.base import ChatBackend

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="parley",
    help="Parley: tool-using conversational agent with human confirmation.",
    no_args_is_help=True,
)
console = Console()

EXIT_COMMANDS = frozenset({"exit", "quit"})
NOTE_PREFIX = "/note "
DEFAULT_LOG_DIR = Path("logs")
MAX_RESULT_PREVIEW = 400

# Type aliases for the chat loop's input and confirmation hooks
InputFn = Callable[[], Awaitable[str | None]]
ConfirmFn = Callable[["PendingConfirmation"], bool]

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0


def _is_interactive_tty() -> bool:
    """Check if stdin/stdout are connected to a TTY."""
    return sys.stdin.isatty() and sys.stdout.isatty()


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log: Annotated[
        bool,
        typer.Option("--log", help="Enable file logging to {log-dir}/debug.jsonl."),
    ] = False,
    log_dir: Annotated[
        Path,
        typer.Option("--log-dir", help="Directory for log files.", envvar="PARLEY_LOG_DIR"),
    ] = DEFAULT_LOG_DIR,
) -> None:
    """Parley: tool-using conversational agent with human confirmation."""
    global _verbose
    _verbose = verbose

    configure_logging(verbosity=verbose, log_to_file=log, log_dir=log_dir if log else None)
    if log:
        atexit.register(close_file_logging)


@app.command()
def version() -> None:
    """Show version information."""
    from parley import __version__

    console.print(f"Parley v{__version__}")


# =============================================================================
# Session construction
# =============================================================================


def _create_backend(provider: str) -> ChatBackend:
    """Build the chat backend for a ``provider/model`` string.

    Raises:
        BackendError: If the provider is unknown or can't be initialized.
    """
    provider_name, model = parse_provider(provider)
    chat_model = create_chat_model(provider_name, model)
    return LangChainBackend(chat_model, name=provider_name)


def _build_session(
    runtime: RuntimeConfig,
    provider: str | None = None,
    accept_all: bool = False,
    system: str | None = None,
    no_tools: bool = False,
    root: Path | None = None,
) -> AgentSession:
    """Create an agent session from runtime config and CLI overrides.

    Raises:
        BackendError: If the chat model can't be created.
        ConfigError: If the resulting configuration is invalid.
    """
    log = get_logger(__name__)
    provider_string = provider or runtime.effective_provider()
    backend = _create_backend(provider_string)
    tools = [] if no_tools or not runtime.builtin_tools else get_builtin_tools(root)

    log.debug("provider_configured", provider=provider_string, tools=len(tools))
    return AgentSession(
        AgentConfig(
            system_prompt=system if system is not None else runtime.system_prompt,
            llm=backend,
            tools=tools,
            initial_user_messages=runtime.initial_user_messages,
            auto_accept_all=accept_all or runtime.effective_auto_accept(),
            policy=runtime.policy,
            max_steps=runtime.max_steps,
        )
    )


# =============================================================================
# Rendering
# =============================================================================


def _format_payload(value: Any) -> str:
    text = json.dumps(value, indent=2, default=str) if not isinstance(value, str) else value
    if len(text) > MAX_RESULT_PREVIEW:
        return text[:MAX_RESULT_PREVIEW] + "\n…"
    return text


def _register_renderers(session: AgentSession, console_: Console) -> None:
    """Subscribe Rich renderers for the session's events."""

    def _on_assistant(payload: AssistantMessageAppended) -> None:
        console_.print()
        console_.print(
            Panel.fit(
                Markdown(payload.content),
                title="Assistant",
                title_align="left",
                border_style="green",
            )
        )

    def _on_tool_started(payload: ToolCallStarted) -> None:
        console_.print(f"[dim]→ {payload.tool_name}[/dim]")

    def _on_confirmation(payload: ToolConfirmationRequested) -> None:
        console_.print(
            Panel(
                Syntax(_format_payload(payload.input), "json", theme="ansi_dark"),
                title=f"[yellow]{payload.tool_name}[/yellow] wants to run",
                title_align="left",
                border_style="yellow",
            )
        )

    def _on_tool_finished(payload: ToolCallFinished) -> None:
        console_.print(f"[green]✓[/green] {payload.tool_name}")
        if _verbose:
            console_.print(f"[dim]{_format_payload(payload.result)}[/dim]", markup=False)

    def _on_tool_failed(payload: ToolCallFailed) -> None:
        console_.print(f"[red]✗[/red] {payload.tool_name}: {escape(payload.error)}")

    def _on_engine_error(payload: EngineError) -> None:
        console_.print(
            Panel.fit(
                escape(str(payload.error)),
                title="Error",
                title_align="left",
                border_style="red",
            )
        )

    session.on(
        {
            EventName.ASSISTANT_MESSAGE_APPENDED: _on_assistant,
            EventName.TOOL_CALL_STARTED: _on_tool_started,
            EventName.TOOL_CONFIRMATION_REQUESTED: _on_confirmation,
            EventName.TOOL_CALL_FINISHED: _on_tool_finished,
            EventName.TOOL_CALL_FAILED: _on_tool_failed,
            EventName.ENGINE_ERROR: _on_engine_error,
        }
    )


# =============================================================================
# Interactive loop
# =============================================================================


def _make_input_fn(console_: Console) -> InputFn:
    """Return an async reader for user turns (None on EOF or Ctrl+C)."""
    prompt_session: PromptSession[str] | None = (
        PromptSession() if _is_interactive_tty() else None
    )

    def _prompt() -> str:
        if prompt_session is None:
            line = sys.stdin.readline()
            if not line:
                raise EOFError
            return line.rstrip("\n")
        with patch_stdout():
            text: str = prompt_session.prompt(HTML("<b><ansicyan>You</ansicyan></b>: "))
            return text

    async def _async_user_input() -> str | None:
        console_.print()
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, _prompt)
        except (EOFError, KeyboardInterrupt):
            return None

    return _async_user_input


def _confirm_tool(pending: PendingConfirmation) -> bool:
    return typer.confirm(f"Run {pending.tool_name}?", default=False)


async def _chat_loop(session: AgentSession, read_input: InputFn, confirm: ConfirmFn) -> None:
    """Read user turns and settle confirmations until the user leaves.

    ``confirm`` blocks on the terminal and runs in the default executor.
    """
    log = get_logger(__name__)
    loop = asyncio.get_running_loop()
    while True:
        text = await read_input()
        if text is None or text.strip().lower() in EXIT_COMMANDS:
            break
        if not text.strip():
            continue
        if text.startswith(NOTE_PREFIX):
            session.add_info(text[len(NOTE_PREFIX) :].strip())
            continue

        await session.run(text)
        while (pending := session.pending_confirmation) is not None:
            approved = bool(await loop.run_in_executor(None, confirm, pending))
            await session.resolve_confirmation(pending.tool_use_id, approved)

    log.debug("chat_loop_exit", messages=len(session.messages))


@app.command()
def chat(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Config file (default: ./parley.yaml)."),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Provider/model, e.g. openai/gpt-4o."),
    ] = None,
    accept_all: Annotated[
        bool,
        typer.Option("--accept-all", "-y", help="Run every tool call without asking."),
    ] = False,
    system: Annotated[
        str | None,
        typer.Option("--system", help="Override the system prompt."),
    ] = None,
    no_tools: Annotated[
        bool,
        typer.Option("--no-tools", help="Don't offer the built-in file and shell tools."),
    ] = False,
) -> None:
    """Start an interactive chat session.

    Type 'exit' or 'quit' (or press Ctrl+D) to leave. Lines starting with
    '/note ' are kept in the history as annotations without calling the model.
    """
    try:
        runtime = load_runtime_config(config)
        session = _build_session(
            runtime,
            provider=provider,
            accept_all=accept_all,
            system=system,
            no_tools=no_tools,
        )
    except (ConfigError, BackendError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    _register_renderers(session, console)
    console.print("[bold]Parley[/bold] [dim](exit, quit or Ctrl+D to leave)[/dim]")

    try:
        asyncio.run(_chat_loop(session, _make_input_fn(console), _confirm_tool))
    finally:
        session.close()
