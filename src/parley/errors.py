"""Exception hierarchy for Parley.

Tool- and validation-level failures are absorbed into the conversation as
failed tool results; only structural misuse reaches the caller.
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - used at runtime


class ParleyError(Exception):
    """Base exception for all Parley errors."""


class ConfigError(ParleyError):
    """Raised when agent or runtime configuration is malformed.

    Attributes:
        path: Config file the error came from, if any.
        reason: Description of the problem.
    """

    def __init__(self, reason: str, path: Path | None = None) -> None:
        self.path = path
        self.reason = reason
        if path is not None:
            super().__init__(f"Invalid config at {path}: {reason}")
        else:
            super().__init__(f"Invalid config: {reason}")


class MessageLogError(ParleyError):
    """Raised when an append would break the message log invariants."""


class BackendError(ParleyError):
    """Raised when the LLM backend fails to produce a reply."""

    def __init__(self, backend: str, message: str) -> None:
        self.backend = backend
        super().__init__(f"[{backend}] {message}")


class ToolValidationError(ParleyError):
    """A tool rejected its input before execution."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class ToolExecutionError(ParleyError):
    """A tool raised or reported an error while executing."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class ConfirmationViolation(ParleyError):
    """Raised when resolving a confirmation that is not pending.

    Attributes:
        tool_use_id: The id the caller tried to resolve.
        pending_id: The id actually pending, or None.
    """

    def __init__(self, tool_use_id: str, pending_id: str | None) -> None:
        self.tool_use_id = tool_use_id
        self.pending_id = pending_id
        if pending_id is None:
            detail = "no confirmation is pending"
        else:
            detail = f"pending confirmation is for {pending_id!r}"
        super().__init__(f"Cannot resolve confirmation for {tool_use_id!r}: {detail}")


class ConfirmationPendingError(ParleyError):
    """Raised when a new turn starts while a tool call awaits confirmation."""

    def __init__(self, tool_use_id: str) -> None:
        self.tool_use_id = tool_use_id
        super().__init__(
            f"Tool call {tool_use_id!r} is awaiting confirmation; "
            "resolve it before sending another message"
        )


class TurnLimitError(ParleyError):
    """Reported through engine_error when a turn exceeds its step budget."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"Turn exceeded {limit} automatic steps. "
            "This may indicate the model is stuck in a tool call loop."
        )
