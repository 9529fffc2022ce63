"""Notification hub for session lifecycle events.

Observers subscribe handlers by event name and receive a frozen payload
record. The hub is purely observational: a handler that raises is logged
and skipped, and the publisher never sees the failure.

Handlers may be plain callables or coroutine functions. ``publish`` runs
coroutine handlers as fire-and-forget tasks; ``publish_and_await`` waits
for all of them to settle.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from parley.observability.logging import get_logger

log = get_logger(__name__)

Handler = Callable[[Any], Any]


class EventName(str, Enum):
    """Events emitted by the turn engine."""

    TURN_STARTED = "turn_started"
    USER_MESSAGE_APPENDED = "user_message_appended"
    ASSISTANT_MESSAGE_APPENDED = "assistant_message_appended"
    TOOL_CALL_STARTED = "tool_call_started"
    TOOL_CONFIRMATION_REQUESTED = "tool_confirmation_requested"
    TOOL_CALL_FINISHED = "tool_call_finished"
    TOOL_CALL_FAILED = "tool_call_failed"
    ENGINE_ERROR = "engine_error"


# --- Payload records ---


@dataclass(frozen=True)
class TurnStarted:
    content: str


@dataclass(frozen=True)
class UserMessageAppended:
    content: str


@dataclass(frozen=True)
class AssistantMessageAppended:
    content: str


@dataclass(frozen=True)
class ToolCallStarted:
    tool_use_id: str
    tool_name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolConfirmationRequested:
    tool_use_id: str
    tool_name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallFinished:
    tool_use_id: str
    tool_name: str
    result: Any = None


@dataclass(frozen=True)
class ToolCallFailed:
    tool_use_id: str
    tool_name: str
    error: str


@dataclass(frozen=True)
class EngineError:
    error: BaseException


def _key(event: EventName | str) -> str:
    return event.value if isinstance(event, EventName) else str(event)


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventHub:
    """Typed publish/subscribe hub.

    Subscribers are invoked in subscription order. Unknown event names are
    accepted so callers can publish their own events through the same hub.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._pending: set[asyncio.Task[Any]] = set()

    def subscribe(self, event: EventName | str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event``.

        Returns:
            A callable that removes this subscription. Calling it twice is
            harmless.
        """
        key = _key(event)
        handlers = self._handlers.setdefault(key, [])
        handlers.append(handler)

        def _unsubscribe() -> None:
            current = self._handlers.get(key)
            if current and handler in current:
                current.remove(handler)

        return _unsubscribe

    def unsubscribe_all(self, event: EventName | str | None = None) -> None:
        """Drop every handler for ``event``, or for all events if None."""
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(_key(event), None)

    def handler_count(self, event: EventName | str) -> int:
        return len(self._handlers.get(_key(event), ()))

    def _dispatch(self, key: str, payload: Any) -> list[Any]:
        results: list[Any] = []
        # Copy so handlers may unsubscribe themselves mid-dispatch
        for handler in list(self._handlers.get(key, ())):
            try:
                results.append(handler(payload))
            except (KeyboardInterrupt, SystemExit):
                raise
            except Exception as e:
                log.warning(
                    "event_handler_failed",
                    event_name=key,
                    handler=_handler_name(handler),
                    error=str(e),
                )
                results.append(None)
        return results

    def publish(self, event: EventName | str, payload: Any = None) -> list[Any]:
        """Invoke all handlers for ``event`` without waiting on async ones.

        Awaitable results are scheduled as tasks on the running loop and the
        tasks are returned in their place. Outside a running loop they are
        discarded with a warning.

        Returns:
            Handler results in subscription order (None for handlers that
            raised).
        """
        key = _key(event)
        results = self._dispatch(key, payload)
        for index, result in enumerate(results):
            if inspect.isawaitable(result):
                results[index] = self._schedule(key, result)
        return results

    async def publish_and_await(self, event: EventName | str, payload: Any = None) -> list[Any]:
        """Invoke all handlers and wait until every async handler settles.

        Handlers are started in subscription order; completion order is
        unspecified. Failures are logged, never raised.

        Returns:
            Handler results in subscription order, with awaitables replaced
            by their settled values (None for failures).
        """
        key = _key(event)
        results = self._dispatch(key, payload)
        awaiting = [(i, r) for i, r in enumerate(results) if inspect.isawaitable(r)]
        if not awaiting:
            return results

        settled = await asyncio.gather(*(r for _, r in awaiting), return_exceptions=True)
        for (index, _), value in zip(awaiting, settled, strict=True):
            if isinstance(value, BaseException):
                if isinstance(value, (KeyboardInterrupt, SystemExit)):
                    raise value
                log.warning("event_handler_failed", event_name=key, error=str(value))
                results[index] = None
            else:
                results[index] = value
        return results

    def _schedule(self, key: str, awaitable: Any) -> asyncio.Task[Any] | None:
        try:
            loop = asyncio.get_running_loop()
            task = asyncio.ensure_future(awaitable, loop=loop)
        except RuntimeError:
            # No running loop to own the coroutine
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            log.warning("event_handler_dropped", event_name=key, reason="no_running_loop")
            return None

        self._pending.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                log.warning("event_handler_failed", event_name=key, error=str(error))

        task.add_done_callback(_done)
        return task
