"""Turn engine driving the model/tool cycle over the message log.

The engine folds the log's tail into a NextAction, executes it, appends
the outcome, and repeats until the conversation needs the caller: either
a fresh user message or a decision on a gated tool call.

Failure handling follows one rule: anything a tool or its input does
wrong is recorded in the log as a failed tool result so the model can
react to it; a backend failure is published as ``engine_error`` and ends
the turn. Neither is raised to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from parley.conversation.messages import ToolUse
from parley.engine.actions import NextAction, next_action
from parley.engine.gate import ConfirmationGate, PendingConfirmation
from parley.errors import BackendError, ToolExecutionError, ToolValidationError, TurnLimitError
from parley.events import (
    AssistantMessageAppended,
    EngineError,
    EventHub,
    EventName,
    ToolCallFailed,
    ToolCallFinished,
    ToolCallStarted,
    ToolConfirmationRequested,
)
from parley.llm.base import ContentReply, ToolRequestReply
from parley.observability.logging import get_logger, log_context
from parley.tools.base import ToolCall, ToolOutcome

if TYPE_CHECKING:
    from collections.abc import Sequence

    from parley.conversation.log import MessageLog
    from parley.conversation.messages import MessageFactory
    from parley.llm.base import ChatBackend
    from parley.tools.base import Tool

log = get_logger(__name__)

CANCELLED_ERROR = "Tool call cancelled: the user declined to run it."
DECLINED_MESSAGE = "I declined the {tool_name} tool call. Do not run it; continue without it."


def _malformed_call(calls: Sequence[ToolCall]) -> str | None:
    """Describe the first call the log can't record, or None if all are usable.

    Empty ids are fine (they get reissued); names and arguments are not.
    """
    for call in calls:
        if not isinstance(call.name, str) or not call.name:
            return f"call {call.id!r} has no tool name"
        if call.id is not None and not isinstance(call.id, str):
            return f"call to {call.name} has a non-string id {call.id!r}"
        if not isinstance(call.arguments, dict):
            kind = type(call.arguments).__name__
            return f"call to {call.name} has {kind} arguments, expected an object"
    return None


class TurnEngine:
    """Executes next actions against the log until the caller is needed.

    The engine is the only writer of its MessageLog and the only owner of
    the confirmation slot. Callers serialize calls into one engine; there
    is no locking.

    Example:
        >>> engine = TurnEngine(backend, tools, log, factory, hub, gate)
        >>> log.append(factory.user("hi"))
        >>> await engine.advance()
        <NextAction.AWAIT_USER: 'await_user'>
    """

    def __init__(
        self,
        backend: ChatBackend,
        tools: Sequence[Tool],
        message_log: MessageLog,
        factory: MessageFactory,
        hub: EventHub,
        gate: ConfirmationGate,
        max_steps: int | None = None,
    ) -> None:
        self._backend = backend
        self._tools = {t.definition.name: t for t in tools}
        self._log = message_log
        self._factory = factory
        self._hub = hub
        self._gate = gate
        self._max_steps = max_steps
        self._call_seq = 0

    @property
    def pending(self) -> PendingConfirmation | None:
        return self._gate.pending

    def next_action(self) -> NextAction:
        return next_action(self._log, confirmation_pending=self._gate.pending is not None)

    async def advance(self) -> NextAction:
        """Run automatic actions until the caller is needed.

        Returns:
            The action the engine stopped at. ``INVOKE_MODEL`` here means
            the backend failed and the turn was halted; the caller must
            start a new turn to retry.
        """
        steps = 0
        while True:
            action = self.next_action()
            if action.is_terminal:
                log.debug("advance_stop", action=action.value, steps=steps)
                return action

            if self._max_steps is not None and steps >= self._max_steps:
                log.warning("turn_limit_exceeded", limit=self._max_steps)
                await self._report_error(TurnLimitError(self._max_steps))
                return action
            steps += 1

            if action is NextAction.INVOKE_MODEL:
                if not await self._invoke_model():
                    return action
            elif action is NextAction.RUN_TOOL:
                if not await self._run_tool():
                    return action

    async def resolve_confirmation(self, tool_use_id: str, approved: bool) -> NextAction:
        """Apply a human decision to the pending call and resume.

        Raises:
            ConfirmationViolation: If nothing is pending for ``tool_use_id``.
        """
        pending = self._gate.release(tool_use_id)
        call = pending.call
        log.info(
            "tool_confirmation_resolved",
            tool=call.name,
            tool_use_id=call.id,
            approved=approved,
        )

        if approved:
            with log_context(tool_use_id=call.id, tool=call.name):
                await self._execute(call)
        else:
            await self._hub.publish_and_await(
                EventName.TOOL_CALL_FAILED,
                ToolCallFailed(tool_use_id=call.id, tool_name=call.name, error=CANCELLED_ERROR),
            )
            self._log.append(
                self._factory.tool_result(call.id, None, error=CANCELLED_ERROR, tool_name=call.name)
            )
            self._log.append(self._factory.user(DECLINED_MESSAGE.format(tool_name=call.name)))

        return await self.advance()

    # --- Actions ---

    async def _invoke_model(self) -> bool:
        """Send the history to the backend and fold the reply into the log.

        Returns:
            False if the backend failed and the turn must stop.
        """
        messages = self._log.all()
        log.debug("llm_request", messages=len(messages))
        try:
            reply = await self._backend.invoke_model(messages)
        except (KeyboardInterrupt, SystemExit):
            raise
        except BackendError as e:
            await self._report_error(e)
            return False
        except Exception as e:
            await self._report_error(BackendError(type(self._backend).__name__, str(e)))
            return False

        if isinstance(reply, ContentReply):
            self._log.append(self._factory.assistant(reply.content))
            await self._hub.publish_and_await(
                EventName.ASSISTANT_MESSAGE_APPENDED,
                AssistantMessageAppended(content=reply.content),
            )
            return True

        if isinstance(reply, ToolRequestReply) and reply.calls:
            malformed = _malformed_call(reply.calls)
            if malformed is not None:
                await self._report_error(
                    BackendError(type(self._backend).__name__, f"Malformed tool call: {malformed}")
                )
                return False
            log.debug("tool_batch", calls=[c.name for c in reply.calls])
            await self._process_batch(reply.calls)
            return True

        await self._report_error(
            BackendError(type(self._backend).__name__, f"Unusable model reply: {reply!r}")
        )
        return False

    async def _run_tool(self) -> bool:
        """Run the earliest tool-request that has no result yet."""
        unanswered = self._log.unanswered_requests()
        if not unanswered:
            log.error("run_tool_without_request")
            return False
        request = unanswered[0]
        use = request.content
        arguments = use.input if isinstance(use, ToolUse) else {}
        call = ToolCall(
            id=request.tool_use_id or "",
            name=request.tool_name or "",
            arguments=arguments,
        )
        await self._clear_and_execute(call)
        return True

    # --- Confirmation gate path ---

    async def _process_batch(self, calls: Sequence[ToolCall]) -> None:
        """Append and clear each call in order.

        The first call that fails or needs confirmation ends the batch; the
        remaining calls are dropped and never reach the log.
        """
        for index, call in enumerate(calls):
            call = self._unique_call(call)
            self._log.append(self._factory.tool_request(call.name, call.id, call.arguments))
            if not await self._clear_and_execute(call):
                dropped = len(calls) - index - 1
                if dropped:
                    log.info(
                        "tool_batch_abandoned",
                        stopped_at=call.name,
                        dropped=[c.name for c in calls[index + 1 :]],
                    )
                return

    async def _clear_and_execute(self, call: ToolCall) -> bool:
        """Validate, gate, and run a call whose request is already logged.

        Returns:
            True if the call ran successfully and the batch may continue.
        """
        with log_context(tool_use_id=call.id, tool=call.name):
            return await self._clear_and_execute_call(call)

    async def _clear_and_execute_call(self, call: ToolCall) -> bool:
        tool = self._tools.get(call.name)
        if tool is None:
            error = ToolValidationError(call.name, f"Unknown tool '{call.name}'")
            await self._record_failure(call, str(error))
            return False

        try:
            validation = tool.validate(call.arguments)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:
            log.warning("tool_validate_error", tool=call.name, error=str(e))
            await self._record_failure(call, f"Validation of {call.name} failed: {e}")
            return False

        if not validation.ok:
            error = ToolValidationError(call.name, validation.error or "Invalid tool input")
            log.debug("tool_validation_failed", tool=call.name, error=str(error))
            await self._record_failure(call, str(error))
            return False

        try:
            reason = self._gate.check(tool, call.arguments)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:
            log.warning("tool_confirmation_check_error", tool=call.name, error=str(e))
            await self._record_failure(call, f"Confirmation check for {call.name} failed: {e}")
            return False

        if reason is not None:
            self._gate.hold(call, reason)
            await self._hub.publish_and_await(
                EventName.TOOL_CONFIRMATION_REQUESTED,
                ToolConfirmationRequested(
                    tool_use_id=call.id,
                    tool_name=call.name,
                    input=dict(call.arguments),
                ),
            )
            return False

        return await self._execute(call)

    async def _execute(self, call: ToolCall) -> bool:
        """Run an accepted call through the backend and log its result."""
        await self._hub.publish_and_await(
            EventName.TOOL_CALL_STARTED,
            ToolCallStarted(tool_use_id=call.id, tool_name=call.name, input=dict(call.arguments)),
        )

        try:
            outcomes = await self._backend.process_tool_calls([call])
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:
            log.warning("tool_call_error", tool=call.name, error=str(e))
            error = ToolExecutionError(call.name, f"Error executing {call.name}: {e}")
            outcome = ToolOutcome(tool_use_id=call.id, error=str(error))
        else:
            outcome = self._match_outcome(call, outcomes)

        if outcome.ok:
            await self._hub.publish_and_await(
                EventName.TOOL_CALL_FINISHED,
                ToolCallFinished(tool_use_id=call.id, tool_name=call.name, result=outcome.content),
            )
            self._log.append(
                self._factory.tool_result(call.id, outcome.content, tool_name=call.name)
            )
            return True

        await self._record_failure(call, outcome.error or "Tool failed", outcome.content)
        return False

    # --- Helpers ---

    async def _record_failure(self, call: ToolCall, error: str, content: Any = None) -> None:
        await self._hub.publish_and_await(
            EventName.TOOL_CALL_FAILED,
            ToolCallFailed(tool_use_id=call.id, tool_name=call.name, error=error),
        )
        self._log.append(
            self._factory.tool_result(call.id, content, error=error, tool_name=call.name)
        )

    async def _report_error(self, error: Exception) -> None:
        log.warning("engine_error", error=str(error), error_type=type(error).__name__)
        await self._hub.publish_and_await(EventName.ENGINE_ERROR, EngineError(error=error))

    def _match_outcome(self, call: ToolCall, outcomes: Sequence[ToolOutcome]) -> ToolOutcome:
        for outcome in outcomes:
            if outcome.tool_use_id == call.id:
                return outcome
        if len(outcomes) == 1:
            return outcomes[0]
        return ToolOutcome(tool_use_id=call.id, error=f"No result returned for {call.name}")

    def _unique_call(self, call: ToolCall) -> ToolCall:
        """Reissue ``call`` under a fresh id if its id is empty or already logged."""
        if call.id and self._log.request_for(call.id) is None:
            return call
        while True:
            self._call_seq += 1
            fresh = f"call_{self._call_seq}"
            if self._log.request_for(fresh) is None:
                break
        log.warning("tool_use_id_reissued", tool=call.name, original=call.id, reissued=fresh)
        return ToolCall(id=fresh, name=call.name, arguments=call.arguments)
