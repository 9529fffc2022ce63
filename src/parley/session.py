"""Agent session: the public surface over the turn engine.

A session owns its message log, notification hub, and confirmation slot.
Callers interact only through ``run`` and ``resolve_confirmation`` and
observe progress through event handlers registered with ``on``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from parley.conversation.ids import uuid_ids
from parley.conversation.log import MessageLog
from parley.conversation.messages import Message, MessageFactory, MessageKind
from parley.engine.actions import NextAction
from parley.engine.gate import ConfirmationGate, PendingConfirmation
from parley.engine.turn import TurnEngine
from parley.errors import ConfigError, ConfirmationPendingError
from parley.events import EventHub, EventName, Handler, TurnStarted, UserMessageAppended
from parley.llm.base import ChatBackend
from parley.observability.logging import get_logger, log_context
from parley.tools.base import Tool
from parley.tools.policy import ConfirmationPolicy

if TYPE_CHECKING:
    from types import TracebackType

    from parley.conversation.ids import Clock, IdFactory

log = get_logger(__name__)


@dataclass
class AgentConfig:
    """Configuration for a new agent session.

    Attributes:
        system_prompt: Session instruction, stored as the first message.
        llm: Chat backend that answers and executes tool calls.
        tools: Tools offered to the model, in registration order.
        initial_user_messages: User turns seeded after the system prompt.
        auto_accept_all: Run every tool call without asking for confirmation.
        policy: Table of effects and tool names that always need confirmation.
        max_steps: Optional cap on automatic steps per turn (None = unbounded).
        id_factory: Message id source (defaults to UUID4).
        clock: Timestamp source (defaults to UTC now).
    """

    system_prompt: str
    llm: ChatBackend
    tools: Sequence[Tool] = ()
    initial_user_messages: Sequence[str] = ()
    auto_accept_all: bool = False
    policy: ConfirmationPolicy = field(default_factory=ConfirmationPolicy)
    max_steps: int | None = None
    id_factory: IdFactory | None = None
    clock: Clock | None = None

    def validate(self) -> None:
        """Check the configuration is usable.

        Raises:
            ConfigError: Describing the first problem found.
        """
        if not isinstance(self.system_prompt, str):
            kind = type(self.system_prompt).__name__
            raise ConfigError(f"system_prompt must be a string, got {kind}")
        if isinstance(self.initial_user_messages, str):
            raise ConfigError("initial_user_messages must be a sequence of strings, not a string")
        for index, text in enumerate(self.initial_user_messages):
            if not isinstance(text, str):
                raise ConfigError(f"initial_user_messages[{index}] must be a string")
        if self.llm is None or not isinstance(self.llm, ChatBackend):
            raise ConfigError(f"llm {self.llm!r} doesn't implement the ChatBackend protocol")
        if not isinstance(self.policy, ConfirmationPolicy):
            raise ConfigError(f"policy must be a ConfirmationPolicy, got {self.policy!r}")
        if self.max_steps is not None and self.max_steps < 1:
            raise ConfigError(f"max_steps must be at least 1, got {self.max_steps}")

        seen: set[str] = set()
        for tool in self.tools:
            if not isinstance(tool, Tool):
                raise ConfigError(f"Tool {tool!r} doesn't implement the Tool protocol")
            name = tool.definition.name
            if not name:
                raise ConfigError(f"Tool {tool!r} has an empty name")
            if name in seen:
                raise ConfigError(f"Duplicate tool name: {name}")
            seen.add(name)


def _event_key(name: EventName | str) -> EventName:
    try:
        return name if isinstance(name, EventName) else EventName(name)
    except ValueError:
        known = ", ".join(e.value for e in EventName)
        raise ValueError(f"Unknown event {name!r}. Known events: {known}") from None


class AgentSession:
    """A running conversation between a caller, an LLM, and tools.

    Construction appends the system prompt and any initial user messages
    but does not contact the model; the first ``run`` does.

    Example:
        >>> session = AgentSession(AgentConfig(system_prompt="Be brief", llm=backend))
        >>> session.on({EventName.TOOL_CONFIRMATION_REQUESTED: show_prompt})
        >>> reply = await session.run("What's in README.md?")
        >>> if session.pending_confirmation:
        ...     await session.resolve_confirmation(session.pending_confirmation.tool_use_id, True)
    """

    def __init__(self, config: AgentConfig) -> None:
        config.validate()
        self._config = config
        self.session_id = uuid_ids()()
        self._hub = EventHub()
        self._log = MessageLog()
        self._factory = MessageFactory(config.id_factory, config.clock)
        self._gate = ConfirmationGate(
            policy=config.policy,
            auto_accept_all=config.auto_accept_all,
            clock=config.clock,
        )
        tools = list(config.tools)
        self._engine = TurnEngine(
            backend=config.llm,
            tools=tools,
            message_log=self._log,
            factory=self._factory,
            hub=self._hub,
            gate=self._gate,
            max_steps=config.max_steps,
        )

        config.llm.register_tools(tools)

        self._log.append(self._factory.system(config.system_prompt))
        for text in config.initial_user_messages:
            self._log.append(self._factory.user(text))

        log.info(
            "session_created",
            session_id=self.session_id,
            tools=[t.definition.name for t in tools],
            initial_user_messages=len(config.initial_user_messages),
            auto_accept_all=config.auto_accept_all,
        )

    # --- Observation ---

    def on(self, handlers: Mapping[EventName | str, Handler]) -> AgentSession:
        """Subscribe handlers by event name and return the session.

        Raises:
            ValueError: If a name is not in the event catalog.
        """
        for name, handler in handlers.items():
            self._hub.subscribe(_event_key(name), handler)
        return self

    def subscribe(self, event: EventName | str, handler: Handler) -> Callable[[], None]:
        """Subscribe one handler; returns its unsubscribe callable."""
        return self._hub.subscribe(_event_key(event), handler)

    @property
    def messages(self) -> tuple[Message, ...]:
        """The full ordered message log."""
        return self._log.all()

    @property
    def pending_confirmation(self) -> PendingConfirmation | None:
        return self._gate.pending

    @property
    def next_action(self) -> NextAction:
        return self._engine.next_action()

    @property
    def last_assistant_content(self) -> str | None:
        message = self._log.latest_of_kind(MessageKind.ASSISTANT)
        return message.text if message is not None else None

    @property
    def last_user_message(self) -> Message | None:
        return self._log.latest_of_kind(MessageKind.USER)

    # --- Operations ---

    async def run(self, text: str) -> str | None:
        """Send a user message and drive the conversation until it yields.

        Backend and tool failures are never raised here; they surface as
        ``engine_error`` / ``tool_call_failed`` events and in the log.

        Returns:
            Content of the most recent assistant message in the log, which
            may predate this call if the turn stopped early. None if the
            model has never answered.

        Raises:
            ConfirmationPendingError: If a tool call still awaits a decision.
        """
        pending = self._gate.pending
        if pending is not None:
            raise ConfirmationPendingError(pending.tool_use_id)

        with log_context(session_id=self.session_id):
            await self._hub.publish_and_await(EventName.TURN_STARTED, TurnStarted(content=text))
            self._log.append(self._factory.user(text))
            await self._hub.publish_and_await(
                EventName.USER_MESSAGE_APPENDED, UserMessageAppended(content=text)
            )

            action = await self._engine.advance()
            log.debug("turn_complete", stopped_at=action.value, messages=len(self._log))
        return self.last_assistant_content

    async def resolve_confirmation(self, tool_use_id: str, approved: bool) -> None:
        """Approve or decline the pending tool call and resume the turn.

        Raises:
            ConfirmationViolation: If ``tool_use_id`` is not the pending call.
        """
        with log_context(session_id=self.session_id):
            await self._engine.resolve_confirmation(tool_use_id, approved)

    async def advance(self) -> NextAction:
        """Resume automatic progress without adding a message.

        Useful after an ``engine_error`` halted a turn whose tail still
        calls for the model.
        """
        with log_context(session_id=self.session_id):
            return await self._engine.advance()

    def add_info(self, text: str) -> str:
        """Append an info annotation; it never changes the next action."""
        return self._log.append(self._factory.info(text))

    def close(self) -> None:
        """Release every event subscription."""
        self._hub.unsubscribe_all()
        log.debug("session_closed", messages=len(self._log))

    async def __aenter__(self) -> AgentSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def create_agent(config: AgentConfig | None = None, **kwargs: Any) -> AgentSession:
    """Create an agent session from a config or keyword arguments.

    Example:
        >>> agent = create_agent(system_prompt="You are helpful", llm=backend, tools=[calc])
    """
    if config is None:
        try:
            config = AgentConfig(**kwargs)
        except TypeError as e:
            raise ConfigError(str(e)) from e
    elif kwargs:
        raise ConfigError("Pass either an AgentConfig or keyword arguments, not both")
    return AgentSession(config)
