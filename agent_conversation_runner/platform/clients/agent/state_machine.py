"""Conversation state machine.

Consumes decoded events in arrival order and tracks the running answer,
the tool calls the agent has opened, and the terminal outcome of a run:

    idle -> streaming -> {completed, failed, timed_out}

Violations of the tool-call protocol are detected here and turn the run
into ``failed`` rather than producing a wrong answer. Once a terminal
state is reached no further events are processed.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, assert_never

from pydantic import BaseModel, ConfigDict

from agent_conversation_runner.platform.clients.agent.events import (
    Error,
    Event,
    Final,
    Status,
    TextDelta,
    ToolCallResult,
    ToolCallStart,
)
from agent_conversation_runner.platform.clients.agent.exceptions import AgentDecodeError, AgentProtocolError
from agent_conversation_runner.platform.observability import get_logger

logger = get_logger(__name__)


class RunState(StrEnum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset({RunState.COMPLETED, RunState.FAILED, RunState.TIMED_OUT})


class ToolCallState(StrEnum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorKind(StrEnum):
    """Client-side error kinds recorded on failed runs.

    Errors reported by the agent itself keep the agent's own kind.
    """

    CONNECTION_ERROR = "ConnectionError"
    DECODE_ERROR = "DecodeError"
    PROTOCOL_ERROR = "ProtocolError"
    INCOMPLETE_TOOL_CALL = "IncompleteToolCall"
    UNEXPECTED_END_OF_STREAM = "UnexpectedEndOfStream"
    TIMEOUT_ERROR = "TimeoutError"


class RunError(BaseModel):
    """Why a run did not complete."""

    model_config = ConfigDict(frozen=True)

    kind: str
    message: str


class ToolCall(BaseModel):
    """A tool invocation observed during a run.

    Attributes:
        id: Identifier, unique within the run.
        name: Tool name.
        arguments: Arguments the agent passed.
        state: Lifecycle state.
        payload: Result payload once the call returned.
        is_error: The tool reported an error in its payload.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = {}
    state: ToolCallState = ToolCallState.STARTED
    payload: Any = None
    is_error: bool = False

    @property
    def result_observed(self) -> bool:
        return self.state != ToolCallState.STARTED


@dataclass(frozen=True)
class RunSnapshot:
    """Point-in-time copy of the machine's accumulated state."""

    state: RunState
    answer: str
    tool_calls: tuple[ToolCall, ...]
    events: tuple[Event, ...]
    error: RunError | None
    decode_errors: int

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class ConversationStateMachine:
    """Ordered event consumer for a single run.

    Not thread-safe; a run feeds one event at a time.
    """

    def __init__(self, strict: bool = False):
        """Initialize an idle machine.

        Args:
            strict: Promote malformed frames to a fatal DecodeError.
        """
        self._strict = strict
        self._state = RunState.IDLE
        self._chunks: list[str] = []
        self._tool_calls: dict[str, ToolCall] = {}
        self._events: list[Event] = []
        self._error: RunError | None = None
        self._decode_errors = 0

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def has_observed_events(self) -> bool:
        """Whether any event has been decoded, making the run unsafe to retry."""
        return bool(self._events)

    @property
    def answer(self) -> str:
        return "".join(self._chunks)

    def feed(self, event: Event) -> RunState:
        """Apply one decoded event.

        Args:
            event: The next event in arrival order.

        Returns:
            The state after the transition.
        """
        if self.is_terminal:
            logger.warning("Ignoring event after terminal state", state=self._state, event_type=event.type)
            return self._state

        self._events.append(event)
        if self._state == RunState.IDLE:
            self._state = RunState.STREAMING

        match event:
            case TextDelta():
                self._chunks.append(event.text)
            case ToolCallStart():
                self._start_tool_call(event)
            case ToolCallResult():
                self._complete_tool_call(event)
            case Status():
                logger.debug("Agent status", phase=event.phase, tag=event.tag)
            case Error():
                self._fail(event.kind, event.message)
            case Final():
                self._finish()
            case _:
                assert_never(event)

        return self._state

    def record_decode_error(self, error: AgentDecodeError) -> RunState:
        """Account for a frame the decoder rejected.

        The frame is dropped unless the machine is strict, in which case
        an Error event is synthesized so the event log explains the failure.
        """
        if self.is_terminal:
            return self._state

        self._decode_errors += 1
        if not self._strict:
            logger.warning("Dropping malformed frame", reason=error.reason, sse_event=error.frame.event)
            return self._state

        return self.feed(Error(kind=ErrorKind.DECODE_ERROR, message=str(error)))

    def end_of_stream(self) -> RunState:
        """The transport closed; fail the run unless it already ended."""
        if not self.is_terminal:
            self._fail(
                ErrorKind.UNEXPECTED_END_OF_STREAM,
                "Stream closed before a final or error event",
            )
        return self._state

    def interrupt(self, kind: str, message: str) -> RunState:
        """Fail the run for a reason outside the event stream.

        Once streaming, the failure is logged as a synthesized Error event so
        the event log replays to the same outcome. A run that never streamed
        keeps an empty log.
        """
        if self.is_terminal:
            return self._state
        if self._state == RunState.STREAMING:
            return self.feed(Error(kind=kind, message=message))
        self._fail(kind, message)
        return self._state

    def time_out(self, message: str = "Run deadline exceeded") -> RunState:
        """Force the run into timed_out."""
        if not self.is_terminal:
            self._error = RunError(kind=ErrorKind.TIMEOUT_ERROR, message=message)
            self._state = RunState.TIMED_OUT
            logger.warning("Run timed out", open_tool_calls=self._open_call_ids())
        return self._state

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            state=self._state,
            answer=self.answer,
            tool_calls=tuple(self._tool_calls.values()),
            events=tuple(self._events),
            error=self._error,
            decode_errors=self._decode_errors,
        )

    def _start_tool_call(self, event: ToolCallStart) -> None:
        if event.id in self._tool_calls:
            self._protocol_violation("duplicate tool call start", event.id)
            return
        self._tool_calls[event.id] = ToolCall(id=event.id, name=event.name, arguments=event.arguments)
        logger.info("Tool call started", tool_call_id=event.id, tool_name=event.name)

    def _complete_tool_call(self, event: ToolCallResult) -> None:
        call = self._tool_calls.get(event.id)
        if call is None or call.state != ToolCallState.STARTED:
            self._protocol_violation("result for an unknown or already returned tool call", event.id)
            return
        # tool errors are results, not lifecycle failures
        self._tool_calls[event.id] = call.model_copy(
            update={"state": ToolCallState.COMPLETED, "payload": event.payload, "is_error": event.is_error}
        )
        logger.info(
            "Tool call returned", tool_call_id=event.id, tool_name=call.name, is_error=event.is_error
        )

    def _finish(self) -> None:
        open_ids = self._open_call_ids()
        if open_ids:
            self._fail(
                ErrorKind.INCOMPLETE_TOOL_CALL,
                f"Final event received with open tool calls: {', '.join(open_ids)}",
            )
            return
        self._state = RunState.COMPLETED

    def _protocol_violation(self, message: str, tool_call_id: str) -> None:
        self._fail(ErrorKind.PROTOCOL_ERROR, str(AgentProtocolError(message, tool_call_id=tool_call_id)))

    def _fail(self, kind: str, message: str) -> None:
        self._error = RunError(kind=kind, message=message)
        self._state = RunState.FAILED
        logger.warning("Run failed", error_kind=kind, error_message=message)

    def _open_call_ids(self) -> list[str]:
        return [call.id for call in self._tool_calls.values() if call.state == ToolCallState.STARTED]
