"""Unit tests for the conversation state machine."""

import itertools

import pytest

from agent_conversation_runner.platform.clients.agent.events import (
    Error,
    Final,
    RawFrame,
    Status,
    TextDelta,
    ToolCallResult,
    ToolCallStart,
)
from agent_conversation_runner.platform.clients.agent.exceptions import AgentDecodeError
from agent_conversation_runner.platform.clients.agent.state_machine import (
    ConversationStateMachine,
    ErrorKind,
    RunState,
    ToolCallState,
)


def feed_all(machine: ConversationStateMachine, events) -> RunState:
    state = machine.state
    for event in events:
        state = machine.feed(event)
    return state


class TestTransitions:
    """Tests for the basic transition table."""

    def test_starts_idle(self):
        """A new machine is idle with nothing observed."""
        machine = ConversationStateMachine()
        assert machine.state == RunState.IDLE
        assert machine.has_observed_events is False

    def test_first_event_enters_streaming(self):
        """The first decoded event moves idle to streaming."""
        machine = ConversationStateMachine()
        assert machine.feed(Status(phase="planning")) == RunState.STREAMING
        assert machine.has_observed_events is True

    def test_scenario_text_only(self):
        """Text deltas then Final complete with the concatenated answer."""
        machine = ConversationStateMachine()
        state = feed_all(machine, [TextDelta(text="Sales "), TextDelta(text="up 5%"), Final()])

        snapshot = machine.snapshot()
        assert state == RunState.COMPLETED
        assert snapshot.answer == "Sales up 5%"
        assert snapshot.tool_calls == ()
        assert snapshot.error is None

    def test_scenario_tool_call(self):
        """A started and returned tool call completes with its payload."""
        machine = ConversationStateMachine()
        state = feed_all(
            machine,
            [
                ToolCallStart(id="1", name="search"),
                TextDelta(text="Checking…"),
                ToolCallResult(id="1", payload={"hits": 3}),
                TextDelta(text=" Found 3 matches."),
                Final(),
            ],
        )

        snapshot = machine.snapshot()
        assert state == RunState.COMPLETED
        assert snapshot.answer == "Checking… Found 3 matches."
        assert len(snapshot.tool_calls) == 1
        call = snapshot.tool_calls[0]
        assert call.id == "1"
        assert call.state == ToolCallState.COMPLETED
        assert call.payload == {"hits": 3}

    def test_scenario_incomplete_tool_call(self):
        """Final with an open tool call fails with IncompleteToolCall."""
        machine = ConversationStateMachine()
        state = feed_all(machine, [ToolCallStart(id="1", name="search"), Final()])

        snapshot = machine.snapshot()
        assert state == RunState.FAILED
        assert snapshot.error.kind == ErrorKind.INCOMPLETE_TOOL_CALL
        assert snapshot.tool_calls[0].state == ToolCallState.STARTED

    def test_scenario_stream_closes_early(self):
        """Closing without Final fails but keeps the partial answer."""
        machine = ConversationStateMachine()
        machine.feed(TextDelta(text="partial"))
        state = machine.end_of_stream()

        snapshot = machine.snapshot()
        assert state == RunState.FAILED
        assert snapshot.error.kind == ErrorKind.UNEXPECTED_END_OF_STREAM
        assert snapshot.answer == "partial"

    def test_error_event_fails_with_remote_kind(self):
        """An Error event fails the run with the agent's kind and message."""
        machine = ConversationStateMachine()
        state = feed_all(machine, [TextDelta(text="a"), Error(kind="rate_limited", message="slow")])

        assert state == RunState.FAILED
        assert machine.snapshot().error.kind == "rate_limited"
        assert machine.snapshot().error.message == "slow"

    def test_status_events_do_not_change_answer(self):
        """Status events are logged only."""
        machine = ConversationStateMachine()
        feed_all(machine, [Status(phase="planning"), Status(phase="unknown", tag="x.y"), Final()])
        assert machine.state == RunState.COMPLETED
        assert machine.answer == ""

    def test_tool_error_result_completes_call_with_error_flag(self):
        """A tool result flagged as an error completes the call; the run still completes."""
        machine = ConversationStateMachine()
        state = feed_all(
            machine,
            [ToolCallStart(id="t", name="sql"), ToolCallResult(id="t", payload="bad sql", is_error=True), Final()],
        )

        call = machine.snapshot().tool_calls[0]
        assert state == RunState.COMPLETED
        assert call.state == ToolCallState.COMPLETED
        assert call.is_error is True
        assert call.payload == "bad sql"

    def test_successful_tool_result_is_not_an_error(self):
        machine = ConversationStateMachine()
        feed_all(machine, [ToolCallStart(id="t", name="sql"), ToolCallResult(id="t", payload=[1]), Final()])
        assert machine.snapshot().tool_calls[0].is_error is False


class TestProtocolViolations:
    """Tests for tool-call protocol violation detection."""

    def test_result_for_unknown_id(self):
        """A result with an unregistered id is a protocol error."""
        machine = ConversationStateMachine()
        state = machine.feed(ToolCallResult(id="ghost", payload=None))
        assert state == RunState.FAILED
        assert machine.snapshot().error.kind == ErrorKind.PROTOCOL_ERROR

    def test_duplicate_start(self):
        """A duplicate start id is a protocol error."""
        machine = ConversationStateMachine()
        state = feed_all(machine, [ToolCallStart(id="1", name="a"), ToolCallStart(id="1", name="b")])
        assert state == RunState.FAILED
        assert machine.snapshot().error.kind == ErrorKind.PROTOCOL_ERROR
        assert len(machine.snapshot().tool_calls) == 1

    def test_second_result_for_same_call(self):
        """A call can only return once."""
        machine = ConversationStateMachine()
        state = feed_all(
            machine,
            [ToolCallStart(id="1", name="a"), ToolCallResult(id="1"), ToolCallResult(id="1")],
        )
        assert state == RunState.FAILED
        assert machine.snapshot().error.kind == ErrorKind.PROTOCOL_ERROR


class TestTerminalBehavior:
    """Tests for behavior once a terminal state is reached."""

    def test_events_after_terminal_are_ignored(self):
        """Nothing is processed or logged after a terminal transition."""
        machine = ConversationStateMachine()
        feed_all(machine, [TextDelta(text="done"), Final()])
        machine.feed(TextDelta(text=" extra"))

        snapshot = machine.snapshot()
        assert snapshot.answer == "done"
        assert len(snapshot.events) == 2

    def test_end_of_stream_after_final_keeps_completed(self):
        machine = ConversationStateMachine()
        machine.feed(Final())
        assert machine.end_of_stream() == RunState.COMPLETED

    def test_time_out(self):
        """time_out forces timed_out and records a TimeoutError."""
        machine = ConversationStateMachine()
        machine.feed(TextDelta(text="slow"))
        assert machine.time_out() == RunState.TIMED_OUT
        assert machine.snapshot().error.kind == ErrorKind.TIMEOUT_ERROR
        assert machine.answer == "slow"

    def test_time_out_does_not_override_terminal(self):
        machine = ConversationStateMachine()
        machine.feed(Final())
        assert machine.time_out() == RunState.COMPLETED

    def test_interrupt(self):
        """interrupt fails the run with the given kind."""
        machine = ConversationStateMachine()
        machine.feed(TextDelta(text="x"))
        assert machine.interrupt(ErrorKind.CONNECTION_ERROR, "reset") == RunState.FAILED
        assert machine.snapshot().error.kind == ErrorKind.CONNECTION_ERROR

    def test_interrupt_while_streaming_is_logged(self):
        """A drop mid-stream is appended as an Error event."""
        machine = ConversationStateMachine()
        machine.feed(TextDelta(text="x"))
        machine.interrupt(ErrorKind.CONNECTION_ERROR, "reset")

        snapshot = machine.snapshot()
        assert snapshot.events == (TextDelta(text="x"), Error(kind=ErrorKind.CONNECTION_ERROR, message="reset"))
        assert snapshot.error.message == "reset"

    def test_interrupt_before_streaming_keeps_empty_log(self):
        machine = ConversationStateMachine()
        assert machine.interrupt(ErrorKind.CONNECTION_ERROR, "refused") == RunState.FAILED
        assert machine.snapshot().events == ()

    def test_event_log_includes_terminal_event(self):
        """The event causing the terminal transition is logged."""
        machine = ConversationStateMachine()
        feed_all(machine, [ToolCallResult(id="nope")])
        assert machine.snapshot().events == (ToolCallResult(id="nope"),)


class TestDecodeErrors:
    """Tests for handling of frames the decoder rejected."""

    @pytest.fixture
    def decode_error(self):
        return AgentDecodeError("not JSON", RawFrame(event="response.text.delta", data="{"))

    def test_lenient_drops_frame(self, decode_error):
        """Without strict mode a bad frame is counted and dropped."""
        machine = ConversationStateMachine()
        machine.feed(TextDelta(text="a"))
        state = machine.record_decode_error(decode_error)

        assert state == RunState.STREAMING
        assert machine.snapshot().decode_errors == 1
        assert len(machine.snapshot().events) == 1

    def test_lenient_decode_error_is_not_an_observed_event(self, decode_error):
        machine = ConversationStateMachine()
        machine.record_decode_error(decode_error)
        assert machine.state == RunState.IDLE
        assert machine.has_observed_events is False

    def test_strict_promotes_to_error(self, decode_error):
        """Strict mode fails the run and logs a synthesized Error event."""
        machine = ConversationStateMachine(strict=True)
        state = machine.record_decode_error(decode_error)

        snapshot = machine.snapshot()
        assert state == RunState.FAILED
        assert snapshot.error.kind == ErrorKind.DECODE_ERROR
        assert isinstance(snapshot.events[-1], Error)
        assert snapshot.events[-1].kind == ErrorKind.DECODE_ERROR


class TestOrderingProperty:
    """Answer text is the in-order concatenation of text deltas."""

    @pytest.mark.parametrize("chunks", list(itertools.permutations(["Sales", " ", "up", " 5%"])))
    def test_answer_is_concatenation_in_arrival_order(self, chunks):
        machine = ConversationStateMachine()
        feed_all(machine, [TextDelta(text=chunk) for chunk in chunks] + [Final()])
        assert machine.answer == "".join(chunks)


class TestToolLifecycleProperty:
    """Completed runs have only completed calls; incomplete runs keep an open call."""

    @pytest.mark.parametrize("call_count", [0, 1, 3])
    def test_completed_run_has_no_open_calls(self, call_count):
        machine = ConversationStateMachine()
        events = []
        for i in range(call_count):
            events.append(ToolCallStart(id=str(i), name="search"))
        for i in reversed(range(call_count)):
            events.append(ToolCallResult(id=str(i), payload=i))
        feed_all(machine, events + [Final()])

        snapshot = machine.snapshot()
        assert snapshot.state == RunState.COMPLETED
        assert all(call.state == ToolCallState.COMPLETED for call in snapshot.tool_calls)
        assert len({call.id for call in snapshot.tool_calls}) == call_count

    def test_incomplete_run_has_started_call(self):
        machine = ConversationStateMachine()
        feed_all(
            machine,
            [
                ToolCallStart(id="a", name="search"),
                ToolCallStart(id="b", name="sql"),
                ToolCallResult(id="a"),
                Final(),
            ],
        )
        snapshot = machine.snapshot()
        assert snapshot.error.kind == ErrorKind.INCOMPLETE_TOOL_CALL
        assert any(call.state == ToolCallState.STARTED for call in snapshot.tool_calls)
