"""Result aggregation for conversation runs.

Turns the state machine's terminal snapshot into an immutable RunResult,
and rebuilds a RunResult from nothing but a persisted event log.
"""

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from agent_conversation_runner.platform.clients.agent.events import Event
from agent_conversation_runner.platform.clients.agent.exceptions import AgentRunFailedError
from agent_conversation_runner.platform.clients.agent.state_machine import (
    ConversationStateMachine,
    RunError,
    RunSnapshot,
    RunState,
    ToolCall,
)


class RunResult(BaseModel):
    """Outcome of a single conversation run.

    Attributes:
        run_id: Identifier of this run, also the artifact key.
        conversation_id: Conversation the run belongs to.
        status: Terminal state (completed, failed or timed_out).
        answer: Ordered concatenation of all text deltas seen, partial on failure.
        tool_calls: Every tool call observed, in start order, in any lifecycle state.
        events: The full decoded event log in arrival order.
        error: Why the run did not complete, if it did not.
        started_at: When the run started.
        ended_at: When the run reached its terminal state.
        decode_errors: Number of frames the decoder rejected.
        attempts: Connection attempts made, including retries.
        artifact_path: Directory holding the persisted artifact pair.
        persistence_error: Why persisting failed, if it did.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    conversation_id: str
    status: RunState
    answer: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    events: tuple[Event, ...] = ()
    error: RunError | None = None
    started_at: datetime
    ended_at: datetime
    decode_errors: int = 0
    attempts: int = 0
    artifact_path: Path | None = None
    persistence_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunState.COMPLETED

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def raise_for_status(self) -> "RunResult":
        """Raise AgentRunFailedError unless the run completed.

        Returns:
            Self, to allow chaining.
        """
        if not self.succeeded:
            raise AgentRunFailedError(
                run_id=self.run_id,
                status=self.status.value,
                kind=self.error.kind if self.error else None,
                message=self.error.message if self.error else None,
            )
        return self

    def summary(self) -> dict:
        """Caller-facing view without the raw event log."""
        return self.model_dump(mode="json", exclude={"events"})


def aggregate(
    snapshot: RunSnapshot,
    *,
    run_id: str,
    conversation_id: str,
    started_at: datetime,
    ended_at: datetime,
    attempts: int = 0,
) -> RunResult:
    """Build the RunResult for a terminal snapshot.

    Args:
        snapshot: The state machine snapshot taken at the terminal transition.
        run_id: Identifier of the run.
        conversation_id: Identifier of the conversation.
        started_at: Run start time.
        ended_at: Run end time.
        attempts: Connection attempts made.

    Returns:
        The immutable RunResult.

    Raises:
        ValueError: If the snapshot is not terminal.
    """
    if not snapshot.is_terminal:
        raise ValueError(f"Cannot aggregate a run in state {snapshot.state}")

    return RunResult(
        run_id=run_id,
        conversation_id=conversation_id,
        status=snapshot.state,
        answer=snapshot.answer,
        tool_calls=snapshot.tool_calls,
        events=snapshot.events,
        error=snapshot.error,
        started_at=started_at,
        ended_at=ended_at,
        decode_errors=snapshot.decode_errors,
        attempts=attempts,
    )


def replay(
    events: Iterable[Event],
    *,
    run_id: str,
    conversation_id: str,
    started_at: datetime,
    ended_at: datetime,
) -> RunResult:
    """Rebuild a RunResult from an event log alone.

    The events are fed through a fresh state machine; a log without a
    terminal event replays as an unexpected end of stream.
    """
    machine = ConversationStateMachine()
    for event in events:
        machine.feed(event)
    machine.end_of_stream()
    return aggregate(
        machine.snapshot(),
        run_id=run_id,
        conversation_id=conversation_id,
        started_at=started_at,
        ended_at=ended_at,
    )
