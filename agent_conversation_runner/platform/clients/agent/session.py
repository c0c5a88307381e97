"""Session controller: the single entry point for a conversation run.

Drives Transport -> Decoder -> State Machine -> Aggregator -> Persistence
for one run. Connection failures are retried with exponential backoff only
until the first event is decoded; after that every failure becomes a
terminal RunResult so tools the agent already invoked are never invoked
twice. The whole run is bounded by a single deadline.
"""

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from uuid import uuid4

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_exponential

from agent_conversation_runner.platform.clients.agent.aggregator import RunResult, aggregate
from agent_conversation_runner.platform.clients.agent.config import AgentClientConfig, AuthConfig
from agent_conversation_runner.platform.clients.agent.decoder import decode_frame
from agent_conversation_runner.platform.clients.agent.exceptions import (
    AgentAuthenticationError,
    AgentConnectionError,
    AgentDecodeError,
    AgentPersistenceError,
    AgentTimeoutError,
    OrchestrationError,
)
from agent_conversation_runner.platform.clients.agent.messages import (
    Conversation,
    ToolChoice,
    build_request_body,
)
from agent_conversation_runner.platform.clients.agent.persistence import RunArtifactWriter
from agent_conversation_runner.platform.clients.agent.state_machine import (
    ConversationStateMachine,
    ErrorKind,
)
from agent_conversation_runner.platform.clients.agent.transport import AgentTransport
from agent_conversation_runner.platform.observability import bind_run, get_logger, metrics

logger = get_logger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}
_PATH_SEPARATORS = ("/", "\\")


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one connection attempt.

    Attributes:
        retryable: The attempt failed before any event and may be repeated.
        error: The connection error behind a failed attempt.
    """

    retryable: bool
    error: AgentConnectionError | None = None


@dataclass
class _Run:
    transport: AgentTransport
    payload: dict[str, Any]
    machine: ConversationStateMachine
    attempts: int = 0


def _is_retryable(outcome: AttemptOutcome) -> bool:
    return outcome.retryable


def _last_outcome(retry_state: RetryCallState) -> AttemptOutcome:
    return retry_state.outcome.result()


def _retryable_error(error: AgentConnectionError) -> bool:
    """Rejected credentials and client errors fail the same way on every attempt."""
    if isinstance(error, AgentAuthenticationError):
        return False
    status_code = error.status_code
    return status_code is None or status_code == 429 or status_code >= 500


def _log_retry(retry_state: RetryCallState) -> None:
    outcome: AttemptOutcome = retry_state.outcome.result()
    metrics.record_retry()
    logger.warning(
        "Retrying agent connection",
        attempt=retry_state.attempt_number,
        delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(outcome.error),
    )


class SessionController:
    """Runs conversations against a remote agent and persists every run."""

    def __init__(
        self,
        writer: RunArtifactWriter,
        config: AgentClientConfig | None = None,
        httpx_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the controller.

        Args:
            writer: Persistence writer; each run is written exactly once.
            config: Optional client configuration.
            httpx_client: Optional shared HTTP client, not closed by the controller.
        """
        self._writer = writer
        self._config = config or AgentClientConfig()
        self._httpx_client = httpx_client

    async def run(
        self,
        endpoint: str,
        credentials: str | AuthConfig | None,
        conversation: Conversation,
        tool_choice: ToolChoice | None = None,
        timeout: float | None = None,
        *,
        run_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RunResult:
        """Run a conversation to a terminal state.

        Args:
            endpoint: URL of the agent's streaming endpoint.
            credentials: Bearer token string or AuthConfig.
            conversation: Messages to submit.
            tool_choice: Optional tool-selection constraint.
            timeout: Overall deadline in seconds (config default when omitted).
            run_id: Optional run identifier (generated when omitted).
            metadata: Optional caller metadata forwarded to the agent.

        Returns:
            The terminal RunResult, already persisted. Failed and timed-out
            runs are returned, not raised.

        Raises:
            OrchestrationError: If the arguments cannot start a run.
        """
        effective_timeout = self._config.run_timeout_seconds if timeout is None else timeout
        self._validate(endpoint, conversation, effective_timeout, run_id)

        run_id = run_id or uuid4().hex
        with bind_run(run_id, conversation.conversation_id):
            return await self._run(
                run_id=run_id,
                transport=AgentTransport(
                    endpoint,
                    auth=AuthConfig.from_credentials(credentials),
                    config=self._config,
                    httpx_client=self._httpx_client,
                ),
                payload=build_request_body(conversation, tool_choice, metadata),
                conversation_id=conversation.conversation_id,
                timeout=effective_timeout,
            )

    async def _run(
        self,
        *,
        run_id: str,
        transport: AgentTransport,
        payload: dict[str, Any],
        conversation_id: str,
        timeout: float,
    ) -> RunResult:
        started_at = datetime.now(UTC)
        logger.info("Run started", url=transport.endpoint, timeout_seconds=timeout)

        run = _Run(
            transport=transport,
            payload=payload,
            machine=ConversationStateMachine(strict=self._config.strict_decoding),
        )
        await self._drive(run, timeout)

        result = aggregate(
            run.machine.snapshot(),
            run_id=run_id,
            conversation_id=conversation_id,
            started_at=started_at,
            ended_at=datetime.now(UTC),
            attempts=run.attempts,
        )
        result = await self._persist(result)

        metrics.record_run(result.status.value, result.duration_seconds)
        for call in result.tool_calls:
            metrics.record_tool_call(call.name, "error" if call.is_error else call.state.value)

        logger.info(
            "Run finished",
            status=result.status,
            error_kind=result.error.kind if result.error else None,
            tool_calls=len(result.tool_calls),
            events=len(result.events),
            attempts=result.attempts,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    async def _drive(self, run: _Run, timeout: float) -> None:
        """Stream the run to a terminal state within the deadline."""
        deadline = asyncio.get_running_loop().time() + timeout
        try:
            async with asyncio.timeout_at(deadline):
                outcome = await self._retrying()(self._attempt, run)
        except TimeoutError:
            run.machine.time_out(str(AgentTimeoutError("no terminal event", timeout_seconds=timeout)))
            return

        if outcome.error is not None:
            run.machine.interrupt(
                ErrorKind.CONNECTION_ERROR,
                f"{outcome.error} (after {run.attempts} attempt{'s' if run.attempts != 1 else ''})",
            )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._config.max_retries + 1),
            wait=wait_exponential(
                multiplier=self._config.retry_delay_seconds,
                max=self._config.retry_max_delay_seconds,
            ),
            retry=retry_if_result(_is_retryable),
            retry_error_callback=_last_outcome,
            before_sleep=_log_retry,
        )

    async def _attempt(self, run: _Run) -> AttemptOutcome:
        """Open the stream once and consume it until a terminal state.

        Returns:
            A retryable outcome only when the connection failed before any
            event was decoded; otherwise the machine holds the outcome.
        """
        run.attempts += 1
        machine = run.machine
        try:
            async with run.transport.open(run.payload) as frames, aclosing(frames):
                async for frame in frames:
                    try:
                        event = decode_frame(frame)
                    except AgentDecodeError as e:
                        metrics.record_decode_error()
                        machine.record_decode_error(e)
                    else:
                        machine.feed(event)

                    if machine.is_terminal:
                        break
        except AgentConnectionError as e:
            if machine.has_observed_events:
                machine.interrupt(ErrorKind.CONNECTION_ERROR, str(e))
                return AttemptOutcome(retryable=False)
            logger.warning("Agent connection attempt failed", attempt=run.attempts, error=str(e))
            return AttemptOutcome(retryable=_retryable_error(e), error=e)

        machine.end_of_stream()
        return AttemptOutcome(retryable=False)

    async def _persist(self, result: RunResult) -> RunResult:
        try:
            path = await self._writer.write(result)
        except AgentPersistenceError as e:
            logger.error("Run artifact not persisted", error=str(e), status=result.status)
            return result.model_copy(update={"persistence_error": str(e)})
        return result.model_copy(update={"artifact_path": path})

    @staticmethod
    def _validate(endpoint: str, conversation: Conversation, timeout: float, run_id: str | None) -> None:
        parsed = urlparse(endpoint)
        if parsed.scheme not in _ALLOWED_SCHEMES or not parsed.netloc:
            raise OrchestrationError(f"Invalid agent endpoint {endpoint!r}; expected an http(s) URL")
        if not conversation.messages:
            raise OrchestrationError("Conversation must contain at least one message")
        if timeout <= 0:
            raise OrchestrationError(f"Timeout must be positive, got {timeout}")
        # run IDs name artifact directories; hidden names are reserved for temp dirs
        if run_id and (run_id.startswith(".") or ".." in run_id or any(sep in run_id for sep in _PATH_SEPARATORS)):
            raise OrchestrationError(f"Run ID {run_id!r} cannot be used as an artifact directory name")


async def run_conversation(
    endpoint: str,
    credentials: str | AuthConfig | None,
    conversation: Conversation,
    tool_choice: ToolChoice | None = None,
    timeout: float | None = None,
    *,
    artifacts_dir: str | Path,
    config: AgentClientConfig | None = None,
    httpx_client: httpx.AsyncClient | None = None,
    run_id: str | None = None,
) -> RunResult:
    """Run one conversation and persist it under artifacts_dir.

    Convenience wrapper around SessionController for single runs.
    """
    controller = SessionController(
        RunArtifactWriter(artifacts_dir),
        config=config,
        httpx_client=httpx_client,
    )
    return await controller.run(
        endpoint,
        credentials,
        conversation,
        tool_choice,
        timeout,
        run_id=run_id,
    )
