"""Custom exception hierarchy for the agent conversation client.

This module defines a structured exception hierarchy for handling errors
that can occur while streaming a conversation with a remote agent.
Once a run is streaming, these errors are folded into the RunResult rather
than raised to the caller.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agent_conversation_runner.platform.clients.agent.events import RawFrame


class AgentClientError(Exception):
    """Base exception for all agent client errors."""


class AgentConnectionError(AgentClientError):
    """Raised when a streaming connection to the agent cannot be established."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Connection failed{f' to {url}' if url else ''}: {message}")


class AgentAuthenticationError(AgentConnectionError):
    """Raised when the agent rejects the supplied credentials."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(f"authentication rejected: {message}", url=url, status_code=status_code)


class AgentStreamInterruptedError(AgentConnectionError):
    """Raised when an established stream breaks while frames are being read."""


class AgentDecodeError(AgentClientError):
    """Raised when a single frame cannot be decoded into an event."""

    def __init__(self, message: str, frame: "RawFrame"):
        self.frame = frame
        self.reason = message
        super().__init__(f"Malformed frame ({frame.event!r}): {message}")


class AgentProtocolError(AgentClientError):
    """Raised when the event stream violates the tool-call protocol."""

    def __init__(self, message: str, tool_call_id: str | None = None):
        self.tool_call_id = tool_call_id
        call_info = f" [tool call: {tool_call_id}]" if tool_call_id else ""
        super().__init__(f"Protocol error{call_info}: {message}")


class AgentTimeoutError(AgentClientError):
    """Raised when a run exceeds its overall deadline."""

    def __init__(self, message: str, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds
        timeout_info = f" after {timeout_seconds}s" if timeout_seconds else ""
        super().__init__(f"Run timed out{timeout_info}: {message}")


class AgentPersistenceError(AgentClientError):
    """Raised when a run artifact cannot be written or read."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"Persistence failed{f' at {path}' if path else ''}: {message}")


class AgentRunFailedError(AgentClientError):
    """Raised by RunResult.raise_for_status() for runs that did not complete."""

    def __init__(self, run_id: str, status: str, kind: str | None = None, message: str | None = None):
        self.run_id = run_id
        self.status = status
        self.kind = kind
        detail = f" ({kind}: {message})" if kind else ""
        super().__init__(f"Run {run_id} ended {status}{detail}")


class OrchestrationError(AgentClientError):
    """Raised when a run is invoked with arguments that cannot start it."""
