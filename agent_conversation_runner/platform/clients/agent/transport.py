"""Streaming HTTP transport to the remote agent.

Opens an authenticated POST whose response is a server-sent event stream
and exposes it as a lazy async iterator of RawFrames. The transport does
not retry; it only classifies failures so the session controller can.
"""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from httpx_sse import EventSource, SSEError, aconnect_sse
from opentelemetry import propagate

from agent_conversation_runner.platform.clients.agent.config import AgentClientConfig, AuthConfig
from agent_conversation_runner.platform.clients.agent.events import RawFrame
from agent_conversation_runner.platform.clients.agent.exceptions import (
    AgentAuthenticationError,
    AgentConnectionError,
    AgentStreamInterruptedError,
)
from agent_conversation_runner.platform.observability import get_logger, run_id_ctx

logger = get_logger(__name__)

END_MARKER = "[DONE]"


def build_httpx_client(config: AgentClientConfig) -> httpx.AsyncClient:
    """Create an HTTP client with the run's network timeouts."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.request_timeout_seconds, connect=config.connect_timeout_seconds),
    )


class AgentTransport:
    """Server-sent event transport for one agent endpoint."""

    def __init__(
        self,
        endpoint: str,
        auth: AuthConfig | None = None,
        config: AgentClientConfig | None = None,
        httpx_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the transport.

        Args:
            endpoint: Full URL of the agent's streaming run endpoint.
            auth: Optional authentication configuration.
            config: Optional client configuration for network timeouts.
            httpx_client: Optional pre-configured HTTP client, not closed by the transport.
        """
        self._endpoint = endpoint
        self._auth = auth or AuthConfig()
        self._config = config or AgentClientConfig()
        self._httpx_client = httpx_client

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @asynccontextmanager
    async def open(self, payload: dict[str, Any]) -> AsyncIterator[AsyncIterator[RawFrame]]:
        """Open the stream and yield its frames.

        Leaving the context closes the connection; that is the only way
        to cancel a stream.

        Args:
            payload: JSON request body.

        Yields:
            Lazy async iterator of frames, finished on close or end marker.

        Raises:
            AgentAuthenticationError: If the credentials are rejected.
            AgentConnectionError: If the stream cannot be established.
        """
        async with AsyncExitStack() as stack:
            client = self._httpx_client
            if client is None:
                client = await stack.enter_async_context(build_httpx_client(self._config))

            event_source = await self._connect(stack, client, payload)
            yield self._frames(event_source)

    async def _connect(
        self,
        stack: AsyncExitStack,
        client: httpx.AsyncClient,
        payload: dict[str, Any],
    ) -> EventSource:
        try:
            event_source = await stack.enter_async_context(
                aconnect_sse(
                    client,
                    "POST",
                    self._endpoint,
                    json=payload,
                    headers=self._request_headers(),
                )
            )
        except (httpx.RequestError, httpx.StreamError) as e:
            raise AgentConnectionError(str(e) or type(e).__name__, url=self._endpoint) from e

        response = event_source.response
        if response.status_code in (401, 403):
            raise AgentAuthenticationError(
                f"HTTP {response.status_code}",
                url=self._endpoint,
                status_code=response.status_code,
            )
        if not response.is_success:
            raise AgentConnectionError(
                f"HTTP {response.status_code}",
                url=self._endpoint,
                status_code=response.status_code,
            )

        logger.debug("Agent stream opened", url=self._endpoint, status_code=response.status_code)
        return event_source

    async def _frames(self, event_source: EventSource) -> AsyncIterator[RawFrame]:
        try:
            async for sse in event_source.aiter_sse():
                if sse.data == END_MARKER:
                    return
                yield RawFrame(event=sse.event, data=sse.data, id=sse.id or None)
        except (httpx.RequestError, httpx.StreamError, SSEError) as e:
            raise AgentStreamInterruptedError(str(e) or type(e).__name__, url=self._endpoint) from e

    def _request_headers(self) -> dict[str, str]:
        """Headers for one request: credentials, trace context and run ID."""
        headers = self._auth.headers()
        propagate.inject(headers)

        run_id = run_id_ctx.get()
        if run_id:
            headers["X-Request-ID"] = run_id
        return headers
