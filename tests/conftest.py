"""Shared test fixtures.

This module provides builders for server-sent event bodies in the agent's
wire format and a client configuration that retries without waiting.
"""

import json
from collections.abc import Callable
from typing import Any

import pytest

from agent_conversation_runner.platform.clients.agent.config import AgentClientConfig
from agent_conversation_runner.platform.clients.agent.messages import Conversation

AGENT_URL = "https://agent.example.com/api/v2/agent:run"

SSE_HEADERS = {"content-type": "text/event-stream"}


def _sse(tag: str, data: Any = None) -> str:
    payload = data if isinstance(data, str) else json.dumps(data if data is not None else {})
    return f"event: {tag}\ndata: {payload}\n\n"


@pytest.fixture
def agent_url() -> str:
    return AGENT_URL


@pytest.fixture
def sse() -> Callable[..., str]:
    """Format one server-sent event."""
    return _sse


@pytest.fixture
def sse_body() -> Callable[..., bytes]:
    """Join (tag, data) pairs into a complete event-stream body."""

    def build(*frames: tuple[str, Any], done: bool = False) -> bytes:
        body = "".join(_sse(tag, data) for tag, data in frames)
        if done:
            body += "data: [DONE]\n\n"
        return body.encode()

    return build


@pytest.fixture
def fast_config() -> AgentClientConfig:
    """Client config with immediate retries and a short deadline."""
    return AgentClientConfig(
        run_timeout_seconds=5.0,
        max_retries=3,
        retry_delay_seconds=0.0,
        retry_max_delay_seconds=0.0,
    )


@pytest.fixture
def conversation() -> Conversation:
    return Conversation.from_texts(["How did sales do last quarter?"], conversation_id="conv-1")
