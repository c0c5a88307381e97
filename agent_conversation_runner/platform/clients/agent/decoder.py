"""Frame decoder for the agent's server-sent event stream.

Turns one RawFrame into one typed Event. Decoding is pure and stateless:
it never looks at earlier frames, so ordering rules are left to the
state machine.
"""

import json
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from agent_conversation_runner.platform.clients.agent.events import (
    Error,
    Event,
    Final,
    RawFrame,
    Status,
    TextDelta,
    ToolCallResult,
    ToolCallStart,
)
from agent_conversation_runner.platform.clients.agent.exceptions import AgentDecodeError

# SSE event name used by servers that put the tag inside the data instead
DEFAULT_SSE_EVENT = "message"

UNKNOWN_PHASE = "unknown"


def _text_delta(data: dict[str, Any]) -> Event:
    return TextDelta(text=data["text"])


def _tool_use(data: dict[str, Any]) -> Event:
    return ToolCallStart(
        id=str(data["tool_use_id"]),
        name=data["name"],
        arguments=data.get("input") or {},
    )


def _tool_result(data: dict[str, Any]) -> Event:
    return ToolCallResult(
        id=str(data["tool_use_id"]),
        payload=data.get("content"),
        is_error=data.get("status") == "error",
    )


def _status(data: dict[str, Any]) -> Event:
    return Status(phase=data["status"], message=data.get("message"))


def _error(data: dict[str, Any]) -> Event:
    return Error(kind=str(data.get("code") or "unknown"), message=str(data.get("message") or ""))


def _final(data: dict[str, Any]) -> Event:
    return Final()


_DECODERS: dict[str, Callable[[dict[str, Any]], Event]] = {
    "response.text.delta": _text_delta,
    "response.tool_use": _tool_use,
    "response.tool_result": _tool_result,
    "response.status": _status,
    "error": _error,
    "response": _final,
}

KNOWN_TAGS = frozenset(_DECODERS)


def decode_frame(frame: RawFrame) -> Event:
    """Decode a single frame into an Event.

    Args:
        frame: The raw frame read from the transport.

    Returns:
        The decoded event. Unknown tags yield Status(phase="unknown").

    Raises:
        AgentDecodeError: If the frame is not a JSON object or a known
            tag is missing required fields.
    """
    try:
        data = json.loads(frame.data) if frame.data.strip() else {}
    except json.JSONDecodeError as e:
        raise AgentDecodeError(f"data is not valid JSON ({e.msg})", frame) from e

    if not isinstance(data, dict):
        raise AgentDecodeError(f"expected a JSON object, got {type(data).__name__}", frame)

    tag = frame.event
    if tag == DEFAULT_SSE_EVENT or not tag:
        embedded = data.get("type")
        tag = embedded if isinstance(embedded, str) and embedded else DEFAULT_SSE_EVENT

    decoder = _DECODERS.get(tag)
    if decoder is None:
        return Status(phase=UNKNOWN_PHASE, tag=tag)

    try:
        return decoder(data)
    except KeyError as e:
        raise AgentDecodeError(f"missing field {e.args[0]!r} for {tag!r}", frame) from e
    except (TypeError, ValidationError) as e:
        raise AgentDecodeError(f"invalid fields for {tag!r}: {e}", frame) from e
