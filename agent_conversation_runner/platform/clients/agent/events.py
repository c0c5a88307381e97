"""Typed events emitted by the remote agent during a run.

The event set is closed: every decoded frame becomes exactly one of the
variants below, discriminated by ``type``. Tags the client does not know
decode to ``Status(phase="unknown")`` so new agent-side event types never
break a run.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


@dataclass(frozen=True)
class RawFrame:
    """One undecoded server-sent event as read from the transport.

    Attributes:
        event: SSE event name ("message" when the server omits it).
        data: Raw data payload, usually JSON.
        id: SSE event id, if the server sent one.
    """

    event: str
    data: str
    id: str | None = None


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TextDelta(_EventBase):
    """A fragment of the agent's answer text."""

    type: Literal["text_delta"] = "text_delta"
    text: str


class ToolCallStart(_EventBase):
    """The agent started invoking a tool."""

    type: Literal["tool_call_start"] = "tool_call_start"
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCallResult(_EventBase):
    """A previously started tool call returned."""

    type: Literal["tool_call_result"] = "tool_call_result"
    id: str
    payload: Any = None
    is_error: bool = False


class Status(_EventBase):
    """Progress notification; also the fallback for unrecognized tags."""

    type: Literal["status"] = "status"
    phase: str
    message: str | None = None
    tag: str | None = None


class Error(_EventBase):
    """The agent reported an error and will not produce a final answer."""

    type: Literal["error"] = "error"
    kind: str
    message: str


class Final(_EventBase):
    """The agent finished the run."""

    type: Literal["final"] = "final"


Event = Annotated[
    TextDelta | ToolCallStart | ToolCallResult | Status | Error | Final,
    Field(discriminator="type"),
]

EVENT_ADAPTER = TypeAdapter(Event)


def dump_event(event: Event) -> str:
    """Serialize an event to a single JSON line."""
    return EVENT_ADAPTER.dump_json(event).decode()


def load_event(line: str | bytes) -> Event:
    """Parse an event previously written by dump_event()."""
    return EVENT_ADAPTER.validate_json(line)
