"""Message and conversation types for agent runs.

This module provides the caller-facing conversation model, a fluent
builder for messages, and the tool-selection constraint, along with
their conversion to the agent's request body.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

if TYPE_CHECKING:
    from agent_conversation_runner.platform.clients.agent.aggregator import RunResult


class Role(StrEnum):
    """Author of a message; values are the wire role names."""

    CALLER = "user"
    AGENT = "assistant"
    TOOL = "tool"


def parse_role(value: str) -> Role:
    """Accept a role by name (``caller``) or wire value (``user``)."""
    try:
        return Role(value)
    except ValueError:
        try:
            return Role[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown message role {value!r}") from None


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolResultPart:
    """Structured result of a tool call carried inside a message."""

    tool_call_id: str
    name: str
    payload: Any = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "tool_result",
            "tool_result": {
                "tool_use_id": self.tool_call_id,
                "name": self.name,
                "content": self.payload,
            },
        }


ContentPart = TextPart | ToolResultPart


@dataclass(frozen=True)
class Message:
    """A single message in a conversation.

    Attributes:
        role: Who authored the message.
        parts: Ordered content parts.
    """

    role: Role
    parts: tuple[ContentPart, ...]

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    def to_wire(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": [part.to_wire() for part in self.parts]}


class MessageBuilder:
    """Builder for constructing conversation messages.

    Provides a fluent interface for building messages with text and
    tool-result content.
    """

    def __init__(self) -> None:
        """Initialize an empty caller message builder."""
        self._role = Role.CALLER
        self._parts: list[ContentPart] = []

    def with_role(self, role: Role) -> "MessageBuilder":
        """Set the message author.

        Args:
            role: The role of the author.

        Returns:
            Self for method chaining.
        """
        self._role = role
        return self

    def add_text(self, text: str) -> "MessageBuilder":
        """Add a text part to the message.

        Args:
            text: The text content to add.

        Returns:
            Self for method chaining.
        """
        self._parts.append(TextPart(text=text))
        return self

    def add_tool_result(self, tool_call_id: str, name: str, payload: Any) -> "MessageBuilder":
        """Add a structured tool result part to the message.

        Args:
            tool_call_id: Id of the tool call this result answers.
            name: Name of the tool.
            payload: The structured result.

        Returns:
            Self for method chaining.
        """
        self._parts.append(ToolResultPart(tool_call_id=tool_call_id, name=name, payload=payload))
        return self

    def build(self) -> Message:
        """Build the final Message object.

        Raises:
            ValueError: If no parts have been added to the message.
        """
        if not self._parts:
            raise ValueError("Message must have at least one part")

        return Message(role=self._role, parts=tuple(self._parts))


def create_text_message(text: str, role: Role = Role.CALLER) -> Message:
    """Create a message holding a single text part."""
    return MessageBuilder().with_role(role).add_text(text).build()


@dataclass(frozen=True)
class Conversation:
    """Ordered, immutable sequence of messages exchanged so far.

    Attributes:
        messages: Messages in the order they were exchanged.
        conversation_id: Caller-supplied or generated identifier.
    """

    messages: tuple[Message, ...] = ()
    conversation_id: str = field(default_factory=lambda: uuid4().hex)

    @classmethod
    def from_texts(cls, texts: Iterable[str], conversation_id: str | None = None) -> "Conversation":
        """Create a conversation of caller text messages."""
        return cls.from_messages((create_text_message(text) for text in texts), conversation_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        """Create a conversation from its JSON form.

        Expects ``{"conversation_id": ..., "messages": [{"role": ..., "text": ...}]}``;
        roles may be given by name (caller, agent, tool) or wire value.

        Raises:
            ValueError: If a message has no text or an unknown role.
        """
        messages = []
        for item in data.get("messages", []):
            if not item.get("text"):
                raise ValueError("Each message needs a non-empty 'text'")
            messages.append(create_text_message(item["text"], role=parse_role(item.get("role", "user"))))
        return cls.from_messages(messages, conversation_id=data.get("conversation_id"))

    @classmethod
    def from_messages(cls, messages: Iterable[Message], conversation_id: str | None = None) -> "Conversation":
        if conversation_id:
            return cls(messages=tuple(messages), conversation_id=conversation_id)
        return cls(messages=tuple(messages))

    def append(self, message: Message) -> "Conversation":
        """Return a new conversation with the message appended."""
        return Conversation(messages=(*self.messages, message), conversation_id=self.conversation_id)

    def with_agent_reply(self, result: "RunResult") -> "Conversation":
        """Return a new conversation extended with a run's tool results and answer.

        Tool results are appended as a tool message ahead of the agent's
        answer so a follow-up run sees the same context the agent saw.
        """
        conversation = self
        completed = [call for call in result.tool_calls if call.result_observed]
        if completed:
            builder = MessageBuilder().with_role(Role.TOOL)
            for call in completed:
                builder.add_tool_result(call.id, call.name, call.payload)
            conversation = conversation.append(builder.build())
        if result.answer:
            conversation = conversation.append(create_text_message(result.answer, role=Role.AGENT))
        return conversation


class ToolChoiceMode(StrEnum):
    AUTO = "auto"
    NONE = "none"


@dataclass(frozen=True)
class ToolChoice:
    """Constraint on which tools the agent may call.

    Attributes:
        mode: AUTO lets the agent decide; NONE forbids tool use.
        allowed: Tool names the agent may call under AUTO (empty means any).
    """

    mode: ToolChoiceMode = ToolChoiceMode.AUTO
    allowed: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.mode == ToolChoiceMode.NONE and self.allowed:
            raise ValueError("Tool names cannot be allowed when tool choice mode is 'none'")

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {"type": self.mode.value}
        if self.allowed:
            body["name"] = sorted(self.allowed)
        return body


def build_request_body(
    conversation: Conversation,
    tool_choice: ToolChoice | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the JSON body that starts a streamed run.

    Args:
        conversation: The conversation to submit.
        tool_choice: Optional tool-selection constraint.
        metadata: Optional caller metadata forwarded verbatim.

    Returns:
        The request body as a JSON-serializable dict.
    """
    body: dict[str, Any] = {
        "conversation_id": conversation.conversation_id,
        "messages": [message.to_wire() for message in conversation.messages],
    }
    if tool_choice is not None:
        body["tool_choice"] = tool_choice.to_wire()
    if metadata:
        body["metadata"] = metadata
    return body
