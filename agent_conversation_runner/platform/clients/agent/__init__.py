"""Agent conversation client.

This module runs a conversation against a remote reasoning agent over a
server-sent event stream and records the whole exchange:

- Streaming transport with pre-stream retry and an overall deadline
- Typed event decoding with a forward-compatible fallback
- A state machine that enforces the tool-call protocol
- Aggregated, replayable run results persisted per run
"""

from agent_conversation_runner.platform.clients.agent.aggregator import RunResult, aggregate, replay
from agent_conversation_runner.platform.clients.agent.config import AgentClientConfig, AuthConfig
from agent_conversation_runner.platform.clients.agent.decoder import decode_frame
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
from agent_conversation_runner.platform.clients.agent.exceptions import (
    AgentAuthenticationError,
    AgentClientError,
    AgentConnectionError,
    AgentDecodeError,
    AgentPersistenceError,
    AgentProtocolError,
    AgentRunFailedError,
    AgentStreamInterruptedError,
    AgentTimeoutError,
    OrchestrationError,
)
from agent_conversation_runner.platform.clients.agent.messages import (
    Conversation,
    Message,
    MessageBuilder,
    Role,
    ToolChoice,
    ToolChoiceMode,
    create_text_message,
)
from agent_conversation_runner.platform.clients.agent.persistence import (
    RunArtifact,
    RunArtifactWriter,
    read_run_artifact,
    reconstruct,
)
from agent_conversation_runner.platform.clients.agent.session import SessionController, run_conversation
from agent_conversation_runner.platform.clients.agent.state_machine import (
    ConversationStateMachine,
    ErrorKind,
    RunError,
    RunState,
    ToolCall,
    ToolCallState,
)

__all__ = [
    # Session
    "SessionController",
    "run_conversation",
    # Configuration
    "AgentClientConfig",
    "AuthConfig",
    # Conversation
    "Conversation",
    "Message",
    "MessageBuilder",
    "Role",
    "ToolChoice",
    "ToolChoiceMode",
    "create_text_message",
    # Events
    "Event",
    "RawFrame",
    "TextDelta",
    "ToolCallStart",
    "ToolCallResult",
    "Status",
    "Error",
    "Final",
    "decode_frame",
    # State and results
    "ConversationStateMachine",
    "RunState",
    "ToolCall",
    "ToolCallState",
    "ErrorKind",
    "RunError",
    "RunResult",
    "aggregate",
    "replay",
    # Persistence
    "RunArtifact",
    "RunArtifactWriter",
    "read_run_artifact",
    "reconstruct",
    # Exceptions
    "AgentClientError",
    "AgentConnectionError",
    "AgentAuthenticationError",
    "AgentStreamInterruptedError",
    "AgentDecodeError",
    "AgentProtocolError",
    "AgentTimeoutError",
    "AgentPersistenceError",
    "AgentRunFailedError",
    "OrchestrationError",
]
