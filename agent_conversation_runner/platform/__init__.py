"""Runner infrastructure module.

This module provides the infrastructure around agent conversation runs:
- Agent conversation client (streaming, state machine, persistence)
- Interfaces of companion single-shot services
- Settings and observability utilities
"""

from agent_conversation_runner.platform.clients.agent import (
    AgentClientConfig,
    AuthConfig,
    Conversation,
    RunResult,
    SessionController,
    run_conversation,
)
from agent_conversation_runner.platform.settings import Settings

__all__ = [
    # Configuration
    "AgentClientConfig",
    "AuthConfig",
    "Settings",
    # Runs
    "Conversation",
    "RunResult",
    "SessionController",
    "run_conversation",
]
