"""agent-conversation-runner - Streamed, auditable agent conversations for unattended pipelines."""

from .platform.clients.agent import RunResult, SessionController, run_conversation
from .platform.settings import Settings

__all__ = ["RunResult", "SessionController", "Settings", "run_conversation"]
