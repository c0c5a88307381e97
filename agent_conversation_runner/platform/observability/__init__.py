"""Observability infrastructure module.

This module provides monitoring and error tracking:
- Structured logging with run IDs
- Prometheus run metrics
- Bugsnag error reporting
"""

from agent_conversation_runner.platform.observability.logging import (
    bind_run,
    configure_logging,
    get_logger,
    run_id_ctx,
)
from agent_conversation_runner.platform.observability.metrics import BUCKETS

__all__ = [
    "BUCKETS",
    "bind_run",
    "configure_logging",
    "get_logger",
    "run_id_ctx",
]
