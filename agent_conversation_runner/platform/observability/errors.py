"""Bugsnag error reporting for unattended runs.

ERROR-level log records (a run artifact that could not be written, an
exception escaping the CLI) are forwarded to Bugsnag, tagged with the run
they happened in.
"""

import logging

import bugsnag
from bugsnag.handlers import BugsnagHandler

from agent_conversation_runner.platform.observability.logging import run_id_ctx


def add_run_metadata(event) -> None:
    """Bugsnag callback attaching the current run ID to a report."""
    run_id = run_id_ctx.get()
    if run_id:
        event.add_tab("run", {"run_id": run_id})


def initialize_bugsnag(api_key: str, release_stage: str) -> bool:
    """Initialize Bugsnag error reporting.

    Args:
        api_key: Bugsnag project API key
        release_stage: "production", "development" or "local"

    Returns:
        True if reporting was enabled; "local" never reports.
    """
    if release_stage == "local":
        return False

    bugsnag.configure(
        api_key=api_key,
        release_stage=release_stage,
        auto_notify=True,
    )
    bugsnag.before_notify(add_run_metadata)

    handler = BugsnagHandler()
    handler.setLevel(logging.ERROR)
    logging.getLogger().addHandler(handler)
    return True
