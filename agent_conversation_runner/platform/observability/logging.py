"""Structured logging for conversation runs.

Logs go through structlog's ProcessorFormatter on the stdlib root logger,
so library loggers (httpx, tenacity) render the same way as ours. Output
is JSON for unattended pipelines and colored console output on a terminal.
Everything logged inside ``bind_run`` carries the run and conversation IDs.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TextIO

import structlog

# Current run ID; also sent to the agent as X-Request-ID
run_id_ctx: ContextVar[str | None] = ContextVar("run_id", default=None)


def add_run_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Processor that adds run_id to every log entry logged during a run."""
    run_id = run_id_ctx.get()
    if run_id:
        event_dict.setdefault("run_id", run_id)
    return event_dict


@contextmanager
def bind_run(run_id: str, conversation_id: str) -> Iterator[None]:
    """Tag logs and outgoing requests inside the block with the run's IDs."""
    token = run_id_ctx.set(run_id)
    try:
        with structlog.contextvars.bound_contextvars(conversation_id=conversation_id):
            yield
    finally:
        run_id_ctx.reset(token)


def wants_json(json_output: bool | None, stream: TextIO) -> bool:
    """Resolve the log format; None picks console output only for a terminal."""
    if json_output is not None:
        return json_output
    return not stream.isatty()


def configure_logging(
    log_level: str,
    json_output: bool | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the root logger.

    Args:
        log_level: Logging level (INFO, DEBUG, etc.)
        json_output: True for JSON, False for console, None to decide from the stream
        stream: Destination, stderr by default so stdout stays free for results
    """
    stream = stream or sys.stderr

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_run_id,
        structlog.processors.UnicodeDecoder(),
    ]

    if wants_json(json_output, stream):
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Per-request transport logs duplicate our own connection logging
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
