"""Prometheus metrics for conversation runs.

Collectors live on the default registry so an embedding service's
/metrics endpoint picks them up; pass a registry to the setup_* helpers
to isolate them.
"""

from typing import NamedTuple

import prometheus_client


class RunLabels(NamedTuple):
    status: str


class ToolCallLabels(NamedTuple):
    tool_name: str
    state: str


BUCKETS = (
    # log spaced with 1 sig-fig rounding, 3 per decade; runs are seconds to minutes
    0.1,
    0.2,
    0.5,
    1,
    2,
    5,
    10,
    20,
    50,
    100,
    200,
    500,
    float("inf"),
)


def setup_run_duration_metrics(registry=prometheus_client.REGISTRY):
    """Create the run duration histogram.

    Args:
        registry: Prometheus registry to register the metric with

    Returns:
        Histogram for tracking run durations by terminal status
    """
    return prometheus_client.Histogram(
        name="agent_run_duration_seconds",
        documentation="Conversation run duration (seconds)",
        labelnames=RunLabels._fields,
        registry=registry,
        buckets=BUCKETS,
    )


def setup_run_counter(registry=prometheus_client.REGISTRY):
    return prometheus_client.Counter(
        name="agent_runs",
        documentation="Conversation runs by terminal status",
        labelnames=RunLabels._fields,
        registry=registry,
    )


def setup_retry_counter(registry=prometheus_client.REGISTRY):
    return prometheus_client.Counter(
        name="agent_connection_retries",
        documentation="Pre-stream connection attempts that were retried",
        registry=registry,
    )


def setup_decode_error_counter(registry=prometheus_client.REGISTRY):
    return prometheus_client.Counter(
        name="agent_decode_errors",
        documentation="Frames dropped or promoted because they could not be decoded",
        registry=registry,
    )


def setup_tool_call_counter(registry=prometheus_client.REGISTRY):
    return prometheus_client.Counter(
        name="agent_tool_calls",
        documentation="Tool calls observed in runs by tool and lifecycle state (error when the tool reported one)",
        labelnames=ToolCallLabels._fields,
        registry=registry,
    )


run_histogram = setup_run_duration_metrics()
run_counter = setup_run_counter()
retry_counter = setup_retry_counter()
decode_error_counter = setup_decode_error_counter()
tool_call_counter = setup_tool_call_counter()


def record_run(status: str, duration_seconds: float) -> None:
    """Record a finished run."""
    labels = RunLabels(status=status)
    run_counter.labels(*labels).inc()
    run_histogram.labels(*labels).observe(duration_seconds)


def record_tool_call(tool_name: str, state: str) -> None:
    tool_call_counter.labels(*ToolCallLabels(tool_name=tool_name, state=state)).inc()


def record_retry() -> None:
    retry_counter.inc()


def record_decode_error() -> None:
    decode_error_counter.inc()
