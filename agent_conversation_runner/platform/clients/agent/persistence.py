"""Run artifact persistence.

Each run is stored as one directory named after its run ID:

    <root>/<run_id>/events.jsonl   decoded events, one JSON object per line
    <root>/<run_id>/result.json    the aggregated RunResult

The pair is written into a hidden sibling directory and published with a
single rename, so readers only ever see complete artifacts and an existing
artifact is never overwritten.
"""

import asyncio
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from agent_conversation_runner.platform.clients.agent.aggregator import RunResult, replay
from agent_conversation_runner.platform.clients.agent.events import Event, dump_event, load_event
from agent_conversation_runner.platform.clients.agent.exceptions import AgentPersistenceError
from agent_conversation_runner.platform.observability import get_logger

logger = get_logger(__name__)

EVENTS_FILE = "events.jsonl"
RESULT_FILE = "result.json"


@dataclass(frozen=True)
class RunArtifact:
    """A persisted run read back from disk."""

    path: Path
    events: tuple[Event, ...]
    result: RunResult


def _write_durably(path: Path, content: str) -> None:
    with path.open("w", encoding="utf-8") as fh:
        fh.write(content)
        fh.flush()
        os.fsync(fh.fileno())


class RunArtifactWriter:
    """Writes run artifacts under a root directory."""

    def __init__(self, root_dir: str | Path):
        self._root = Path(root_dir)

    @property
    def root(self) -> Path:
        return self._root

    def artifact_path(self, run_id: str) -> Path:
        return self._root / run_id

    async def write(self, result: RunResult) -> Path:
        """Persist a run's event log and result as one unit.

        Args:
            result: The aggregated result; its events are written as the log.

        Returns:
            The published artifact directory.

        Raises:
            AgentPersistenceError: If the artifact cannot be written.
        """
        return await asyncio.to_thread(self._write_sync, result)

    def _write_sync(self, result: RunResult) -> Path:
        final_path = self.artifact_path(result.run_id)
        if final_path.exists():
            raise AgentPersistenceError("artifact already exists", path=str(final_path))

        temp_path = self._root / f".{result.run_id}.{uuid4().hex}.tmp"
        try:
            temp_path.mkdir(parents=True)
            events = "".join(f"{dump_event(event)}\n" for event in result.events)
            _write_durably(temp_path / EVENTS_FILE, events)
            stored = result.model_copy(update={"artifact_path": final_path, "persistence_error": None})
            _write_durably(temp_path / RESULT_FILE, stored.model_dump_json(indent=2))
            temp_path.rename(final_path)
        except OSError as e:
            raise AgentPersistenceError(str(e), path=str(final_path)) from e
        finally:
            if temp_path.exists():
                shutil.rmtree(temp_path, ignore_errors=True)

        logger.info("Run artifact written", path=str(final_path), events=len(result.events))
        return final_path


def read_run_artifact(path: str | Path) -> RunArtifact:
    """Load a persisted run.

    Args:
        path: The artifact directory.

    Raises:
        AgentPersistenceError: If either record is missing or unreadable.
    """
    path = Path(path)
    try:
        with (path / EVENTS_FILE).open(encoding="utf-8") as fh:
            events = tuple(load_event(line) for line in fh if line.strip())
        result = RunResult.model_validate_json((path / RESULT_FILE).read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        raise AgentPersistenceError(str(e), path=str(path)) from e
    return RunArtifact(path=path, events=events, result=result)


def reconstruct(artifact: RunArtifact) -> RunResult:
    """Rebuild the run's result purely from its persisted event log.

    Identity and timestamps come from the stored result; status, answer,
    tool calls and error are derived from the events alone.
    """
    return replay(
        artifact.events,
        run_id=artifact.result.run_id,
        conversation_id=artifact.result.conversation_id,
        started_at=artifact.result.started_at,
        ended_at=artifact.result.ended_at,
    )
