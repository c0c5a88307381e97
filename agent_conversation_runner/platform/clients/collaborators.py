"""Interfaces of the single-shot services that sit beside agent runs.

Pipelines usually pair a conversation run with plain SQL execution and
one-shot semantic search or query calls. Those are request/response
calls with no streaming state, so only their contracts live here;
implementations are supplied by the embedding pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class SqlResult:
    """Rows returned by a statement, or a reference to where they were written.

    Attributes:
        columns: Column names in order.
        rows: Result rows, empty when the result was written to a file.
        file_reference: Location of the result when not returned inline.
    """

    columns: tuple[str, ...] = ()
    rows: tuple[tuple[Any, ...], ...] = ()
    file_reference: str | None = None

    def as_dicts(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row, strict=True)) for row in self.rows]


@dataclass(frozen=True)
class SearchHit:
    """One ranked semantic search hit."""

    id: str
    text: str
    score: float | None = None
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SemanticAnswer:
    """Answer to a natural-language question over a semantic model.

    Attributes:
        answer: The answer text.
        generated_query: The structured query that produced it, if exposed.
    """

    answer: str
    generated_query: str | None = None


@runtime_checkable
class SqlExecutor(Protocol):
    """Executes a single SQL statement."""

    async def execute(self, statement: str) -> SqlResult:
        ...


@runtime_checkable
class SemanticSearch(Protocol):
    """Runs one semantic search query."""

    async def search(self, query: str, limit: int = 10) -> list[SearchHit]:
        ...


@runtime_checkable
class SemanticQueryExecutor(Protocol):
    """Answers one natural-language question."""

    async def ask(self, text: str) -> SemanticAnswer:
        ...
