"""KuzuFetcher -- Fetcher backed by an embedded Kuzu graph database.

Vertices live in a single node table keyed by an id column; every label
is a rel table between that node table and itself.  Edge properties are
the rel table's columns; an optional ``ts`` column supplies timestamps.

Public API:
    KuzuFetcher: Concrete Fetcher implementation backed by Kuzu.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
import uuid
from pathlib import Path
from typing import Any, Mapping, Sequence

import kuzu

from ..exceptions import (
    BackendUnavailableError,
    FetcherConfigurationError,
    InvalidQueryError,
)
from ..metadata import LabelDirectory
from ..query import QueryRequest, StepResult
from ..scoring import apply_query_param
from ..types import Direction, Edge, EdgeWithScore, VertexId
from .batch import DEFAULT_MAX_CONCURRENCY, LifecycleState, run_requests

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INTERNAL_KEYS = {"_id", "_label", "_src", "_dst", "ts"}


def _identifier(name: str) -> str:
    """Return *name* if it is safe to splice into Cypher as a table/column name."""
    if not _IDENTIFIER.match(name):
        raise InvalidQueryError(f"Invalid Kuzu identifier: {name!r}")
    return name


_MISSING_TABLE = re.compile(r"table (\w+) does not exist", re.IGNORECASE)


def _is_missing_label(error: RuntimeError, label: str) -> bool:
    """True if *error* reports that the rel table of *label* does not exist."""
    match = _MISSING_TABLE.search(str(error))
    return match is not None and match.group(1).lower() == label.lower()


class KuzuFetcher:
    """Kuzu implementation of the Fetcher protocol.

    Blocking Kuzu calls run in worker threads via ``asyncio.to_thread``
    and are serialised on the single connection by a lock, so one
    instance can serve many concurrent traversals.

    Per-request failure policy: a label whose rel table does not exist,
    or an unusable identifier, fails only that request.  Any other Kuzu
    error, a missing node table included, means the backend is broken or
    misconfigured and is raised as
    BackendUnavailableError for the whole batch.

    Args:
        fetcher_id: Optional human-readable identifier; auto-generated if None.
        directory: Optional metadata directory used to type neighbour vertices.
            Without one, neighbours inherit the service/column of the
            vertex they were reached from.
    """

    # ── construction / lifecycle ──────────────────────────────

    def __init__(
        self,
        fetcher_id: str | None = None,
        directory: LabelDirectory | None = None,
    ) -> None:
        self._fetcher_id = fetcher_id or f"kuzu-{uuid.uuid4().hex[:8]}"
        self._directory = directory
        self._db: kuzu.Database | None = None
        self._conn: kuzu.Connection | None = None
        self._lock = threading.Lock()
        self._state = LifecycleState(self._fetcher_id)
        self._semaphore: asyncio.Semaphore | None = None
        self._node_table = "Vertex"
        self._id_column = "vertex_id"

    @property
    def fetcher_id(self) -> str:
        return self._fetcher_id

    async def init(self, config: Mapping[str, Any] | None = None) -> KuzuFetcher:
        """Open the Kuzu database.

        Recognised options:
            db_path: Filesystem path of the Kuzu database (required).
            node_table: Vertex node table name (default "Vertex").
            id_column: Primary-key column of the node table (default "vertex_id").
            read_only: Open the database read-only (default False).
            max_concurrency: Requests in flight at once (default 64).

        Raises:
            FetcherConfigurationError: If an option is invalid or the
                database cannot be opened.
        """
        if not self._state.needs_init():
            return self
        options = dict(config or {})
        if "db_path" not in options:
            raise FetcherConfigurationError(
                f"Fetcher {self._fetcher_id}: 'db_path' option is required"
            )
        try:
            self._node_table = _identifier(options.get("node_table", "Vertex"))
            self._id_column = _identifier(options.get("id_column", "vertex_id"))
            max_concurrency = int(options.get("max_concurrency", DEFAULT_MAX_CONCURRENCY))
            if max_concurrency < 1:
                raise ValueError("max_concurrency must be >= 1")
        except (TypeError, ValueError) as e:
            raise FetcherConfigurationError(
                f"Invalid config for fetcher {self._fetcher_id}: {e}"
            ) from e

        db_path = Path(options["db_path"])
        read_only = bool(options.get("read_only", False))
        try:
            self._db = await asyncio.to_thread(
                kuzu.Database, str(db_path), read_only=read_only,
            )
            self._conn = kuzu.Connection(self._db)
        except RuntimeError as e:
            self._db = None
            self._conn = None
            raise FetcherConfigurationError(
                f"Fetcher {self._fetcher_id}: cannot open Kuzu database at {db_path}: {e}"
            ) from e

        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._state.initialized = True
        logger.debug("Fetcher %s opened Kuzu database at %s", self._fetcher_id, db_path)
        return self

    def close(self) -> None:
        """Release Kuzu resources.  Idempotent."""
        if self._state.closed:
            return
        self._state.closed = True
        with self._lock:
            self._conn = None
            self._db = None

    # ── raw access ────────────────────────────────────────────

    def execute(self, cypher: str, params: dict[str, Any] | None = None) -> list[list[Any]]:
        """Run a Cypher statement on the fetcher's connection and return all rows.

        Used for loading and inspecting data; traversals go through
        ``fetches``.
        """
        self._state.ensure_usable()
        with self._lock:
            result = self._conn.execute(cypher, params or {})
            rows: list[list[Any]] = []
            while result.has_next():
                rows.append(result.get_next())
        return rows

    # ── hot path ──────────────────────────────────────────────

    async def fetches(
        self,
        query_requests: Sequence[QueryRequest],
        prev_step_edges: Mapping[VertexId, Sequence[EdgeWithScore]],
    ) -> list[StepResult]:
        self._state.ensure_usable()
        return await run_requests(
            self._fetcher_id,
            query_requests,
            prev_step_edges,
            self._fetch_one,
            self._semaphore,
        )

    async def _fetch_one(self, request: QueryRequest) -> StepResult:
        edges = await asyncio.to_thread(self.candidate_edges, request)
        return apply_query_param(request, edges)

    def candidate_edges(self, request: QueryRequest) -> list[Edge]:
        """Read the unfiltered edges of request's vertex, oriented from it."""
        label_with_dir = request.query_param.label_with_dir
        label = _identifier(label_with_dir.label)
        edges: list[Edge] = []
        if label_with_dir.direction in (Direction.OUT, Direction.BOTH):
            edges.extend(self._query_directed(request.vertex, label, Direction.OUT))
        if label_with_dir.direction in (Direction.IN, Direction.BOTH):
            edges.extend(self._query_directed(request.vertex, label, Direction.IN))
        return edges

    def _query_directed(
        self,
        vertex: VertexId,
        label: str,
        direction: Direction,
    ) -> list[Edge]:
        """Query one direction of one rel table for a single vertex."""
        table, col = self._node_table, self._id_column
        if direction is Direction.OUT:
            pattern = f"(a:{table})-[e:{label}]->(b:{table})"
        else:
            pattern = f"(a:{table})<-[e:{label}]-(b:{table})"
        cypher = f"MATCH {pattern} WHERE a.{col} = $vid RETURN e, b.{col}"

        with self._lock:
            if self._conn is None:
                raise BackendUnavailableError(f"Fetcher {self._fetcher_id} has no connection")
            try:
                result = self._conn.execute(cypher, {"vid": str(vertex.id)})
                rows = []
                while result.has_next():
                    rows.append(result.get_next())
            except RuntimeError as e:
                if _is_missing_label(e, label):
                    raise
                logger.error("Fetcher %s: Kuzu query failed: %s", self._fetcher_id, e)
                raise BackendUnavailableError(
                    f"Fetcher {self._fetcher_id}: Kuzu query failed: {e}"
                ) from e

        service, column = self._neighbour_column(label, direction, vertex)
        return [
            self._rel_to_edge(rel, vertex, VertexId(service, column, neighbour_id), label, direction)
            for rel, neighbour_id in rows
        ]

    def _neighbour_column(
        self,
        label: str,
        direction: Direction,
        vertex: VertexId,
    ) -> tuple[str, str]:
        if self._directory is not None and self._directory.has_label(label):
            return self._directory.neighbour_column(label, direction, vertex)
        return vertex.service, vertex.column

    @staticmethod
    def _rel_to_edge(
        rel: dict[str, Any],
        anchor: VertexId,
        neighbour: VertexId,
        label: str,
        direction: Direction,
    ) -> Edge:
        """Convert a Kuzu relationship dict to an Edge oriented from *anchor*."""
        props = {k: v for k, v in rel.items() if k not in _INTERNAL_KEYS}
        ts = rel.get("ts") or 0
        return Edge(
            src=anchor,
            tgt=neighbour,
            label=label,
            direction=direction,
            properties=props,
            ts=int(ts),
        )


__all__ = ["KuzuFetcher"]
