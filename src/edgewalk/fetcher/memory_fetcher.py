"""InMemoryFetcher -- dict-backed Fetcher for tests and embedded use.

Public API:
    InMemoryFetcher: Fetcher implementation over an in-process edge table.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from typing import Any, Mapping, Sequence

from ..exceptions import FetcherConfigurationError
from ..query import QueryRequest, StepResult
from ..scoring import apply_query_param
from ..types import Direction, Edge, EdgeWithScore, VertexId
from .batch import DEFAULT_MAX_CONCURRENCY, LifecycleState, run_requests


class InMemoryFetcher:
    """Dict-based Fetcher holding edges in process memory.

    Edges are stored once in their written orientation and indexed by
    (vertex, label) for both directions.  Thread-safe via a reentrant
    lock, so one instance can be loaded from one thread while traversals
    read it from others.

    Per-request failure policy: any error while reading or scoring one
    request is logged and counted; the rest of the batch proceeds.

    Args:
        fetcher_id: Human-readable identifier for this fetcher instance.
    """

    def __init__(self, fetcher_id: str | None = None) -> None:
        self._fetcher_id = fetcher_id or f"memory-{uuid.uuid4().hex[:8]}"
        self._out: dict[tuple[VertexId, str], list[Edge]] = {}
        self._in: dict[tuple[VertexId, str], list[Edge]] = {}
        self._lock = threading.RLock()
        self._state = LifecycleState(self._fetcher_id)
        self._semaphore: asyncio.Semaphore | None = None

    @property
    def fetcher_id(self) -> str:
        return self._fetcher_id

    # ── lifecycle ─────────────────────────────────────────────

    async def init(self, config: Mapping[str, Any] | None = None) -> InMemoryFetcher:
        """Apply options and preload edges.

        Recognised options:
            max_concurrency: Requests evaluated at once (default 64).
            edges: Iterable of edge mappings with ``src``, ``tgt``,
                ``label`` and optional ``properties`` / ``ts``.

        Raises:
            FetcherConfigurationError: On a malformed option or edge.
        """
        if not self._state.needs_init():
            return self
        options = dict(config or {})
        try:
            max_concurrency = int(options.get("max_concurrency", DEFAULT_MAX_CONCURRENCY))
            if max_concurrency < 1:
                raise ValueError("max_concurrency must be >= 1")
            preload = [
                (
                    VertexId.parse(entry["src"]),
                    VertexId.parse(entry["tgt"]),
                    entry["label"],
                    dict(entry.get("properties") or {}),
                    int(entry.get("ts", 0)),
                )
                for entry in options.get("edges", ())
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise FetcherConfigurationError(
                f"Invalid config for fetcher {self._fetcher_id}: {e}"
            ) from e

        # Nothing is stored until the whole config has parsed.
        for src, tgt, label, properties, ts in preload:
            self.add_edge(src, tgt, label, properties, ts=ts)
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._state.initialized = True
        return self

    def close(self) -> None:
        """Drop all edges.  Idempotent."""
        if self._state.closed:
            return
        self._state.closed = True
        with self._lock:
            self._out.clear()
            self._in.clear()

    # ── loading ───────────────────────────────────────────────

    def add_edge(
        self,
        src: VertexId,
        tgt: VertexId,
        label: str,
        properties: dict[str, Any] | None = None,
        ts: int = 0,
    ) -> Edge:
        """Store a directed edge src -> tgt and return it."""
        edge = Edge(
            src=src,
            tgt=tgt,
            label=label,
            direction=Direction.OUT,
            properties=dict(properties or {}),
            ts=ts,
        )
        with self._lock:
            self._out.setdefault((src, label), []).append(edge)
            self._in.setdefault((tgt, label), []).append(edge)
        return edge

    def edge_count(self) -> int:
        with self._lock:
            return sum(len(edges) for edges in self._out.values())

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
        return apply_query_param(request, self.candidate_edges(request))

    def candidate_edges(self, request: QueryRequest) -> list[Edge]:
        """Return the unfiltered edges of request's vertex, oriented from it."""
        vertex = request.vertex
        label_with_dir = request.query_param.label_with_dir
        key = (vertex, label_with_dir.label)
        candidates: list[Edge] = []
        with self._lock:
            if label_with_dir.direction in (Direction.OUT, Direction.BOTH):
                candidates.extend(self._out.get(key, ()))
            if label_with_dir.direction in (Direction.IN, Direction.BOTH):
                candidates.extend(
                    Edge(
                        src=vertex,
                        tgt=stored.src,
                        label=stored.label,
                        direction=Direction.IN,
                        properties=stored.properties,
                        ts=stored.ts,
                    )
                    for stored in self._in.get(key, ())
                )
        return candidates


__all__ = ["InMemoryFetcher"]
