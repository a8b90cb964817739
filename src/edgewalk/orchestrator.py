"""TraversalOrchestrator -- runs a Query step by step over pluggable fetchers.

Steps run strictly in order: step N+1 is built from step N's merged
result.  Within a step, every (frontier vertex, QueryParam) request is
dispatched at once, partitioned by the fetcher serving its label, and
all partitions are awaited together before the step is merged.

Public API:
    TraversalOrchestrator: Executes queries against a FetcherRegistry.
"""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from .exceptions import BackendUnavailableError, TraversalError, TraversalTimeoutError
from .fetcher.protocol import Fetcher
from .fetcher.registry import FetcherRegistry
from .metadata import LabelDirectory
from .query import Query, QueryParam, QueryRequest, Step, StepResult, TraversalResult
from .scoring import collapse_duplicates, prune_step, remove_cycles
from .types import Direction, Edge, EdgeWithScore, LabelWithDirection, VertexId

logger = logging.getLogger(__name__)

PrevStepEdges = Mapping[VertexId, Sequence[EdgeWithScore]]


class TraversalOrchestrator:
    """Drives queries across their steps, fanning requests out to fetchers.

    The orchestrator holds no per-traversal state between calls, so one
    instance can run any number of traversals concurrently.  Fetchers are
    never locked here; each serializes its own state.

    Args:
        registry: Selects the fetcher for each label.
        directory: Optional metadata directory; when given, start vertices
            are validated against it and ``get_edges`` resolves labels.
        default_timeout: Seconds a query may take when it sets no timeout.
    """

    def __init__(
        self,
        registry: FetcherRegistry,
        directory: LabelDirectory | None = None,
        default_timeout: float | None = None,
    ) -> None:
        self._registry = registry
        self._directory = directory
        self._default_timeout = default_timeout

    @property
    def registry(self) -> FetcherRegistry:
        return self._registry

    @property
    def directory(self) -> LabelDirectory | None:
        return self._directory

    # ── public API ────────────────────────────────────────────

    async def traverse(self, query: Query) -> TraversalResult:
        """Execute *query* and return its flattened, scored edges.

        Raises:
            TraversalTimeoutError: If the query exceeds its timeout.  Fetches
                still in flight are abandoned, not interrupted.
            BackendUnavailableError: If a fetcher partition fails outright.
            FetcherConfigurationError: If no fetcher serves a label.
            UnknownColumnError: If a start vertex has an unknown column.
        """
        timeout = query.timeout if query.timeout is not None else self._default_timeout
        if timeout is None:
            return await self._run(query)
        try:
            return await asyncio.wait_for(self._run(query), timeout)
        except asyncio.TimeoutError:
            logger.error("Traversal timed out after %ss", timeout)
            raise TraversalTimeoutError(f"Traversal timed out after {timeout}s") from None

    async def get_edges(
        self,
        vertex: VertexId,
        label: str,
        direction: Direction | str | None = None,
        **options: Any,
    ) -> list[Edge]:
        """Fetch the edges of one label around one vertex.

        Args:
            vertex: Vertex to expand.
            label: Label name.
            direction: Scan direction; defaults to the label's default
                direction when a directory is configured, else OUT.
            **options: Extra QueryParam fields (limit, where, ...).

        Returns:
            Edges ordered by score, highest first.
        """
        if self._directory is not None:
            param = self._directory.query_param(label, direction, **options)
        else:
            label_with_dir = LabelWithDirection(label, direction or Direction.OUT)
            param = QueryParam(label_with_dir, **options)
        result = await self.traverse(Query(vertices=(vertex,), steps=(Step((param,)),)))
        return [ews.edge for ews in result.edges]

    # ── step loop ─────────────────────────────────────────────

    async def _run(self, query: Query) -> TraversalResult:
        if not query.vertices:
            return TraversalResult()
        if self._directory is not None:
            for vertex in query.vertices:
                self._directory.validate_vertex(vertex)

        frontier: list[VertexId] = list(dict.fromkeys(query.vertices))
        visited: set[VertexId] = set(frontier)
        prev_edges: dict[VertexId, tuple[EdgeWithScore, ...]] = {}
        step_results: list[StepResult] = []
        retained: list[EdgeWithScore] = []
        failure_count = 0
        last_index = len(query.steps) - 1

        for step_index, step in enumerate(query.steps):
            requests = self._build_requests(step_index, step, frontier, prev_edges)
            merged = await self._execute_step(step_index, requests, prev_edges)
            failure_count += merged.failure_count

            if query.remove_cycle:
                merged = remove_cycles(merged, visited)
            if step_index < last_index:
                merged = prune_step(merged, step)
            step_results.append(merged)

            logger.debug(
                "Step %d: %d requests, %d edges, %d failed",
                step_index, len(requests), len(merged.edges), merged.failure_count,
            )

            if merged.is_empty:
                logger.debug("Step %d produced no edges; stopping early", step_index)
                return TraversalResult(
                    edges=self._finalize(query, retained) if query.return_intermediate else [],
                    step_results=step_results,
                    failure_count=failure_count,
                )

            if query.return_intermediate:
                retained.extend(merged.edges)
            prev_edges = {v: tuple(es) for v, es in merged.by_target().items()}
            frontier = list(prev_edges)
            visited.update(frontier)

        final = retained if query.return_intermediate else step_results[-1].edges
        return TraversalResult(
            edges=self._finalize(query, final),
            step_results=step_results,
            failure_count=failure_count,
        )

    @staticmethod
    def _finalize(query: Query, edges: Sequence[EdgeWithScore]) -> list[EdgeWithScore]:
        if query.score_threshold > 0.0:
            edges = [e for e in edges if e.score >= query.score_threshold]
        return collapse_duplicates(edges, query.duplicate_policy)

    @staticmethod
    def _build_requests(
        step_index: int,
        step: Step,
        frontier: Sequence[VertexId],
        prev_edges: PrevStepEdges,
    ) -> list[QueryRequest]:
        """One request per (frontier vertex, QueryParam), frontier-major."""
        requests: list[QueryRequest] = []
        for vertex in frontier:
            parents = tuple(prev_edges.get(vertex, ()))
            for param in step.query_params:
                requests.append(QueryRequest(
                    vertex=vertex,
                    query_param=param,
                    prev_step_edges=parents,
                    step_index=step_index,
                    request_index=len(requests),
                ))
        return requests

    # ── fan-out / fan-in ──────────────────────────────────────

    def _partition(
        self,
        requests: Sequence[QueryRequest],
    ) -> list[tuple[Fetcher, list[QueryRequest]]]:
        """Group requests by the fetcher serving their label, first-seen order."""
        partitions: dict[int, tuple[Fetcher, list[QueryRequest]]] = {}
        for request in requests:
            fetcher = self._registry.fetcher_for(request.label)
            partitions.setdefault(id(fetcher), (fetcher, []))[1].append(request)
        return list(partitions.values())

    async def _execute_step(
        self,
        step_index: int,
        requests: Sequence[QueryRequest],
        prev_edges: PrevStepEdges,
    ) -> StepResult:
        """Run every partition concurrently and merge results in request order."""
        partitions = self._partition(requests)
        frozen_prev = MappingProxyType(dict(prev_edges))
        tasks = [
            asyncio.ensure_future(self._fetch_partition(step_index, fetcher, batch, frozen_prev))
            for fetcher, batch in partitions
        ]
        try:
            outcomes = await asyncio.gather(*tasks)
        except BaseException:
            # The step has failed; stop partitions still in flight.
            for task in tasks:
                task.cancel()
            raise

        slots: list[StepResult | None] = [None] * len(requests)
        for batch, results in zip((b for _, b in partitions), outcomes):
            for request, result in zip(batch, results):
                slots[request.request_index] = result
        return StepResult.merge([s for s in slots if s is not None])

    @staticmethod
    async def _fetch_partition(
        step_index: int,
        fetcher: Fetcher,
        batch: list[QueryRequest],
        prev_edges: PrevStepEdges,
    ) -> list[StepResult]:
        try:
            results = await fetcher.fetches(batch, prev_edges)
        except TraversalError as e:
            logger.error(
                "Step %d: fetcher %s failed: %s", step_index, fetcher.fetcher_id, e,
            )
            raise
        except Exception as e:
            logger.error(
                "Step %d: fetcher %s failed: %s", step_index, fetcher.fetcher_id, e,
            )
            raise BackendUnavailableError(
                f"Fetcher {fetcher.fetcher_id} failed: {e}"
            ) from e

        if len(results) != len(batch):
            raise BackendUnavailableError(
                f"Fetcher {fetcher.fetcher_id} returned {len(results)} results "
                f"for {len(batch)} requests"
            )
        return list(results)


__all__ = ["TraversalOrchestrator"]
