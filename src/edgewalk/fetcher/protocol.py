"""Fetcher protocol -- the capability every storage backend implements.

Public API:
    Fetcher: Runtime-checkable protocol defining the fetcher contract.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from ..query import QueryRequest, StepResult
from ..types import EdgeWithScore, VertexId


@runtime_checkable
class Fetcher(Protocol):
    """Common interface for edge-fetching storage backends.

    Every concrete implementation (in-memory, Kuzu, ...) must satisfy
    this protocol so the orchestrator can stay storage-agnostic.  One
    instance is shared by every concurrent traversal in the process and
    must serialize its own mutable state.
    """

    # ── identity ──────────────────────────────────────────────

    @property
    def fetcher_id(self) -> str:
        """Unique identifier for this fetcher instance."""
        ...

    # ── lifecycle ─────────────────────────────────────────────

    async def init(self, config: Mapping[str, Any] | None = None) -> Fetcher:
        """One-time setup; returns the fetcher itself.

        Raises:
            FetcherConfigurationError: If the backend cannot be set up.
                An unusable instance is never returned.
        """
        ...

    def close(self) -> None:
        """Release backend resources.  Safe to call more than once."""
        ...

    # ── hot path ──────────────────────────────────────────────

    async def fetches(
        self,
        query_requests: Sequence[QueryRequest],
        prev_step_edges: Mapping[VertexId, Sequence[EdgeWithScore]],
    ) -> list[StepResult]:
        """Execute every request and return one StepResult per request.

        Results are in request order.  A request that fails on its own is
        reported as an empty StepResult with ``failure_count=1``; only a
        backend that cannot serve the batch at all raises.

        Args:
            query_requests: Requests to execute.  Not mutated.
            prev_step_edges: Previous-step edges keyed by the vertex they
                reached.  Not mutated.

        Raises:
            BackendUnavailableError: If the backend is unreachable.
            FetcherStateError: If the fetcher is not initialized or closed.
        """
        ...


__all__ = ["Fetcher"]
