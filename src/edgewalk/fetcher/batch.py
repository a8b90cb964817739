"""Shared request fan-out for fetcher implementations.

Public API:
    LifecycleState: init/close state flag with use-after-close guard.
    run_requests: Run one coroutine per request concurrently, absorbing
        per-request failures.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Awaitable, Callable, Mapping, Sequence

from ..exceptions import BackendUnavailableError, FetcherClosedError, FetcherStateError
from ..query import QueryRequest, StepResult
from ..types import EdgeWithScore, VertexId

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 64


class LifecycleState:
    """Tracks whether a fetcher is initialized and whether it was closed."""

    def __init__(self, fetcher_id: str) -> None:
        self._fetcher_id = fetcher_id
        self.initialized = False
        self.closed = False

    def needs_init(self) -> bool:
        """Return False if already initialized; a closed fetcher cannot re-init."""
        if self.closed:
            raise FetcherClosedError(f"Fetcher {self._fetcher_id} is closed")
        return not self.initialized

    def ensure_usable(self) -> None:
        if self.closed:
            raise FetcherClosedError(f"Fetcher {self._fetcher_id} is closed")
        if not self.initialized:
            raise FetcherStateError(f"Fetcher {self._fetcher_id} used before init()")


def _with_prev_edges(
    request: QueryRequest,
    prev_step_edges: Mapping[VertexId, Sequence[EdgeWithScore]],
) -> QueryRequest:
    if request.prev_step_edges:
        return request
    prev = prev_step_edges.get(request.vertex)
    if not prev:
        return request
    return dataclasses.replace(request, prev_step_edges=tuple(prev))


async def run_requests(
    fetcher_id: str,
    query_requests: Sequence[QueryRequest],
    prev_step_edges: Mapping[VertexId, Sequence[EdgeWithScore]],
    fetch_one: Callable[[QueryRequest], Awaitable[StepResult]],
    semaphore: asyncio.Semaphore,
) -> list[StepResult]:
    """Run *fetch_one* for every request and return results in request order.

    Any exception raised for a single request is logged and turned into
    ``StepResult.failed()``, except BackendUnavailableError, which means
    the whole batch cannot be served and is re-raised.
    """

    async def fetch_guarded(request: QueryRequest) -> StepResult:
        async with semaphore:
            try:
                return await fetch_one(request)
            except BackendUnavailableError:
                raise
            except Exception as e:
                logger.warning(
                    "Fetcher %s: request for %s (%s) failed: %s",
                    fetcher_id, request.vertex, request.query_param.label_with_dir, e,
                )
                return StepResult.failed()

    prepared = [_with_prev_edges(r, prev_step_edges) for r in query_requests]
    return list(await asyncio.gather(*(fetch_guarded(r) for r in prepared)))


__all__ = ["LifecycleState", "run_requests", "DEFAULT_MAX_CONCURRENCY"]
