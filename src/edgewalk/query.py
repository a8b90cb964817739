"""Traversal plan and result containers.

Public API:
    DuplicatePolicy: How repeated edges are collapsed in the flattened result.
    QueryParam: Fetch options for one (label, direction) scan from one vertex.
    Step: One round of fetch options applied to the whole frontier.
    Query: Starting vertices plus an ordered sequence of steps.
    QueryRequest: One (vertex, QueryParam) unit of fetch work.
    StepResult: Aggregated, scored output of one step (or one request).
    TraversalResult: Caller-visible outcome of a traversal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from .exceptions import InvalidQueryError
from .types import Edge, EdgeWithScore, LabelWithDirection, VertexId

DEFAULT_LIMIT = 100
DEFAULT_SCORE_PROPERTY = "score"

EdgePredicate = Callable[[Edge], bool]


class DuplicatePolicy(Enum):
    """How edges reaching the same (src, label, tgt) are collapsed."""

    RAW = "raw"
    FIRST = "first"
    SUM = "sum"


@dataclass(frozen=True)
class QueryParam:
    """Fetch options for one (label, direction) edge scan from one vertex.

    Attributes:
        label_with_dir: Label and direction to scan.
        limit: Maximum edges kept per vertex (after offset).
        offset: Number of top-scored edges skipped per vertex.
        weight: Multiplier applied to every edge score of this scan.
        where: Property equality filters; empty accepts every edge.
        predicates: Extra edge filters; an edge must pass all of them.
        duration: Optional ``(from_ts, to_ts)``; keeps ``from_ts <= ts < to_ts``.
        sample: Keep this many edges chosen at random; -1 disables sampling.
        sample_seed: Seed for the sampler so repeated runs pick the same edges.
        exclude_parents: Drop edges leading back to a vertex that reached
            the current vertex in the previous step.
        score_property: Edge property read as the raw score (default 1.0).
    """

    label_with_dir: LabelWithDirection
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    weight: float = 1.0
    where: Mapping[str, Any] = field(default_factory=dict)
    predicates: tuple[EdgePredicate, ...] = ()
    duration: tuple[int, int] | None = None
    sample: int = -1
    sample_seed: int = 0
    exclude_parents: bool = False
    score_property: str = DEFAULT_SCORE_PROPERTY

    def __post_init__(self) -> None:
        if isinstance(self.label_with_dir, str):
            object.__setattr__(
                self, "label_with_dir", LabelWithDirection.parse(self.label_with_dir)
            )
        if self.limit < 0:
            raise InvalidQueryError("limit must be >= 0")
        if self.offset < 0:
            raise InvalidQueryError("offset must be >= 0")
        if self.sample < -1:
            raise InvalidQueryError("sample must be -1 (off) or >= 0")
        if self.duration is not None:
            start, end = self.duration
            if start > end:
                raise InvalidQueryError("duration start must not be after its end")
        object.__setattr__(self, "predicates", tuple(self.predicates))

    @property
    def label(self) -> str:
        return self.label_with_dir.label


@dataclass(frozen=True)
class Step:
    """A round of fetch options executed concurrently against one frontier.

    Attributes:
        query_params: Fetch options; every one is applied to every frontier vertex.
        next_step_limit: Keep only the top-N scored edges of this step as
            input for the next one; -1 keeps all.
        next_step_score_threshold: Drop edges scoring below this before
            they seed the next step.
    """

    query_params: tuple[QueryParam, ...]
    next_step_limit: int = -1
    next_step_score_threshold: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "query_params", tuple(self.query_params))
        if not self.query_params:
            raise InvalidQueryError("a step needs at least one QueryParam")
        if self.next_step_limit < -1:
            raise InvalidQueryError("next_step_limit must be -1 (off) or >= 0")


@dataclass(frozen=True)
class Query:
    """A full traversal plan.

    Attributes:
        vertices: Starting vertex set, in the order results should follow.
        steps: Steps executed strictly in order.
        return_intermediate: Return the edges of every step, not only the last.
        remove_cycle: Drop edges that lead back to an already visited vertex.
        score_threshold: Drop returned edges scoring below this.
        duplicate_policy: How repeated edges are collapsed in the result.
        timeout: Seconds the whole traversal may take; None uses the default.
    """

    vertices: tuple[VertexId, ...]
    steps: tuple[Step, ...]
    return_intermediate: bool = False
    remove_cycle: bool = False
    score_threshold: float = 0.0
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.RAW
    timeout: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "vertices", tuple(self.vertices))
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.steps:
            raise InvalidQueryError("a query needs at least one step")
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidQueryError("timeout must be positive")


@dataclass(frozen=True)
class QueryRequest:
    """One (vertex, QueryParam) unit of fetch work.

    Attributes:
        vertex: Vertex whose adjacency is scanned.
        query_param: Fetch options to apply.
        prev_step_edges: Previous-step edges that reached ``vertex``.
        step_index: Index of the step this request belongs to.
        request_index: Position of this request within its step.
    """

    vertex: VertexId
    query_param: QueryParam
    prev_step_edges: tuple[EdgeWithScore, ...] = ()
    step_index: int = 0
    request_index: int = 0

    @property
    def label(self) -> str:
        return self.query_param.label


@dataclass
class StepResult:
    """Aggregated, scored edges of one step (or of one request).

    Attributes:
        edges: Scored edges, grouped by source vertex in frontier order.
        failure_count: Requests that failed inside the fetcher.
        degrees: Candidate edge count per (vertex, label) before offset/limit.
    """

    edges: list[EdgeWithScore] = field(default_factory=list)
    failure_count: int = 0
    degrees: dict[tuple[VertexId, str], int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.edges

    @classmethod
    def failed(cls) -> StepResult:
        """Result of a single request that failed inside the fetcher."""
        return cls(failure_count=1)

    @classmethod
    def merge(cls, results: Sequence[StepResult]) -> StepResult:
        """Concatenate edges, sum failures and combine degrees, in order."""
        merged = cls()
        for result in results:
            merged.edges.extend(result.edges)
            merged.failure_count += result.failure_count
            for key, degree in result.degrees.items():
                merged.degrees[key] = merged.degrees.get(key, 0) + degree
        return merged

    def by_source(self) -> dict[VertexId, list[EdgeWithScore]]:
        grouped: dict[VertexId, list[EdgeWithScore]] = {}
        for ews in self.edges:
            grouped.setdefault(ews.src, []).append(ews)
        return grouped

    def by_target(self) -> dict[VertexId, list[EdgeWithScore]]:
        """Edges keyed by the vertex they reach; seeds the next step."""
        grouped: dict[VertexId, list[EdgeWithScore]] = {}
        for ews in self.edges:
            grouped.setdefault(ews.tgt, []).append(ews)
        return grouped

    def targets(self) -> list[VertexId]:
        """Distinct target vertices in first-seen order."""
        return list(self.by_target())


@dataclass
class TraversalResult:
    """Caller-visible outcome of a traversal.

    Attributes:
        edges: Flattened edges (last step, or every step when requested).
        step_results: Merged StepResult of every executed step.
        failure_count: Requests that failed inside fetchers, over all steps.
    """

    edges: list[EdgeWithScore] = field(default_factory=list)
    step_results: list[StepResult] = field(default_factory=list)
    failure_count: int = 0

    @property
    def degraded(self) -> bool:
        """True when some requests failed and the edges may be partial."""
        return self.failure_count > 0

    def __len__(self) -> int:
        return len(self.edges)

    def __iter__(self):
        return iter(self.edges)


__all__ = [
    "DuplicatePolicy",
    "QueryParam",
    "Step",
    "Query",
    "QueryRequest",
    "StepResult",
    "TraversalResult",
]
