"""Deterministic scoring and filtering of fetched edges.

Scores combine multiplicatively across steps::

    score = parent_score * weight * raw_score

``raw_score`` is the edge's score property (1.0 when absent) and
``parent_score`` is the exactly rounded sum (``math.fsum``) of the scores
of the previous-step edges that reached the vertex, or 1.0 for a start
vertex.  Neither term depends on the order in which concurrent fetches
completed.

Public API:
    parent_score: Score carried into a vertex from the previous step.
    apply_query_param: Turn raw candidate edges of one request into a StepResult.
    prune_step: Apply a Step's next-step limit and score threshold.
    remove_cycles: Drop edges whose target was already visited.
    collapse_duplicates: Apply a Query's duplicate policy to flattened edges.
"""

from __future__ import annotations

import math
import random
from typing import Any, Iterable, Sequence

from .query import DuplicatePolicy, QueryParam, QueryRequest, Step, StepResult
from .types import Edge, EdgeWithScore, VertexId


def parent_score(prev_step_edges: Sequence[EdgeWithScore]) -> float:
    if not prev_step_edges:
        return 1.0
    return math.fsum(ews.score for ews in prev_step_edges)


def raw_score(edge: Edge, score_property: str) -> float:
    value = edge.properties.get(score_property, 1.0)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 1.0


_MISSING = object()


def _matches_where(edge: Edge, where: dict[str, Any]) -> bool:
    """Check whether an edge's properties equal all filter values.

    Values compare as stored; a missing property never matches.
    """
    for k, v in where.items():
        if edge.properties.get(k, _MISSING) != v:
            return False
    return True


def _accepts(edge: Edge, param: QueryParam, parents: set[VertexId]) -> bool:
    if param.duration is not None:
        start, end = param.duration
        if not (start <= edge.ts < end):
            return False
    if param.where and not _matches_where(edge, dict(param.where)):
        return False
    if param.exclude_parents and edge.tgt in parents:
        return False
    return all(predicate(edge) for predicate in param.predicates)


def apply_query_param(request: QueryRequest, raw_edges: Iterable[Edge]) -> StepResult:
    """Filter, score, order and cut the candidate edges of one request.

    Edges are sorted score-descending; ties keep the order the backend
    returned them in.  The degree recorded for ``(vertex, label)`` is the
    number of candidates that passed the filters, before offset and limit.

    Args:
        request: The request the edges were fetched for.
        raw_edges: Candidate edges as read from storage.

    Returns:
        StepResult holding the kept edges of this request.
    """
    param = request.query_param
    parents = {ews.src for ews in request.prev_step_edges}
    carried = parent_score(request.prev_step_edges)
    parent = request.prev_step_edges[0] if request.prev_step_edges else None

    scored = [
        EdgeWithScore(
            edge=edge,
            score=carried * param.weight * raw_score(edge, param.score_property),
            parent=parent,
        )
        for edge in raw_edges
        if _accepts(edge, param, parents)
    ]
    scored.sort(key=lambda ews: ews.score, reverse=True)
    degree = len(scored)

    if 0 <= param.sample < len(scored):
        rng = random.Random(f"{param.sample_seed}:{request.vertex}")
        picked = sorted(rng.sample(range(len(scored)), param.sample))
        scored = [scored[i] for i in picked]

    kept = scored[param.offset:param.offset + param.limit]
    return StepResult(
        edges=kept,
        degrees={(request.vertex, param.label): degree},
    )


def prune_step(result: StepResult, step: Step) -> StepResult:
    """Apply the step's next-step score threshold and limit."""
    edges = result.edges
    if step.next_step_score_threshold > 0.0:
        edges = [e for e in edges if e.score >= step.next_step_score_threshold]
    if step.next_step_limit >= 0:
        ranked = sorted(range(len(edges)), key=lambda i: edges[i].score, reverse=True)
        keep = set(ranked[:step.next_step_limit])
        edges = [e for i, e in enumerate(edges) if i in keep]
    if edges is result.edges:
        return result
    return StepResult(edges=edges, failure_count=result.failure_count, degrees=result.degrees)


def remove_cycles(result: StepResult, visited: set[VertexId]) -> StepResult:
    edges = [e for e in result.edges if e.tgt not in visited]
    if len(edges) == len(result.edges):
        return result
    return StepResult(edges=edges, failure_count=result.failure_count, degrees=result.degrees)


def collapse_duplicates(
    edges: Sequence[EdgeWithScore],
    policy: DuplicatePolicy,
) -> list[EdgeWithScore]:
    """Collapse edges sharing (src, label, tgt) according to *policy*.

    FIRST keeps the first occurrence; SUM keeps the first occurrence with
    the exactly rounded sum of all occurrences' scores.
    """
    if policy is DuplicatePolicy.RAW:
        return list(edges)

    groups: dict[tuple[VertexId, str, VertexId], list[EdgeWithScore]] = {}
    for ews in edges:
        groups.setdefault((ews.src, ews.edge.label, ews.tgt), []).append(ews)

    collapsed: list[EdgeWithScore] = []
    for group in groups.values():
        first = group[0]
        if policy is DuplicatePolicy.SUM and len(group) > 1:
            first = EdgeWithScore(
                edge=first.edge,
                score=math.fsum(e.score for e in group),
                parent=first.parent,
            )
        collapsed.append(first)
    return collapsed


__all__ = [
    "parent_score",
    "apply_query_param",
    "prune_step",
    "remove_cycles",
    "collapse_duplicates",
]
