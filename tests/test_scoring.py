"""Tests for deterministic edge scoring and filtering."""

from __future__ import annotations

import pytest

from edgewalk import (
    DuplicatePolicy,
    Edge,
    EdgeWithScore,
    QueryParam,
    QueryRequest,
    Step,
    StepResult,
    VertexId,
)
from edgewalk.scoring import (
    apply_query_param,
    collapse_duplicates,
    parent_score,
    prune_step,
    remove_cycles,
)


def v(name: str) -> VertexId:
    return VertexId("social", "user", name)


def edge(src: str, tgt: str, score: float | None = None, ts: int = 0, **props) -> Edge:
    if score is not None:
        props["score"] = score
    return Edge(v(src), v(tgt), "knows", properties=props, ts=ts)


def request(param: QueryParam, vertex: str = "a", parents=()) -> QueryRequest:
    return QueryRequest(vertex=v(vertex), query_param=param, prev_step_edges=tuple(parents))


class TestParentScore:
    """Parent scores are order-independent."""

    def test_start_vertex_is_one(self):
        assert parent_score(()) == 1.0

    def test_sum_is_order_independent(self):
        scores = [0.1, 1e16, 0.2, -1e16, 0.3]
        edges = [EdgeWithScore(edge("x", "a"), s) for s in scores]
        assert parent_score(edges) == parent_score(list(reversed(edges)))
        assert parent_score(edges) == pytest.approx(0.6)


class TestApplyQueryParam:
    """Filtering, scoring, ordering and cutting of one request's edges."""

    def test_orders_by_score_descending(self):
        raw = [edge("a", "b", 0.5), edge("a", "c", 0.9), edge("a", "d", 0.7)]
        result = apply_query_param(request(QueryParam("knows")), raw)
        assert [e.tgt.id for e in result.edges] == ["c", "d", "b"]
        assert [e.score for e in result.edges] == [0.9, 0.7, 0.5]

    def test_ties_keep_backend_order(self):
        raw = [edge("a", "b", 0.5), edge("a", "c", 0.5)]
        result = apply_query_param(request(QueryParam("knows")), raw)
        assert [e.tgt.id for e in result.edges] == ["b", "c"]

    def test_missing_score_property_counts_as_one(self):
        result = apply_query_param(request(QueryParam("knows")), [edge("a", "b")])
        assert result.edges[0].score == 1.0

    def test_weight_and_parent_score_multiply(self):
        parents = [
            EdgeWithScore(edge("x", "a"), 0.5),
            EdgeWithScore(edge("y", "a"), 0.25),
        ]
        param = QueryParam("knows", weight=2.0)
        result = apply_query_param(request(param, parents=parents), [edge("a", "b", 0.4)])
        assert result.edges[0].score == pytest.approx(0.75 * 2.0 * 0.4)
        assert result.edges[0].parent is parents[0]

    def test_limit_and_offset(self):
        raw = [edge("a", t, s) for t, s in [("b", 0.9), ("c", 0.8), ("d", 0.7), ("e", 0.6)]]
        result = apply_query_param(request(QueryParam("knows", offset=1, limit=2)), raw)
        assert [e.tgt.id for e in result.edges] == ["c", "d"]
        assert result.degrees == {(v("a"), "knows"): 4}

    def test_zero_limit_keeps_nothing(self):
        result = apply_query_param(request(QueryParam("knows", limit=0)), [edge("a", "b")])
        assert result.edges == []
        assert result.degrees[(v("a"), "knows")] == 1

    def test_where_filters_by_property(self):
        raw = [edge("a", "b", kind="friend"), edge("a", "c", kind="coworker")]
        result = apply_query_param(request(QueryParam("knows", where={"kind": "friend"})), raw)
        assert [e.tgt.id for e in result.edges] == ["b"]

    def test_where_compares_raw_values(self):
        raw = [edge("a", "b", year=2021), edge("a", "c", year="2021")]
        result = apply_query_param(request(QueryParam("knows", where={"year": 2021})), raw)
        assert [e.tgt.id for e in result.edges] == ["b"]

    def test_where_missing_property_never_matches(self):
        raw = [edge("a", "b"), edge("a", "c", color=None)]
        param = QueryParam("knows", where={"color": "None"})
        assert apply_query_param(request(param), raw).edges == []

    def test_no_filters_accept_all(self):
        raw = [edge("a", "b"), edge("a", "c")]
        result = apply_query_param(request(QueryParam("knows")), raw)
        assert len(result.edges) == 2

    def test_predicates(self):
        raw = [edge("a", "b", 0.9), edge("a", "c", 0.1)]
        param = QueryParam("knows", predicates=(lambda e: e.properties["score"] > 0.5,))
        result = apply_query_param(request(param), raw)
        assert [e.tgt.id for e in result.edges] == ["b"]

    def test_duration_is_half_open(self):
        raw = [edge("a", "b", ts=100), edge("a", "c", ts=200), edge("a", "d", ts=150)]
        result = apply_query_param(request(QueryParam("knows", duration=(100, 200))), raw)
        assert {e.tgt.id for e in result.edges} == {"b", "d"}

    def test_exclude_parents(self):
        parents = [EdgeWithScore(edge("x", "a"), 1.0)]
        raw = [edge("a", "x"), edge("a", "y")]
        param = QueryParam("knows", exclude_parents=True)
        result = apply_query_param(request(param, parents=parents), raw)
        assert [e.tgt.id for e in result.edges] == ["y"]

    def test_sample_is_deterministic(self):
        raw = [edge("a", str(i), score=1.0 - i / 100) for i in range(20)]
        param = QueryParam("knows", sample=5, sample_seed=7)
        first = apply_query_param(request(param), raw)
        second = apply_query_param(request(param), raw)
        assert len(first.edges) == 5
        assert first.edges == second.edges
        scores = [e.score for e in first.edges]
        assert scores == sorted(scores, reverse=True)


class TestStepAndQueryPruning:
    """Step-level and query-level post-processing."""

    def _result(self):
        return StepResult(edges=[
            EdgeWithScore(edge("a", "b"), 0.2),
            EdgeWithScore(edge("a", "c"), 0.9),
            EdgeWithScore(edge("d", "e"), 0.5),
        ], failure_count=1)

    def test_next_step_limit_keeps_top_in_original_order(self):
        pruned = prune_step(self._result(), Step([QueryParam("knows")], next_step_limit=2))
        assert [e.tgt.id for e in pruned.edges] == ["c", "e"]
        assert pruned.failure_count == 1

    def test_next_step_threshold(self):
        step = Step([QueryParam("knows")], next_step_score_threshold=0.5)
        pruned = prune_step(self._result(), step)
        assert [e.tgt.id for e in pruned.edges] == ["c", "e"]

    def test_no_pruning_returns_same_object(self):
        result = self._result()
        assert prune_step(result, Step([QueryParam("knows")])) is result

    def test_remove_cycles(self):
        pruned = remove_cycles(self._result(), {v("b")})
        assert [e.tgt.id for e in pruned.edges] == ["c", "e"]

    def test_collapse_first_and_sum(self):
        edges = [
            EdgeWithScore(edge("a", "b"), 0.5),
            EdgeWithScore(edge("a", "c"), 0.4),
            EdgeWithScore(edge("a", "b"), 0.25),
        ]
        assert collapse_duplicates(edges, DuplicatePolicy.RAW) == edges
        first = collapse_duplicates(edges, DuplicatePolicy.FIRST)
        assert [(e.tgt.id, e.score) for e in first] == [("b", 0.5), ("c", 0.4)]
        summed = collapse_duplicates(edges, DuplicatePolicy.SUM)
        assert [(e.tgt.id, e.score) for e in summed] == [("b", 0.75), ("c", 0.4)]
