"""Tests for the label / column directory."""

from __future__ import annotations

import pytest

from edgewalk import (
    Direction,
    InvalidDirectionError,
    Label,
    LabelDirectory,
    LabelWithDirection,
    ServiceColumn,
    UnknownColumnError,
    UnknownLabelError,
    VertexId,
)


@pytest.fixture
def directory():
    return LabelDirectory.from_dict({
        "columns": [{"service": "social", "column": "user", "column_type": "long"}],
        "labels": [
            {"name": "knows", "src_service": "social", "src_column": "user",
             "tgt_service": "social", "tgt_column": "user", "is_directed": False},
            {"name": "follows", "src_service": "social", "src_column": "user",
             "tgt_service": "web", "tgt_column": "page"},
        ],
    })


class TestLookups:

    def test_label_names_sorted(self, directory):
        assert directory.label_names == ["follows", "knows"]

    def test_find_label(self, directory):
        assert directory.find_label("follows").tgt_column == "page"
        assert directory.has_label("knows")
        assert not directory.has_label("likes")

    def test_unknown_label(self, directory):
        with pytest.raises(UnknownLabelError, match="likes"):
            directory.find_label("likes")

    def test_unknown_label_is_key_error(self, directory):
        with pytest.raises(KeyError):
            directory.find_label("likes")

    def test_declared_column_kept(self, directory):
        assert directory.find_column("social", "user").column_type == "long"

    def test_columns_added_from_labels(self, directory):
        assert directory.find_column("web", "page") == ServiceColumn("web", "page")

    def test_validate_vertex(self, directory):
        directory.validate_vertex(VertexId("web", "page", "p1"))
        with pytest.raises(UnknownColumnError):
            directory.validate_vertex(VertexId("web", "video", "v1"))


class TestDirections:

    def test_default_direction(self, directory):
        assert directory.label_with_direction("follows") == LabelWithDirection("follows", Direction.OUT)
        assert directory.label_with_direction("knows").direction is Direction.BOTH

    def test_explicit_direction(self, directory):
        assert directory.label_with_direction("knows", "in").direction is Direction.IN

    def test_bad_direction(self, directory):
        with pytest.raises(InvalidDirectionError):
            directory.label_with_direction("knows", "sideways")

    def test_query_param_options(self, directory):
        param = directory.query_param("follows", limit=5)
        assert param.label == "follows"
        assert param.limit == 5

    @pytest.mark.parametrize(
        "direction, anchor, expected",
        [
            (Direction.OUT, VertexId("social", "user", "a"), ("web", "page")),
            (Direction.IN, VertexId("web", "page", "p"), ("social", "user")),
            (Direction.BOTH, VertexId("web", "page", "p"), ("social", "user")),
            (Direction.BOTH, VertexId("social", "user", "a"), ("web", "page")),
        ],
    )
    def test_neighbour_column(self, directory, direction, anchor, expected):
        assert directory.neighbour_column("follows", direction, anchor) == expected

    def test_labels_are_frozen(self):
        label = Label("knows", "s", "u", "s", "u")
        with pytest.raises(AttributeError):
            label.name = "likes"
