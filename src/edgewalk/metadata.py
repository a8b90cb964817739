"""Read-only schema lookups used by the traversal core.

The directory is built once (from a mapping or by the schema service
that owns it) and only read afterwards, so it is safe to share across
concurrent traversals without locking.

Public API:
    ServiceColumn: A (service, column) vertex type.
    Label: An edge label and the vertex types it connects.
    LabelDirectory: Label / column lookups by name.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .exceptions import UnknownColumnError, UnknownLabelError
from .query import QueryParam
from .types import Direction, LabelWithDirection, VertexId


@dataclass(frozen=True)
class ServiceColumn:
    """A vertex type: a column within a service."""

    service: str
    column: str
    column_type: str = "string"


@dataclass(frozen=True)
class Label:
    """An edge label and the vertex types on either end.

    Attributes:
        name: Label name.
        src_service: Service of the source vertex.
        src_column: Column of the source vertex.
        tgt_service: Service of the target vertex.
        tgt_column: Column of the target vertex.
        is_directed: Undirected labels are scanned in both directions by default.
    """

    name: str
    src_service: str
    src_column: str
    tgt_service: str
    tgt_column: str
    is_directed: bool = True

    @property
    def default_direction(self) -> Direction:
        return Direction.OUT if self.is_directed else Direction.BOTH


class LabelDirectory:
    """Label and column lookups by name.

    Args:
        labels: Known labels.
        columns: Known vertex columns.  Columns referenced by labels are
            added automatically.
    """

    def __init__(
        self,
        labels: Iterable[Label] = (),
        columns: Iterable[ServiceColumn] = (),
    ) -> None:
        label_map: dict[str, Label] = {}
        column_map: dict[tuple[str, str], ServiceColumn] = {}
        for col in columns:
            column_map[(col.service, col.column)] = col
        for label in labels:
            label_map[label.name] = label
            for key in ((label.src_service, label.src_column),
                        (label.tgt_service, label.tgt_column)):
                column_map.setdefault(key, ServiceColumn(*key))
        self._labels = MappingProxyType(label_map)
        self._columns = MappingProxyType(column_map)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LabelDirectory:
        """Build a directory from plain data.

        Expected shape::

            {
                "columns": [{"service": "s", "column": "user", "column_type": "string"}],
                "labels": [{"name": "knows", "src_service": "s", "src_column": "user",
                            "tgt_service": "s", "tgt_column": "user", "is_directed": true}],
            }
        """
        columns = [ServiceColumn(**c) for c in data.get("columns", ())]
        labels = [Label(**lbl) for lbl in data.get("labels", ())]
        return cls(labels=labels, columns=columns)

    # ── lookups ───────────────────────────────────────────────

    @property
    def label_names(self) -> list[str]:
        return sorted(self._labels)

    def has_label(self, name: str) -> bool:
        return name in self._labels

    def find_label(self, name: str) -> Label:
        """Return the label named *name*.

        Raises:
            UnknownLabelError: If no such label exists.
        """
        label = self._labels.get(name)
        if label is None:
            raise UnknownLabelError(f"Label not found: {name}")
        return label

    def label_with_direction(
        self,
        name: str,
        direction: Direction | str | None = None,
    ) -> LabelWithDirection:
        """Resolve *name* to a LabelWithDirection, defaulting the direction."""
        label = self.find_label(name)
        if direction is None:
            return LabelWithDirection(label.name, label.default_direction)
        return LabelWithDirection(label.name, Direction.parse(direction))

    def query_param(
        self,
        name: str,
        direction: Direction | str | None = None,
        **options: Any,
    ) -> QueryParam:
        """Build a QueryParam for a known label; *options* go to QueryParam."""
        return QueryParam(self.label_with_direction(name, direction), **options)

    def find_column(self, service: str, column: str) -> ServiceColumn:
        col = self._columns.get((service, column))
        if col is None:
            raise UnknownColumnError(f"Column not found: {service}.{column}")
        return col

    def validate_vertex(self, vertex: VertexId) -> ServiceColumn:
        """Check that *vertex* belongs to a known (service, column).

        Raises:
            UnknownColumnError: If the column is unknown.
        """
        return self.find_column(vertex.service, vertex.column)

    def neighbour_column(
        self,
        label_name: str,
        direction: Direction,
        anchor: VertexId,
    ) -> tuple[str, str]:
        """Return (service, column) of the vertex reached from *anchor*.

        For BOTH on a label joining two different columns, the far end is
        whichever side *anchor* is not on.
        """
        label = self.find_label(label_name)
        src = (label.src_service, label.src_column)
        tgt = (label.tgt_service, label.tgt_column)
        if direction is Direction.OUT:
            return tgt
        if direction is Direction.IN:
            return src
        return src if (anchor.service, anchor.column) == tgt else tgt


__all__ = ["ServiceColumn", "Label", "LabelDirectory"]
