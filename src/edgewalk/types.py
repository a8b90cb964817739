"""Identifier and edge value types shared by every traversal layer.

Public API:
    Direction: Edge traversal direction enum.
    VertexId: Immutable vertex identity (service, column, raw id).
    LabelWithDirection: A label paired with a traversal direction.
    Edge: Immutable fetched edge, oriented from the vertex it was fetched from.
    EdgeWithScore: An edge with its accumulated relevance score.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .exceptions import InvalidDirectionError, InvalidQueryError

_DIRECTION_ALIASES = {
    "out": "out",
    "outgoing": "out",
    "in": "in",
    "incoming": "in",
    "both": "both",
}


class Direction(Enum):
    """Direction for edge scans relative to the vertex being expanded."""

    OUT = "out"
    IN = "in"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Direction | str) -> Direction:
        """Return the Direction for *value*.

        Raises:
            InvalidDirectionError: If *value* is not a known direction.
        """
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            alias = _DIRECTION_ALIASES.get(value.strip().lower())
            if alias is not None:
                return cls(alias)
        raise InvalidDirectionError(
            f"Invalid direction: {value!r}.  Choose from: 'out', 'in', 'both'"
        )

    def reversed(self) -> Direction:
        if self is Direction.OUT:
            return Direction.IN
        if self is Direction.IN:
            return Direction.OUT
        return self


@dataclass(frozen=True)
class VertexId:
    """An immutable vertex identity.

    Attributes:
        service: Service (namespace) the vertex belongs to.
        column: Column (vertex type) within the service.
        id: Raw id value, unique within (service, column).
    """

    service: str
    column: str
    id: Any

    def __str__(self) -> str:
        return f"{self.service}:{self.column}:{self.id}"

    @classmethod
    def parse(cls, value: VertexId | str | Mapping[str, Any]) -> VertexId:
        """Build a VertexId from ``"service:column:id"`` or a mapping."""
        if isinstance(value, VertexId):
            return value
        if isinstance(value, Mapping):
            return cls(value["service"], value["column"], value["id"])
        parts = str(value).split(":", 2)
        if len(parts) != 3 or not all(parts):
            raise InvalidQueryError(
                f"Invalid vertex id: {value!r}.  Expected 'service:column:id'"
            )
        return cls(*parts)


@dataclass(frozen=True)
class LabelWithDirection:
    """A typed, directed edge kind.

    Attributes:
        label: Label name (e.g. "knows").
        direction: Direction to scan; strings are parsed on construction.
    """

    label: str
    direction: Direction = Direction.OUT

    def __post_init__(self) -> None:
        if not self.label:
            raise InvalidQueryError("label cannot be empty")
        object.__setattr__(self, "direction", Direction.parse(self.direction))

    @classmethod
    def parse(cls, value: str) -> LabelWithDirection:
        """Parse ``"label"`` or ``"label:direction"``."""
        name, sep, direction = value.rpartition(":")
        if not sep:
            return cls(value)
        return cls(name, Direction.parse(direction))

    def reversed(self) -> LabelWithDirection:
        return LabelWithDirection(self.label, self.direction.reversed())

    def __str__(self) -> str:
        return f"{self.label}:{self.direction.value}"


@dataclass(frozen=True)
class Edge:
    """An immutable edge as seen from the vertex it was fetched from.

    Attributes:
        src: Vertex whose adjacency was scanned.
        tgt: Neighbour reached through this edge.
        label: Label name of the edge.
        direction: OUT if the stored edge points src -> tgt, IN if tgt -> src.
        properties: Arbitrary key-value properties stored on the edge.
        ts: Edge timestamp (epoch millis); 0 when the backend has none.
    """

    src: VertexId
    tgt: VertexId
    label: str
    direction: Direction = Direction.OUT
    properties: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    ts: int = 0


@dataclass(frozen=True)
class EdgeWithScore:
    """A fetched edge with its accumulated relevance score.

    Attributes:
        edge: The fetched edge.
        score: Accumulated score (parent score x weight x raw edge score).
        parent: Edge of the previous step that reached ``edge.src``, if any.
    """

    edge: Edge
    score: float = 1.0
    parent: EdgeWithScore | None = field(default=None, compare=False, repr=False)

    @property
    def src(self) -> VertexId:
        return self.edge.src

    @property
    def tgt(self) -> VertexId:
        return self.edge.tgt

    def path(self) -> list[Edge]:
        """Return the edge chain from the start vertex to this edge."""
        chain: list[Edge] = []
        node: EdgeWithScore | None = self
        while node is not None:
            chain.append(node.edge)
            node = node.parent
        chain.reverse()
        return chain


__all__ = ["Direction", "VertexId", "LabelWithDirection", "Edge", "EdgeWithScore"]
