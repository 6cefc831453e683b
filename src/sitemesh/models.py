from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Sequence, Tuple

from .errors import InvalidInputError


@dataclass(frozen=True)
class Point:
    """A position on the working plane (x, y) carrying a height *z*."""

    x: float
    y: float
    z: float = 0.0

    def planar(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def is_finite(self) -> bool:
        return all(math.isfinite(c) for c in (self.x, self.y, self.z))

    def distance_to(self, other: "Point") -> float:
        """Planar (x, y) distance; the height axis is ignored."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def lerp(self, other: "Point", t: float) -> "Point":
        return Point(
            self.x + (other.x - self.x) * t,
            self.y + (other.y - self.y) * t,
            self.z + (other.z - self.z) * t,
        )


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned map rectangle on the working plane."""

    min_x: float = -10.0
    min_y: float = -10.0
    max_x: float = 10.0
    max_y: float = 10.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def is_valid(self) -> bool:
        return self.max_x > self.min_x and self.max_y > self.min_y

    def clamp(self, point: Point) -> Point:
        """Clamp x/y into the rectangle, keeping the height."""
        x = min(max(point.x, self.min_x), self.max_x)
        y = min(max(point.y, self.min_y), self.max_y)
        if x == point.x and y == point.y:
            return point
        return Point(x, y, point.z)

    def contains(self, point: Point, tol: float = 1e-9) -> bool:
        return (
            self.min_x - tol <= point.x <= self.max_x + tol
            and self.min_y - tol <= point.y <= self.max_y + tol
        )

    def expanded(self, margin: float) -> "Bounds":
        return Bounds(
            self.min_x - margin,
            self.min_y - margin,
            self.max_x + margin,
            self.max_y + margin,
        )

    def union_point(self, point: Point) -> "Bounds":
        return Bounds(
            min(self.min_x, point.x),
            min(self.min_y, point.y),
            max(self.max_x, point.x),
            max(self.max_y, point.y),
        )


@dataclass(frozen=True)
class Box:
    """Axis-aligned 3D volume used to confine layout nodes."""

    min: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    max: Tuple[float, float, float] = (50.0, 50.0, 50.0)

    def is_valid(self) -> bool:
        return all(hi >= lo for lo, hi in zip(self.min, self.max))


@dataclass(frozen=True)
class Site:
    """A weighted nucleus.

    *reach* is the site's minimum boundary distance; ``None`` defers to the
    builder's configured default.
    """

    id: int
    position: Point
    weight: float = 0.0
    priority: int = 0
    reach: Optional[float] = None

    def with_position(self, position: Point) -> "Site":
        return Site(self.id, position, self.weight, self.priority, self.reach)


@dataclass(frozen=True)
class GraphEdge:
    a: int
    b: int
    weight: float
    is_tree_edge: bool = False

    def key(self) -> FrozenSet[int]:
        return frozenset((self.a, self.b))

    def as_tree_edge(self) -> "GraphEdge":
        return GraphEdge(self.a, self.b, self.weight, True)


@dataclass(frozen=True)
class Triangle:
    """Three handles into a point arena (see :class:`~sitemesh.delaunay.Triangulation`)."""

    a: int
    b: int
    c: int

    @property
    def vertices(self) -> Tuple[int, int, int]:
        return (self.a, self.b, self.c)

    def has_vertex(self, index: int) -> bool:
        return index == self.a or index == self.b or index == self.c

    def edges(self) -> Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]:
        return ((self.a, self.b), (self.b, self.c), (self.c, self.a))

    def shares_edge(self, other: "Triangle") -> bool:
        """True iff the triangles share exactly two vertices."""
        return len(set(self.vertices) & set(other.vertices)) == 2

    def shared_edge(self, other: "Triangle") -> Optional[Tuple[int, int]]:
        shared = [v for v in self.vertices if other.has_vertex(v)]
        if len(shared) != 2:
            return None
        return (shared[0], shared[1])


@dataclass
class VoronoiCell:
    """A site's region: ordered closed boundary plus derived measures.

    *centroid* and *area* are recomputed from *boundary* by the builder
    whenever the boundary changes; they are never authoritative on their own.
    """

    site_id: int
    boundary: list[Point] = field(default_factory=list)
    neighbor_ids: FrozenSet[int] = field(default_factory=frozenset)
    centroid: Optional[Point] = None
    area: float = 0.0
    boundary_radius: float = 0.0

    def vertex_count(self) -> int:
        return len(self.boundary)

    def segments(self) -> list[Tuple[Point, Point]]:
        n = len(self.boundary)
        if n < 2:
            return []
        return [(self.boundary[i], self.boundary[(i + 1) % n]) for i in range(n)]


def check_sites(sites: Sequence[Site]) -> None:
    """Reject duplicate ids, non-finite positions and negative weights."""
    seen: set[int] = set()
    for site in sites:
        if site is None:
            raise InvalidInputError("site list contains None")
        if site.id in seen:
            raise InvalidInputError(f"duplicate site id {site.id}")
        seen.add(site.id)
        if not site.position.is_finite():
            raise InvalidInputError(f"site {site.id} has a non-finite position")
        if not math.isfinite(site.weight) or site.weight < 0:
            raise InvalidInputError(f"site {site.id} weight must be finite and >= 0")
        if site.reach is not None and (not math.isfinite(site.reach) or site.reach < 0):
            raise InvalidInputError(f"site {site.id} reach must be finite and >= 0")
