"""Incremental Bowyer-Watson Delaunay triangulation.

Sites are inserted one at a time, in input order, into a mesh seeded with a
synthetic super-triangle that strictly contains the padded map rectangle.
Each insertion removes the triangles whose circumcircle strictly contains
the new site, and fans the boundary of the resulting hole to it.  Finally
every triangle touching a super-triangle vertex is discarded.

Triangles are index handles into :attr:`Triangulation.points`, which holds
the site positions in input order.  Degenerate triangles (collinear or
coincident vertices) never reach :attr:`Triangulation.triangles`; they are
kept in :attr:`Triangulation.rejected` and reported as diagnostics.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import structlog

from .errors import Diagnostic, InvalidInputError, degenerate
from .geometry import (
    MIN_TRIANGLE_AREA,
    MIN_VERTEX_SEPARATION,
    circumcenter,
    point_in_triangle,
    triangle_area,
)
from .models import Bounds, Point, Site, Triangle, check_sites

logger = structlog.get_logger()

MIN_SITES = 3
SUPER_SCALE = 20.0


@dataclass
class TriangulationConfig:
    """Tunables for :class:`DelaunayTriangulator`.

    Attributes
    ----------
    padding : float
        Margin added around the map rectangle before the super-triangle
        is fitted to it.
    epsilon : float
        Circumcircle tolerance: a point is inside only when its distance
        to the circumcenter is below ``radius - epsilon``.
    """

    padding: float = 100.0
    epsilon: float = 1e-3

    def validate(self) -> None:
        if self.padding <= 0:
            raise InvalidInputError("padding must be > 0")
        if self.epsilon < 0:
            raise InvalidInputError("epsilon must be >= 0")


@dataclass(frozen=True)
class Circle:
    center: Point
    radius: float
    degenerate: bool = False

    def strictly_contains(self, point: Point, epsilon: float) -> bool:
        return self.center.distance_to(point) < self.radius - epsilon


def circumcircle(a: Point, b: Point, c: Point) -> Circle:
    center, flat = circumcenter(a, b, c)
    return Circle(center, center.distance_to(a), flat)


def super_triangle(region: Bounds, z: float = 0.0) -> Tuple[Point, Point, Point]:
    """A triangle strictly enclosing *region*, sized from its larger side."""
    cx, cy = region.center
    span = max(region.width, region.height, 1.0)
    return (
        Point(cx - SUPER_SCALE * span, cy - span, z),
        Point(cx, cy + SUPER_SCALE * span, z),
        Point(cx + SUPER_SCALE * span, cy - span, z),
    )


# ═══════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════


@dataclass
class Triangulation:
    """Accepted triangles over an arena of site positions.

    ``points[i]`` is the position of ``sites[i]``; every triangle vertex is
    an index into both lists.
    """

    sites: List[Site]
    points: List[Point]
    triangles: List[Triangle] = field(default_factory=list)
    rejected: List[Triangle] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    epsilon: float = 1e-3
    _circles: Dict[Triangle, Circle] = field(default_factory=dict, repr=False)

    # ── per-triangle geometry ───────────────────────────────────────

    def vertices(self, t: Triangle) -> Tuple[Point, Point, Point]:
        return (self.points[t.a], self.points[t.b], self.points[t.c])

    def circle(self, t: Triangle) -> Circle:
        if t not in self._circles:
            self._circles[t] = circumcircle(*self.vertices(t))
        return self._circles[t]

    def circumcenter(self, t: Triangle) -> Point:
        return self.circle(t).center

    def circumradius(self, t: Triangle) -> float:
        return self.circle(t).radius

    def area(self, t: Triangle) -> float:
        return triangle_area(*self.vertices(t))

    def is_valid(self, t: Triangle) -> bool:
        """Distinct, well-separated vertices and a non-negligible area."""
        if len(set(t.vertices)) < 3:
            return False
        a, b, c = self.vertices(t)
        for p, q in ((a, b), (b, c), (c, a)):
            if p.distance_to(q) < MIN_VERTEX_SEPARATION:
                return False
        if self.circle(t).degenerate:
            return False
        return self.area(t) > MIN_TRIANGLE_AREA

    def contains_point(self, t: Triangle, point: Point) -> bool:
        return point_in_triangle(point, *self.vertices(t))

    def locate(self, point: Point) -> Optional[Triangle]:
        """First accepted triangle containing *point*, or ``None``."""
        for t in self.triangles:
            if self.contains_point(t, point):
                return t
        return None

    # ── topology ────────────────────────────────────────────────────

    def incident(self, index: int) -> List[Triangle]:
        """Accepted triangles that use site *index* as a vertex."""
        return [t for t in self.triangles if t.has_vertex(index)]

    def adjacent(self, t: Triangle) -> List[Triangle]:
        """Accepted triangles sharing exactly one edge with *t*."""
        return [o for o in self.triangles if t.shares_edge(o)]

    def neighbors(self, index: int) -> Set[int]:
        """Site indices that share an accepted triangle with site *index*."""
        out: Set[int] = set()
        for t in self.incident(index):
            out.update(t.vertices)
        out.discard(index)
        return out

    def edges(self) -> Set[Tuple[int, int]]:
        """Undirected triangulation edges as sorted index pairs."""
        out: Set[Tuple[int, int]] = set()
        for t in self.triangles:
            for u, v in t.edges():
                out.add((min(u, v), max(u, v)))
        return out

    def site_index(self, site_id: int) -> Optional[int]:
        """Arena index of *site_id*, or ``None`` when no site carries it."""
        for i, site in enumerate(self.sites):
            if site.id == site_id:
                return i
        return None

    def to_dict(self) -> dict:
        return {
            "sites": [s.id for s in self.sites],
            "triangles": [
                {
                    "vertices": [self.sites[v].id for v in t.vertices],
                    "circumcenter": self.circumcenter(t).planar(),
                    "circumradius": self.circumradius(t),
                    "valid": True,
                }
                for t in self.triangles
            ],
            "rejected": [[self.sites[v].id for v in t.vertices] for t in self.rejected],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# ═══════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════


class DelaunayTriangulator:
    """Bowyer-Watson triangulator bound to a map rectangle and config."""

    def __init__(self, bounds: Optional[Bounds] = None, config: Optional[TriangulationConfig] = None) -> None:
        self.bounds = bounds or Bounds()
        self.config = config or TriangulationConfig()
        self.config.validate()
        if not self.bounds.is_valid():
            raise InvalidInputError(f"invalid bounds {self.bounds}")

    def _enclosing_region(self, sites: Sequence[Site]) -> Bounds:
        region = self.bounds
        for site in sites:
            region = region.union_point(site.position)
        return region.expanded(self.config.padding)

    def triangulate(self, sites: Sequence[Site]) -> Triangulation:
        check_sites(sites)
        sites = list(sites)
        n = len(sites)
        points = [s.position for s in sites]
        result = Triangulation(sites=sites, points=points, epsilon=self.config.epsilon)

        if n < MIN_SITES:
            diag = degenerate(f"triangulation needs at least {MIN_SITES} sites, got {n}")
            result.diagnostics.append(diag)
            logger.warning("Triangulation skipped", sites=n, reason=diag.message)
            return result

        z = sum(p.z for p in points) / n
        arena = points + list(super_triangle(self._enclosing_region(sites), z))
        circles: Dict[Triangle, Circle] = {}

        def circle_of(t: Triangle) -> Circle:
            if t not in circles:
                circles[t] = circumcircle(arena[t.a], arena[t.b], arena[t.c])
            return circles[t]

        mesh: List[Triangle] = [Triangle(n, n + 1, n + 2)]
        eps = self.config.epsilon

        for i in range(n):
            p = arena[i]
            bad = [t for t in mesh if circle_of(t).strictly_contains(p, eps)]
            if not bad:
                result.skipped.append(sites[i].id)
                result.diagnostics.append(
                    degenerate("site lies on existing circumcircles and was not inserted", sites[i].id)
                )
                logger.warning("Site not inserted", site=sites[i].id)
                continue

            counts = Counter(frozenset(e) for t in bad for e in t.edges())
            hole = [e for t in bad for e in t.edges() if counts[frozenset(e)] == 1]

            bad_set = set(bad)
            mesh = [t for t in mesh if t not in bad_set]
            mesh.extend(Triangle(u, v, i) for u, v in hole)

        for t in mesh:
            if any(v >= n for v in t.vertices):
                continue
            result._circles[t] = circle_of(t)
            if result.is_valid(t):
                result.triangles.append(t)
            else:
                result.rejected.append(t)

        if result.rejected:
            result.diagnostics.append(
                degenerate(f"{len(result.rejected)} degenerate triangle(s) rejected")
            )
        if not result.triangles:
            result.diagnostics.append(degenerate("no valid triangles; sites may be collinear"))

        for diag in result.diagnostics:
            if diag.subject is None:
                logger.warning("Degenerate triangulation", detail=diag.message)
        logger.info(
            "Triangulation completed",
            sites=n,
            triangles=len(result.triangles),
            rejected=len(result.rejected),
            skipped=len(result.skipped),
        )
        return result


def triangulate(
    sites: Sequence[Site],
    bounds: Optional[Bounds] = None,
    config: Optional[TriangulationConfig] = None,
) -> Triangulation:
    """Convenience wrapper around :meth:`DelaunayTriangulator.triangulate`."""
    return DelaunayTriangulator(bounds, config).triangulate(sites)
