"""Weighted Voronoi partitions derived from a Delaunay triangulation.

A build runs up to three stages:

1. **Dual construction**: each site's cell is bounded by the circumcenters
   of its incident triangles, ordered by walking triangle adjacency (with an
   angular sort when the walk breaks).  Cells are neighbours when a triangle
   holds both nuclei.
2. **Boundary shaping**: depending on :attr:`VoronoiConfig.mode`:

   - ``"weighted"``: for ``boundary_resolution`` rays around each site, a
     binary search finds where ownership under the additive metric
     ``distance - weight`` passes to another site.  Radii are clamped to
     ``[reach, reach * expansion_factor]``, then the polygon is smoothed and
     clamped into the map rectangle.
   - ``"minimum_range"``: the ordered dual polygon, clamped into the map and
     radially into ``[reach, reach * expansion_factor]``; sites with fewer
     than two incident triangles get a circle of radius ``reach``.
   - ``"dual"``: the raw ordered circumcenters.

3. **Intersection resolution**: crossing segments of two cells pull their
   endpoints toward their own sites, for a bounded number of passes.
   Whatever still crosses afterwards is reported, not raised.

Centroid, area and boundary radius of every cell are recomputed whenever
its boundary changes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .delaunay import DelaunayTriangulator, Triangulation, TriangulationConfig
from .errors import Diagnostic, InvalidInputError, degenerate, non_convergent
from .geometry import (
    PARALLEL_TOLERANCE,
    centroid,
    ordered_by_angle,
    polygon_area,
    radial_clamp,
    ray_point,
    smooth_closed,
    unique_points,
)
from .models import Bounds, Point, Site, VoronoiCell, check_sites

logger = structlog.get_logger()

VORONOI_MODES = ("weighted", "minimum_range", "dual")
SEARCH_RADIUS_SCALE = 1.5


# ═══════════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════════


@dataclass
class VoronoiConfig:
    """Parameters for :class:`VoronoiBuilder`.

    Attributes
    ----------
    bounds : Bounds
        Map rectangle every shaped boundary is clamped into.
    mode : str
        ``"weighted"``, ``"minimum_range"`` or ``"dual"``.
    boundary_resolution : int
        Rays per site in weighted mode; vertices of a circular fallback.
    search_precision : float
        Bracket width at which a boundary search stops.
    max_search_iterations : int
        Halving budget of a single boundary search.
    minimum_range_enforced : bool
        In minimum-range mode, push vertices closer than the reach out to it.
    minimum_reach : float
        Reach of sites whose own ``reach`` is ``None``.
    expansion_factor : float
        Boundary radii never exceed ``reach * expansion_factor``.
    smoothing_passes : int
        Neighbour-averaging passes over each weighted boundary.
    resolve_intersections : bool
        Run intersection resolution after shaping (not in dual mode).
    max_resolution_passes : int
        Full all-pairs passes before residual crossings are accepted.
    nudge_fraction : float
        Fraction of the way an offending endpoint moves toward its site.
    height : float | None
        Height given to shaped boundary vertices; ``None`` keeps each
        site's own height.
    triangulation : TriangulationConfig
    """

    bounds: Bounds = field(default_factory=Bounds)
    mode: str = "weighted"
    boundary_resolution: int = 64
    search_precision: float = 0.01
    max_search_iterations: int = 50
    minimum_range_enforced: bool = True
    minimum_reach: float = 1.0
    expansion_factor: float = 1.5
    smoothing_passes: int = 2
    resolve_intersections: bool = True
    max_resolution_passes: int = 5
    nudge_fraction: float = 0.1
    height: Optional[float] = None
    triangulation: TriangulationConfig = field(default_factory=TriangulationConfig)

    def validate(self) -> None:
        if self.mode not in VORONOI_MODES:
            raise InvalidInputError(f"mode must be one of {VORONOI_MODES}, got {self.mode!r}")
        if not self.bounds.is_valid():
            raise InvalidInputError(f"invalid bounds {self.bounds}")
        if self.boundary_resolution < 3:
            raise InvalidInputError("boundary_resolution must be >= 3")
        if self.search_precision <= 0:
            raise InvalidInputError("search_precision must be > 0")
        if self.max_search_iterations < 1:
            raise InvalidInputError("max_search_iterations must be >= 1")
        if self.minimum_reach < 0:
            raise InvalidInputError("minimum_reach must be >= 0")
        if self.expansion_factor < 1.0:
            raise InvalidInputError("expansion_factor must be >= 1")
        if self.smoothing_passes < 0 or self.max_resolution_passes < 0:
            raise InvalidInputError("pass counts must be >= 0")
        if not 0.0 < self.nudge_fraction <= 1.0:
            raise InvalidInputError("nudge_fraction must be within (0, 1]")
        self.triangulation.validate()


@dataclass
class WeightConfig:
    """Linear site weight from a power and a level attribute."""

    base_weight: float = 1.0
    power_weight: float = 0.5
    level_weight: float = 0.3


DEFAULT_VORONOI = VoronoiConfig()

EXACT_DUAL = VoronoiConfig(mode="dual", resolve_intersections=False)

MINIMUM_RANGE = VoronoiConfig(mode="minimum_range")


def site_weight(power: float, level: float, config: Optional[WeightConfig] = None) -> float:
    """``base_weight + power * power_weight + level * level_weight``."""
    config = config or WeightConfig()
    return config.base_weight + power * config.power_weight + level * config.level_weight


# ═══════════════════════════════════════════════════════════════════
# Ownership
# ═══════════════════════════════════════════════════════════════════


def weighted_distance(point: Point, site: Site) -> float:
    """Additive weighted metric: planar distance minus the site weight."""
    return point.distance_to(site.position) - site.weight


class TerritoryField:
    """Vectorised ownership queries over a fixed site set."""

    def __init__(self, sites: Sequence[Site]) -> None:
        self.sites = list(sites)
        self._xy = np.array([s.position.planar() for s in self.sites], dtype=float).reshape(-1, 2)
        self._weights = np.array([s.weight for s in self.sites], dtype=float)

    def __len__(self) -> int:
        return len(self.sites)

    def weighted_distances(self, x: float, y: float) -> np.ndarray:
        return np.hypot(self._xy[:, 0] - x, self._xy[:, 1] - y) - self._weights

    def owner(self, x: float, y: float, current: int) -> int:
        """Index of the site minimising the weighted distance.

        Ties keep *current*: ownership only passes on a strict improvement.
        """
        dist = self.weighted_distances(x, y)
        best = int(np.argmin(dist))
        if dist[best] < dist[current]:
            return best
        return current


@dataclass(frozen=True)
class RadiusSearch:
    radius: float
    iterations: int
    converged: bool


def max_search_radius(position: Point, bounds: Bounds) -> float:
    """1.5 times the largest distance from *position* to a bounds edge line."""
    return SEARCH_RADIUS_SCALE * max(
        abs(position.x - bounds.min_x),
        abs(position.x - bounds.max_x),
        abs(position.y - bounds.min_y),
        abs(position.y - bounds.max_y),
    )


def find_boundary_radius(
    territory: TerritoryField,
    index: int,
    angle: float,
    min_radius: float,
    max_radius: float,
    precision: float = 0.01,
    max_iterations: int = 50,
) -> RadiusSearch:
    """Binary-search the ray at *angle* for the edge of site *index*'s territory.

    The bracket starts at ``[min_radius, max_radius]``; the result is the
    largest probed radius still owned by the site, never below *min_radius*.
    """
    origin = territory.sites[index].position
    low, high = min_radius, max_radius
    best = min_radius
    iterations = 0
    while iterations < max_iterations and high - low >= precision:
        mid = (low + high) / 2.0
        probe = ray_point(origin, angle, mid)
        iterations += 1
        if territory.owner(probe.x, probe.y, index) == index:
            best = mid
            low = mid
        else:
            high = mid
    return RadiusSearch(max(best, min_radius), iterations, high - low < precision)


# ═══════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════


@dataclass
class ResolutionReport:
    passes: int = 0
    nudges: int = 0
    residual: int = 0


@dataclass
class VoronoiDiagram:
    """Cells in site order, plus the triangulation they were derived from."""

    sites: List[Site]
    cells: List[VoronoiCell]
    triangulation: Triangulation
    mode: str = "weighted"
    resolution: ResolutionReport = field(default_factory=ResolutionReport)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def residual_intersections(self) -> int:
        return self.resolution.residual

    def cell(self, site_id: int) -> Optional[VoronoiCell]:
        for c in self.cells:
            if c.site_id == site_id:
                return c
        return None

    def neighbors(self, site_id: int) -> List[VoronoiCell]:
        """Neighbouring cells in id order; empty for an unknown site."""
        own = self.cell(site_id)
        if own is None:
            return []
        found = (self.cell(n) for n in sorted(own.neighbor_ids))
        return [c for c in found if c is not None]

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "cells": [
                {
                    "site": c.site_id,
                    "boundary": [p.planar() for p in c.boundary],
                    "neighbors": sorted(c.neighbor_ids),
                    "centroid": c.centroid.planar() if c.centroid else None,
                    "area": c.area,
                    "boundary_radius": c.boundary_radius,
                }
                for c in self.cells
            ],
            "triangles": len(self.triangulation.triangles),
            "residual_intersections": self.residual_intersections,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


# ═══════════════════════════════════════════════════════════════════
# Stage 1: dual construction
# ═══════════════════════════════════════════════════════════════════


def ordered_dual_vertices(tri: Triangulation, index: int) -> Tuple[List[Point], bool]:
    """Circumcenters around site *index*, in adjacency-walk order.

    Returns ``(vertices, walked)``.  When the incident triangles cannot be
    chained edge to edge, *walked* is ``False`` and the vertices are sorted
    by angle around the site instead.
    """
    incident = tri.incident(index)
    if not incident:
        return [], True

    current = incident[0]
    visited = {current}
    chain = [current]
    while len(visited) < len(incident):
        step = next((t for t in incident if t not in visited and current.shares_edge(t)), None)
        if step is None:
            break
        visited.add(step)
        chain.append(step)
        current = step

    if len(visited) == len(incident):
        return [tri.circumcenter(t) for t in chain], True
    centers = [tri.circumcenter(t) for t in incident]
    return ordered_by_angle(centers, tri.points[index]), False


def build_dual_cells(tri: Triangulation) -> Tuple[List[VoronoiCell], List[Diagnostic]]:
    """Raw dual cells for every site of *tri*, with neighbour sets."""
    cells: List[VoronoiCell] = []
    diagnostics: List[Diagnostic] = []
    for i, site in enumerate(tri.sites):
        vertices, walked = ordered_dual_vertices(tri, i)
        if not walked:
            diagnostics.append(
                degenerate("adjacency walk incomplete; vertices sorted by angle", site.id)
            )
            logger.warning("Non-contiguous cell", site=site.id, triangles=len(tri.incident(i)))
        neighbor_ids = frozenset(tri.sites[j].id for j in tri.neighbors(i))
        cells.append(VoronoiCell(site.id, vertices, neighbor_ids))
    return cells, diagnostics


def update_cell_measures(cell: VoronoiCell, site: Site) -> VoronoiCell:
    """Recompute centroid, area and boundary radius from the boundary."""
    vertices = unique_points(cell.boundary)
    cell.centroid = centroid(vertices) or site.position
    cell.area = polygon_area(vertices, site.position)
    cell.boundary_radius = max((site.position.distance_to(v) for v in vertices), default=0.0)
    return cell


# ═══════════════════════════════════════════════════════════════════
# Stage 2: boundary shaping
# ═══════════════════════════════════════════════════════════════════


def _reach(site: Site, config: VoronoiConfig) -> float:
    return site.reach if site.reach is not None else config.minimum_reach


def _height(site: Site, config: VoronoiConfig) -> float:
    return site.position.z if config.height is None else config.height


def _at_height(point: Point, z: float) -> Point:
    return point if point.z == z else Point(point.x, point.y, z)


def weighted_boundary(
    territory: TerritoryField,
    index: int,
    config: VoronoiConfig,
) -> Tuple[List[Point], int]:
    """Shape one site's boundary by per-ray search.

    Returns the smoothed, clamped polygon and the number of searches that
    ran out of iterations before reaching the precision.
    """
    site = territory.sites[index]
    reach = _reach(site, config)
    upper = reach * config.expansion_factor
    z = _height(site, config)
    high = max_search_radius(site.position, config.bounds)

    vertices: List[Point] = []
    stalled = 0
    for s in range(config.boundary_resolution):
        angle = 2.0 * math.pi * s / config.boundary_resolution
        search = find_boundary_radius(
            territory,
            index,
            angle,
            reach,
            high,
            config.search_precision,
            config.max_search_iterations,
        )
        if not search.converged:
            stalled += 1
        radius = min(max(search.radius, reach), upper)
        vertices.append(config.bounds.clamp(ray_point(site.position, angle, radius, z)))

    smoothed = smooth_closed(vertices, config.smoothing_passes)
    return [config.bounds.clamp(_at_height(p, z)) for p in smoothed], stalled


def circular_boundary(site: Site, radius: float, config: VoronoiConfig) -> List[Point]:
    z = _height(site, config)
    return [
        config.bounds.clamp(
            ray_point(site.position, 2.0 * math.pi * s / config.boundary_resolution, radius, z)
        )
        for s in range(config.boundary_resolution)
    ]


def minimum_range_boundary(
    tri: Triangulation,
    index: int,
    config: VoronoiConfig,
    ordered: Optional[List[Point]] = None,
) -> Optional[List[Point]]:
    """Dual polygon clamped into the map and radially around the site.

    Returns ``None`` when the site has fewer than two incident triangles;
    the caller substitutes :func:`circular_boundary`.
    """
    if len(tri.incident(index)) < 2:
        return None
    site = tri.sites[index]
    reach = _reach(site, config)
    z = _height(site, config)
    if ordered is None:
        ordered, _ = ordered_dual_vertices(tri, index)

    lo = reach if config.minimum_range_enforced else None
    out = []
    for vertex in ordered:
        vertex = _at_height(config.bounds.clamp(vertex), z)
        vertex = radial_clamp(site.position, vertex, lo, reach * config.expansion_factor)
        out.append(config.bounds.clamp(_at_height(vertex, z)))
    return out


# ═══════════════════════════════════════════════════════════════════
# Stage 3: intersection resolution
# ═══════════════════════════════════════════════════════════════════


def _segment_arrays(boundary: Sequence[Point]) -> Tuple[np.ndarray, np.ndarray]:
    start = np.array([p.planar() for p in boundary], dtype=float).reshape(-1, 2)
    return start, np.roll(start, -1, axis=0)


def crossing_segments(
    boundary_a: Sequence[Point],
    boundary_b: Sequence[Point],
) -> List[Tuple[int, int]]:
    """Segment index pairs ``(i, j)`` where polygon *a* crosses polygon *b*.

    Segment ``i`` runs from vertex ``i`` to vertex ``i + 1`` (wrapping).
    Near-parallel segments are skipped; touching endpoints count.
    """
    if len(boundary_a) < 2 or len(boundary_b) < 2:
        return []
    p1, p2 = _segment_arrays(boundary_a)
    p3, p4 = _segment_arrays(boundary_b)

    ax = (p1[:, 0] - p2[:, 0])[:, None]
    ay = (p1[:, 1] - p2[:, 1])[:, None]
    bx = (p3[:, 0] - p4[:, 0])[None, :]
    by = (p3[:, 1] - p4[:, 1])[None, :]
    cx = p1[:, 0][:, None] - p3[:, 0][None, :]
    cy = p1[:, 1][:, None] - p3[:, 1][None, :]

    d = ax * by - ay * bx
    usable = np.abs(d) >= PARALLEL_TOLERANCE
    safe = np.where(usable, d, 1.0)
    t = (cx * by - cy * bx) / safe
    u = -(ax * cy - ay * cx) / safe
    hit = usable & (t >= 0.0) & (t <= 1.0) & (u >= 0.0) & (u <= 1.0)
    return [(int(i), int(j)) for i, j in zip(*np.nonzero(hit))]


def _envelopes_touch(a: Sequence[Point], b: Sequence[Point]) -> bool:
    return not (
        max(p.x for p in a) < min(p.x for p in b)
        or max(p.x for p in b) < min(p.x for p in a)
        or max(p.y for p in a) < min(p.y for p in b)
        or max(p.y for p in b) < min(p.y for p in a)
    )


def _nudge(point: Point, toward: Point, fraction: float) -> Point:
    return Point(
        point.x + (toward.x - point.x) * fraction,
        point.y + (toward.y - point.y) * fraction,
        point.z,
    )


def count_intersections(boundaries: Sequence[Sequence[Point]]) -> int:
    """Crossing segment pairs summed over every pair of boundaries."""
    total = 0
    for i in range(len(boundaries)):
        for j in range(i + 1, len(boundaries)):
            a, b = boundaries[i], boundaries[j]
            if len(a) >= 2 and len(b) >= 2 and _envelopes_touch(a, b):
                total += len(crossing_segments(a, b))
    return total


def resolve_intersections(
    boundaries: List[List[Point]],
    sites: Sequence[Site],
    bounds: Bounds,
    max_passes: int = 5,
    fraction: float = 0.1,
) -> ResolutionReport:
    """Nudge crossing segments apart, in place, for at most *max_passes*.

    Every detected crossing moves the four endpoints *fraction* of the way
    toward their own site.  Boundaries stay clamped into *bounds*.
    """
    report = ResolutionReport()
    while report.passes < max_passes:
        found = False
        for i in range(len(boundaries)):
            for j in range(i + 1, len(boundaries)):
                a, b = boundaries[i], boundaries[j]
                if len(a) < 2 or len(b) < 2 or not _envelopes_touch(a, b):
                    continue
                hits = crossing_segments(a, b)
                if not hits:
                    continue
                found = True
                na, nb = len(a), len(b)
                home_a, home_b = sites[i].position, sites[j].position
                for si, sj in hits:
                    for k in (si, (si + 1) % na):
                        a[k] = bounds.clamp(_nudge(a[k], home_a, fraction))
                    for k in (sj, (sj + 1) % nb):
                        b[k] = bounds.clamp(_nudge(b[k], home_b, fraction))
                    report.nudges += 1
        if not found:
            break
        report.passes += 1
        logger.debug("Intersection pass", passes=report.passes, nudges=report.nudges)

    report.residual = count_intersections(boundaries) if report.passes == max_passes else 0
    return report


# ═══════════════════════════════════════════════════════════════════
# Lloyd relaxation
# ═══════════════════════════════════════════════════════════════════


def lloyd_relax(sites: Sequence[Site], cells: Sequence[VoronoiCell], factor: float = 0.5) -> List[Site]:
    """New sites moved *factor* of the way toward their cell centroids.

    Heights are kept; sites without a cell or centroid stay put.
    """
    if not 0.0 <= factor <= 1.0:
        raise InvalidInputError("factor must be within [0, 1]")
    by_id: Dict[int, VoronoiCell] = {c.site_id: c for c in cells}
    moved = []
    for site in sites:
        cell = by_id.get(site.id)
        if cell is None or cell.centroid is None:
            moved.append(site)
            continue
        p = site.position
        target = cell.centroid
        moved.append(
            site.with_position(
                Point(p.x + (target.x - p.x) * factor, p.y + (target.y - p.y) * factor, p.z)
            )
        )
    return moved


# ═══════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════


class VoronoiBuilder:
    """Triangulate, derive dual cells, shape and untangle their boundaries."""

    def __init__(self, config: Optional[VoronoiConfig] = None) -> None:
        self.config = config or VoronoiConfig()
        self.config.validate()

    def triangulate(self, sites: Sequence[Site]) -> Triangulation:
        return DelaunayTriangulator(self.config.bounds, self.config.triangulation).triangulate(sites)

    def build(self, sites: Sequence[Site], triangulation: Optional[Triangulation] = None) -> VoronoiDiagram:
        config = self.config
        check_sites(sites)
        sites = list(sites)
        logger.info("Voronoi build started", sites=len(sites), mode=config.mode)

        tri = triangulation if triangulation is not None else self.triangulate(sites)
        if [s.id for s in tri.sites] != [s.id for s in sites]:
            raise InvalidInputError("triangulation was built over a different site list")
        cells, diagnostics = build_dual_cells(tri)

        if config.mode == "weighted":
            self._shape_weighted(sites, cells, diagnostics)
        elif config.mode == "minimum_range":
            self._shape_minimum_range(tri, cells, diagnostics)

        report = ResolutionReport()
        if config.mode != "dual" and config.resolve_intersections and len(cells) > 1:
            boundaries = [list(c.boundary) for c in cells]
            report = resolve_intersections(
                boundaries,
                sites,
                config.bounds,
                config.max_resolution_passes,
                config.nudge_fraction,
            )
            for cell, boundary in zip(cells, boundaries):
                cell.boundary = boundary
            if report.residual:
                diagnostics.append(
                    non_convergent(
                        f"{report.residual} boundary intersection(s) remain after "
                        f"{report.passes} passes"
                    )
                )
                logger.warning("Residual intersections", count=report.residual, passes=report.passes)

        for cell, site in zip(cells, sites):
            update_cell_measures(cell, site)

        diagnostics = tri.diagnostics + diagnostics
        logger.info(
            "Voronoi build completed",
            cells=len(cells),
            triangles=len(tri.triangles),
            resolution_passes=report.passes,
            residual_intersections=report.residual,
            diagnostics=len(diagnostics),
        )
        return VoronoiDiagram(
            sites=sites,
            cells=cells,
            triangulation=tri,
            mode=config.mode,
            resolution=report,
            diagnostics=diagnostics,
        )

    # ── shaping stages ──────────────────────────────────────────────

    def _shape_weighted(
        self,
        sites: List[Site],
        cells: List[VoronoiCell],
        diagnostics: List[Diagnostic],
    ) -> None:
        territory = TerritoryField(sites)
        for i, cell in enumerate(cells):
            boundary, stalled = weighted_boundary(territory, i, self.config)
            cell.boundary = boundary
            update_cell_measures(cell, sites[i])
            if stalled:
                diagnostics.append(
                    non_convergent(
                        f"{stalled} boundary search(es) hit the iteration budget", sites[i].id
                    )
                )
                logger.warning("Boundary search stalled", site=sites[i].id, rays=stalled)
            logger.debug(
                "Weighted boundary shaped",
                site=sites[i].id,
                weight=sites[i].weight,
                boundary_radius=round(cell.boundary_radius, 4),
            )

    def _shape_minimum_range(
        self,
        tri: Triangulation,
        cells: List[VoronoiCell],
        diagnostics: List[Diagnostic],
    ) -> None:
        for i, cell in enumerate(cells):
            site = tri.sites[i]
            boundary = minimum_range_boundary(tri, i, self.config, cell.boundary)
            if boundary is None:
                reach = _reach(site, self.config)
                boundary = circular_boundary(site, reach, self.config)
                diagnostics.append(
                    degenerate("fewer than two incident triangles; circular boundary used", site.id)
                )
                logger.warning(
                    "Circular boundary substituted",
                    site=site.id,
                    triangles=len(tri.incident(i)),
                )
            cell.boundary = boundary
            update_cell_measures(cell, site)


def build_voronoi(sites: Sequence[Site], config: Optional[VoronoiConfig] = None) -> VoronoiDiagram:
    return VoronoiBuilder(config).build(sites)
