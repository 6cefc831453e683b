"""Tests for ``sitemesh.delaunay``: Bowyer-Watson triangulation."""

from __future__ import annotations

import math
import random

import numpy as np
import pytest
from scipy.spatial import Delaunay

from sitemesh.delaunay import (
    DelaunayTriangulator,
    Triangulation,
    TriangulationConfig,
    circumcircle,
    super_triangle,
    triangulate,
)
from sitemesh.diagnostics import delaunay_violations
from sitemesh.errors import DiagnosticKind, InvalidInputError
from sitemesh.geometry import point_in_triangle
from sitemesh.models import Bounds, Point, Site, Triangle


# ── helpers ─────────────────────────────────────────────────────────

def _sites(coords) -> list:
    return [Site(i, Point(float(x), float(y))) for i, (x, y) in enumerate(coords)]


def _random_sites(n: int, seed: int, extent: float = 9.0) -> list:
    rng = random.Random(seed)
    return _sites((rng.uniform(-extent, extent), rng.uniform(-extent, extent)) for _ in range(n))


EQUILATERAL = [(0.0, 0.0), (10.0, 0.0), (5.0, 5.0 * math.sqrt(3.0))]


# ═══════════════════════════════════════════════════════════════════
# Small configurations
# ═══════════════════════════════════════════════════════════════════


class TestSmallInputs:
    def test_equilateral_gives_one_triangle(self):
        tri = triangulate(_sites(EQUILATERAL))
        assert len(tri.triangles) == 1
        t = tri.triangles[0]
        assert set(t.vertices) == {0, 1, 2}
        assert tri.circumradius(t) == pytest.approx(10.0 / math.sqrt(3.0), abs=1e-4)
        assert tri.circumcenter(t).x == pytest.approx(5.0)
        assert not tri.diagnostics

    def test_collinear_sites_give_no_triangles(self):
        tri = triangulate(_sites([(0, 0), (1, 0), (2, 0), (3, 0)]))
        assert tri.triangles == []
        assert tri.diagnostics
        assert all(d.kind == DiagnosticKind.DEGENERATE_GEOMETRY for d in tri.diagnostics)
        assert any("no valid triangles" in d.message for d in tri.diagnostics)

    @pytest.mark.parametrize("n", [0, 1, 2])
    def test_too_few_sites(self, n):
        tri = triangulate(_sites([(i, i) for i in range(n)]))
        assert tri.triangles == []
        assert len(tri.diagnostics) == 1
        assert tri.diagnostics[0].kind == DiagnosticKind.DEGENERATE_GEOMETRY

    def test_square_with_centre_fans_around_centre(self):
        tri = triangulate(_sites([(0, 0), (10, 0), (0, 10), (10, 10), (5, 5)]), Bounds(-1, -1, 11, 11))
        assert len(tri.triangles) == 4
        assert all(t.has_vertex(4) for t in tri.triangles)
        assert tri.neighbors(4) == {0, 1, 2, 3}
        assert len(tri.edges()) == 8

    def test_coincident_site_is_skipped(self):
        tri = triangulate(_sites([(0, 0), (0, 0), (5, 0), (0, 5)]))
        assert tri.skipped == [1]
        assert any(d.subject == 1 for d in tri.diagnostics)
        assert len(tri.triangles) == 1
        assert set(tri.triangles[0].vertices) == {0, 2, 3}

    def test_sites_outside_bounds_still_triangulated(self):
        tri = triangulate(_sites([(50, 50), (60, 50), (55, 60)]), Bounds())
        assert len(tri.triangles) == 1


# ═══════════════════════════════════════════════════════════════════
# Delaunay property
# ═══════════════════════════════════════════════════════════════════


class TestDelaunayProperty:
    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_empty_circumcircles(self, seed):
        tri = triangulate(_random_sites(30, seed))
        assert tri.triangles
        assert delaunay_violations(tri) == []

    def test_matches_scipy(self):
        sites = _random_sites(40, seed=7)
        tri = triangulate(sites)
        coords = np.array([s.position.planar() for s in sites])
        reference = {frozenset(int(v) for v in simplex) for simplex in Delaunay(coords).simplices}
        ours = [frozenset(t.vertices) for t in tri.triangles]
        shared = sum(1 for t in ours if t in reference)
        assert shared >= 0.9 * len(ours)
        assert len(ours) >= 0.8 * len(reference)

    def test_every_site_used(self):
        tri = triangulate(_random_sites(25, seed=3))
        used = {v for t in tri.triangles for v in t.vertices}
        assert used == set(range(25))

    def test_adjacent_triangles_share_two_vertices(self):
        tri = triangulate(_random_sites(20, seed=5))
        for t in tri.triangles:
            for other in tri.adjacent(t):
                assert len(set(t.vertices) & set(other.vertices)) == 2


# ═══════════════════════════════════════════════════════════════════
# Triangle queries
# ═══════════════════════════════════════════════════════════════════


class TestQueries:
    def test_is_valid(self):
        tri = Triangulation(
            sites=_sites([(0, 0), (1, 0), (2, 0), (0, 1)]),
            points=[Point(0, 0), Point(1, 0), Point(2, 0), Point(0, 1)],
        )
        assert not tri.is_valid(Triangle(0, 1, 2))
        assert not tri.is_valid(Triangle(0, 0, 3))
        assert tri.is_valid(Triangle(0, 1, 3))

    def test_locate(self):
        tri = triangulate(_sites(EQUILATERAL))
        assert tri.locate(Point(5.0, 2.0)) == tri.triangles[0]
        assert tri.locate(Point(50.0, 50.0)) is None

    def test_area_and_incident(self):
        tri = triangulate(_sites(EQUILATERAL))
        t = tri.triangles[0]
        assert tri.area(t) == pytest.approx(25.0 * math.sqrt(3.0))
        assert tri.incident(0) == [t]
        assert tri.site_index(2) == 2
        assert tri.site_index(99) is None

    def test_to_dict(self):
        data = triangulate(_sites(EQUILATERAL)).to_dict()
        assert data["sites"] == [0, 1, 2]
        assert len(data["triangles"]) == 1
        assert data["triangles"][0]["circumradius"] == pytest.approx(5.7735, abs=1e-4)

    def test_circumcircle_of_right_triangle(self):
        circle = circumcircle(Point(0, 0), Point(4, 0), Point(0, 3))
        assert (circle.center.x, circle.center.y) == pytest.approx((2.0, 1.5))
        assert circle.radius == pytest.approx(2.5)
        assert not circle.strictly_contains(Point(4, 0), 1e-3)
        assert circle.strictly_contains(Point(2, 1), 1e-3)


# ═══════════════════════════════════════════════════════════════════
# Super-triangle and validation
# ═══════════════════════════════════════════════════════════════════


class TestSetup:
    def test_super_triangle_encloses_region(self):
        region = Bounds(-110, -110, 110, 110)
        a, b, c = super_triangle(region)
        for x in (region.min_x, region.max_x):
            for y in (region.min_y, region.max_y):
                assert point_in_triangle(Point(x, y), a, b, c)

    def test_duplicate_ids_rejected(self):
        sites = [Site(1, Point(0, 0)), Site(1, Point(1, 0)), Site(2, Point(0, 1))]
        with pytest.raises(InvalidInputError):
            triangulate(sites)

    def test_non_finite_position_rejected(self):
        sites = _sites([(0, 0), (1, 0)]) + [Site(5, Point(float("nan"), 0.0))]
        with pytest.raises(InvalidInputError):
            triangulate(sites)

    def test_invalid_config(self):
        with pytest.raises(InvalidInputError):
            DelaunayTriangulator(config=TriangulationConfig(padding=0))
        with pytest.raises(InvalidInputError):
            DelaunayTriangulator(bounds=Bounds(1, 1, 0, 0))
