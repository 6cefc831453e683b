"""Planar geometry helpers used across the package.

All measurements work on the (x, y) plane; heights (z) are carried through
but never influence distances, angles or areas unless noted.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import Point

DEGENERATE_DETERMINANT = 1e-3
MIN_VERTEX_SEPARATION = 1e-3
MIN_TRIANGLE_AREA = 1e-3
PARALLEL_TOLERANCE = 1e-3


def ordered_by_angle(points: Iterable[Point], center: Point) -> List[Point]:
    """Return *points* sorted by angle around *center*."""

    def angle(p: Point) -> float:
        return math.atan2(p.y - center.y, p.x - center.x)

    return sorted(points, key=angle)


def unique_points(points: Iterable[Point]) -> List[Point]:
    """Drop exact duplicates while preserving first-seen order."""
    return list(dict.fromkeys(points))


def centroid(points: Sequence[Point]) -> Optional[Point]:
    """Vertex mean of *points*, or ``None`` for an empty sequence."""
    if not points:
        return None
    n = len(points)
    return Point(
        sum(p.x for p in points) / n,
        sum(p.y for p in points) / n,
        sum(p.z for p in points) / n,
    )


def signed_area(points: Sequence[Point]) -> float:
    """Signed area of a closed polygon via the shoelace formula.

    Positive for counter-clockwise winding, negative for clockwise.
    """
    area = 0.0
    n = len(points)
    for i in range(n):
        p = points[i]
        q = points[(i + 1) % n]
        area += p.x * q.y - q.x * p.y
    return area / 2.0


def polygon_area(points: Sequence[Point], center: Point) -> float:
    """Unsigned area of the unique vertices of *points* ordered about *center*.

    Fewer than three unique vertices have zero area.
    """
    vertices = unique_points(points)
    if len(vertices) < 3:
        return 0.0
    return abs(signed_area(ordered_by_angle(vertices, center)))


def triangle_area(a: Point, b: Point, c: Point) -> float:
    """Area from the 3D cross product of the two edge vectors at *a*."""
    abx, aby, abz = b.x - a.x, b.y - a.y, b.z - a.z
    acx, acy, acz = c.x - a.x, c.y - a.y, c.z - a.z
    cx = aby * acz - abz * acy
    cy = abz * acx - abx * acz
    cz = abx * acy - aby * acx
    return math.sqrt(cx * cx + cy * cy + cz * cz) * 0.5


def circumcenter(a: Point, b: Point, c: Point) -> Tuple[Point, bool]:
    """Planar circumcenter of the triangle *abc*.

    Returns ``(center, degenerate)``.  When the determinant is too small
    (collinear or coincident vertices) the vertex centroid is returned and
    *degenerate* is ``True``.  The center's height is the mean vertex height.
    """
    d = 2.0 * (a.x * (b.y - c.y) + b.x * (c.y - a.y) + c.x * (a.y - b.y))
    z = (a.z + b.z + c.z) / 3.0
    if abs(d) < DEGENERATE_DETERMINANT:
        return Point((a.x + b.x + c.x) / 3.0, (a.y + b.y + c.y) / 3.0, z), True

    a_sq = a.x * a.x + a.y * a.y
    b_sq = b.x * b.x + b.y * b.y
    c_sq = c.x * c.x + c.y * c.y
    ux = (a_sq * (b.y - c.y) + b_sq * (c.y - a.y) + c_sq * (a.y - b.y)) / d
    uy = (a_sq * (c.x - b.x) + b_sq * (a.x - c.x) + c_sq * (b.x - a.x)) / d
    return Point(ux, uy, z), False


def circumradius(a: Point, b: Point, c: Point) -> float:
    center, _ = circumcenter(a, b, c)
    return center.distance_to(a)


def point_in_triangle(point: Point, a: Point, b: Point, c: Point) -> bool:
    """Barycentric containment test on the plane (edges count as inside)."""
    v0x, v0y = c.x - a.x, c.y - a.y
    v1x, v1y = b.x - a.x, b.y - a.y
    v2x, v2y = point.x - a.x, point.y - a.y

    dot00 = v0x * v0x + v0y * v0y
    dot01 = v0x * v1x + v0y * v1y
    dot02 = v0x * v2x + v0y * v2y
    dot11 = v1x * v1x + v1y * v1y
    dot12 = v1x * v2x + v1y * v2y

    denom = dot00 * dot11 - dot01 * dot01
    if denom == 0.0:
        return False
    u = (dot11 * dot02 - dot01 * dot12) / denom
    v = (dot00 * dot12 - dot01 * dot02) / denom
    return u >= 0.0 and v >= 0.0 and u + v <= 1.0


def segment_intersection(
    p1: Point,
    p2: Point,
    p3: Point,
    p4: Point,
) -> Optional[Point]:
    """Parametric intersection of segments ``p1p2`` and ``p3p4``.

    Returns the crossing point, or ``None`` when the segments miss each other
    or are (near-)parallel.  Touching endpoints count as an intersection.
    """
    d = (p1.x - p2.x) * (p3.y - p4.y) - (p1.y - p2.y) * (p3.x - p4.x)
    if abs(d) < PARALLEL_TOLERANCE:
        return None

    t = ((p1.x - p3.x) * (p3.y - p4.y) - (p1.y - p3.y) * (p3.x - p4.x)) / d
    u = -((p1.x - p2.x) * (p1.y - p3.y) - (p1.y - p2.y) * (p1.x - p3.x)) / d
    if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
        return Point(p1.x + t * (p2.x - p1.x), p1.y + t * (p2.y - p1.y), p1.z)
    return None


def smooth_closed(points: Sequence[Point], passes: int) -> List[Point]:
    """Three-point neighbour averaging over a closed polygon, *passes* times."""
    current = list(points)
    n = len(current)
    if n < 3:
        return current
    for _ in range(passes):
        current = [
            Point(
                (current[i - 1].x + current[i].x + current[(i + 1) % n].x) / 3.0,
                (current[i - 1].y + current[i].y + current[(i + 1) % n].y) / 3.0,
                (current[i - 1].z + current[i].z + current[(i + 1) % n].z) / 3.0,
            )
            for i in range(n)
        ]
    return current


def ray_point(origin: Point, angle: float, radius: float, z: Optional[float] = None) -> Point:
    """Point at *radius* from *origin* along the planar direction *angle*."""
    return Point(
        origin.x + math.cos(angle) * radius,
        origin.y + math.sin(angle) * radius,
        origin.z if z is None else z,
    )


def radial_clamp(origin: Point, point: Point, lo: Optional[float], hi: Optional[float]) -> Point:
    """Move *point* along its ray from *origin* so its distance lies in [lo, hi].

    Either limit may be ``None``.  A point coincident with *origin* has no
    direction and is returned unchanged.
    """
    dx = point.x - origin.x
    dy = point.y - origin.y
    dist = math.hypot(dx, dy)
    if dist == 0.0:
        return point
    target = dist
    if lo is not None and dist < lo:
        target = lo
    elif hi is not None and dist > hi:
        target = hi
    if target == dist:
        return point
    scale = target / dist
    return Point(origin.x + dx * scale, origin.y + dy * scale, point.z)
