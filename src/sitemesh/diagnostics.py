from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Sequence, Tuple

from .delaunay import Triangulation
from .graph import SpatialGraph, build_adjacency
from .heap import PriorityHeap, parent_index
from .layout import LayoutResult
from .models import Bounds, GraphEdge, Triangle
from .voronoi import VoronoiDiagram, count_intersections


def delaunay_violations(tri: Triangulation, epsilon: float | None = None) -> List[Tuple[Triangle, int]]:
    """Accepted triangles whose circumcircle holds another site.

    Returns ``(triangle, site_index)`` pairs where the site lies closer to
    the circumcenter than ``radius - epsilon``.
    """
    eps = tri.epsilon if epsilon is None else epsilon
    out = []
    for t in tri.triangles:
        circle = tri.circle(t)
        for i, p in enumerate(tri.points):
            if t.has_vertex(i):
                continue
            if circle.center.distance_to(p) < circle.radius - eps:
                out.append((t, i))
    return out


def is_spanning_tree(node_ids: Iterable[int], edges: Sequence[GraphEdge]) -> bool:
    """``len(edges) == n - 1`` and every node reachable from the first."""
    nodes = list(node_ids)
    if len(nodes) < 2:
        return not edges
    if len(edges) != len(nodes) - 1:
        return False
    adjacency = build_adjacency(edges, nodes)
    if set(adjacency) != set(nodes):
        return False
    seen = {nodes[0]}
    queue = deque([nodes[0]])
    while queue:
        current = queue.popleft()
        for nbr in adjacency[current]:
            if nbr not in seen:
                seen.add(nbr)
                queue.append(nbr)
    return len(seen) == len(nodes)


def heap_violations(heap: PriorityHeap) -> List[int]:
    """Slots whose priority breaks heap order against their parent."""
    priorities = heap.priorities()
    bad = []
    for i in range(1, len(priorities)):
        parent = priorities[parent_index(i)]
        child = priorities[i]
        if (heap.mode == "max" and child > parent) or (heap.mode == "min" and child < parent):
            bad.append(i)
    return bad


def boundary_outside_bounds(diagram: VoronoiDiagram, bounds: Bounds, tol: float = 1e-9) -> Dict[int, int]:
    """Per site id, the number of boundary vertices outside *bounds*."""
    out: Dict[int, int] = {}
    for cell in diagram.cells:
        outside = sum(1 for p in cell.boundary if not bounds.contains(p, tol))
        if outside:
            out[cell.site_id] = outside
    return out


def count_boundary_intersections(diagram: VoronoiDiagram) -> int:
    return count_intersections([c.boundary for c in diagram.cells])


def partition_report(diagram: VoronoiDiagram, bounds: Bounds) -> Dict[str, object]:
    """Summary of a Voronoi build, suitable for JSON export."""
    tri = diagram.triangulation
    areas = [c.area for c in diagram.cells]
    return {
        "mode": diagram.mode,
        "sites": len(diagram.sites),
        "triangles": len(tri.triangles),
        "rejected_triangles": len(tri.rejected),
        "delaunay_violations": len(delaunay_violations(tri)),
        "cells": len(diagram.cells),
        "total_area": sum(areas),
        "min_area": min(areas) if areas else 0.0,
        "max_area": max(areas) if areas else 0.0,
        "vertices_outside_bounds": sum(boundary_outside_bounds(diagram, bounds).values()),
        "resolution_passes": diagram.resolution.passes,
        "residual_intersections": diagram.residual_intersections,
        "diagnostics": [d.to_dict() for d in diagram.diagnostics],
    }


def network_report(graph: SpatialGraph, layout: LayoutResult | None = None) -> Dict[str, object]:
    """Summary of a spatial graph and, optionally, its relaxed layout."""
    ids = [s.id for s in graph.sites]
    report: Dict[str, object] = {
        "algorithm": graph.algorithm,
        "sites": len(ids),
        "candidate_edges": len(graph.edges),
        "tree_edges": len(graph.tree_edges),
        "cycle_edges": len(graph.cycle_edges),
        "tree_weight": graph.tree_weight,
        "spanning": is_spanning_tree(ids, graph.tree_edges),
        "cyclomatic_number": graph.cyclomatic_number,
    }
    if layout is not None:
        report["layout_iterations"] = layout.iterations
        report["overlapping_pairs"] = len(layout.overlapping_pairs())
    return report
