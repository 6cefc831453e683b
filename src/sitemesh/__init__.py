"""sitemesh: weighted-site partitions and spatial graphs.

Public API is organised into layers:

- **Core**: models, errors, planar geometry
- **Infrastructure**: heap, bounded containers, union-find
- **Geometry path**: Delaunay triangulation, Voronoi partitions
- **Graph path**: spanning graphs with cycle edges, force-directed layout
- **Orchestration**: pipelines and diagnostics
"""

# ── Core ────────────────────────────────────────────────────────────
from .models import Point, Bounds, Box, Site, GraphEdge, Triangle, VoronoiCell, check_sites
from .errors import (
    SiteMeshError,
    InvalidInputError,
    CapacityExceededError,
    DisconnectedGraphError,
    Diagnostic,
    DiagnosticKind,
)

# ── Infrastructure ──────────────────────────────────────────────────
from .heap import PriorityHeap, HeapLinks
from .containers import BoundedStack, RingQueue
from .disjoint_set import DisjointSet

# ── Geometry path ───────────────────────────────────────────────────
from .delaunay import DelaunayTriangulator, Triangulation, TriangulationConfig, triangulate
from .voronoi import (
    VoronoiBuilder,
    VoronoiConfig,
    VoronoiDiagram,
    WeightConfig,
    DEFAULT_VORONOI,
    EXACT_DUAL,
    MINIMUM_RANGE,
    build_voronoi,
    lloyd_relax,
    site_weight,
)

# ── Graph path ──────────────────────────────────────────────────────
from .graph import (
    GraphConfig,
    SpatialGraph,
    build_spatial_graph,
    complete_graph,
    kruskal_mst,
    prim_mst,
)
from .layout import (
    LayoutConfig,
    LayoutNode,
    LayoutResult,
    RoomConfig,
    DEFAULT_LAYOUT,
    DUNGEON_ROOMS,
    generate_rooms,
    relax_layout,
)

# ── Orchestration ───────────────────────────────────────────────────
from .pipeline import (
    BuildContext,
    BuildPipeline,
    BuildStep,
    PipelineResult,
    StepResult,
    TriangulateStep,
    VoronoiStep,
    GraphStep,
    LayoutStep,
    CustomStep,
    partition_pipeline,
    network_pipeline,
)
from .diagnostics import (
    delaunay_violations,
    is_spanning_tree,
    heap_violations,
    boundary_outside_bounds,
    count_boundary_intersections,
    partition_report,
    network_report,
)
from .log import configure_logging

__all__ = [
    # Core
    "Point", "Bounds", "Box", "Site", "GraphEdge", "Triangle", "VoronoiCell", "check_sites",
    "SiteMeshError", "InvalidInputError", "CapacityExceededError", "DisconnectedGraphError",
    "Diagnostic", "DiagnosticKind",
    # Infrastructure
    "PriorityHeap", "HeapLinks", "BoundedStack", "RingQueue", "DisjointSet",
    # Geometry path
    "DelaunayTriangulator", "Triangulation", "TriangulationConfig", "triangulate",
    "VoronoiBuilder", "VoronoiConfig", "VoronoiDiagram", "WeightConfig",
    "DEFAULT_VORONOI", "EXACT_DUAL", "MINIMUM_RANGE",
    "build_voronoi", "lloyd_relax", "site_weight",
    # Graph path
    "GraphConfig", "SpatialGraph", "build_spatial_graph", "complete_graph",
    "kruskal_mst", "prim_mst",
    "LayoutConfig", "LayoutNode", "LayoutResult", "RoomConfig",
    "DEFAULT_LAYOUT", "DUNGEON_ROOMS", "generate_rooms", "relax_layout",
    # Orchestration
    "BuildContext", "BuildPipeline", "BuildStep", "PipelineResult", "StepResult",
    "TriangulateStep", "VoronoiStep", "GraphStep", "LayoutStep", "CustomStep",
    "partition_pipeline", "network_pipeline",
    "delaunay_violations", "is_spanning_tree", "heap_violations",
    "boundary_outside_bounds", "count_boundary_intersections",
    "partition_report", "network_report",
    "configure_logging",
]
