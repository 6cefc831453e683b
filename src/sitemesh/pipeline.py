"""Build pipeline: ordered, named steps over a shared build context.

Provides :class:`BuildStep` (protocol) and :class:`BuildPipeline`
(sequencer) so that the geometry path (triangulate, then partition) and the
network path (spanning graph, then layout) can be declared as a list of
steps and run as one build.

Usage
-----
>>> from sitemesh.pipeline import partition_pipeline
>>> from sitemesh.voronoi import MINIMUM_RANGE
>>>
>>> pipe = partition_pipeline(MINIMUM_RANGE)
>>> result = pipe.run(sites)
>>> result.context.diagram.cells
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

import structlog

from .delaunay import DelaunayTriangulator, Triangulation, TriangulationConfig
from .errors import InvalidInputError
from .graph import GraphConfig, SpatialGraph, build_spatial_graph
from .layout import LayoutConfig, LayoutNode, LayoutResult, relax_layout
from .models import Bounds, Box, Site
from .voronoi import VoronoiBuilder, VoronoiConfig, VoronoiDiagram

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════════
# Step protocol
# ═══════════════════════════════════════════════════════════════════


@dataclass
class BuildContext:
    """Inputs and outputs shared by the steps of one build.

    Each build gets its own context; nothing is shared between builds.
    """

    sites: List[Site]
    triangulation: Optional[Triangulation] = None
    diagram: Optional[VoronoiDiagram] = None
    graph: Optional[SpatialGraph] = None
    nodes: Optional[List[LayoutNode]] = None
    layout: Optional[LayoutResult] = None


@dataclass
class StepResult:
    """Optional artefacts a step hands back alongside the context."""

    artefacts: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class BuildStep(Protocol):
    """Anything with a ``name`` that can be called with a :class:`BuildContext`."""

    @property
    def name(self) -> str:
        ...

    def __call__(self, context: BuildContext) -> Optional[StepResult]:
        ...


# ═══════════════════════════════════════════════════════════════════
# Pipeline
# ═══════════════════════════════════════════════════════════════════

Hook = Callable[[str, int, int], None]
"""Signature for before/after hooks: ``(step_name, step_index, total_steps)``."""


@dataclass
class PipelineResult:
    """Aggregate result of a pipeline run.

    Attributes
    ----------
    context : BuildContext
        The context after the last step.
    step_results : dict[str, StepResult]
        ``step.name → StepResult`` for every step that returned one.
    elapsed : dict[str, float]
        ``step.name → seconds`` of wall-clock time per step.
    """

    context: BuildContext
    step_results: Dict[str, StepResult] = field(default_factory=dict)
    elapsed: Dict[str, float] = field(default_factory=dict)

    def artefact(self, step_name: str, key: str) -> Any:
        """Raises ``KeyError`` if the step or key is not present."""
        return self.step_results[step_name].artefacts[key]


class BuildPipeline:
    """Ordered sequence of :class:`BuildStep` instances.

    Parameters
    ----------
    steps : list[BuildStep]
        Steps to execute in order.
    before, after : Hook | None
        Called around each step.
    """

    def __init__(
        self,
        steps: Optional[List[BuildStep]] = None,
        *,
        before: Optional[Hook] = None,
        after: Optional[Hook] = None,
    ) -> None:
        self._steps: List[BuildStep] = list(steps or [])
        self._before = before
        self._after = after

    def add(self, step: BuildStep) -> "BuildPipeline":
        self._steps.append(step)
        return self

    def insert(self, index: int, step: BuildStep) -> "BuildPipeline":
        self._steps.insert(index, step)
        return self

    def run(self, sites: Sequence[Site], nodes: Optional[Sequence[LayoutNode]] = None) -> PipelineResult:
        """Execute all steps over a fresh context built from *sites*."""
        context = BuildContext(sites=list(sites), nodes=list(nodes) if nodes is not None else None)
        result = PipelineResult(context=context)
        total = len(self._steps)

        for idx, step in enumerate(self._steps):
            sname = step.name
            if self._before:
                self._before(sname, idx, total)

            t0 = time.perf_counter()
            step_result = step(context)
            dt = time.perf_counter() - t0

            result.elapsed[sname] = dt
            if step_result is not None:
                result.step_results[sname] = step_result
            logger.debug("Pipeline step finished", step=sname, index=idx, seconds=round(dt, 6))

            if self._after:
                self._after(sname, idx, total)

        logger.info("Pipeline completed", steps=total, seconds=round(sum(result.elapsed.values()), 6))
        return result

    @property
    def step_names(self) -> List[str]:
        return [s.name for s in self._steps]

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        names = ", ".join(self.step_names)
        return f"BuildPipeline([{names}])"


# ═══════════════════════════════════════════════════════════════════
# Built-in steps
# ═══════════════════════════════════════════════════════════════════


@dataclass
class TriangulateStep:
    bounds: Bounds = field(default_factory=Bounds)
    config: TriangulationConfig = field(default_factory=TriangulationConfig)

    @property
    def name(self) -> str:
        return "triangulate"

    def __call__(self, context: BuildContext) -> Optional[StepResult]:
        context.triangulation = DelaunayTriangulator(self.bounds, self.config).triangulate(context.sites)
        return StepResult(artefacts={"triangulation": context.triangulation})


@dataclass
class VoronoiStep:
    """Partition step; reuses the context's triangulation when present."""

    config: VoronoiConfig = field(default_factory=VoronoiConfig)

    @property
    def name(self) -> str:
        return "voronoi"

    def __call__(self, context: BuildContext) -> Optional[StepResult]:
        diagram = VoronoiBuilder(self.config).build(context.sites, context.triangulation)
        context.triangulation = diagram.triangulation
        context.diagram = diagram
        return StepResult(artefacts={"diagram": diagram})


@dataclass
class GraphStep:
    config: GraphConfig = field(default_factory=GraphConfig)

    @property
    def name(self) -> str:
        return "graph"

    def __call__(self, context: BuildContext) -> Optional[StepResult]:
        context.graph = build_spatial_graph(context.sites, self.config)
        return StepResult(artefacts={"graph": context.graph})


@dataclass
class LayoutStep:
    """Relax the context's nodes along its graph's tree and cycle edges.

    Without nodes in the context, each site becomes a zero-size node.
    """

    config: LayoutConfig = field(default_factory=LayoutConfig)
    bounds: Optional[Box] = None

    @property
    def name(self) -> str:
        return "layout"

    def __call__(self, context: BuildContext) -> Optional[StepResult]:
        if context.graph is None:
            raise InvalidInputError("layout step needs a graph; add a GraphStep before it")
        if context.nodes is None:
            context.nodes = [LayoutNode.from_site(s) for s in context.sites]
        context.layout = relax_layout(
            context.nodes,
            context.graph.connected_edges,
            self.bounds,
            self.config,
        )
        context.nodes = context.layout.nodes
        return StepResult(artefacts={"layout": context.layout})


@dataclass
class CustomStep:
    """Inline step from an arbitrary callable."""

    _name: str
    fn: Callable[[BuildContext], Optional[StepResult]]

    @property
    def name(self) -> str:
        return self._name

    def __call__(self, context: BuildContext) -> Optional[StepResult]:
        return self.fn(context)


# ═══════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════


def partition_pipeline(config: Optional[VoronoiConfig] = None, **hooks: Hook) -> BuildPipeline:
    """Triangulate then partition, sharing the map bounds of *config*."""
    config = config or VoronoiConfig()
    return BuildPipeline(
        [TriangulateStep(config.bounds, config.triangulation), VoronoiStep(config)],
        **hooks,
    )


def network_pipeline(
    graph_config: Optional[GraphConfig] = None,
    layout_config: Optional[LayoutConfig] = None,
    bounds: Optional[Box] = None,
    **hooks: Hook,
) -> BuildPipeline:
    """Spanning graph with cycle edges, then force-directed layout."""
    return BuildPipeline(
        [
            GraphStep(graph_config or GraphConfig()),
            LayoutStep(layout_config or LayoutConfig(), bounds),
        ],
        **hooks,
    )
