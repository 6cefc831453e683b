"""Tests for ``sitemesh.pipeline``: step/pipeline framework."""

from __future__ import annotations

import random

import pytest

from sitemesh.errors import InvalidInputError, SiteMeshError
from sitemesh.graph import GraphConfig
from sitemesh.layout import DUNGEON_ROOMS, LayoutConfig, generate_rooms
from sitemesh.models import Point, Site
from sitemesh.pipeline import (
    BuildContext,
    BuildPipeline,
    BuildStep,
    CustomStep,
    GraphStep,
    LayoutStep,
    PipelineResult,
    StepResult,
    TriangulateStep,
    VoronoiStep,
    network_pipeline,
    partition_pipeline,
)
from sitemesh.voronoi import EXACT_DUAL, MINIMUM_RANGE


# ── helpers ─────────────────────────────────────────────────────────

@pytest.fixture()
def sites():
    rng = random.Random(12)
    return [Site(i, Point(rng.uniform(-8, 8), rng.uniform(-8, 8))) for i in range(12)]


# ═══════════════════════════════════════════════════════════════════
# Step protocol
# ═══════════════════════════════════════════════════════════════════


def test_custom_step_satisfies_protocol():
    step = CustomStep("noop", lambda ctx: None)
    assert isinstance(step, BuildStep)
    assert step.name == "noop"


@pytest.mark.parametrize(
    "step, name",
    [
        (TriangulateStep(), "triangulate"),
        (VoronoiStep(), "voronoi"),
        (GraphStep(), "graph"),
        (LayoutStep(), "layout"),
    ],
)
def test_builtin_steps_satisfy_protocol(step, name):
    assert isinstance(step, BuildStep)
    assert step.name == name


# ═══════════════════════════════════════════════════════════════════
# Pipeline sequencing
# ═══════════════════════════════════════════════════════════════════


def test_empty_pipeline_is_noop(sites):
    result = BuildPipeline().run(sites)
    assert isinstance(result, PipelineResult)
    assert result.context.sites == sites
    assert result.step_results == {}


def test_pipeline_len_add_insert_repr():
    pipe = BuildPipeline([GraphStep()])
    pipe.add(LayoutStep()).insert(0, CustomStep("first", lambda ctx: None))
    assert len(pipe) == 3
    assert pipe.step_names == ["first", "graph", "layout"]
    assert repr(pipe) == "BuildPipeline([first, graph, layout])"


def test_pipeline_runs_in_order(sites):
    order = []
    pipe = BuildPipeline([
        CustomStep("a", lambda ctx: order.append("a")),
        CustomStep("b", lambda ctx: order.append("b")),
    ])
    pipe.run(sites)
    assert order == ["a", "b"]


def test_before_after_hooks(sites):
    calls = []
    pipe = BuildPipeline(
        [CustomStep("x", lambda ctx: None), CustomStep("y", lambda ctx: None)],
        before=lambda name, i, n: calls.append(("before", name, i, n)),
        after=lambda name, i, n: calls.append(("after", name, i, n)),
    )
    pipe.run(sites)
    assert calls == [
        ("before", "x", 0, 2),
        ("after", "x", 0, 2),
        ("before", "y", 1, 2),
        ("after", "y", 1, 2),
    ]


def test_pipeline_result_elapsed_and_artefacts(sites):
    pipe = BuildPipeline([CustomStep("count", lambda ctx: StepResult({"n": len(ctx.sites)}))])
    result = pipe.run(sites)
    assert result.elapsed["count"] >= 0.0
    assert result.artefact("count", "n") == 12
    with pytest.raises(KeyError):
        result.artefact("count", "missing")
    with pytest.raises(KeyError):
        result.artefact("nope", "n")


def test_each_run_gets_fresh_context(sites):
    seen = []
    pipe = BuildPipeline([CustomStep("keep", lambda ctx: seen.append(ctx))])
    pipe.run(sites)
    pipe.run(sites)
    assert seen[0] is not seen[1]
    assert isinstance(seen[0], BuildContext)


# ═══════════════════════════════════════════════════════════════════
# Geometry path
# ═══════════════════════════════════════════════════════════════════


def test_partition_pipeline_shares_triangulation(sites):
    result = partition_pipeline(EXACT_DUAL).run(sites)
    ctx = result.context
    assert ctx.diagram is not None
    assert ctx.diagram.triangulation is ctx.triangulation
    assert result.artefact("triangulate", "triangulation") is ctx.triangulation
    assert len(ctx.diagram.cells) == len(sites)


def test_voronoi_step_alone_triangulates(sites):
    result = BuildPipeline([VoronoiStep(MINIMUM_RANGE)]).run(sites)
    assert result.context.triangulation is not None
    assert result.context.triangulation.triangles


def test_partition_pipeline_hooks(sites):
    names = []
    pipe = partition_pipeline(EXACT_DUAL, after=lambda name, i, n: names.append(name))
    pipe.run(sites)
    assert names == ["triangulate", "voronoi"]


# ═══════════════════════════════════════════════════════════════════
# Network path
# ═══════════════════════════════════════════════════════════════════


def test_network_pipeline_with_rooms():
    rooms = generate_rooms(DUNGEON_ROOMS, seed=3)
    sites = [room.to_site() for room in rooms]
    pipe = network_pipeline(GraphConfig(seed=3), LayoutConfig(iterations=10), DUNGEON_ROOMS.box)
    result = pipe.run(sites, rooms)
    ctx = result.context
    assert len(ctx.graph.tree_edges) == len(rooms) - 1
    assert ctx.layout.iterations == 10
    assert [n.size for n in ctx.nodes] == [r.size for r in rooms]


def test_layout_step_without_nodes_uses_sites(sites):
    result = network_pipeline(layout_config=LayoutConfig(iterations=2)).run(sites)
    assert [n.id for n in result.context.nodes] == [s.id for s in sites]
    assert all(n.size == (0.0, 0.0, 0.0) for n in result.context.nodes)


def test_layout_step_requires_graph(sites):
    with pytest.raises(SiteMeshError):
        BuildPipeline([LayoutStep()]).run(sites)
    with pytest.raises(InvalidInputError):
        BuildPipeline([LayoutStep()]).run(sites)
