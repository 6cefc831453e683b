"""sitemesh command-line interface."""

from __future__ import annotations

import argparse
import json
import random
import sys
from dataclasses import replace
from typing import List, Optional

from .errors import SiteMeshError
from .log import LOG_FORMATS, configure_logging
from .models import Bounds, Point, Site


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="sitemesh CLI")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default="plain")
    sub = parser.add_subparsers(dest="command", required=True)

    tri = sub.add_parser("triangulate", help="Delaunay-triangulate random sites")
    tri.add_argument("--sites", type=int, default=12)
    tri.add_argument("--seed", type=int, default=0)
    tri.add_argument("--json", action="store_true")

    part = sub.add_parser("partition", help="Build a weighted Voronoi partition of random sites")
    part.add_argument("--sites", type=int, default=12)
    part.add_argument("--seed", type=int, default=0)
    part.add_argument("--mode", choices=["weighted", "minimum_range", "dual"], default="weighted")
    part.add_argument("--resolution", type=int, default=64)
    part.add_argument("--reach", type=float, default=1.0)
    part.add_argument("--expansion", type=float, default=1.5)
    part.add_argument("--max-weight", type=float, default=2.0,
                      help="Site weights are drawn from [0, max-weight]")
    part.add_argument("--lloyd", type=int, default=0, help="Lloyd relaxation rounds before the final build")
    part.add_argument("--json", action="store_true")

    net = sub.add_parser("network", help="Spanning graph and layout over random rooms")
    net.add_argument("--rooms", type=int, default=10)
    net.add_argument("--seed", type=int, default=0)
    net.add_argument("--algorithm", choices=["prim", "kruskal"], default="prim")
    net.add_argument("--extra-fraction", type=float, default=0.2)
    net.add_argument("--iterations", type=int, default=50)
    net.add_argument("--json", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    try:
        if args.command == "triangulate":
            _cmd_triangulate(args)
        elif args.command == "partition":
            _cmd_partition(args)
        elif args.command == "network":
            _cmd_network(args)
    except SiteMeshError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


def random_sites(count: int, bounds: Bounds, seed: int, max_weight: float = 0.0) -> List[Site]:
    """*count* sites uniformly inside *bounds*, weights in ``[0, max_weight]``."""
    rng = random.Random(seed)
    return [
        Site(
            i,
            Point(rng.uniform(bounds.min_x, bounds.max_x), rng.uniform(bounds.min_y, bounds.max_y)),
            rng.uniform(0.0, max_weight) if max_weight > 0 else 0.0,
        )
        for i in range(count)
    ]


def _cmd_triangulate(args) -> None:
    from .delaunay import triangulate
    from .diagnostics import delaunay_violations

    bounds = Bounds()
    tri = triangulate(random_sites(args.sites, bounds, args.seed), bounds)
    if args.json:
        print(json.dumps(tri.to_dict(), indent=2))
        return
    print(f"sites: {len(tri.sites)}")
    print(f"triangles: {len(tri.triangles)}")
    print(f"rejected: {len(tri.rejected)}")
    print(f"delaunay_violations: {len(delaunay_violations(tri))}")
    _print_diagnostics(tri.diagnostics)


def _cmd_partition(args) -> None:
    from .diagnostics import partition_report
    from .voronoi import VoronoiBuilder, VoronoiConfig, lloyd_relax

    config = VoronoiConfig(
        mode=args.mode,
        boundary_resolution=args.resolution,
        minimum_reach=args.reach,
        expansion_factor=args.expansion,
        resolve_intersections=args.mode != "dual",
    )
    builder = VoronoiBuilder(config)
    sites = random_sites(args.sites, config.bounds, args.seed, args.max_weight)
    diagram = builder.build(sites)
    for _ in range(args.lloyd):
        sites = lloyd_relax(sites, diagram.cells)
        diagram = builder.build(sites)

    report = partition_report(diagram, config.bounds)
    if args.json:
        print(json.dumps({"report": report, "diagram": diagram.to_dict()}, indent=2))
        return
    for line in _report_lines(report):
        print(line)


def _cmd_network(args) -> None:
    from .diagnostics import network_report
    from .graph import GraphConfig
    from .layout import DUNGEON_ROOMS, LayoutConfig, generate_rooms
    from .pipeline import network_pipeline

    rooms_config = replace(DUNGEON_ROOMS, room_count=args.rooms)
    rooms = generate_rooms(rooms_config, seed=args.seed)
    pipe = network_pipeline(
        GraphConfig(args.algorithm, args.extra_fraction, args.seed),
        LayoutConfig(iterations=args.iterations),
        rooms_config.box,
    )
    result = pipe.run([room.to_site() for room in rooms], nodes=rooms)
    report = network_report(result.context.graph, result.context.layout)
    if args.json:
        payload = {
            "report": report,
            "graph": result.context.graph.to_dict(),
            "positions": {str(k): v for k, v in result.context.layout.positions().items()},
        }
        print(json.dumps(payload, indent=2))
        return
    for line in _report_lines(report):
        print(line)


def _report_lines(report: dict) -> List[str]:
    lines: List[str] = []
    for key, value in report.items():
        if key == "diagnostics":
            continue
        if isinstance(value, float):
            lines.append(f"{key}: {value:.4f}")
        else:
            lines.append(f"{key}: {value}")
    for diag in report.get("diagnostics", []):
        subject = "" if diag["subject"] is None else f" [site {diag['subject']}]"
        lines.append(f"  {diag['kind']}{subject}: {diag['message']}")
    return lines


def _print_diagnostics(diagnostics) -> None:
    for diag in diagnostics:
        subject = "" if diag.subject is None else f" [site {diag.subject}]"
        print(f"  {diag.kind.value}{subject}: {diag.message}")


if __name__ == "__main__":
    raise SystemExit(main())
