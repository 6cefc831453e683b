"""Spatial graphs: complete weighted graph, minimum spanning trees, cycle edges.

Edges reference sites by id.  Weights are Euclidean distances between the
full 3D site positions unless the caller supplies its own edge list.

Usage
-----
>>> from sitemesh.graph import GraphConfig, build_spatial_graph
>>> graph = build_spatial_graph(sites, GraphConfig(algorithm="kruskal", seed=7))
>>> graph.tree_edges, graph.cycle_edges
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import structlog
from scipy.spatial.distance import pdist, squareform

from .disjoint_set import DisjointSet
from .errors import DisconnectedGraphError, InvalidInputError
from .models import GraphEdge, Site, check_sites

logger = structlog.get_logger()

MST_ALGORITHMS = ("prim", "kruskal")


# ═══════════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════════


@dataclass
class GraphConfig:
    """Parameters for :func:`build_spatial_graph`.

    Attributes
    ----------
    algorithm : str
        ``"prim"`` or ``"kruskal"``.
    extra_edge_fraction : float
        Fraction (0..1) of non-tree edges reinserted as cycle edges.
    seed : int | None
        Seed for the cycle-edge shuffle.
    """

    algorithm: str = "prim"
    extra_edge_fraction: float = 0.2
    seed: Optional[int] = None

    def validate(self) -> None:
        if self.algorithm not in MST_ALGORITHMS:
            raise InvalidInputError(
                f"algorithm must be one of {MST_ALGORITHMS}, got {self.algorithm!r}"
            )
        if not 0.0 <= self.extra_edge_fraction <= 1.0:
            raise InvalidInputError("extra_edge_fraction must be within [0, 1]")


# ═══════════════════════════════════════════════════════════════════
# Result model
# ═══════════════════════════════════════════════════════════════════


@dataclass
class SpatialGraph:
    """Output of :func:`build_spatial_graph`.

    *edges* holds every candidate edge; *tree_edges* the spanning tree;
    *cycle_edges* the non-tree edges layered back on top.
    """

    sites: List[Site]
    edges: List[GraphEdge] = field(default_factory=list)
    tree_edges: List[GraphEdge] = field(default_factory=list)
    cycle_edges: List[GraphEdge] = field(default_factory=list)
    algorithm: str = "prim"

    @property
    def connected_edges(self) -> List[GraphEdge]:
        """Tree edges followed by cycle edges."""
        return self.tree_edges + self.cycle_edges

    @property
    def tree_weight(self) -> float:
        return total_weight(self.tree_edges)

    @property
    def cyclomatic_number(self) -> int:
        """Independent cycles in tree + cycle edges (``E - V + 1`` when connected)."""
        if not self.sites:
            return 0
        return len(self.connected_edges) - len(self.sites) + 1

    def adjacency(self) -> Dict[int, List[int]]:
        return build_adjacency(self.connected_edges, (s.id for s in self.sites))

    def to_dict(self) -> dict:
        return {
            "algorithm": self.algorithm,
            "site_ids": [s.id for s in self.sites],
            "tree_edges": [_edge_dict(e) for e in self.tree_edges],
            "cycle_edges": [_edge_dict(e) for e in self.cycle_edges],
            "tree_weight": self.tree_weight,
        }


def _edge_dict(edge: GraphEdge) -> dict:
    return {"a": edge.a, "b": edge.b, "weight": edge.weight, "tree": edge.is_tree_edge}


def total_weight(edges: Iterable[GraphEdge]) -> float:
    return sum(e.weight for e in edges)


def build_adjacency(edges: Iterable[GraphEdge], node_ids: Iterable[int] = ()) -> Dict[int, List[int]]:
    """Return a sorted neighbour list per node id, based purely on *edges*."""
    neighbors: Dict[int, set[int]] = {nid: set() for nid in node_ids}
    for edge in edges:
        neighbors.setdefault(edge.a, set()).add(edge.b)
        neighbors.setdefault(edge.b, set()).add(edge.a)
    return {nid: sorted(nbrs) for nid, nbrs in neighbors.items()}


# ═══════════════════════════════════════════════════════════════════
# Complete graph
# ═══════════════════════════════════════════════════════════════════


def distance_matrix(sites: Sequence[Site]) -> np.ndarray:
    """Pairwise Euclidean distances between site positions, ``(n, n)``."""
    if len(sites) < 2:
        return np.zeros((len(sites), len(sites)), dtype=float)
    coords = np.array([s.position.as_tuple() for s in sites], dtype=float)
    return squareform(pdist(coords))


def complete_graph(sites: Sequence[Site]) -> List[GraphEdge]:
    """All ``n(n - 1)/2`` site pairs, weighted by distance, in index order."""
    check_sites(sites)
    dist = distance_matrix(sites)
    edges: List[GraphEdge] = []
    for i in range(len(sites)):
        for j in range(i + 1, len(sites)):
            edges.append(GraphEdge(sites[i].id, sites[j].id, float(dist[i, j])))
    logger.debug("Complete graph built", sites=len(sites), edges=len(edges))
    return edges


def _weight_matrix(sites: Sequence[Site], edges: Optional[Sequence[GraphEdge]]) -> np.ndarray:
    if edges is None:
        return distance_matrix(sites)
    index = {s.id: i for i, s in enumerate(sites)}
    matrix = np.full((len(sites), len(sites)), np.inf)
    for edge in edges:
        if edge.a not in index or edge.b not in index:
            raise InvalidInputError(f"edge ({edge.a}, {edge.b}) references an unknown site")
        i, j = index[edge.a], index[edge.b]
        if edge.weight < matrix[i, j]:
            matrix[i, j] = matrix[j, i] = edge.weight
    return matrix


# ═══════════════════════════════════════════════════════════════════
# Minimum spanning trees
# ═══════════════════════════════════════════════════════════════════


def prim_mst(sites: Sequence[Site], edges: Optional[Sequence[GraphEdge]] = None) -> List[GraphEdge]:
    """Prim's algorithm from the first site.

    With *edges* ``None`` the complete graph is used.  Raises
    :class:`DisconnectedGraphError` when some site cannot be reached.
    """
    check_sites(sites)
    n = len(sites)
    if n < 2:
        return []

    weights = _weight_matrix(sites, edges)
    in_tree = np.zeros(n, dtype=bool)
    min_weight = np.full(n, np.inf)
    parent = np.full(n, -1, dtype=int)
    min_weight[0] = 0.0

    tree: List[GraphEdge] = []
    for _ in range(n):
        candidates = np.where(in_tree, np.inf, min_weight)
        u = int(np.argmin(candidates))
        if not np.isfinite(candidates[u]):
            unreached = [sites[i].id for i in range(n) if not in_tree[i]]
            raise DisconnectedGraphError(f"sites {unreached} are unreachable from site {sites[0].id}")
        in_tree[u] = True
        if parent[u] != -1:
            tree.append(GraphEdge(sites[parent[u]].id, sites[u].id, float(min_weight[u]), True))

        closer = ~in_tree & (weights[u] < min_weight)
        min_weight[closer] = weights[u][closer]
        parent[closer] = u

    logger.debug("Prim MST built", sites=n, weight=total_weight(tree))
    return tree


def kruskal_mst(sites: Sequence[Site], edges: Optional[Sequence[GraphEdge]] = None) -> List[GraphEdge]:
    """Kruskal's algorithm over *edges* (the complete graph when ``None``)."""
    check_sites(sites)
    n = len(sites)
    if n < 2:
        return []

    candidates = complete_graph(sites) if edges is None else list(edges)
    index = {s.id: i for i, s in enumerate(sites)}
    forest = DisjointSet(n)

    tree: List[GraphEdge] = []
    for edge in sorted(candidates, key=lambda e: e.weight):
        if edge.a not in index or edge.b not in index:
            raise InvalidInputError(f"edge ({edge.a}, {edge.b}) references an unknown site")
        if forest.union(index[edge.a], index[edge.b]):
            tree.append(edge.as_tree_edge())
            if len(tree) == n - 1:
                break

    if len(tree) < n - 1:
        raise DisconnectedGraphError(
            f"edge list spans only {len(tree)} of the {n - 1} edges a tree needs"
        )
    logger.debug("Kruskal MST built", sites=n, weight=total_weight(tree))
    return tree


def minimum_spanning_tree(
    sites: Sequence[Site],
    algorithm: str = "prim",
    edges: Optional[Sequence[GraphEdge]] = None,
) -> List[GraphEdge]:
    if algorithm == "prim":
        return prim_mst(sites, edges)
    if algorithm == "kruskal":
        return kruskal_mst(sites, edges)
    raise InvalidInputError(f"algorithm must be one of {MST_ALGORITHMS}, got {algorithm!r}")


# ═══════════════════════════════════════════════════════════════════
# Cycle edges
# ═══════════════════════════════════════════════════════════════════


def add_cycle_edges(
    edges: Sequence[GraphEdge],
    tree_edges: Sequence[GraphEdge],
    fraction: float,
    rng: random.Random,
) -> List[GraphEdge]:
    """Pick ``ceil(len(non_tree) * fraction)`` non-tree edges uniformly.

    Partial Fisher-Yates shuffle: each pick swaps a random remaining edge
    into the next position.  Every returned edge closes a new cycle.
    """
    if not 0.0 <= fraction <= 1.0:
        raise InvalidInputError("fraction must be within [0, 1]")
    tree_keys = {e.key() for e in tree_edges}
    pool = [e for e in edges if e.key() not in tree_keys]
    count = min(math.ceil(len(pool) * fraction), len(pool))

    picked: List[GraphEdge] = []
    for i in range(count):
        j = rng.randrange(i, len(pool))
        pool[i], pool[j] = pool[j], pool[i]
        picked.append(pool[i])
    return picked


# ═══════════════════════════════════════════════════════════════════
# Top-level builder
# ═══════════════════════════════════════════════════════════════════


def build_spatial_graph(
    sites: Sequence[Site],
    config: Optional[GraphConfig] = None,
    edges: Optional[Sequence[GraphEdge]] = None,
) -> SpatialGraph:
    """Spanning tree plus cycle edges over *sites*.

    Fewer than two sites produce an empty graph without error.
    """
    config = config or GraphConfig()
    config.validate()
    check_sites(sites)
    sites = list(sites)

    if len(sites) < 2:
        logger.info("Spatial graph skipped", sites=len(sites))
        return SpatialGraph(sites=sites, algorithm=config.algorithm)

    candidates = complete_graph(sites) if edges is None else list(edges)
    tree = minimum_spanning_tree(sites, config.algorithm, candidates)
    rng = random.Random(config.seed)
    cycles = add_cycle_edges(candidates, tree, config.extra_edge_fraction, rng)

    logger.info(
        "Spatial graph built",
        algorithm=config.algorithm,
        sites=len(sites),
        tree_edges=len(tree),
        cycle_edges=len(cycles),
        tree_weight=round(total_weight(tree), 6),
    )
    return SpatialGraph(
        sites=sites,
        edges=candidates,
        tree_edges=tree,
        cycle_edges=cycles,
        algorithm=config.algorithm,
    )
