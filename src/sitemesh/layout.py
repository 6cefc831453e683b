"""Force-directed relaxation of connected 3D nodes.

Every iteration resets velocities, accumulates pairwise inverse-square
repulsion (plus a flat push for overlapping boxes) and attraction along
edges, damps, integrates and clamps each node back inside the volume.
There is no convergence test: exactly ``iterations`` steps always run.

Also provides :func:`generate_rooms`, a seeded scatter of box-shaped nodes
inside a dungeon volume, which is the usual input to :func:`relax_layout`.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .errors import InvalidInputError
from .models import Box, GraphEdge, Point, Site

logger = structlog.get_logger()

Vec3 = Tuple[float, float, float]

MIN_SEPARATION = 0.1


# ═══════════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════════


@dataclass
class LayoutConfig:
    """Tunables for :func:`relax_layout`.

    Attributes
    ----------
    repulsion_force : float
        Numerator of the inverse-square repulsion, and the magnitude of
        the flat push applied to overlapping boxes.
    attraction_force : float
        Edge pull per unit of separation.
    damping : float
        Velocity scale applied before integration, in ``(0, 1)``.
    iterations : int
        Number of relaxation steps.
    overlap_push : bool
        Apply the extra push to nodes whose boxes overlap.
    """

    repulsion_force: float = 100.0
    attraction_force: float = 0.5
    damping: float = 0.8
    iterations: int = 50
    overlap_push: bool = True

    def validate(self) -> None:
        if self.repulsion_force < 0 or self.attraction_force < 0:
            raise InvalidInputError("forces must be >= 0")
        if not 0.0 < self.damping < 1.0:
            raise InvalidInputError("damping must be within (0, 1)")
        if self.iterations < 0:
            raise InvalidInputError("iterations must be >= 0")


@dataclass
class RoomConfig:
    """Dungeon volume and room-size range for :func:`generate_rooms`."""

    width: int = 50
    height: int = 50
    depth: int = 50
    room_count: int = 10
    min_room_size: int = 5
    max_room_size: int = 15

    def validate(self) -> None:
        if self.room_count < 0:
            raise InvalidInputError("room_count must be >= 0")
        if not 0 < self.min_room_size <= self.max_room_size:
            raise InvalidInputError("room sizes must satisfy 0 < min <= max")
        if self.max_room_size > min(self.width, self.height, self.depth):
            raise InvalidInputError("max_room_size does not fit inside the volume")

    @property
    def box(self) -> Box:
        return Box((0.0, 0.0, 0.0), (float(self.width), float(self.height), float(self.depth)))


DEFAULT_LAYOUT = LayoutConfig()

DUNGEON_ROOMS = RoomConfig()


# ═══════════════════════════════════════════════════════════════════
# Nodes and results
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LayoutNode:
    """A box-shaped node: centre *position* and full extent *size*."""

    id: int
    position: Vec3
    size: Vec3 = (0.0, 0.0, 0.0)

    def overlaps(self, other: "LayoutNode") -> bool:
        """Closed AABB test; touching faces count as overlap."""
        return all(
            abs(p - q) <= (s + t) / 2.0
            for p, q, s, t in zip(self.position, other.position, self.size, other.size)
        )

    def to_site(self, weight: float = 0.0) -> Site:
        return Site(self.id, Point(*self.position), weight)

    @classmethod
    def from_site(cls, site: Site, size: Vec3 = (0.0, 0.0, 0.0)) -> "LayoutNode":
        return cls(site.id, site.position.as_tuple(), size)


@dataclass
class LayoutResult:
    nodes: List[LayoutNode] = field(default_factory=list)
    iterations: int = 0

    def positions(self) -> Dict[int, Vec3]:
        return {n.id: n.position for n in self.nodes}

    def overlapping_pairs(self) -> List[Tuple[int, int]]:
        pairs = []
        for i, a in enumerate(self.nodes):
            for b in self.nodes[i + 1:]:
                if a.overlaps(b):
                    pairs.append((a.id, b.id))
        return pairs


# ═══════════════════════════════════════════════════════════════════
# Room generation
# ═══════════════════════════════════════════════════════════════════


def generate_rooms(config: Optional[RoomConfig] = None, seed: Optional[int] = None) -> List[LayoutNode]:
    """Scatter ``room_count`` integer-sized rooms inside the volume.

    Each side length is drawn from ``[min_room_size, max_room_size)`` (a
    single value when they are equal) and the room's corner from the range
    that keeps it inside the volume.
    """
    config = config or RoomConfig()
    config.validate()
    rng = random.Random(seed)
    extent = (config.width, config.height, config.depth)

    rooms: List[LayoutNode] = []
    for i in range(config.room_count):
        size = tuple(
            rng.randrange(config.min_room_size, config.max_room_size)
            if config.max_room_size > config.min_room_size
            else config.min_room_size
            for _ in range(3)
        )
        corner = tuple(rng.randrange(0, max(e - s, 1)) for e, s in zip(extent, size))
        center = tuple(c + s / 2.0 for c, s in zip(corner, size))
        rooms.append(LayoutNode(i, center, tuple(float(s) for s in size)))
        logger.debug("Room generated", room=i, position=center, size=size)

    logger.info("Rooms generated", count=len(rooms), seed=seed)
    return rooms


# ═══════════════════════════════════════════════════════════════════
# Relaxation
# ═══════════════════════════════════════════════════════════════════


def _normalized(vectors: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(vectors, axis=-1, keepdims=True)
    out = np.zeros_like(vectors)
    np.divide(vectors, length, out=out, where=length > 1e-12)
    return out


def _overlap_matrix(pos: np.ndarray, size: np.ndarray) -> np.ndarray:
    gap = np.abs(pos[:, None, :] - pos[None, :, :])
    reach = (size[:, None, :] + size[None, :, :]) / 2.0
    overlap = np.all(gap <= reach, axis=-1)
    np.fill_diagonal(overlap, False)
    return overlap


def relax_layout(
    nodes: Sequence[LayoutNode],
    edges: Sequence[GraphEdge],
    bounds: Optional[Box] = None,
    config: Optional[LayoutConfig] = None,
) -> LayoutResult:
    """Run force-directed relaxation and return the moved nodes.

    Parameters
    ----------
    nodes : sequence of LayoutNode
        Starting positions and box sizes; not modified.
    edges : sequence of GraphEdge
        Attracting connections, referencing node ids.
    bounds : Box, optional
        Volume each node centre is clamped into, shrunk by the node's half
        size per axis.  ``None`` leaves positions unclamped.
    config : LayoutConfig, optional
    """
    config = config or LayoutConfig()
    config.validate()
    if bounds is not None and not bounds.is_valid():
        raise InvalidInputError(f"invalid layout bounds {bounds}")

    index = {node.id: i for i, node in enumerate(nodes)}
    if len(index) != len(nodes):
        raise InvalidInputError("duplicate node ids")
    pairs = []
    for edge in edges:
        if edge.a not in index or edge.b not in index:
            raise InvalidInputError(f"edge ({edge.a}, {edge.b}) references an unknown node")
        pairs.append((index[edge.a], index[edge.b]))

    pos = np.array([n.position for n in nodes], dtype=float).reshape(-1, 3)
    size = np.array([n.size for n in nodes], dtype=float).reshape(-1, 3)
    if not np.all(np.isfinite(pos)):
        raise InvalidInputError("node positions must be finite")
    edge_a = np.array([a for a, _ in pairs], dtype=int)
    edge_b = np.array([b for _, b in pairs], dtype=int)

    if bounds is not None:
        lo = np.asarray(bounds.min, dtype=float) + size / 2.0
        hi = np.asarray(bounds.max, dtype=float) - size / 2.0

    for iteration in range(config.iterations):
        velocity = np.zeros_like(pos)

        # repulsion between every pair
        diff = pos[:, None, :] - pos[None, :, :]
        direction = _normalized(diff)
        dist = np.maximum(np.linalg.norm(diff, axis=-1), MIN_SEPARATION)
        velocity += (direction * (config.repulsion_force / dist**2)[..., None]).sum(axis=1)

        if config.overlap_push and len(nodes) > 1:
            overlap = _overlap_matrix(pos, size)
            velocity += (direction * overlap[..., None]).sum(axis=1) * config.repulsion_force

        # attraction along edges
        if len(pairs):
            pull = pos[edge_b] - pos[edge_a]
            length = np.linalg.norm(pull, axis=-1, keepdims=True)
            force = _normalized(pull) * length * config.attraction_force
            np.add.at(velocity, edge_a, force)
            np.subtract.at(velocity, edge_b, force)

        velocity *= config.damping
        pos = pos + velocity
        if bounds is not None:
            pos = np.minimum(np.maximum(pos, lo), hi)

        if iteration % 10 == 0:
            logger.debug("Layout iteration", iteration=iteration, total=config.iterations)

    moved = [
        LayoutNode(node.id, tuple(float(c) for c in pos[i]), node.size)
        for i, node in enumerate(nodes)
    ]
    logger.info("Force-directed layout completed", nodes=len(moved), iterations=config.iterations)
    return LayoutResult(nodes=moved, iterations=config.iterations)
