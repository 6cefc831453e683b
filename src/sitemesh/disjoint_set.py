from __future__ import annotations

from typing import Dict, List

from .errors import InvalidInputError


class DisjointSet:
    """Union-find over the integers ``0 .. n - 1``.

    ``find`` compresses paths iteratively; ``union`` attaches the smaller
    tree under the larger one unless *by_size* is disabled, in which case the
    first root is always attached under the second.
    """

    def __init__(self, n: int = 0, *, by_size: bool = True) -> None:
        self.by_size = by_size
        self._parent: List[int] = []
        self._size: List[int] = []
        self.make_set(n)

    def make_set(self, n: int) -> None:
        """Reset to *n* singleton sets."""
        if n < 0:
            raise InvalidInputError("n must be >= 0")
        self._parent = list(range(n))
        self._size = [1] * n

    def _check(self, x: int) -> None:
        if not 0 <= x < len(self._parent):
            raise InvalidInputError(f"element {x} outside 0..{len(self._parent) - 1}")

    def find(self, x: int) -> int:
        self._check(x)
        root = x
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[x] != root:
            self._parent[x], x = root, self._parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        """Merge the sets holding *x* and *y*.  ``False`` if already joined."""
        rx = self.find(x)
        ry = self.find(y)
        if rx == ry:
            return False
        if self.by_size and self._size[rx] > self._size[ry]:
            rx, ry = ry, rx
        self._parent[rx] = ry
        self._size[ry] += self._size[rx]
        return True

    def connected(self, x: int, y: int) -> bool:
        return self.find(x) == self.find(y)

    def set_count(self) -> int:
        return sum(1 for i, p in enumerate(self._parent) if i == p)

    def groups(self) -> Dict[int, List[int]]:
        """Members of each set keyed by representative."""
        out: Dict[int, List[int]] = {}
        for i in range(len(self._parent)):
            out.setdefault(self.find(i), []).append(i)
        return out

    def __len__(self) -> int:
        return len(self._parent)
