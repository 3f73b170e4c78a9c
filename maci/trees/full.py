"""
Coordinator-side Merkle tree that keeps every node.

The on-chain style accumulator only keeps a frontier, so it cannot answer
"what are the siblings of leaf i". The coordinator builds its value trees
(tally results, per-option spent credits) with this class, commits to the
root, and later reveals single leaves with `path(i)`.

Paths use the same layout `verify_path` consumes: one list of `arity - 1`
siblings per level, bottom-up, with the leaf's own slot removed.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from ..crypto.field import require_field_element
from ..crypto.hasher import DEFAULT_HASHER, Hasher
from ..errors import CapacityExceeded, OutOfRangeInput
from .accumulator import zero_hashes


class MerkleTree:
    def __init__(
        self,
        depth: int,
        zero_value: int = 0,
        arity: int = 5,
        *,
        leaves: Iterable[int] = (),
        hasher: Optional[Hasher] = None,
    ) -> None:
        if depth < 1:
            raise ValueError("depth must be >= 1")
        self.depth = depth
        self.arity = arity
        self.capacity = arity ** depth
        self._hasher = hasher or DEFAULT_HASHER
        self._zeros = zero_hashes(depth, zero_value, arity, self._hasher)
        # _levels[0] are leaves; _levels[depth] is [root]; sparse dicts.
        self._levels: List[dict] = [dict() for _ in range(depth + 1)]
        self._next_index = 0
        for leaf in leaves:
            self.insert(leaf)

    def _node(self, level: int, index: int) -> int:
        return self._levels[level].get(index, self._zeros[level])

    def _recompute(self, index: int) -> None:
        for level in range(self.depth):
            parent = index // self.arity
            first = parent * self.arity
            children = [self._node(level, first + k) for k in range(self.arity)]
            self._levels[level + 1][parent] = self._hasher.compress(children)
            index = parent

    @property
    def root(self) -> int:
        return self._node(self.depth, 0)

    @property
    def next_index(self) -> int:
        return self._next_index

    def leaf(self, index: int) -> int:
        return self._node(0, index)

    def insert(self, value: int) -> int:
        if self._next_index >= self.capacity:
            raise CapacityExceeded("merkle tree is full", limit=self.capacity)
        index = self._next_index
        self._levels[0][index] = require_field_element(value, "leaf")
        self._recompute(index)
        self._next_index += 1
        return index

    def update(self, index: int, value: int) -> None:
        if not (0 <= index < self._next_index):
            raise OutOfRangeInput("leaf index not yet inserted", details={"index": index})
        self._levels[0][index] = require_field_element(value, "leaf")
        self._recompute(index)

    def path(self, index: int) -> List[List[int]]:
        """Sibling path for leaf `index` (bottom-up, `arity - 1` siblings per level)."""
        if not (0 <= index < self.capacity):
            raise OutOfRangeInput("leaf index out of range", details={"index": index})
        out: List[List[int]] = []
        for level in range(self.depth):
            slot = index % self.arity
            first = index - slot
            out.append([self._node(level, first + k) for k in range(self.arity) if k != slot])
            index //= self.arity
        return out


__all__ = ["MerkleTree"]
