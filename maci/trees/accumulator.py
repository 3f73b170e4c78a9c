"""
maci.trees.accumulator
======================

Append-only incremental Merkle accumulator, generic over arity.

Only O(depth · arity) words are kept: the per-level zero hashes and the
"filled subtree" cache, i.e. the most recent child written at every slot of
every level. Inserting leaf ``i`` walks level 0 → depth-1:

    slot = i % arity
    filled[level][slot] = node
    children = filled[level][:slot+1] + zeros[level] * (arity - slot - 1)
    node = H(children)
    i //= arity

Slots above the running slot always read the level's zero hash; stale cache
entries left there by an earlier sibling subtree are never used.

Every root ever produced is kept in an append-only history set so a proof
built against an older root can still be checked for membership.

The root after a fixed sequence of insertions is a pure function of that
sequence: the coordinator and the verifier agree on message / state roots
used as public inputs.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import AbstractSet, List, Optional

from ..crypto.field import require_field_element
from ..crypto.hasher import DEFAULT_HASHER, Hasher
from ..errors import CapacityExceeded

log = logging.getLogger(__name__)


def zero_hashes(depth: int, zero_value: int, arity: int, hasher: Hasher = DEFAULT_HASHER) -> List[int]:
    """[z_0, ..., z_depth] where z_0 = zero_value and z_{l+1} = H(z_l × arity)."""
    zeros = [require_field_element(zero_value, "zero_value")]
    for _ in range(depth):
        zeros.append(hasher.compress([zeros[-1]] * arity))
    return zeros


def empty_root(depth: int, zero_value: int, arity: int, hasher: Hasher = DEFAULT_HASHER) -> int:
    """Root of a tree whose every leaf equals `zero_value`."""
    return zero_hashes(depth, zero_value, arity, hasher)[depth]


class IncrementalTree:
    """
    Incremental Merkle accumulator.

    Usage:
        tree = IncrementalTree(depth=4, zero_value=0, arity=2)
        idx = tree.insert_leaf(leaf)
        tree.root, tree.is_known_root(old_root)
    """

    def __init__(
        self,
        depth: int,
        zero_value: int,
        arity: int = 2,
        *,
        hasher: Optional[Hasher] = None,
    ) -> None:
        if depth < 1:
            raise ValueError("depth must be >= 1")
        if arity < 2:
            raise ValueError("arity must be >= 2")
        self._hasher = hasher or DEFAULT_HASHER
        if not self._hasher.supports(arity):
            raise ValueError(f"no compression function registered for arity {arity}")

        self.depth = depth
        self.arity = arity
        self.capacity = arity ** depth
        self._zeros = zero_hashes(depth, zero_value, arity, self._hasher)
        self._filled: List[List[int]] = [[self._zeros[level]] * arity for level in range(depth)]
        self._root = self._zeros[depth]
        self._roots = {self._root}
        self._next_index = 0
        self._lock = RLock()

    # --- views -----------------------------------------------------------

    @property
    def root(self) -> int:
        return self._root

    @property
    def next_index(self) -> int:
        return self._next_index

    @property
    def zeros(self) -> List[int]:
        return list(self._zeros)

    @property
    def zero_value(self) -> int:
        return self._zeros[0]

    @property
    def root_history(self) -> AbstractSet[int]:
        return frozenset(self._roots)

    def is_full(self) -> bool:
        return self._next_index >= self.capacity

    def is_known_root(self, root: int) -> bool:
        return root in self._roots

    # --- mutation --------------------------------------------------------

    def insert_leaf(self, leaf: int) -> int:
        """Append `leaf`, returning its index. Raises CapacityExceeded once full."""
        value = require_field_element(leaf, "leaf")
        with self._lock:
            if self.is_full():
                raise CapacityExceeded("merkle tree is full", limit=self.capacity)

            leaf_index = self._next_index
            current_index = leaf_index
            node = value
            for level in range(self.depth):
                slot = current_index % self.arity
                cache = self._filled[level]
                cache[slot] = node
                children = cache[: slot + 1] + [self._zeros[level]] * (self.arity - slot - 1)
                node = self._hasher.compress(children)
                current_index //= self.arity

            self._root = node
            self._roots.add(node)
            self._next_index = leaf_index + 1

        log.debug("tree(arity=%d, depth=%d) inserted leaf #%d", self.arity, self.depth, leaf_index)
        return leaf_index


def binary_tree(depth: int, zero_value: int, *, hasher: Optional[Hasher] = None) -> IncrementalTree:
    return IncrementalTree(depth, zero_value, 2, hasher=hasher)


def quinary_tree(depth: int, zero_value: int, *, hasher: Optional[Hasher] = None) -> IncrementalTree:
    return IncrementalTree(depth, zero_value, 5, hasher=hasher)


__all__ = [
    "zero_hashes",
    "empty_root",
    "IncrementalTree",
    "binary_tree",
    "quinary_tree",
]
