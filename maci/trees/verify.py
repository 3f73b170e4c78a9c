"""
Commitment verifier.

`verify_path` recomputes a root from a leaf and its sibling path. The digits
of `index` in base `arity` (least significant first) say where the running
value sits among the `arity` children at each level:

    slot = index % arity
    children = siblings[:slot] + [node] + siblings[slot:]
    node = H(children); index //= arity

`verify_commitment` checks a salted commitment H(root, salt). Together they
let a coordinator reveal one entry of an off-chain value tree (tally result,
per-option spent credits) against a commitment published earlier.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..crypto.field import require_field_element, require_field_elements
from ..crypto.hasher import DEFAULT_HASHER, Hasher, commit
from ..errors import OutOfRangeInput


def verify_path(
    depth: int,
    index: int,
    leaf: int,
    sibling_path: Sequence[Sequence[int]],
    arity: int = 5,
    *,
    hasher: Optional[Hasher] = None,
) -> int:
    """Return the root implied by (`leaf`, `index`, `sibling_path`)."""
    h = hasher or DEFAULT_HASHER
    if depth < 1:
        raise OutOfRangeInput("depth must be >= 1", details={"depth": depth})
    if not (0 <= index < arity ** depth):
        raise OutOfRangeInput("index outside the tree", details={"index": index, "depth": depth, "arity": arity})
    if len(sibling_path) != depth:
        raise OutOfRangeInput("path length must equal depth", details={"got": len(sibling_path), "depth": depth})

    node = require_field_element(leaf, "leaf")
    for level, siblings in enumerate(sibling_path):
        if len(siblings) != arity - 1:
            raise OutOfRangeInput(
                "each path level must hold arity-1 siblings",
                details={"level": level, "got": len(siblings), "arity": arity},
            )
        sibs = require_field_elements(siblings, f"path[{level}]")
        slot = index % arity
        node = h.compress(sibs[:slot] + [node] + sibs[slot:])
        index //= arity
    return node


def verify_commitment(root: int, salt: int, expected: int) -> bool:
    return commit(root, salt) == expected


def verify_leaf_commitment(
    depth: int,
    index: int,
    leaf: int,
    sibling_path: Sequence[Sequence[int]],
    salt: int,
    expected: int,
    arity: int = 5,
) -> bool:
    root = verify_path(depth, index, leaf, sibling_path, arity)
    return verify_commitment(root, salt, expected)


__all__ = ["verify_path", "verify_commitment", "verify_leaf_commitment"]
