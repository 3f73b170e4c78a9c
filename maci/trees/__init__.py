"""
maci.trees
==========

- accumulator: append-only incremental tree (binary / quinary / any arity)
- full: coordinator-side tree keeping every node, produces sibling paths
- verify: path reconstruction and salted commitment checks
"""

from __future__ import annotations

from .accumulator import IncrementalTree, binary_tree, empty_root, quinary_tree, zero_hashes
from .full import MerkleTree
from .verify import verify_commitment, verify_leaf_commitment, verify_path

__all__ = [
    "IncrementalTree",
    "binary_tree",
    "quinary_tree",
    "empty_root",
    "zero_hashes",
    "MerkleTree",
    "verify_path",
    "verify_commitment",
    "verify_leaf_commitment",
]
