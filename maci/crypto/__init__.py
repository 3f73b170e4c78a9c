"""
maci.crypto
===========

Field range checks, the Poseidon permutation, and the MACI hash helpers
derived from its two widths (2-ary and 5-ary compression).
"""

from __future__ import annotations

from .field import NOTHING_UP_MY_SLEEVE, SNARK_SCALAR_FIELD, is_field_element, require_field_element
from .hasher import DEFAULT_HASHER, Hasher, commit, hash5, hash11, hash_left_right, hash_message, hash_state_leaf

__all__ = [
    "SNARK_SCALAR_FIELD",
    "NOTHING_UP_MY_SLEEVE",
    "is_field_element",
    "require_field_element",
    "Hasher",
    "DEFAULT_HASHER",
    "hash_left_right",
    "hash5",
    "hash11",
    "commit",
    "hash_state_leaf",
    "hash_message",
]
