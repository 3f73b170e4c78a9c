"""
maci.crypto.hasher: the two compression primitives and everything built on them.

- hash_left_right(a, b)  Poseidon t=3   (binary trees, commitments)
- hash5([a..e])          Poseidon t=6   (quinary trees, state leaves)
- hash11([...])          H2(H2(H5(a0..a4), H5(a5..a9)), a10)  (messages)
- commit(value, salt)    H2(value, salt)

Inputs are range-checked; the primitives never reduce out-of-field values.

`Hasher` bundles "arity -> compression function" so the accumulators can be
parameterised by arity instead of duplicating the insertion walk.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Sequence

from ..errors import OutOfRangeInput
from .field import require_field_element, require_field_elements
from .poseidon import get_params, poseidon

if TYPE_CHECKING:  # pragma: no cover
    from ..domain import Message, StateLeaf

Compression = Callable[[Sequence[int]], int]


def hash_left_right(left: int, right: int) -> int:
    return poseidon([require_field_element(left, "left"), require_field_element(right, "right")])


def hash5(values: Sequence[int]) -> int:
    if len(values) != 5:
        raise OutOfRangeInput("hash5 expects exactly 5 inputs", details={"got": len(values)})
    return poseidon(require_field_elements(values, "hash5"))


def hash11(values: Sequence[int]) -> int:
    if len(values) != 11:
        raise OutOfRangeInput("hash11 expects exactly 11 inputs", details={"got": len(values)})
    v = require_field_elements(values, "hash11")
    return hash_left_right(hash_left_right(hash5(v[0:5]), hash5(v[5:10])), v[10])


def commit(value: int, salt: int) -> int:
    """Salted commitment H(value, salt)."""
    return hash_left_right(value, salt)


def hash_state_leaf(leaf: "StateLeaf") -> int:
    return hash5(
        [
            leaf.pub_key.x,
            leaf.pub_key.y,
            leaf.vote_option_tree_root,
            leaf.voice_credit_balance,
            leaf.nonce,
        ]
    )


def hash_message(message: "Message") -> int:
    return hash11(message.as_fields())


class Hasher:
    """
    Compression functions keyed by arity.

    Arity 2 and 5 map to the MACI primitives; any other arity a >= 2 uses a
    Poseidon width a+1 parameter set, which must be registered first.
    """

    def __init__(self) -> None:
        self._by_arity: Dict[int, Compression] = {
            2: lambda xs: hash_left_right(xs[0], xs[1]),
            5: hash5,
        }

    def supports(self, arity: int) -> bool:
        if arity in self._by_arity:
            return True
        try:
            get_params(f"t{arity + 1}")
        except KeyError:
            return False
        return True

    def compress(self, children: Sequence[int]) -> int:
        arity = len(children)
        fn = self._by_arity.get(arity)
        if fn is not None:
            return fn(children)
        if arity < 2:
            raise ValueError("arity must be >= 2")
        return poseidon(require_field_elements(children, "children"))

    __call__ = compress


DEFAULT_HASHER = Hasher()


__all__ = [
    "Compression",
    "hash_left_right",
    "hash5",
    "hash11",
    "commit",
    "hash_state_leaf",
    "hash_message",
    "Hasher",
    "DEFAULT_HASHER",
]
