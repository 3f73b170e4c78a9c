# Copyright
# SPDX-License-Identifier: Apache-2.0
"""
BN254 scalar field (a.k.a. alt_bn128 Fr): range checks for public inputs.

Every value that ends up in a tree leaf, a commitment or a proof's public
input vector must be a canonical field element `0 <= x < SNARK_SCALAR_FIELD`.
Out-of-range values are rejected, never reduced: silently truncating would
let two different inputs map onto the same public signal.

References:
- EVM precompiles (alt_bn128) and BN254 curve used by Groth16 (snarkjs).
"""

from __future__ import annotations

from typing import Iterable, List

from ..errors import OutOfRangeInput

# BN254 / alt_bn128 scalar field order r.
SNARK_SCALAR_FIELD: int = 21888242871839275222246405745257275088548364400416034343698204186575808495617
FIELD_BYTE_LEN = 32

# keccak256("Maci") mod r; zero leaf of the state and message trees.
NOTHING_UP_MY_SLEEVE: int = 8370432830353022751713833565135785980866757267633941821328460903436894336785


def is_field_element(x: object) -> bool:
    """True if `x` is a plain int (not bool) in [0, SNARK_SCALAR_FIELD)."""
    if isinstance(x, bool) or not isinstance(x, int):
        return False
    return 0 <= x < SNARK_SCALAR_FIELD


def require_field_element(x: object, name: str = "value") -> int:
    if not is_field_element(x):
        raise OutOfRangeInput(
            f"{name} must be a field element < SNARK_SCALAR_FIELD",
            name=name,
            value=x if isinstance(x, int) else None,
        )
    return int(x)  # type: ignore[arg-type]


def require_field_elements(xs: Iterable[object], name: str = "values") -> List[int]:
    out: List[int] = []
    for i, x in enumerate(xs):
        out.append(require_field_element(x, f"{name}[{i}]"))
    return out


def to_bytes32(x: int) -> bytes:
    """32-byte big-endian encoding of a canonical field element."""
    return require_field_element(x).to_bytes(FIELD_BYTE_LEN, "big")


def from_hex(s: str) -> int:
    """Parse a 0x-prefixed (or bare) hex string; the result must be in range."""
    s = s.strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    return require_field_element(int(s, 16) if s else 0, "hex")


__all__ = [
    "SNARK_SCALAR_FIELD",
    "FIELD_BYTE_LEN",
    "NOTHING_UP_MY_SLEEVE",
    "is_field_element",
    "require_field_element",
    "require_field_elements",
    "to_bytes32",
    "from_hex",
]
