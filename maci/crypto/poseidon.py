"""
maci.crypto.poseidon
====================

Poseidon permutation over the BN254 scalar field, in the fixed-width
"circomlib" arrangement used by MACI circuits:

    state = [0, in_1, ..., in_n]      (t = n + 1, capacity word first)
    state = permute(state)
    out   = state[0]

Parameters are **external**: the verifier side must hash with exactly the
same constants as the circuits. Two widths are needed by MACI:

- ``t3``: 2-ary compression (hashLeftRight, commitments, binary trees)
- ``t6``: 5-ary compression (hash5, state leaves, quinary trees)

At import time we register deterministic *placeholder* parameter sets for
both widths (Cauchy MDS, round constants derived from SHA3-256 over a
width-tagged seed). Distinct seeds keep the two compression functions
domain-separated. Replace them at startup with the circuit's real
constants via `load_params_json(path, name="t3")` / `name="t6"`.

JSON schema
-----------
{
  "t": 3, "R_F": 8, "R_P": 57, "alpha": 5,
  "mds": [[...t ints...], ...],
  "rc":  [[...t ints...], ... R_F+R_P rows ...]
}

All integers may be decimal strings, 0x-hex strings, or JSON numbers.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .field import SNARK_SCALAR_FIELD

_MOD = SNARK_SCALAR_FIELD

# Partial-round counts per width used by circomlib (R_F = 8 for all).
PARTIAL_ROUNDS: Dict[int, int] = {2: 56, 3: 57, 4: 56, 5: 60, 6: 60, 7: 63}
FULL_ROUNDS = 8


def _fmul(a: int, b: int) -> int:
    return (a * b) % _MOD


def _sbox(x: int, alpha: int) -> int:
    if alpha == 5:
        x2 = _fmul(x, x)
        return _fmul(x, _fmul(x2, x2))
    return pow(x, alpha, _MOD)


# ---------------------------
# Parameters & registry
# ---------------------------


@dataclass(frozen=True)
class PoseidonParams:
    t: int  # state width
    R_F: int  # number of full rounds
    R_P: int  # number of partial rounds
    alpha: int  # S-box exponent
    mds: List[List[int]]  # t x t
    rc: List[List[int]]  # (R_F + R_P) x t

    def validate(self) -> None:
        if self.t < 2:
            raise ValueError("t must be >= 2")
        if self.R_F % 2 != 0:
            raise ValueError("R_F must be even (split half-before/after partial rounds)")
        if self.alpha < 3 or self.alpha % 2 == 0:
            raise ValueError("alpha must be an odd integer >= 3")
        if len(self.mds) != self.t or any(len(row) != self.t for row in self.mds):
            raise ValueError("mds must be t x t")
        expected_rounds = self.R_F + self.R_P
        if len(self.rc) != expected_rounds or any(len(row) != self.t for row in self.rc):
            raise ValueError(f"rc must be (R_F+R_P) x t = {expected_rounds} x {self.t}")


_PARAMS_REGISTRY: Dict[str, PoseidonParams] = {}


def register_params(name: str, params: PoseidonParams) -> None:
    """Register a parameter set under `name` (overwrites any previous one)."""
    if not name or not isinstance(name, str):
        raise ValueError("name must be a non-empty string")
    params.validate()
    _PARAMS_REGISTRY[name] = params


def get_params(name: str) -> PoseidonParams:
    if name not in _PARAMS_REGISTRY:
        raise KeyError(
            f"Poseidon params '{name}' are not registered. "
            "Load them with load_params_json(...) or register_params(...)."
        )
    return _PARAMS_REGISTRY[name]


def _to_int(x: Union[int, str]) -> int:
    if isinstance(x, int):
        return x % _MOD
    s = str(x).strip().lower()
    if s.startswith("0x"):
        return int(s, 16) % _MOD
    return int(s) % _MOD


def load_params_json(path: str, name: Optional[str] = None) -> PoseidonParams:
    """
    Load a Poseidon params JSON file and register it.

    If `name` is None, a name is derived from the filename (without extension).
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    params = PoseidonParams(
        t=int(raw["t"]),
        R_F=int(raw["R_F"]),
        R_P=int(raw["R_P"]),
        alpha=int(raw.get("alpha", 5)),
        mds=[[_to_int(v) for v in row] for row in raw["mds"]],
        rc=[[_to_int(v) for v in row] for row in raw["rc"]],
    )
    register_params(name or os.path.splitext(os.path.basename(path))[0], params)
    return params


# ---------------------------
# Permutation
# ---------------------------


def _apply_mds(state: List[int], mds: List[List[int]]) -> List[int]:
    t = len(state)
    return [sum(mds[i][j] * state[j] for j in range(t)) % _MOD for i in range(t)]


def poseidon_permute(state: Sequence[int], params: PoseidonParams) -> List[int]:
    """
    Round schedule: R_F/2 full rounds, R_P partial rounds (S-box on the first
    word only), R_F/2 full rounds. Each round is ARK → S-box → MDS.
    """
    t, alpha = params.t, params.alpha
    if len(state) != t:
        raise ValueError(f"state length {len(state)} != t={t}")

    x = [int(v) % _MOD for v in state]
    half = params.R_F // 2
    for r, rc in enumerate(params.rc):
        x = [(x[i] + rc[i]) % _MOD for i in range(t)]
        if r < half or r >= half + params.R_P:
            x = [_sbox(v, alpha) for v in x]
        else:
            x[0] = _sbox(x[0], alpha)
        x = _apply_mds(x, params.mds)
    return x


def poseidon(inputs: Sequence[int], *, params_name: Optional[str] = None) -> int:
    """
    Fixed-width Poseidon hash of `len(inputs)` field elements.

    Uses the parameter set registered as ``t{len(inputs)+1}`` unless
    `params_name` is given, in which case its width must match.
    """
    t = len(inputs) + 1
    params = get_params(params_name or f"t{t}")
    if params.t != t:
        raise ValueError(f"params '{params_name}' have t={params.t}, expected t={t}")
    return poseidon_permute([0, *inputs], params)[0]


# ---------------------------
# Placeholder parameter sets
# ---------------------------


def derive_placeholder_params(t: int, *, domain: str = "maci/poseidon") -> PoseidonParams:
    """
    Deterministic stand-in parameters for width `t`.

    MDS is a Cauchy matrix 1/(x_i + y_j) with x_i = i, y_j = t + j, which is
    MDS over a prime field for distinct x, y. Round constants are SHA3-256 of
    "{domain}/t={t}/r={r}/i={i}" reduced mod r.
    """
    if t not in PARTIAL_ROUNDS:
        raise ValueError(f"no partial-round count known for t={t}")
    mds = [[pow(i + (t + j), _MOD - 2, _MOD) for j in range(t)] for i in range(t)]
    rounds = FULL_ROUNDS + PARTIAL_ROUNDS[t]
    rc: List[List[int]] = []
    for r in range(rounds):
        row = []
        for i in range(t):
            h = hashlib.sha3_256(f"{domain}/t={t}/r={r}/i={i}".encode()).digest()
            row.append(int.from_bytes(h, "big") % _MOD)
        rc.append(row)
    return PoseidonParams(t=t, R_F=FULL_ROUNDS, R_P=PARTIAL_ROUNDS[t], alpha=5, mds=mds, rc=rc)


# Overwrite these by loading the circuits' real constants at startup.
register_params("t3", derive_placeholder_params(3))
register_params("t6", derive_placeholder_params(6))


__all__ = [
    "PoseidonParams",
    "PARTIAL_ROUNDS",
    "FULL_ROUNDS",
    "register_params",
    "get_params",
    "load_params_json",
    "poseidon_permute",
    "poseidon",
    "derive_placeholder_params",
]
