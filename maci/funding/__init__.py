"""
maci.funding
============

Quadratic-funding settlement on top of the MACI engine.

- allocation: alpha / matching pool / per-recipient allocation arithmetic
- round: FundingRound (contributions, tally reveal, finalize, claims, cancel)
- registry: reference user and recipient registries
- ledger: in-memory token ledger
- factory: deploy_round wiring helper
"""

from __future__ import annotations

from .allocation import (
    ALPHA_PRECISION,
    MAX_CONTRIBUTION_AMOUNT,
    MAX_VOICE_CREDITS,
    calc_alpha,
    calc_voice_credit_factor,
    get_allocated_amount,
    matching_pool_size,
)
from .factory import deploy_round
from .ledger import InMemoryToken
from .registry import SimpleRecipientRegistry, SimpleUserRegistry
from .round import FundingRound

__all__ = [
    "ALPHA_PRECISION",
    "MAX_CONTRIBUTION_AMOUNT",
    "MAX_VOICE_CREDITS",
    "calc_alpha",
    "calc_voice_credit_factor",
    "get_allocated_amount",
    "matching_pool_size",
    "deploy_round",
    "InMemoryToken",
    "SimpleRecipientRegistry",
    "SimpleUserRegistry",
    "FundingRound",
]
