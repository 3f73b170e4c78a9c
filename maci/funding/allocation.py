"""
Capital-constrained quadratic funding allocation.

Pure integer arithmetic shared by the funding round and the CLI. Every
amount is in the token's base unit; voice credits are whole units.

Definitions
-----------
factor        voice credit factor, tokens per voice credit (>= 1)
spent         total voice credits spent by all voters
squares       Σ over vote options of (votes for the option)²
budget        round balance at finalization (contributions + matching funds)

    contributions = spent · factor
    alpha         = (budget − contributions) · P / (factor · (squares − spent))
    allocation(r, s) = (alpha · factor · r² + (P − alpha) · factor · s) / P

with P = ALPHA_PRECISION. Alpha blends a pure quadratic payout (alpha = P)
with a pure linear refund of spent credits (alpha = 0); capping alpha at P
keeps Σ allocation(r_i, s_i) ≤ budget.

Example
-------
>>> a = calc_alpha(budget=130, total_votes_squares=900, total_spent=30, voice_credit_factor=1)
>>> get_allocated_amount(a, 1, 30, 30) <= 130
True
"""

from __future__ import annotations

from typing import Final

from ..errors import InvariantViolation, OutOfRangeInput

ALPHA_PRECISION: Final[int] = 10 ** 18
MAX_VOICE_CREDITS: Final[int] = 10 ** 9
MAX_CONTRIBUTION_AMOUNT: Final[int] = 10 ** 4  # whole tokens


def _nonneg(x: int, name: str) -> int:
    if isinstance(x, bool) or not isinstance(x, int):
        raise OutOfRangeInput(f"{name} must be an integer", name=name)
    if x < 0:
        raise OutOfRangeInput(f"{name} must be non-negative", name=name, value=x)
    return x


def calc_voice_credit_factor(
    decimals: int,
    max_contribution: int = MAX_CONTRIBUTION_AMOUNT,
    max_voice_credits: int = MAX_VOICE_CREDITS,
) -> int:
    """
    Tokens (base units) per voice credit, chosen so that `max_voice_credits`
    credits correspond to `max_contribution` whole tokens. Never below 1.
    """
    _nonneg(decimals, "decimals")
    if max_voice_credits <= 0:
        raise OutOfRangeInput("max_voice_credits must be positive", name="max_voice_credits")
    factor = (_nonneg(max_contribution, "max_contribution") * 10 ** decimals) // max_voice_credits
    return max(1, factor)


def matching_pool_size(budget: int, total_spent: int, voice_credit_factor: int) -> int:
    contributions = _nonneg(total_spent, "total_spent") * voice_credit_factor
    if _nonneg(budget, "budget") < contributions:
        raise InvariantViolation(
            "budget is smaller than the contributions it must cover",
            details={"budget": budget, "contributions": contributions},
        )
    return budget - contributions


def calc_alpha(budget: int, total_votes_squares: int, total_spent: int, voice_credit_factor: int) -> int:
    """Fixed-point alpha in [0, ALPHA_PRECISION]."""
    if voice_credit_factor <= 0:
        raise OutOfRangeInput("voice_credit_factor must be positive", name="voice_credit_factor")
    pool = matching_pool_size(budget, total_spent, voice_credit_factor)
    if _nonneg(total_votes_squares, "total_votes_squares") <= total_spent:
        raise InvariantViolation(
            "total votes squares must exceed total spent voice credits",
            details={"squares": total_votes_squares, "spent": total_spent},
        )
    alpha = pool * ALPHA_PRECISION // (voice_credit_factor * (total_votes_squares - total_spent))
    return min(alpha, ALPHA_PRECISION)


def get_allocated_amount(alpha: int, voice_credit_factor: int, tally_result: int, spent: int) -> int:
    if not 0 <= alpha <= ALPHA_PRECISION:
        raise OutOfRangeInput("alpha must be within [0, ALPHA_PRECISION]", name="alpha", value=alpha)
    r = _nonneg(tally_result, "tally_result")
    s = _nonneg(spent, "spent")
    quadratic = alpha * voice_credit_factor * r * r
    linear = (ALPHA_PRECISION - alpha) * voice_credit_factor * s
    return (quadratic + linear) // ALPHA_PRECISION


__all__ = [
    "ALPHA_PRECISION",
    "MAX_VOICE_CREDITS",
    "MAX_CONTRIBUTION_AMOUNT",
    "calc_voice_credit_factor",
    "matching_pool_size",
    "calc_alpha",
    "get_allocated_amount",
]
