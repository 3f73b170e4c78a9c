from __future__ import annotations

import doctest

import pytest
from hypothesis import assume, given, settings, strategies as st

from maci.errors import InvariantViolation, OutOfRangeInput
from maci.funding import allocation
from maci.funding.allocation import (
    ALPHA_PRECISION,
    calc_alpha,
    calc_voice_credit_factor,
    get_allocated_amount,
    matching_pool_size,
)


@pytest.mark.parametrize(
    "decimals,expected",
    [
        (18, 10 ** 13),  # 1e4 tokens · 1e18 / 1e9
        (6, 10),
        (0, 1),  # floors to 0, clamped to 1
    ],
)
def test_voice_credit_factor(decimals, expected):
    assert calc_voice_credit_factor(decimals) == expected


def test_voice_credit_factor_custom_caps():
    assert calc_voice_credit_factor(2, max_contribution=50, max_voice_credits=10) == 500
    with pytest.raises(OutOfRangeInput):
        calc_voice_credit_factor(-1)
    with pytest.raises(OutOfRangeInput):
        calc_voice_credit_factor(18, max_voice_credits=0)


def test_scenario_alpha_and_allocation():
    alpha = calc_alpha(budget=130, total_votes_squares=900, total_spent=30, voice_credit_factor=1)
    assert alpha == 100 * ALPHA_PRECISION // 870 == 114942528735632183
    assert matching_pool_size(130, 30, 1) == 100
    assert get_allocated_amount(alpha, 1, 30, 30) == 129


def test_alpha_is_capped_at_precision():
    # Huge pool relative to the quadratic excess.
    assert calc_alpha(10 ** 6, 10, 5, 1) == ALPHA_PRECISION
    assert get_allocated_amount(ALPHA_PRECISION, 1, 3, 5) == 9


def test_alpha_zero_is_pure_refund():
    assert calc_alpha(30, 900, 30, 1) == 0
    assert get_allocated_amount(0, 1, 30, 30) == 30
    assert get_allocated_amount(0, 7, 4, 12) == 84


def test_budget_below_contributions():
    with pytest.raises(InvariantViolation):
        matching_pool_size(29, 30, 1)
    with pytest.raises(InvariantViolation):
        calc_alpha(29, 900, 30, 1)


def test_squares_must_exceed_spent():
    with pytest.raises(InvariantViolation):
        calc_alpha(100, 30, 30, 1)
    with pytest.raises(InvariantViolation):
        calc_alpha(100, 0, 0, 1)


def test_bad_inputs():
    with pytest.raises(OutOfRangeInput):
        get_allocated_amount(ALPHA_PRECISION + 1, 1, 1, 1)
    with pytest.raises(OutOfRangeInput):
        get_allocated_amount(0, 1, -1, 1)
    with pytest.raises(OutOfRangeInput):
        calc_alpha(100, 900, 30, 0)
    with pytest.raises(OutOfRangeInput):
        matching_pool_size(100, True, 1)


options = st.lists(
    st.tuples(st.integers(min_value=0, max_value=1_000), st.integers(min_value=0, max_value=1_000)),
    min_size=1,
    max_size=6,
)


@settings(max_examples=200, deadline=None)
@given(opts=options, extra=st.integers(min_value=0, max_value=10 ** 7), factor=st.integers(min_value=1, max_value=10 ** 6))
def test_allocations_never_exceed_budget(opts, extra, factor):
    votes = [r for r, _ in opts]
    spent = [min(s, r) for r, s in opts]
    squares = sum(r * r for r in votes)
    total_spent = sum(spent)
    assume(squares > total_spent)

    budget = total_spent * factor + extra
    alpha = calc_alpha(budget, squares, total_spent, factor)
    assert 0 <= alpha <= ALPHA_PRECISION

    paid = sum(get_allocated_amount(alpha, factor, r, s) for r, s in zip(votes, spent))
    assert paid <= budget


def test_module_example_runs():
    assert allocation.__doc__ and ">>> " in allocation.__doc__
    result = doctest.testmod(allocation)
    assert result.attempted == 2
    assert result.failed == 0
