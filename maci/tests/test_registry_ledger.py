from __future__ import annotations

import pytest

from maci.errors import CapacityExceeded, LedgerError, OrderViolation, Unauthorized
from maci.funding.ledger import InMemoryToken
from maci.funding.registry import SimpleRecipientRegistry, SimpleUserRegistry

from .conftest import FakeClock, OWNER


# ---------------------------------------------------------------------------
# User registry
# ---------------------------------------------------------------------------

def test_user_registry_roundtrip():
    reg = SimpleUserRegistry(OWNER)
    assert not reg.is_verified_user("0xa")
    reg.add_user(OWNER, "0xa")
    assert reg.is_verified_user("0xa")
    with pytest.raises(OrderViolation):
        reg.add_user(OWNER, "0xa")
    reg.remove_user(OWNER, "0xa")
    assert not reg.is_verified_user("0xa")
    with pytest.raises(OrderViolation):
        reg.remove_user(OWNER, "0xa")


def test_user_registry_owner_only():
    reg = SimpleUserRegistry(OWNER)
    with pytest.raises(Unauthorized):
        reg.add_user("0xmallory", "0xa")
    assert not reg.is_verified_user("0xa")


# ---------------------------------------------------------------------------
# Recipient registry
# ---------------------------------------------------------------------------

def test_recipient_indices_are_sequential_and_capped():
    reg = SimpleRecipientRegistry(OWNER, 2, clock=FakeClock(10))
    assert reg.add_recipient(OWNER, "0xr0") == 0
    assert reg.add_recipient(OWNER, "0xr1") == 1
    assert len(reg) == 2
    with pytest.raises(CapacityExceeded):
        reg.add_recipient(OWNER, "0xr2")

    other = SimpleRecipientRegistry(OWNER, 3)
    other.add_recipient(OWNER, "0xr0")
    with pytest.raises(OrderViolation):
        other.add_recipient(OWNER, "0xr0")


def test_recipient_registry_validation():
    with pytest.raises(ValueError):
        SimpleRecipientRegistry(OWNER, 0)
    reg = SimpleRecipientRegistry(OWNER, 3)
    with pytest.raises(Unauthorized):
        reg.add_recipient("0xmallory", "0xr0")
    with pytest.raises(OrderViolation):
        reg.remove_recipient(OWNER, "0xmissing")


def test_recipient_window_resolution():
    clock = FakeClock(100)
    reg = SimpleRecipientRegistry(OWNER, 5, clock=clock)
    reg.add_recipient(OWNER, "0xr0")

    assert reg.get_recipient_address(0, 50, 200) == "0xr0"
    # Added after the window closed.
    assert reg.get_recipient_address(0, 10, 90) is None
    assert reg.get_recipient_address(1, 50, 200) is None

    clock.t = 150
    reg.remove_recipient(OWNER, "0xr0")
    # Removed during the window: still resolves for that round.
    assert reg.get_recipient_address(0, 120, 200) == "0xr0"
    # Removed before the window opened.
    assert reg.get_recipient_address(0, 150, 300) is None
    with pytest.raises(OrderViolation):
        reg.remove_recipient(OWNER, "0xr0")


# ---------------------------------------------------------------------------
# Token ledger
# ---------------------------------------------------------------------------

def test_token_transfer_and_allowance():
    t = InMemoryToken(decimals=6, symbol="USDC")
    assert t.decimals == 6
    t.mint("0xa", 100)
    assert t.total_supply == 100

    t.transfer("0xa", "0xb", 40)
    assert (t.balance_of("0xa"), t.balance_of("0xb")) == (60, 40)

    t.approve("0xa", "0xspender", 30)
    t.transfer_from("0xspender", "0xa", "0xc", 25)
    assert t.balance_of("0xc") == 25
    assert t.allowance("0xa", "0xspender") == 5


def test_token_failed_debits_leave_state():
    t = InMemoryToken(decimals=0)
    t.mint("0xa", 10)
    with pytest.raises(LedgerError):
        t.transfer("0xa", "0xb", 11)
    t.approve("0xa", "0xs", 5)
    with pytest.raises(LedgerError):
        t.transfer_from("0xs", "0xa", "0xb", 6)
    t.approve("0xa", "0xs", 50)
    with pytest.raises(LedgerError):
        t.transfer_from("0xs", "0xa", "0xb", 20)
    assert t.balance_of("0xa") == 10
    assert t.balance_of("0xb") == 0
    assert t.allowance("0xa", "0xs") == 50


@pytest.mark.parametrize("bad", [-1, 1.5, True, "3"])
def test_token_rejects_bad_amounts(bad):
    t = InMemoryToken()
    with pytest.raises(LedgerError):
        t.mint("0xa", bad)
