"""
MACI ⇄ collaborator interfaces
==============================

Narrow, typed capabilities the engine and the funding round consume. They
are injected at construction time; implementations are swappable strategy
objects, not base classes to inherit from.

- ProofVerifier      opaque zk-SNARK verification service
- EligibilityGate    may a caller sign up? raises on ineligibility
- CreditSource       initial voice-credit balance for a sign-up
- RecipientResolver  vote option index → payout address (or None)
- UserRegistry       is an address a verified user?
- TokenLedger        balance/transfer semantics with fixed decimals
- Clock              wall-clock seconds

Nothing here mutates state.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

Clock = Callable[[], float]


@runtime_checkable
class ProofVerifier(Protocol):
    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        """Return True iff `proof` is valid for `public_inputs` (already range-checked)."""
        ...


@runtime_checkable
class EligibilityGate(Protocol):
    def register(self, caller: str, data: Any) -> None:
        """Accept the sign-up or raise."""
        ...


@runtime_checkable
class CreditSource(Protocol):
    def get_voice_credits(self, caller: str, data: Any) -> int:
        """Initial voice credit balance for `caller`; raise if unknown."""
        ...


@runtime_checkable
class RecipientResolver(Protocol):
    def get_recipient_address(self, index: int, start_time: float, end_time: float) -> Optional[str]:
        ...


@runtime_checkable
class UserRegistry(Protocol):
    def is_verified_user(self, user: str) -> bool:
        ...


@runtime_checkable
class TokenLedger(Protocol):
    @property
    def decimals(self) -> int:
        ...

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, to: str, amount: int) -> None:
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        ...


__all__ = [
    "Clock",
    "ProofVerifier",
    "EligibilityGate",
    "CreditSource",
    "RecipientResolver",
    "UserRegistry",
    "TokenLedger",
]
