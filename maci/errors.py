# maci/errors.py
"""
Error types for the MACI state-transition/tally engine and the quadratic
funding round built on top of it. These are lightweight, serializable, and
safe to surface over RPC/logs.

Taxonomy
--------
- PhaseViolation      call outside its deadline window / lifecycle state
- CapacityExceeded    tree full, sign-up/message/contributor cap reached
- OutOfRangeInput     field element >= scalar field modulus, negative, bad shape
- ProofRejected       the zk verifier returned false; batch call is void
- OrderViolation      wrong batch, already verified index, double claim, ...
- InvariantViolation  the round must be cancelled instead of finalized
- Unauthorized        caller does not hold the required role
- SignUpRejected      eligibility gate / credit source refused (fail-closed)
- CommitmentMismatch  a revealed value does not open a live commitment
- LedgerError         token ledger refused a transfer
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional


class MACIError(Exception):
    """Base class for MACI / funding round domain errors."""

    code: str = "MACI_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"), default=str)
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class PhaseViolation(MACIError):
    """The call is not valid in the current phase (deadline passed / not reached)."""
    code = "MACI_PHASE_VIOLATION"

    def __init__(
        self,
        message: str = "operation not allowed in the current phase",
        *,
        phase: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if phase is not None:
            d.setdefault("phase", phase)
        super().__init__(message, details=d)


class CapacityExceeded(MACIError):
    """A fixed capacity was reached. Fatal for the round."""
    code = "MACI_CAPACITY_EXCEEDED"

    def __init__(
        self,
        message: str = "capacity exceeded",
        *,
        limit: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if limit is not None:
            d.setdefault("limit", int(limit))
        super().__init__(message, details=d)


class OutOfRangeInput(MACIError):
    """An input is not a canonical field element (or not a valid shape)."""
    code = "MACI_OUT_OF_RANGE"

    def __init__(
        self,
        message: str = "input out of range",
        *,
        name: Optional[str] = None,
        value: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if name is not None:
            d.setdefault("name", name)
        if value is not None:
            d.setdefault("value", str(value))
        super().__init__(message, details=d)


class ProofRejected(MACIError):
    """The proof verifier rejected the proof for the given public inputs."""
    code = "MACI_PROOF_REJECTED"


class OrderViolation(MACIError):
    """
    Ordering/idempotency rule broken: no batch left to process, an index
    already verified, a double claim, a repeated contribution.
    """
    code = "MACI_ORDER_VIOLATION"


class InvariantViolation(MACIError):
    """
    A settlement invariant does not hold. Surfaced to the operator as a reason
    the round must be cancelled rather than finalized.
    """
    code = "MACI_INVARIANT_VIOLATION"


class Unauthorized(MACIError):
    """Caller does not hold the role required for the operation."""
    code = "MACI_UNAUTHORIZED"

    def __init__(
        self,
        message: str = "caller is not authorized",
        *,
        caller: Optional[str] = None,
        role: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if caller is not None:
            d.setdefault("caller", caller)
        if role is not None:
            d.setdefault("role", role)
        super().__init__(message, details=d)


class SignUpRejected(MACIError):
    """The eligibility gate or the credit source refused a sign-up."""
    code = "MACI_SIGNUP_REJECTED"


class CommitmentMismatch(MACIError):
    """A revealed value does not match the live commitment."""
    code = "MACI_COMMITMENT_MISMATCH"


class LedgerError(MACIError):
    """The token ledger refused an operation (balance/allowance)."""
    code = "MACI_LEDGER_ERROR"


__all__ = [
    "MACIError",
    "PhaseViolation",
    "CapacityExceeded",
    "OutOfRangeInput",
    "ProofRejected",
    "OrderViolation",
    "InvariantViolation",
    "Unauthorized",
    "SignUpRejected",
    "CommitmentMismatch",
    "LedgerError",
]
