"""
maci.rpc.methods
----------------

Read-only RPC surface over a FundingRound and its MACI engine.

JSON-RPC names (see `make_methods`):
  • maci.getRoundStatus   → round totals, flags and the engine summary
  • maci.getEngineStatus  → engine phase, counters, roots, tally progress
  • maci.getRecipient     → RecipientStatus of one vote option index
  • maci.getContributor   → ContributorStatus of one address
  • maci.getAllocation    → allocation for (tallyResult, spent) at the round's alpha

Field elements are returned as decimal strings; counters and token amounts
as integers.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from ..errors import MACIError, OrderViolation, OutOfRangeInput
from ..funding.round import FundingRound


# ---- Helpers ---------------------------------------------------------------

def _coerce_int(value: Any, name: str) -> int:
    try:
        iv = int(value)
        if iv < 0:
            raise ValueError
        return iv
    except Exception as e:  # noqa: BLE001
        raise OutOfRangeInput(f"invalid {name}: must be a non-negative integer", name=name) from e


# ---- JSON-RPC method factory ----------------------------------------------

def make_methods(funding_round: FundingRound) -> Dict[str, Callable[..., Any]]:
    """
    Build a mapping of JSON-RPC method name -> callable.
    Each callable returns plain JSON-serializable structures.
    """

    def maci_get_round_status() -> Dict[str, Any]:
        return dict(funding_round.status())

    def maci_get_engine_status() -> Dict[str, Any]:
        if funding_round.maci is None:
            raise OrderViolation("round has no MACI engine")
        return funding_round.maci.summary()

    def maci_get_recipient(*, voteOptionIndex: Any) -> Dict[str, Any]:
        idx = _coerce_int(voteOptionIndex, "voteOptionIndex")
        out = funding_round.get_recipient_status(idx).to_dict()
        out["voteOptionIndex"] = idx
        return out

    def maci_get_contributor(*, address: str) -> Dict[str, Any]:
        if not address:
            raise OutOfRangeInput("address is required", name="address")
        status = funding_round.get_contributor(address)
        if status is None:
            raise OrderViolation("unknown contributor", details={"address": address})
        out = status.to_dict()
        out["address"] = address
        return out

    def maci_get_allocation(*, tallyResult: Any, spent: Any) -> Dict[str, Any]:
        r = _coerce_int(tallyResult, "tallyResult")
        s = _coerce_int(spent, "spent")
        return {
            "tallyResult": r,
            "spent": s,
            "alpha": str(funding_round.alpha),
            "isFinalized": funding_round.is_finalized,
            "amount": funding_round.get_allocated_amount(r, s),
        }

    return {
        "maci.getRoundStatus": maci_get_round_status,
        "maci.getEngineStatus": maci_get_engine_status,
        "maci.getRecipient": maci_get_recipient,
        "maci.getContributor": maci_get_contributor,
        "maci.getAllocation": maci_get_allocation,
    }


# ---- REST adapter (FastAPI) --------------------------------------------------

def build_rest_router(funding_round: FundingRound):
    """
    Return a FastAPI APIRouter exposing the read-only endpoints.
    Mount path suggestion: f"{RPC_PREFIX}" (import from maci.rpc).
    """
    from fastapi import APIRouter, HTTPException, Query

    methods = make_methods(funding_round)
    router = APIRouter()

    @router.get("/round")
    def http_round_status():
        return methods["maci.getRoundStatus"]()

    @router.get("/engine")
    def http_engine_status():
        try:
            return methods["maci.getEngineStatus"]()
        except MACIError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    @router.get("/recipients/{vote_option_index}")
    def http_get_recipient(vote_option_index: int):
        try:
            return methods["maci.getRecipient"](voteOptionIndex=vote_option_index)
        except MACIError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @router.get("/contributors/{address}")
    def http_get_contributor(address: str):
        try:
            return methods["maci.getContributor"](address=address)
        except MACIError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    @router.get("/allocation")
    def http_get_allocation(
        tallyResult: int = Query(..., ge=0),
        spent: int = Query(..., ge=0),
    ):
        try:
            return methods["maci.getAllocation"](tallyResult=tallyResult, spent=spent)
        except MACIError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    return router


__all__ = ["make_methods", "build_rest_router"]
