"""
Wire a funding round to a fresh MACI engine.

    round = deploy_round(
        config=cfg, token=token,
        user_registry=users, recipient_registry=recipients,
        batch_ust_verifier=v1, vote_tally_verifier=v2,
        coordinator="0xcoord", coordinator_pub_key=(x, y), owner="0xowner",
    )
    round.maci  # the engine, gated by the round
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import MACIConfig
from ..engine.processor import MACI, PubKeyLike
from ..events import EventLog
from ..interfaces import Clock, ProofVerifier, RecipientResolver, TokenLedger, UserRegistry
from .round import FundingRound

log = logging.getLogger(__name__)


def deploy_round(
    *,
    token: TokenLedger,
    user_registry: UserRegistry,
    recipient_registry: RecipientResolver,
    batch_ust_verifier: ProofVerifier,
    vote_tally_verifier: ProofVerifier,
    coordinator: str,
    coordinator_pub_key: PubKeyLike,
    owner: str,
    config: Optional[MACIConfig] = None,
    address: str = "funding-round",
    clock: Optional[Clock] = None,
    events: Optional[EventLog] = None,
) -> FundingRound:
    cfg = config or MACIConfig()
    cfg.validate()
    event_log = events if events is not None else EventLog()

    funding_round = FundingRound(
        owner=owner,
        token=token,
        user_registry=user_registry,
        recipient_registry=recipient_registry,
        coordinator=coordinator,
        coordinator_pub_key=coordinator_pub_key,
        config=cfg,
        address=address,
        clock=clock,
        events=event_log,
    )
    engine = MACI(
        config=cfg,
        gate=funding_round,
        credit_source=funding_round,
        batch_ust_verifier=batch_ust_verifier,
        vote_tally_verifier=vote_tally_verifier,
        coordinator_pub_key=coordinator_pub_key,
        coordinator_address=coordinator,
        clock=clock,
        events=event_log,
    )
    funding_round.set_maci(owner, engine)
    log.info("deployed funding round %s (owner=%s, coordinator=%s)", address, owner, coordinator)
    return funding_round


__all__ = ["deploy_round"]
