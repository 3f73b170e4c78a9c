"""
Quadratic-funding round.

A FundingRound turns token contributions into voice credits, signs the
contributors up in its MACI engine, and, once the coordinator has tallied
and revealed the results, pays every recipient its capital-constrained
quadratic allocation.

The round is itself the engine's eligibility gate (``register``) and credit
source (``get_voice_credits``): a sign-up is only accepted for a verified
user who has contributed and has not signed up before, and the voice credit
balance is the one recorded at contribution time.

Lifecycle
---------
    contribute* ─▶ (engine: messages, batches, tally) ─▶ publish_tally_hash
        ─▶ add_tally_results_batch* ─▶ finalize ─▶ claim_funds*
    or at any point before finalize:
        cancel ─▶ withdraw_contribution*

``finalize`` and ``cancel`` are mutually exclusive and both terminal.

Locks
-----
``_lock``         round-wide state (contributions, results, finalize/cancel)
``_status_lock``  contributor flags touched from inside the engine's sign-up
``_claim_locks``  one lock per vote option index; claims for different
                  indices proceed concurrently

Ordering is always round ``_lock`` → engine lock → ``_status_lock``.
"""

from __future__ import annotations

import logging
import time
from threading import Lock, RLock
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .. import metrics
from ..config import MACIConfig
from ..crypto.field import require_field_element
from ..domain import ContributorStatus, Message, RecipientStatus
from ..engine.processor import MACI, PubKeyLike, as_pub_key
from ..errors import (
    CapacityExceeded,
    CommitmentMismatch,
    InvariantViolation,
    OrderViolation,
    OutOfRangeInput,
    PhaseViolation,
    Unauthorized,
)
from ..events import (
    Contribution,
    ContributionWithdrawn,
    EventLog,
    FundsClaimed,
    RoundCancelled,
    RoundFinalized,
    TallyPublished,
)
from ..interfaces import Clock, RecipientResolver, TokenLedger, UserRegistry
from .allocation import calc_alpha, calc_voice_credit_factor, get_allocated_amount, matching_pool_size

log = logging.getLogger(__name__)

VOTE_OPTION_TREE_ARITY = 5


class FundingRound:
    def __init__(
        self,
        *,
        owner: str,
        token: TokenLedger,
        user_registry: UserRegistry,
        recipient_registry: RecipientResolver,
        coordinator: str,
        coordinator_pub_key: PubKeyLike,
        config: Optional[MACIConfig] = None,
        address: str = "funding-round",
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.config = config or MACIConfig()
        self.owner = owner
        self.address = address
        self.token = token
        self.user_registry = user_registry
        self.recipient_registry = recipient_registry
        self.coordinator = coordinator
        self.coordinator_pub_key = as_pub_key(coordinator_pub_key)
        self._clock: Clock = clock or time.time
        self.events = events if events is not None else EventLog()

        funding = self.config.funding
        self.max_voice_credits = funding.max_voice_credits
        self.voice_credit_factor = calc_voice_credit_factor(
            token.decimals, funding.max_contribution_tokens, funding.max_voice_credits
        )
        self.start_time = float(self._clock())

        self.maci: Optional[MACI] = None
        self.contributors: Dict[str, ContributorStatus] = {}
        self.recipients: Dict[int, RecipientStatus] = {}
        self.contributor_count = 0
        self.tally_hash = ""

        self.total_spent = 0
        self.total_votes_squares = 0
        self.total_tally_results = 0
        self.matching_pool_size = 0
        self.alpha = 0
        self.is_finalized = False
        self.is_cancelled = False

        self._lock = RLock()
        self._status_lock = Lock()
        self._claim_locks: Dict[int, Lock] = {}
        self._claim_locks_guard = Lock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized("caller is not the round owner", caller=caller, role="owner")

    def _only_coordinator(self, caller: str) -> None:
        if caller != self.coordinator:
            raise Unauthorized("caller is not the coordinator", caller=caller, role="coordinator")

    def _engine(self) -> MACI:
        if self.maci is None:
            raise PhaseViolation("MACI engine is not wired to the round yet")
        return self.maci

    def _require_open(self) -> None:
        if self.is_finalized:
            raise PhaseViolation("round is finalized", phase="finalized")
        if self.is_cancelled:
            raise PhaseViolation("round is cancelled", phase="cancelled")

    def _claim_lock(self, index: int) -> Lock:
        with self._claim_locks_guard:
            lk = self._claim_locks.get(index)
            if lk is None:
                lk = self._claim_locks[index] = Lock()
            return lk

    def _recipient(self, index: int) -> RecipientStatus:
        status = self.recipients.get(index)
        if status is None:
            status = self.recipients[index] = RecipientStatus()
        return status

    def _now(self) -> float:
        return float(self._clock())

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def set_maci(self, caller: str, engine: MACI) -> None:
        self._only_owner(caller)
        with self._lock:
            if self.maci is not None:
                raise OrderViolation("MACI engine already set")
            self.maci = engine
        log.info("round %s wired to MACI engine", self.address)

    # ------------------------------------------------------------------
    # Contributions & sign-up callbacks
    # ------------------------------------------------------------------

    def contribute(self, caller: str, pub_key: PubKeyLike, amount: int) -> int:
        """
        Pull `amount` tokens from `caller` and sign them up with
        ``amount // voice_credit_factor`` voice credits. Returns the state index.
        """
        pk = as_pub_key(pub_key)
        with self._lock:
            engine = self._engine()
            self._require_open()
            if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
                raise OutOfRangeInput("contribution amount must be positive", name="amount")
            if amount > self.max_voice_credits * self.voice_credit_factor:
                raise OutOfRangeInput("contribution amount is too large", name="amount", value=amount)
            if caller in self.contributors:
                raise OrderViolation("already contributed", details={"contributor": caller})
            if self.contributor_count >= engine.max_users:
                raise CapacityExceeded("reached the maximum number of contributors", limit=engine.max_users)
            pk.validate()

            voice_credits = amount // self.voice_credit_factor
            self.token.transfer_from(self.address, caller, self.address, amount)
            with self._status_lock:
                self.contributors[caller] = ContributorStatus(voice_credits=voice_credits)
                self.contributor_count += 1

            try:
                state_index = engine.sign_up(caller, pk, amount, amount)
            except Exception:
                with self._status_lock:
                    del self.contributors[caller]
                    self.contributor_count -= 1
                self.token.transfer(self.address, caller, amount)
                log.info("contribution from %s rolled back: sign-up failed", caller)
                raise

        metrics.record_contribution()
        self.events.emit(Contribution(ts=self._now(), contributor=caller, amount=amount, voice_credits=voice_credits))
        log.info("contribution %d from %s (%d voice credits)", amount, caller, voice_credits)
        return state_index

    def register(self, caller: str, data: Any) -> None:
        """Sign-up gate: verified user, has contributed, not registered yet."""
        if not self.user_registry.is_verified_user(caller):
            raise Unauthorized("user has not been verified", caller=caller)
        with self._status_lock:
            status = self.contributors.get(caller)
            if status is None:
                raise OrderViolation("user has not contributed", details={"user": caller})
            if status.is_registered:
                raise OrderViolation("user already registered", details={"user": caller})
            status.is_registered = True

    def get_voice_credits(self, caller: str, data: Any) -> int:
        """Credit source: the balance recorded at contribution time."""
        with self._status_lock:
            status = self.contributors.get(caller)
        if status is None:
            raise OrderViolation("user has not contributed", details={"user": caller})
        return status.voice_credits

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def submit_message_batch(self, caller: str, messages: Sequence[Message], enc_pub_keys: Sequence[PubKeyLike]) -> List[int]:
        """Publish `messages` in order; each is paired with its ephemeral key."""
        engine = self._engine()
        if len(messages) != len(enc_pub_keys):
            raise OutOfRangeInput(
                "messages and keys must have the same length",
                details={"messages": len(messages), "keys": len(enc_pub_keys)},
            )
        keys = [as_pub_key(k) for k in enc_pub_keys]
        for m, k in zip(messages, keys):
            m.validate()
            k.validate()
        if engine.num_messages + len(messages) > engine.max_messages:
            raise CapacityExceeded("message batch exceeds the message limit", limit=engine.max_messages)
        return [engine.publish_message(caller, m, k) for m, k in zip(messages, keys)]

    # ------------------------------------------------------------------
    # Tally
    # ------------------------------------------------------------------

    def publish_tally_hash(self, caller: str, tally_hash: str) -> None:
        self._only_coordinator(caller)
        with self._lock:
            if self.is_finalized:
                raise PhaseViolation("round is finalized", phase="finalized")
            if not tally_hash:
                raise OutOfRangeInput("tally hash is empty", name="tally_hash")
            self.tally_hash = tally_hash
        self.events.emit(TallyPublished(ts=self._now(), tally_hash=tally_hash))
        log.info("tally hash published: %s", tally_hash)

    def add_tally_results_batch(
        self,
        caller: str,
        vote_option_tree_depth: int,
        indices: Sequence[int],
        results: Sequence[int],
        proofs: Sequence[Sequence[Sequence[int]]],
        salt: int,
    ) -> None:
        """
        Reveal tally results for several vote options at once. Every entry
        is checked against the live results commitment before any is
        recorded.
        """
        self._only_coordinator(caller)
        with self._lock:
            engine = self._engine()
            self._require_open()
            if engine.has_untallied_state_leaves:
                raise PhaseViolation("votes have not been fully tallied", phase=engine.phase.value)
            if vote_option_tree_depth != engine.vote_option_tree_depth:
                raise OutOfRangeInput(
                    "vote option tree depth does not match the engine",
                    name="vote_option_tree_depth",
                    value=vote_option_tree_depth,
                )
            if not (len(indices) == len(results) == len(proofs)):
                raise OutOfRangeInput(
                    "indices, results and proofs must have the same length",
                    details={"indices": len(indices), "results": len(results), "proofs": len(proofs)},
                )
            require_field_element(salt, "salt")

            capacity = VOTE_OPTION_TREE_ARITY ** vote_option_tree_depth
            seen = set()
            for index, result, proof in zip(indices, results, proofs):
                if not 0 <= index < capacity:
                    raise OutOfRangeInput("vote option index out of range", name="index", value=index)
                if index in seen:
                    raise OrderViolation("duplicate vote option index in batch", details={"index": index})
                seen.add(index)
                if self.get_recipient_status(index).tally_verified:
                    raise OrderViolation("vote tally result is already verified", details={"index": index})
                require_field_element(result, "tally_result")
                if not engine.tally.verify_tally_result(vote_option_tree_depth, index, result, proof, salt):
                    raise CommitmentMismatch("incorrect tally result", details={"index": index})

            for index, result in zip(indices, results):
                status = self._recipient(index)
                status.tally_verified = True
                status.tally_result = result
                self.total_votes_squares += result * result
                self.total_tally_results += 1

        log.info("verified %d tally results (%d total)", len(indices), self.total_tally_results)

    def add_tally_result(
        self,
        caller: str,
        vote_option_tree_depth: int,
        index: int,
        result: int,
        proof: Sequence[Sequence[int]],
        salt: int,
    ) -> None:
        self.add_tally_results_batch(caller, vote_option_tree_depth, [index], [result], [proof], salt)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def finalize(self, caller: str, total_spent: int, total_spent_salt: int) -> int:
        """Fix alpha and the matching pool; returns alpha."""
        self._only_owner(caller)
        with self._lock:
            if self.is_finalized:
                raise OrderViolation("round already finalized")
            if self.is_cancelled:
                raise PhaseViolation("round has been cancelled", phase="cancelled")
            engine = self._engine()
            if not engine.is_after_voting_deadline():
                raise PhaseViolation("voting is not over", phase=engine.phase.value)
            if engine.has_unprocessed_messages or engine.has_untallied_state_leaves:
                raise PhaseViolation("votes have not been tallied", phase=engine.phase.value)
            if not self.tally_hash:
                raise PhaseViolation("tally hash has not been published")

            expected = VOTE_OPTION_TREE_ARITY ** engine.vote_option_tree_depth
            if self.total_tally_results != expected:
                raise InvariantViolation(
                    "incomplete tally results",
                    details={"verified": self.total_tally_results, "expected": expected},
                )
            if engine.total_votes <= 0:
                raise InvariantViolation("no votes; the round must be cancelled")
            if not engine.tally.verify_spent_voice_credits(total_spent, total_spent_salt):
                raise CommitmentMismatch("incorrect total amount of spent voice credits")

            budget = self.token.balance_of(self.address)
            pool = matching_pool_size(budget, total_spent, self.voice_credit_factor)
            alpha = calc_alpha(budget, self.total_votes_squares, total_spent, self.voice_credit_factor)

            engine.seal()
            self.total_spent = total_spent
            self.matching_pool_size = pool
            self.alpha = alpha
            self.is_finalized = True

        self.events.emit(
            RoundFinalized(ts=self._now(), total_spent=total_spent, alpha=alpha, matching_pool_size=pool)
        )
        log.info("round finalized: spent=%d pool=%d alpha=%d", total_spent, pool, alpha)
        return alpha

    def cancel(self, caller: str) -> None:
        self._only_owner(caller)
        with self._lock:
            if self.is_finalized:
                raise PhaseViolation("round already finalized", phase="finalized")
            if self.is_cancelled:
                raise OrderViolation("round already cancelled")
            self.is_cancelled = True
        self.events.emit(RoundCancelled(ts=self._now()))
        log.info("round %s cancelled", self.address)

    def get_allocated_amount(self, tally_result: int, spent: int) -> int:
        return get_allocated_amount(self.alpha, self.voice_credit_factor, tally_result, spent)

    def claim_funds(
        self,
        caller: str,
        vote_option_index: int,
        spent: int,
        spent_proof: Sequence[Sequence[int]],
        spent_salt: int,
    ) -> int:
        """Pay the allocation for one vote option; returns the amount paid."""
        if not self.is_finalized:
            raise PhaseViolation("round not finalized")
        if self.is_cancelled:
            raise PhaseViolation("round has been cancelled", phase="cancelled")
        engine = self._engine()
        capacity = VOTE_OPTION_TREE_ARITY ** engine.vote_option_tree_depth
        if isinstance(vote_option_index, bool) or not isinstance(vote_option_index, int) or not (
            0 <= vote_option_index < capacity
        ):
            raise OutOfRangeInput("vote option index out of range", name="index", value=vote_option_index)
        if not self.get_recipient_status(vote_option_index).tally_verified:
            raise OrderViolation("tally result not verified", details={"index": vote_option_index})

        with self._claim_lock(vote_option_index):
            status = self.recipients[vote_option_index]
            if status.funds_claimed:
                raise OrderViolation("funds already claimed", details={"index": vote_option_index})
            if not engine.tally.verify_per_vo_spent_voice_credits(
                engine.vote_option_tree_depth, vote_option_index, spent, spent_proof, spent_salt
            ):
                raise CommitmentMismatch("incorrect amount of spent voice credits", details={"index": vote_option_index})

            resolved = self.recipient_registry.get_recipient_address(
                vote_option_index, self.start_time, engine.voting_deadline
            )
            recipient = resolved or self.owner
            amount = self.get_allocated_amount(status.tally_result, spent)

            status.funds_claimed = True
            try:
                self.token.transfer(self.address, recipient, amount)
            except Exception:
                status.funds_claimed = False
                raise

        metrics.record_claim(amount, to_matching_pool=resolved is None)
        self.events.emit(
            FundsClaimed(ts=self._now(), vote_option_index=vote_option_index, recipient=recipient, amount=amount)
        )
        log.info("vote option %d claimed %d → %s", vote_option_index, amount, recipient)
        return amount

    def withdraw_contribution(self, caller: str) -> int:
        """Refund a contribution after cancellation; zero when nothing is left."""
        if not self.is_cancelled:
            raise PhaseViolation("round not cancelled")
        with self._status_lock:
            status = self.contributors.get(caller)
            if status is None or status.voice_credits == 0:
                return 0
            credits = status.voice_credits
            status.voice_credits = 0
        amount = credits * self.voice_credit_factor
        try:
            self.token.transfer(self.address, caller, amount)
        except Exception:
            with self._status_lock:
                status.voice_credits = credits
            raise
        self.events.emit(ContributionWithdrawn(ts=self._now(), contributor=caller, amount=amount))
        log.info("contribution withdrawn: %d → %s", amount, caller)
        return amount

    def withdraw_contributions(self, addresses: Sequence[str]) -> List[int]:
        return [self.withdraw_contribution(a) for a in addresses]

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_contributor(self, address: str) -> Optional[ContributorStatus]:
        return self.contributors.get(address)

    def get_recipient_status(self, index: int) -> RecipientStatus:
        return self.recipients.get(index) or RecipientStatus()

    def status(self) -> Mapping[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "coordinator": self.coordinator,
            "coordinator_pub_key": self.coordinator_pub_key.to_dict(),
            "voice_credit_factor": self.voice_credit_factor,
            "contributor_count": self.contributor_count,
            "tally_hash": self.tally_hash,
            "total_spent": self.total_spent,
            "total_votes_squares": self.total_votes_squares,
            "total_tally_results": self.total_tally_results,
            "matching_pool_size": self.matching_pool_size,
            "alpha": self.alpha,
            "is_finalized": self.is_finalized,
            "is_cancelled": self.is_cancelled,
            "maci": self.maci.summary() if self.maci is not None else None,
        }


__all__ = ["FundingRound"]
