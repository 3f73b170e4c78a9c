"""
State-transition engine (MACI core).

Owns the state tree and the message tree, two deadlines and the proof-gated
batch transition that moves ``state_root`` forward without ever looking at
an individual message.

Lifecycle
---------
    SIGN_UP ──(sign-up deadline)──▶ VOTING ──(voting deadline)──▶ PROCESSING
        ──(message batch 0 accepted)──▶ TALLYING ──(last tally batch)──▶ DONE

* Sign-ups are inserted in arrival order under the engine lock; index 0 of
  the state tree holds the blank leaf, so the first voter gets index 1.
* Message batches are consumed back to front: the pointer always starts at
  the batch containing the newest message and steps down by
  ``message_batch_size``; accepting batch 0 clears
  ``has_unprocessed_messages``.
* ``coordinator_reset`` only rewinds the working sub-state (``state_root``,
  the batch pointer, tally progress). Trees and counters are never touched,
  and once the round is sealed by settlement the reset is refused.

Debug mode: a zero sign-up (or voting) duration removes that deadline, but
only the coordinator address may then sign up (or publish).
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .. import metrics
from ..config import MACIConfig
from ..crypto.field import NOTHING_UP_MY_SLEEVE, require_field_element, require_field_elements
from ..domain import Message, Proof, PubKey, StateLeaf
from ..errors import (
    CapacityExceeded,
    MACIError,
    OrderViolation,
    OutOfRangeInput,
    PhaseViolation,
    ProofRejected,
    SignUpRejected,
    Unauthorized,
)
from ..events import BatchProcessed, CoordinatorReset, EventLog, PublishMessage, SignUp, TallyBatchProved
from ..interfaces import Clock, CreditSource, EligibilityGate, ProofVerifier
from ..trees.accumulator import binary_tree, empty_root
from .tally import VOTE_OPTION_TREE_ARITY, TallyEngine

log = logging.getLogger(__name__)

# Upper bound on an initial voice credit balance (circuit range).
MAX_VOICE_CREDIT_BALANCE = 2 ** 32

PubKeyLike = Union[PubKey, Tuple[int, int], Sequence[int]]


class Phase(str, Enum):
    SIGN_UP = "sign_up"
    VOTING = "voting"
    PROCESSING = "processing"
    TALLYING = "tallying"
    DONE = "done"


def as_pub_key(k: PubKeyLike) -> PubKey:
    if isinstance(k, PubKey):
        return k
    items = list(k)
    if len(items) != 2:
        raise OutOfRangeInput("public key must have exactly two coordinates", details={"got": len(items)})
    x, y = (require_field_element(v, name) for v, name in zip(items, ("pub_key.x", "pub_key.y")))
    return PubKey(x, y)


class MACI:
    """
    Usage:
        engine = MACI(
            config=cfg,
            gate=round, credit_source=round,
            batch_ust_verifier=v1, vote_tally_verifier=v2,
            coordinator_pub_key=PubKey(x, y), coordinator_address="0xcoord",
        )
        idx = engine.sign_up("0xalice", PubKey(...), gate_data, credit_data)
        engine.publish_message("0xalice", Message(...), PubKey(...))
        engine.batch_process_message(new_root, keys, proof)
        engine.prove_vote_tally_batch(...)
    """

    def __init__(
        self,
        *,
        config: Optional[MACIConfig] = None,
        gate: EligibilityGate,
        credit_source: CreditSource,
        batch_ust_verifier: ProofVerifier,
        vote_tally_verifier: ProofVerifier,
        coordinator_pub_key: PubKeyLike,
        coordinator_address: str,
        clock: Optional[Clock] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.config = config or MACIConfig()
        self.config.validate()

        self._gate = gate
        self._credit_source = credit_source
        self._batch_ust_verifier = batch_ust_verifier
        self._clock: Clock = clock or time.time
        self.events = events if events is not None else EventLog()

        self.coordinator_pub_key = as_pub_key(coordinator_pub_key)
        self.coordinator_pub_key.validate()
        self.coordinator_address = coordinator_address

        depths = self.config.depths
        self.state_tree_depth = depths.state
        self.message_tree_depth = depths.message
        self.vote_option_tree_depth = depths.vote_option
        self.message_batch_size = self.config.batches.message
        self.tally_batch_size = self.config.batches.tally
        self.max_users = self.config.max_values.users
        self.max_messages = self.config.max_values.messages
        self.max_vote_options = self.config.max_values.vote_options

        self.sign_up_duration = self.config.durations.sign_up_seconds
        self.voting_duration = self.config.durations.voting_seconds
        self.sign_up_timestamp = float(self._clock())

        self.empty_vote_option_tree_root = empty_root(depths.vote_option, 0, VOTE_OPTION_TREE_ARITY)
        self.state_tree = binary_tree(depths.state, NOTHING_UP_MY_SLEEVE)
        self.message_tree = binary_tree(depths.message, NOTHING_UP_MY_SLEEVE)
        self.state_tree.insert_leaf(StateLeaf.blank(self.empty_vote_option_tree_root).hash())

        self.tally = TallyEngine(
            verifier=vote_tally_verifier,
            tally_batch_size=self.tally_batch_size,
            empty_vote_option_tree_root=self.empty_vote_option_tree_root,
        )

        self._lock = RLock()
        self.num_sign_ups = 0
        self.num_messages = 0
        self.state_root = self.state_tree.root
        self.state_root_before_processing = self.state_root
        self.current_message_batch_index = 0
        self.has_unprocessed_messages = True
        self._processing_started = False
        self._sealed = False

        log.info(
            "MACI created: depths(state=%d, message=%d, vote_option=%d) batches(message=%d, tally=%d)",
            depths.state,
            depths.message,
            depths.vote_option,
            self.message_batch_size,
            self.tally_batch_size,
        )

    # ------------------------------------------------------------------
    # Deadlines & phase
    # ------------------------------------------------------------------

    @property
    def sign_up_deadline(self) -> float:
        return self.sign_up_timestamp + self.sign_up_duration

    @property
    def voting_deadline(self) -> float:
        return self.sign_up_deadline + self.voting_duration

    def now(self) -> float:
        return float(self._clock())

    def is_coordinator(self, caller: str) -> bool:
        return caller == self.coordinator_address

    def _require_before(self, caller: str, deadline: float, duration: int, what: str) -> None:
        if duration == 0:
            if not self.is_coordinator(caller):
                raise PhaseViolation(f"{what} is restricted to the coordinator in debug mode", phase=self.phase.value)
            return
        if self.now() >= deadline:
            raise PhaseViolation(f"{what} deadline has passed", phase=self.phase.value)

    def _require_not_processing(self, what: str) -> None:
        # Only reachable in debug mode; otherwise the deadlines already forbid it.
        if self._processing_started or not self.has_unprocessed_messages:
            raise PhaseViolation(f"{what} is closed once message processing has begun", phase=self.phase.value)

    def is_after_voting_deadline(self) -> bool:
        return self.voting_duration == 0 or self.now() >= self.voting_deadline

    def _require_after_voting(self) -> None:
        if not self.is_after_voting_deadline():
            raise PhaseViolation("voting period has not ended", phase=self.phase.value)

    @property
    def phase(self) -> Phase:
        now = self.now()
        if self.is_after_voting_deadline():
            if self.has_unprocessed_messages:
                return Phase.PROCESSING
            if not self._sealed and self.num_sign_ups > 0 and self.has_untallied_state_leaves:
                return Phase.TALLYING
            return Phase.DONE
        if self.sign_up_duration != 0 and now < self.sign_up_deadline:
            return Phase.SIGN_UP
        return Phase.VOTING

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def message_tree_root(self) -> int:
        return self.message_tree.root

    @property
    def message_tree_max_leaf_index(self) -> int:
        return self.message_tree.capacity - 1

    @property
    def vote_options_max_leaf_index(self) -> int:
        return self.max_vote_options - 1

    @property
    def num_state_leaves(self) -> int:
        """Sign-ups plus the blank leaf at index 0."""
        return self.num_sign_ups + 1

    @property
    def has_untallied_state_leaves(self) -> bool:
        return self.tally.has_untallied_state_leaves(self.num_state_leaves)

    @property
    def total_votes(self) -> int:
        return self.tally.total_votes

    @property
    def sealed(self) -> bool:
        return self._sealed

    def message_batch_window(self) -> Tuple[int, int]:
        """(batchStart, batchEnd) of the batch the next proof must cover."""
        start = self.current_message_batch_index
        if self.num_messages == 0:
            return start, 0
        return start, min(start + self.message_batch_size, self.num_messages) - 1

    def _initial_batch_index(self) -> int:
        if self.num_messages == 0:
            return 0
        return ((self.num_messages - 1) // self.message_batch_size) * self.message_batch_size

    def summary(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "sign_up_deadline": self.sign_up_deadline,
            "voting_deadline": self.voting_deadline,
            "num_sign_ups": self.num_sign_ups,
            "num_messages": self.num_messages,
            "state_root": str(self.state_root),
            "message_tree_root": str(self.message_tree_root),
            "has_unprocessed_messages": self.has_unprocessed_messages,
            "current_message_batch_index": self.current_message_batch_index,
            "has_untallied_state_leaves": self.has_untallied_state_leaves,
            "sealed": self._sealed,
            "tally": self.tally.summary(),
        }

    # ------------------------------------------------------------------
    # Sign-up
    # ------------------------------------------------------------------

    def sign_up(self, caller: str, pub_key: PubKeyLike, gate_data: Any = None, credit_data: Any = None) -> int:
        """Register `pub_key` and return its state tree index (1-based)."""
        pk = as_pub_key(pub_key)
        with self._lock:
            self._require_before(caller, self.sign_up_deadline, self.sign_up_duration, "sign-up")
            self._require_not_processing("sign-up")
            if self.num_sign_ups >= self.max_users:
                raise CapacityExceeded("maximum number of sign-ups reached", limit=self.max_users)
            pk.validate()

            try:
                credits = self._credit_source.get_voice_credits(caller, credit_data)
            except MACIError as e:
                raise SignUpRejected("credit source refused the sign-up", details={"cause": e.to_dict()}) from e
            except Exception as e:  # noqa: BLE001 - fail closed on any collaborator error
                raise SignUpRejected("credit source failed", details={"cause": repr(e)}) from e
            if isinstance(credits, bool) or not isinstance(credits, int):
                raise SignUpRejected("credit source returned a non-integer balance", details={"got": repr(credits)})
            if credits < 0 or credits > MAX_VOICE_CREDIT_BALANCE:
                raise OutOfRangeInput(
                    "initial voice credit balance out of range", name="voice_credits", value=credits
                )
            if self.state_tree.is_full():
                raise CapacityExceeded("state tree is full", limit=self.state_tree.capacity)

            try:
                self._gate.register(caller, gate_data)
            except MACIError as e:
                raise SignUpRejected("sign-up gate refused the caller", details={"cause": e.to_dict()}) from e
            except Exception as e:  # noqa: BLE001 - fail closed on any collaborator error
                raise SignUpRejected("sign-up gate failed", details={"cause": repr(e)}) from e

            leaf = StateLeaf(pk, self.empty_vote_option_tree_root, credits, 0)
            state_index = self.state_tree.insert_leaf(leaf.hash())
            self.num_sign_ups += 1
            self.state_root = self.state_tree.root

        metrics.record_sign_up(self.num_sign_ups)
        self.events.emit(
            SignUp(
                ts=self.now(),
                state_index=state_index,
                pub_key_x=str(pk.x),
                pub_key_y=str(pk.y),
                voice_credit_balance=credits,
            )
        )
        log.info("sign-up #%d (state index %d, credits=%d)", self.num_sign_ups, state_index, credits)
        return state_index

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def publish_message(self, caller: str, message: Message, enc_pub_key: PubKeyLike) -> int:
        key = as_pub_key(enc_pub_key)
        with self._lock:
            self._require_before(caller, self.voting_deadline, self.voting_duration, "voting")
            self._require_not_processing("voting")
            if self.num_messages >= self.max_messages:
                raise CapacityExceeded("maximum number of messages reached", limit=self.max_messages)
            key.validate()
            leaf = message.hash()

            index = self.message_tree.insert_leaf(leaf)
            self.num_messages += 1
            self.current_message_batch_index = (index // self.message_batch_size) * self.message_batch_size

        metrics.record_message(self.num_messages)
        self.events.emit(PublishMessage(ts=self.now(), message_index=index, message_hash=str(leaf)))
        log.debug("message #%d published (batch index %d)", index, self.current_message_batch_index)
        return index

    # ------------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------------

    def batch_process_public_inputs(self, new_state_root: int, ecdh_pub_keys: Sequence[PubKeyLike]) -> List[int]:
        """Public inputs of the batch update-state-tree proof for the current window."""
        keys = [as_pub_key(k) for k in ecdh_pub_keys]
        if len(keys) != self.message_batch_size:
            raise OutOfRangeInput(
                f"expected exactly {self.message_batch_size} ECDH public keys",
                details={"got": len(keys)},
            )
        start, end = self.message_batch_window()
        inputs: List[int] = [
            new_state_root,
            self.coordinator_pub_key.x,
            self.coordinator_pub_key.y,
            self.vote_options_max_leaf_index,
            self.message_tree_root,
            start,
            end,
            self.num_sign_ups,
        ]
        for k in keys:
            inputs.extend(k.as_fields())
        return require_field_elements(inputs, "batch_ust_public_inputs")

    def batch_process_message(self, new_state_root: int, ecdh_pub_keys: Sequence[PubKeyLike], proof: Proof) -> int:
        """
        Verify one message batch and move `state_root` to `new_state_root`.
        Returns the batch start index that was consumed.
        """
        with self._lock:
            self._require_after_voting()
            if not self.has_unprocessed_messages:
                raise OrderViolation("no more messages left to process")
            if self.current_message_batch_index > self.message_tree_max_leaf_index:
                raise OrderViolation(
                    "message batch index beyond the message tree",
                    details={"index": self.current_message_batch_index},
                )

            inputs = self.batch_process_public_inputs(new_state_root, ecdh_pub_keys)
            with metrics.time_proof_verify("batch_ust"):
                ok = bool(self._batch_ust_verifier.verify(proof, inputs))
            start = self.current_message_batch_index
            if not ok:
                metrics.record_batch("message", "rejected")
                log.warning("message batch at %d rejected by verifier", start)
                raise ProofRejected("invalid batch update state tree proof", details={"batch_start_index": start})

            if not self._processing_started:
                self.state_root_before_processing = self.state_root
                self._processing_started = True
            self.state_root = new_state_root
            if start == 0:
                self.has_unprocessed_messages = False
            else:
                self.current_message_batch_index = start - self.message_batch_size

        metrics.record_batch("message", "accepted")
        self.events.emit(BatchProcessed(ts=self.now(), batch_start_index=start, new_state_root=str(new_state_root)))
        log.info("message batch at %d accepted", start)
        return start

    # ------------------------------------------------------------------
    # Tallying
    # ------------------------------------------------------------------

    def prove_vote_tally_batch(
        self,
        intermediate_state_root: int,
        new_results_commitment: int,
        new_spent_voice_credits_commitment: int,
        new_per_vo_spent_voice_credits_commitment: int,
        total_votes: int,
        proof: Proof,
    ) -> int:
        with self._lock:
            if self.num_sign_ups == 0:
                raise PhaseViolation("nothing to tally without sign-ups", phase=self.phase.value)
            if self.has_unprocessed_messages:
                raise PhaseViolation("messages must be processed before tallying", phase=self.phase.value)
            if self._sealed:
                raise PhaseViolation("round is finalized", phase=self.phase.value)

            batch = self.tally.prove_batch(
                state_root=require_field_element(self.state_root, "state_root"),
                num_state_leaves=self.num_state_leaves,
                intermediate_state_root=intermediate_state_root,
                new_results_commitment=new_results_commitment,
                new_spent_commitment=new_spent_voice_credits_commitment,
                new_per_vo_commitment=new_per_vo_spent_voice_credits_commitment,
                total_votes=total_votes,
                proof=proof,
            )

        self.events.emit(TallyBatchProved(ts=self.now(), batch_number=batch, total_votes=total_votes))
        return batch

    # ------------------------------------------------------------------
    # Administrative
    # ------------------------------------------------------------------

    def coordinator_reset(self, caller: str) -> None:
        """Rewind unverified processing and tally progress."""
        with self._lock:
            if not self.is_coordinator(caller):
                raise Unauthorized("only the coordinator may reset processing", caller=caller, role="coordinator")
            if self._sealed:
                raise PhaseViolation("round is finalized; reset refused", phase=self.phase.value)

            if self._processing_started:
                self.state_root = self.state_root_before_processing
            self.current_message_batch_index = self._initial_batch_index()
            self.has_unprocessed_messages = True
            self.tally.reset()

        metrics.record_reset()
        self.events.emit(CoordinatorReset(ts=self.now(), state_root=str(self.state_root)))
        log.warning("coordinator reset: state root rewound, batch index %d", self.current_message_batch_index)

    def seal(self) -> None:
        """Freeze tally progress; called by settlement when the round is finalized."""
        with self._lock:
            self._sealed = True
        log.info("engine sealed")


__all__ = ["MACI", "Phase", "MAX_VOICE_CREDIT_BALANCE", "as_pub_key"]
