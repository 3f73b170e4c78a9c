"""
Tally engine: proof-gated accumulation of three running commitments.

    results commitment       H(root of the tally-results quinary tree, salt)
    spent commitment         H(total spent voice credits, salt)
    per-option commitment    H(root of the per-option spent quinary tree, salt)

Each accepted batch proof replaces all three at once and bumps the batch
number by exactly one. Batches cover consecutive slices of the state tree
(`tally_batch_size` leaves each, starting at leaf 0) and are accepted in
strictly ascending order; the batch number is a public input so a proof for
any other slice cannot verify.

Empty commitments (before the first batch):

    results   = H(emptyVoteOptionTreeRoot, 0)
    spent     = H(0, 0)
    per-VO    = H(emptyVoteOptionTreeRoot, 0)

The `verify_*` methods are pure reads used at settlement time to accept a
revealed value.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from .. import metrics
from ..crypto.field import require_field_element, require_field_elements
from ..crypto.hasher import commit
from ..errors import OrderViolation, ProofRejected
from ..interfaces import ProofVerifier
from ..trees.verify import verify_commitment, verify_path

log = logging.getLogger(__name__)

VOTE_OPTION_TREE_ARITY = 5


class TallyEngine:
    def __init__(
        self,
        *,
        verifier: ProofVerifier,
        tally_batch_size: int,
        empty_vote_option_tree_root: int,
    ) -> None:
        if tally_batch_size <= 0:
            raise ValueError("tally_batch_size must be positive")
        self._verifier = verifier
        self.tally_batch_size = tally_batch_size
        self.empty_vote_option_tree_root = empty_vote_option_tree_root

        self.empty_results_commitment = commit(empty_vote_option_tree_root, 0)
        self.empty_spent_commitment = commit(0, 0)
        self.empty_per_vo_commitment = commit(empty_vote_option_tree_root, 0)

        self.reset()

    # --- state -----------------------------------------------------------

    def reset(self) -> None:
        """Back to the initial commitments (coordinator reset only)."""
        self.current_results_commitment = self.empty_results_commitment
        self.current_spent_voice_credits_commitment = self.empty_spent_commitment
        self.current_per_vo_spent_voice_credits_commitment = self.empty_per_vo_commitment
        self.current_batch_number = 0
        self.total_votes = 0

    def total_batches(self, num_state_leaves: int) -> int:
        """ceil(num_state_leaves / tally_batch_size)."""
        return -(-num_state_leaves // self.tally_batch_size)

    def has_untallied_state_leaves(self, num_state_leaves: int) -> bool:
        return self.current_batch_number < self.total_batches(num_state_leaves)

    # --- proof-gated transition -----------------------------------------

    def public_inputs(
        self,
        *,
        state_root: int,
        intermediate_state_root: int,
        new_results_commitment: int,
        new_spent_commitment: int,
        new_per_vo_commitment: int,
        total_votes: int,
    ) -> List[int]:
        return [
            new_results_commitment,
            new_spent_commitment,
            new_per_vo_commitment,
            state_root,
            self.current_batch_number,
            intermediate_state_root,
            self.current_results_commitment,
            self.current_spent_voice_credits_commitment,
            self.current_per_vo_spent_voice_credits_commitment,
            total_votes,
        ]

    def prove_batch(
        self,
        *,
        state_root: int,
        num_state_leaves: int,
        intermediate_state_root: int,
        new_results_commitment: int,
        new_spent_commitment: int,
        new_per_vo_commitment: int,
        total_votes: int,
        proof: Any,
    ) -> int:
        """
        Verify one tally batch and commit it. Returns the batch number that
        was accepted. Caller holds the engine lock.
        """
        if not self.has_untallied_state_leaves(num_state_leaves):
            raise OrderViolation(
                "all batches have already been tallied",
                details={"batch": self.current_batch_number, "total": self.total_batches(num_state_leaves)},
            )

        inputs = require_field_elements(
            self.public_inputs(
                state_root=state_root,
                intermediate_state_root=intermediate_state_root,
                new_results_commitment=new_results_commitment,
                new_spent_commitment=new_spent_commitment,
                new_per_vo_commitment=new_per_vo_commitment,
                total_votes=total_votes,
            ),
            "tally_public_inputs",
        )

        with metrics.time_proof_verify("tally"):
            ok = bool(self._verifier.verify(proof, inputs))
        if not ok:
            metrics.record_batch("tally", "rejected")
            log.warning("tally batch %d rejected by verifier", self.current_batch_number)
            raise ProofRejected("invalid vote tally proof", details={"batch": self.current_batch_number})

        batch = self.current_batch_number
        self.current_results_commitment = new_results_commitment
        self.current_spent_voice_credits_commitment = new_spent_commitment
        self.current_per_vo_spent_voice_credits_commitment = new_per_vo_commitment
        self.total_votes = total_votes
        self.current_batch_number = batch + 1
        metrics.record_batch("tally", "accepted")
        log.info("tally batch %d accepted (total_votes=%d)", batch, total_votes)
        return batch

    # --- reveal checks ---------------------------------------------------

    def verify_tally_result(self, depth: int, index: int, leaf: int, path: Sequence[Sequence[int]], salt: int) -> bool:
        root = verify_path(depth, index, leaf, path, VOTE_OPTION_TREE_ARITY)
        return verify_commitment(root, require_field_element(salt, "salt"), self.current_results_commitment)

    def verify_per_vo_spent_voice_credits(
        self, depth: int, index: int, leaf: int, path: Sequence[Sequence[int]], salt: int
    ) -> bool:
        root = verify_path(depth, index, leaf, path, VOTE_OPTION_TREE_ARITY)
        return verify_commitment(
            root, require_field_element(salt, "salt"), self.current_per_vo_spent_voice_credits_commitment
        )

    def verify_spent_voice_credits(self, spent: int, salt: int) -> bool:
        return verify_commitment(
            require_field_element(spent, "spent"),
            require_field_element(salt, "salt"),
            self.current_spent_voice_credits_commitment,
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "current_batch_number": self.current_batch_number,
            "total_votes": self.total_votes,
            "results_commitment": str(self.current_results_commitment),
            "spent_voice_credits_commitment": str(self.current_spent_voice_credits_commitment),
            "per_vo_spent_voice_credits_commitment": str(self.current_per_vo_spent_voice_credits_commitment),
        }


__all__ = ["TallyEngine", "VOTE_OPTION_TREE_ARITY"]
