from __future__ import annotations

import pytest

from maci.crypto.hasher import commit
from maci.domain import PubKey
from maci.engine import TallyEngine
from maci.errors import OrderViolation, OutOfRangeInput, PhaseViolation, ProofRejected
from maci.events import TallyBatchProved
from maci.trees import MerkleTree, empty_root
from maci.verifier import RecordingVerifier

from .conftest import COORDINATOR


EMPTY_VO_ROOT = empty_root(1, 0, 5)
KEYS = [PubKey(100 + i, 200 + i) for i in range(4)]


def processed(kit, sign_ups: int):
    e = kit.engine
    for i in range(sign_ups):
        e.sign_up(f"0xu{i}", PubKey(i + 1, i + 1))
    kit.to_processing()
    e.batch_process_message(777, KEYS, proof=None)
    return e


def test_empty_commitments():
    t = TallyEngine(verifier=RecordingVerifier(), tally_batch_size=4, empty_vote_option_tree_root=EMPTY_VO_ROOT)
    assert t.current_results_commitment == commit(EMPTY_VO_ROOT, 0)
    assert t.current_spent_voice_credits_commitment == commit(0, 0)
    assert t.current_per_vo_spent_voice_credits_commitment == commit(EMPTY_VO_ROOT, 0)
    assert t.current_batch_number == 0
    assert t.total_votes == 0


@pytest.mark.parametrize("leaves,expected", [(1, 1), (4, 1), (5, 2), (8, 2), (9, 3)])
def test_total_batches_is_ceiling(leaves, expected):
    t = TallyEngine(verifier=RecordingVerifier(), tally_batch_size=4, empty_vote_option_tree_root=EMPTY_VO_ROOT)
    assert t.total_batches(leaves) == expected


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        TallyEngine(verifier=RecordingVerifier(), tally_batch_size=0, empty_vote_option_tree_root=EMPTY_VO_ROOT)


def test_tally_public_inputs_and_commit(engine_kit):
    e = processed(engine_kit, 1)
    t = e.tally
    old = (
        t.current_results_commitment,
        t.current_spent_voice_credits_commitment,
        t.current_per_vo_spent_voice_credits_commitment,
    )

    assert e.prove_vote_tally_batch(888, 11, 12, 13, 30, proof="tp") == 0
    inputs = engine_kit.tally_verifier.last_inputs
    assert list(inputs) == [11, 12, 13, 777, 0, 888, *old, 30]

    assert t.current_results_commitment == 11
    assert t.current_spent_voice_credits_commitment == 12
    assert t.current_per_vo_spent_voice_credits_commitment == 13
    assert e.total_votes == 30
    assert not e.has_untallied_state_leaves
    assert engine_kit.events.last(TallyBatchProved).batch_number == 0

    with pytest.raises(OrderViolation):
        e.prove_vote_tally_batch(888, 1, 2, 3, 30, proof=None)


def test_batches_are_strictly_sequential(engine_kit):
    # 5 sign-ups + blank leaf = 6 leaves → two batches of 4.
    e = processed(engine_kit, 5)
    assert e.tally.total_batches(e.num_state_leaves) == 2
    assert e.prove_vote_tally_batch(1, 1, 1, 1, 5, proof=None) == 0
    assert e.has_untallied_state_leaves
    assert e.prove_vote_tally_batch(2, 2, 2, 2, 9, proof=None) == 1
    assert engine_kit.tally_verifier.last_inputs[4] == 1
    assert not e.has_untallied_state_leaves
    assert e.total_votes == 9


def test_rejected_tally_proof_keeps_commitments(engine_kit):
    e = processed(engine_kit, 1)
    before = e.tally.summary()
    engine_kit.tally_verifier.queue(False)
    with pytest.raises(ProofRejected):
        e.prove_vote_tally_batch(1, 2, 3, 4, 5, proof="bad")
    assert e.tally.summary() == before
    assert e.has_untallied_state_leaves


def test_tally_preconditions(engine_kit, make_engine):
    e = engine_kit.engine
    engine_kit.to_processing()
    with pytest.raises(PhaseViolation):
        e.prove_vote_tally_batch(1, 2, 3, 4, 5, proof=None)

    kit = make_engine()
    e2 = kit.engine
    e2.sign_up("0xa", PubKey(1, 2))
    kit.to_processing()
    with pytest.raises(PhaseViolation):
        e2.prove_vote_tally_batch(1, 2, 3, 4, 5, proof=None)

    e2.batch_process_message(9, KEYS, proof=None)
    e2.seal()
    with pytest.raises(PhaseViolation):
        e2.prove_vote_tally_batch(1, 2, 3, 4, 5, proof=None)


def test_tally_inputs_out_of_field(engine_kit):
    e = processed(engine_kit, 1)
    with pytest.raises(OutOfRangeInput):
        e.prove_vote_tally_batch(1, 2, 3, 4, -1, proof=None)
    assert e.tally.current_batch_number == 0


def test_reset_clears_tally_progress(engine_kit):
    e = processed(engine_kit, 1)
    e.prove_vote_tally_batch(1, 2, 3, 4, 5, proof=None)
    e.coordinator_reset(COORDINATOR)
    assert e.tally.current_batch_number == 0
    assert e.total_votes == 0
    assert e.tally.current_results_commitment == e.tally.empty_results_commitment


def test_reveal_checks(engine_kit):
    e = processed(engine_kit, 1)
    results = MerkleTree(1, 0, 5, leaves=[3, 0, 4])
    per_vo = MerkleTree(1, 0, 5, leaves=[9, 0, 16])
    e.prove_vote_tally_batch(
        1,
        commit(results.root, 55),
        commit(25, 66),
        commit(per_vo.root, 77),
        7,
        proof=None,
    )
    t = e.tally
    assert t.verify_tally_result(1, 2, 4, results.path(2), 55)
    assert not t.verify_tally_result(1, 2, 5, results.path(2), 55)
    assert not t.verify_tally_result(1, 2, 4, results.path(2), 56)
    assert t.verify_per_vo_spent_voice_credits(1, 0, 9, per_vo.path(0), 77)
    assert not t.verify_per_vo_spent_voice_credits(1, 0, 9, per_vo.path(0), 55)
    assert t.verify_spent_voice_credits(25, 66)
    assert not t.verify_spent_voice_credits(24, 66)
