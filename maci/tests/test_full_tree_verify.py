from __future__ import annotations

import pytest

from maci.crypto.hasher import commit, hash5, hash_left_right
from maci.errors import CapacityExceeded, OutOfRangeInput
from maci.trees import MerkleTree, binary_tree, verify_commitment, verify_leaf_commitment, verify_path


def test_paths_recompute_root_quinary():
    t = MerkleTree(2, 0, 5, leaves=[7, 0, 3, 11, 2, 9])
    for i in range(t.capacity):
        assert verify_path(2, i, t.leaf(i), t.path(i), 5) == t.root


def test_paths_recompute_root_binary():
    t = MerkleTree(3, 0, 2, leaves=[1, 2, 3])
    for i in range(8):
        path = t.path(i)
        assert all(len(level) == 1 for level in path)
        assert verify_path(3, i, t.leaf(i), path, 2) == t.root


def test_depth_one_layout():
    t = MerkleTree(1, 0, 5, leaves=[30, 0, 0, 0, 0])
    assert t.root == hash5([30, 0, 0, 0, 0])
    assert t.path(0) == [[0, 0, 0, 0]]
    assert t.path(2) == [[30, 0, 0, 0]]


def test_update_changes_root():
    t = MerkleTree(1, 0, 5, leaves=[1, 2])
    before = t.root
    t.update(1, 5)
    assert t.root != before
    assert t.root == hash5([1, 5, 0, 0, 0])
    with pytest.raises(OutOfRangeInput):
        t.update(3, 1)


def test_capacity():
    t = MerkleTree(1, 0, 2, leaves=[1, 2])
    with pytest.raises(CapacityExceeded):
        t.insert(3)
    with pytest.raises(OutOfRangeInput):
        t.path(2)


def test_matches_accumulator():
    acc = binary_tree(2, 4)
    full = MerkleTree(2, 4, 2)
    for v in (9, 8, 7):
        acc.insert_leaf(v)
        full.insert(v)
    assert acc.root == full.root


def test_wrong_leaf_or_index_gives_different_root():
    t = MerkleTree(1, 0, 5, leaves=[4, 5, 6])
    path = t.path(1)
    assert verify_path(1, 1, 5, path) == t.root
    assert verify_path(1, 1, 6, path) != t.root
    assert verify_path(1, 2, 5, path) != t.root


def test_verify_path_rejects_bad_shapes():
    t = MerkleTree(1, 0, 5, leaves=[1])
    path = t.path(0)
    with pytest.raises(OutOfRangeInput):
        verify_path(0, 0, 1, path)
    with pytest.raises(OutOfRangeInput):
        verify_path(1, 5, 1, path)
    with pytest.raises(OutOfRangeInput):
        verify_path(2, 0, 1, path)
    with pytest.raises(OutOfRangeInput):
        verify_path(1, 0, 1, [[0, 0, 0]])
    with pytest.raises(OutOfRangeInput):
        verify_path(1, 0, 1, [[0, 0, 0, -1]])


def test_commitments():
    t = MerkleTree(1, 0, 5, leaves=[30])
    c = commit(t.root, 123)
    assert verify_commitment(t.root, 123, c)
    assert not verify_commitment(t.root, 124, c)
    assert verify_leaf_commitment(1, 0, 30, t.path(0), 123, c)
    assert not verify_leaf_commitment(1, 0, 31, t.path(0), 123, c)


def test_binary_commitment_by_hand():
    t = MerkleTree(1, 0, 2, leaves=[3, 4])
    assert t.root == hash_left_right(3, 4)
    assert verify_leaf_commitment(1, 1, 4, [[3]], 9, commit(t.root, 9), arity=2)
