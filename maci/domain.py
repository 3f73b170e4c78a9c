"""
MACI data model.

- PubKey: a pair of field elements identifying a voter pseudonymously.
- Message: initialization vector + 10 field elements of encrypted command.
  Only its hash lands in the message tree.
- StateLeaf: one signed-up identity's voting state. Only its hash lands in
  the state tree; the struct itself lives with the coordinator.
- ContributorStatus / RecipientStatus: funding round bookkeeping.

This module is intentionally small and pure (no IO).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Sequence, Tuple

from .crypto.field import require_field_element, require_field_elements
from .crypto.hasher import hash_message, hash_state_leaf
from .errors import OutOfRangeInput

MESSAGE_DATA_LENGTH = 10

# Opaque proof object handed to the verifier as-is (e.g. Groth16 a/b/c).
Proof = Any
Address = str


@dataclass(frozen=True)
class PubKey:
    x: int
    y: int

    def validate(self) -> None:
        require_field_element(self.x, "pub_key.x")
        require_field_element(self.y, "pub_key.y")

    def as_fields(self) -> Tuple[int, int]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, str]:
        return {"x": str(self.x), "y": str(self.y)}

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "PubKey":
        return PubKey(x=int(d["x"]), y=int(d["y"]))


@dataclass(frozen=True)
class Message:
    """Encrypted command. Immutable once published."""
    iv: int
    data: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", tuple(self.data))

    def validate(self) -> None:
        if len(self.data) != MESSAGE_DATA_LENGTH:
            raise OutOfRangeInput(
                f"message data must have exactly {MESSAGE_DATA_LENGTH} elements",
                details={"got": len(self.data)},
            )
        require_field_element(self.iv, "message.iv")
        require_field_elements(self.data, "message.data")

    def as_fields(self) -> Tuple[int, ...]:
        return (self.iv, *self.data)

    def hash(self) -> int:
        self.validate()
        return hash_message(self)

    @staticmethod
    def from_fields(fields: Sequence[int]) -> "Message":
        return Message(iv=int(fields[0]), data=tuple(int(v) for v in fields[1:]))


@dataclass(frozen=True)
class StateLeaf:
    pub_key: PubKey
    vote_option_tree_root: int
    voice_credit_balance: int
    nonce: int = 0

    @staticmethod
    def blank(empty_vote_option_tree_root: int) -> "StateLeaf":
        """Leaf reserved at state index 0."""
        return StateLeaf(PubKey(0, 0), empty_vote_option_tree_root, 0, 0)

    def hash(self) -> int:
        return hash_state_leaf(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pub_key": self.pub_key.to_dict(),
            "vote_option_tree_root": str(self.vote_option_tree_root),
            "voice_credit_balance": self.voice_credit_balance,
            "nonce": self.nonce,
        }


@dataclass
class ContributorStatus:
    """Created on first contribution; `is_registered` flips once and never back."""
    voice_credits: int
    is_registered: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RecipientStatus:
    """`tally_verified` and `funds_claimed` are terminal flags."""
    funds_claimed: bool = False
    tally_verified: bool = False
    tally_result: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "MESSAGE_DATA_LENGTH",
    "Proof",
    "Address",
    "PubKey",
    "Message",
    "StateLeaf",
    "ContributorStatus",
    "RecipientStatus",
]
