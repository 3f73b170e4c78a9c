"""
MACI / funding round events.

Emitted into an in-process, append-only `EventLog` so RPC layers, indexers
and tests can follow the round without reaching into engine internals. All
events are frozen dataclasses with JSON-friendly `to_dict()`.

Timestamps are UNIX seconds taken from the emitter's clock.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar


class EventType(str, Enum):
    SIGN_UP = "SignUp"
    PUBLISH_MESSAGE = "PublishMessage"
    BATCH_PROCESSED = "BatchProcessed"
    TALLY_BATCH_PROVED = "TallyBatchProved"
    COORDINATOR_RESET = "CoordinatorReset"
    CONTRIBUTION = "Contribution"
    TALLY_PUBLISHED = "TallyPublished"
    ROUND_FINALIZED = "RoundFinalized"
    ROUND_CANCELLED = "RoundCancelled"
    FUNDS_CLAIMED = "FundsClaimed"
    CONTRIBUTION_WITHDRAWN = "ContributionWithdrawn"


@dataclass(frozen=True)
class Event:
    ts: float

    etype = EventType.SIGN_UP  # overridden per subclass

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["type"] = self.etype.value
        return d


@dataclass(frozen=True)
class SignUp(Event):
    state_index: int
    pub_key_x: str
    pub_key_y: str
    voice_credit_balance: int
    etype = EventType.SIGN_UP


@dataclass(frozen=True)
class PublishMessage(Event):
    message_index: int
    message_hash: str
    etype = EventType.PUBLISH_MESSAGE


@dataclass(frozen=True)
class BatchProcessed(Event):
    batch_start_index: int
    new_state_root: str
    etype = EventType.BATCH_PROCESSED


@dataclass(frozen=True)
class TallyBatchProved(Event):
    batch_number: int
    total_votes: int
    etype = EventType.TALLY_BATCH_PROVED


@dataclass(frozen=True)
class CoordinatorReset(Event):
    state_root: str
    etype = EventType.COORDINATOR_RESET


@dataclass(frozen=True)
class Contribution(Event):
    contributor: str
    amount: int
    voice_credits: int
    etype = EventType.CONTRIBUTION


@dataclass(frozen=True)
class TallyPublished(Event):
    tally_hash: str
    etype = EventType.TALLY_PUBLISHED


@dataclass(frozen=True)
class RoundFinalized(Event):
    total_spent: int
    alpha: int
    matching_pool_size: int
    etype = EventType.ROUND_FINALIZED


@dataclass(frozen=True)
class RoundCancelled(Event):
    etype = EventType.ROUND_CANCELLED


@dataclass(frozen=True)
class FundsClaimed(Event):
    vote_option_index: int
    recipient: str
    amount: int
    etype = EventType.FUNDS_CLAIMED


@dataclass(frozen=True)
class ContributionWithdrawn(Event):
    contributor: str
    amount: int
    etype = EventType.CONTRIBUTION_WITHDRAWN


E = TypeVar("E", bound=Event)


class EventLog:
    """Append-only, thread-safe event sink."""

    def __init__(self) -> None:
        self._events: List[Event] = []
        self._lock = Lock()

    def emit(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    def __iter__(self) -> Iterator[Event]:
        with self._lock:
            return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def of_type(self, cls: Type[E]) -> List[E]:
        return [e for e in self if isinstance(e, cls)]

    def last(self, cls: Optional[Type[E]] = None) -> Optional[Event]:
        items = self.of_type(cls) if cls is not None else list(self)
        return items[-1] if items else None


__all__ = [
    "EventType",
    "Event",
    "SignUp",
    "PublishMessage",
    "BatchProcessed",
    "TallyBatchProved",
    "CoordinatorReset",
    "Contribution",
    "TallyPublished",
    "RoundFinalized",
    "RoundCancelled",
    "FundsClaimed",
    "ContributionWithdrawn",
    "EventLog",
]
