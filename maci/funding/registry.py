"""
Reference user and recipient registries.

SimpleUserRegistry
    Owner-curated set of verified addresses.

SimpleRecipientRegistry
    Owner-curated list of recipients. Each recipient gets the next free vote
    option index when added; the index is never reused. An address resolves
    for a round window ``[start, end]`` if it was added before ``end`` and
    was not removed before ``start``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import RLock
from typing import Dict, List, Optional, Set

from ..errors import CapacityExceeded, OrderViolation, Unauthorized
from ..interfaces import Clock

log = logging.getLogger(__name__)


class SimpleUserRegistry:
    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._verified: Set[str] = set()
        self._lock = RLock()

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized("only the registry owner may change verified users", caller=caller, role="owner")

    def add_user(self, caller: str, user: str) -> None:
        self._only_owner(caller)
        with self._lock:
            if user in self._verified:
                raise OrderViolation("user is already verified", details={"user": user})
            self._verified.add(user)
        log.info("user verified: %s", user)

    def remove_user(self, caller: str, user: str) -> None:
        self._only_owner(caller)
        with self._lock:
            if user not in self._verified:
                raise OrderViolation("user is not in the registry", details={"user": user})
            self._verified.discard(user)
        log.info("user removed: %s", user)

    def is_verified_user(self, user: str) -> bool:
        return user in self._verified


@dataclass
class _Recipient:
    address: str
    index: int
    added_at: float
    removed_at: Optional[float] = None


class SimpleRecipientRegistry:
    def __init__(self, owner: str, max_recipients: int, *, clock: Optional[Clock] = None) -> None:
        if max_recipients <= 0:
            raise ValueError("max_recipients must be positive")
        self.owner = owner
        self.max_recipients = max_recipients
        self._clock: Clock = clock or time.time
        self._by_id: Dict[str, _Recipient] = {}
        self._by_index: Dict[int, List[_Recipient]] = {}
        self._next_index = 0
        self._lock = RLock()

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized("only the registry owner may change recipients", caller=caller, role="owner")

    def add_recipient(self, caller: str, address: str, *, recipient_id: Optional[str] = None) -> int:
        """Register `address`; returns its vote option index."""
        self._only_owner(caller)
        rid = recipient_id or address
        with self._lock:
            if rid in self._by_id:
                raise OrderViolation("recipient already registered", details={"recipient": rid})
            if self._next_index >= self.max_recipients:
                raise CapacityExceeded("recipient limit reached", limit=self.max_recipients)
            rec = _Recipient(address=address, index=self._next_index, added_at=float(self._clock()))
            self._by_id[rid] = rec
            self._by_index.setdefault(rec.index, []).append(rec)
            self._next_index += 1
        log.info("recipient %s added at vote option %d", address, rec.index)
        return rec.index

    def remove_recipient(self, caller: str, recipient_id: str) -> None:
        self._only_owner(caller)
        with self._lock:
            rec = self._by_id.get(recipient_id)
            if rec is None or rec.removed_at is not None:
                raise OrderViolation("recipient is not registered", details={"recipient": recipient_id})
            rec.removed_at = float(self._clock())
        log.info("recipient %s removed from vote option %d", rec.address, rec.index)

    def get_recipient_address(self, index: int, start_time: float, end_time: float) -> Optional[str]:
        for rec in reversed(self._by_index.get(index, [])):
            if rec.added_at > end_time:
                continue
            if rec.removed_at is not None and rec.removed_at <= start_time:
                continue
            return rec.address
        return None

    def __len__(self) -> int:
        return self._next_index


__all__ = ["SimpleUserRegistry", "SimpleRecipientRegistry"]
