"""
Proof verifier adapters.

The engine treats proof verification as an opaque service:

    verifier.verify(proof, public_inputs) -> bool

The adapters here wrap the common shapes such a service comes in:

- CallableVerifier     any `fn(proof, public_inputs) -> bool`
- EnvelopeVerifier     builds a snarkjs-style envelope
                       {"scheme": {...}, "proof": ..., "public": [...], "vk": ...}
                       and hands it to an envelope verification backend
- RecordingVerifier    test double: records every public-input vector and
                       answers from a scripted queue (default: accept)

Public inputs are always range-checked by the caller before reaching an
adapter; adapters only shape them.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Iterable, List, Mapping, Optional, Sequence, Tuple

log = logging.getLogger(__name__)

EnvelopeBackend = Callable[[Mapping[str, Any]], Any]


class CallableVerifier:
    def __init__(self, fn: Callable[[Any, Sequence[int]], bool], *, name: str = "callable") -> None:
        self._fn = fn
        self.name = name

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        return bool(self._fn(proof, list(public_inputs)))


class EnvelopeVerifier:
    """
    Route verification through an envelope backend.

    The backend may return a bool or any object with an ``ok`` attribute
    (e.g. a ``VerificationResult``); a backend exception counts as rejection
    and is logged, so a misbehaving verifier can never accept a batch.
    """

    def __init__(
        self,
        backend: EnvelopeBackend,
        vk: Mapping[str, Any],
        *,
        protocol: str = "groth16",
        curve: str = "bn128",
    ) -> None:
        self._backend = backend
        self._vk = dict(vk)
        self.protocol = protocol
        self.curve = curve

    def envelope(self, proof: Any, public_inputs: Sequence[int]) -> Mapping[str, Any]:
        return {
            "scheme": {"protocol": self.protocol, "curve": self.curve},
            "proof": proof,
            "public": [str(int(x)) for x in public_inputs],
            "vk": self._vk,
        }

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        try:
            res = self._backend(self.envelope(proof, public_inputs))
        except Exception as e:  # noqa: BLE001 - backend failures are rejections
            log.warning("proof backend raised %s: %s", type(e).__name__, e)
            return False
        ok = getattr(res, "ok", res)
        return bool(ok)


@dataclass
class RecordingVerifier:
    """Records calls; answers from `script` (FIFO), then from `default`."""
    default: bool = True
    script: Deque[bool] = field(default_factory=deque)
    calls: List[Tuple[Any, Tuple[int, ...]]] = field(default_factory=list)

    def queue(self, *answers: bool) -> "RecordingVerifier":
        self.script.extend(answers)
        return self

    def verify(self, proof: Any, public_inputs: Sequence[int]) -> bool:
        self.calls.append((proof, tuple(public_inputs)))
        if self.script:
            return self.script.popleft()
        return self.default

    @property
    def last_inputs(self) -> Optional[Tuple[int, ...]]:
        return self.calls[-1][1] if self.calls else None

    def inputs(self) -> Iterable[Tuple[int, ...]]:
        return (c[1] for c in self.calls)


__all__ = ["CallableVerifier", "EnvelopeVerifier", "RecordingVerifier", "EnvelopeBackend"]
