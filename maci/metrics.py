"""
Prometheus metrics for the MACI engine and the funding round.

We expose counters and histograms covering:
- sign-ups and published messages
- message-processing and tally batches, by result (accepted / rejected / invalid)
- coordinator resets
- contributions, claims and claimed amounts
- proof verification latency

The registry is dedicated so embedding apps can choose to merge or expose it
directly (see `mount_fastapi`).
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, generate_latest)

REGISTRY = CollectorRegistry()

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   kind:   "message" | "tally"  (batches)
#           "batch_ust" | "tally" (proof verification)
#   result: "accepted" | "rejected" | "invalid"
# ────────────────────────────────────────────────────────────────────────────────

SIGN_UPS = Counter(
    "maci_sign_ups_total",
    "Total successful sign-ups (state tree insertions).",
    registry=REGISTRY,
)

MESSAGES_PUBLISHED = Counter(
    "maci_messages_published_total",
    "Total messages inserted into the message tree.",
    registry=REGISTRY,
)

BATCHES = Counter(
    "maci_batches_total",
    "Proof-gated batches submitted, by kind and result.",
    labelnames=("kind", "result"),
    registry=REGISTRY,
)

COORDINATOR_RESETS = Counter(
    "maci_coordinator_resets_total",
    "Total coordinator resets of uncommitted processing state.",
    registry=REGISTRY,
)

CONTRIBUTIONS = Counter(
    "maci_round_contributions_total",
    "Total contributions accepted by the funding round.",
    registry=REGISTRY,
)

CLAIMS = Counter(
    "maci_round_claims_total",
    "Total recipient claims paid, by destination (recipient | matching_pool).",
    labelnames=("destination",),
    registry=REGISTRY,
)

CLAIMED_AMOUNT = Counter(
    "maci_round_claimed_amount_total",
    "Sum of token base units paid out by claims.",
    registry=REGISTRY,
)

PROOF_VERIFY_SECONDS = Histogram(
    "maci_proof_verify_seconds",
    "Latency of external proof verification calls.",
    labelnames=("kind",),
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
    registry=REGISTRY,
)

NUM_SIGN_UPS = Gauge(
    "maci_num_sign_ups",
    "Current number of sign-ups in the state tree.",
    registry=REGISTRY,
)

NUM_MESSAGES = Gauge(
    "maci_num_messages",
    "Current number of messages in the message tree.",
    registry=REGISTRY,
)


# ────────────────────────────────────────────────────────────────────────────────
# Recording helpers
# ────────────────────────────────────────────────────────────────────────────────

def record_sign_up(num_sign_ups: int) -> None:
    SIGN_UPS.inc()
    NUM_SIGN_UPS.set(num_sign_ups)


def record_message(num_messages: int) -> None:
    MESSAGES_PUBLISHED.inc()
    NUM_MESSAGES.set(num_messages)


def record_batch(kind: str, result: str) -> None:
    """Increment the batch counter: result is 'accepted' | 'rejected' | 'invalid'."""
    BATCHES.labels(kind=kind, result=result).inc()


def record_reset() -> None:
    COORDINATOR_RESETS.inc()


def record_contribution() -> None:
    CONTRIBUTIONS.inc()


def record_claim(amount: int, *, to_matching_pool: bool = False) -> None:
    CLAIMS.labels(destination="matching_pool" if to_matching_pool else "recipient").inc()
    if amount > 0:
        CLAIMED_AMOUNT.inc(amount)


@contextmanager
def time_proof_verify(kind: str):
    """Context manager to observe proof verification time for a given kind."""
    start = time.perf_counter()
    try:
        yield
    finally:
        PROOF_VERIFY_SECONDS.labels(kind=kind).observe(time.perf_counter() - start)


def render_latest(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Prometheus text exposition of the registry."""
    return generate_latest(registry or REGISTRY)


def mount_fastapi(app, path: str = "/metrics", registry: Optional[CollectorRegistry] = None) -> None:
    """
    Mount a GET {path} endpoint on a FastAPI app to serve metrics.

    Usage:
        from fastapi import FastAPI
        from maci.metrics import mount_fastapi
        app = FastAPI()
        mount_fastapi(app)
    """
    from fastapi import Response

    reg = registry or REGISTRY

    @app.get(path)
    def _metrics() -> Response:
        return Response(generate_latest(reg), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SIGN_UPS",
    "MESSAGES_PUBLISHED",
    "BATCHES",
    "COORDINATOR_RESETS",
    "CONTRIBUTIONS",
    "CLAIMS",
    "CLAIMED_AMOUNT",
    "PROOF_VERIFY_SECONDS",
    "NUM_SIGN_UPS",
    "NUM_MESSAGES",
    "record_sign_up",
    "record_message",
    "record_batch",
    "record_reset",
    "record_contribution",
    "record_claim",
    "time_proof_verify",
    "render_latest",
    "mount_fastapi",
]
