"""
Shared pytest fixtures for maci/* tests:
- FakeClock (manually advanced wall clock)
- permissive gate / fixed credit source doubles
- a small MACIConfig (vote option depth 1 → 5 options) and engine factory
- a fully wired funding round with an in-memory token and registries
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import pytest

from maci.config import BatchSizes, Durations, MACIConfig, MaxValues, TreeDepths
from maci.domain import PubKey
from maci.engine.processor import MACI
from maci.events import EventLog
from maci.funding.factory import deploy_round
from maci.funding.ledger import InMemoryToken
from maci.funding.registry import SimpleRecipientRegistry, SimpleUserRegistry
from maci.funding.round import FundingRound
from maci.verifier import RecordingVerifier

START = 1_000.0
SIGN_UP_SECONDS = 100
VOTING_SECONDS = 100

COORDINATOR = "0xcoordinator"
COORDINATOR_PK = PubKey(11, 22)
OWNER = "0xowner"


class FakeClock:
    def __init__(self, t: float = START) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


class OpenGate:
    """Accepts everybody; remembers who registered."""

    def __init__(self) -> None:
        self.registered: List[str] = []

    def register(self, caller: str, data: Any) -> None:
        self.registered.append(caller)


class RefusingGate:
    def register(self, caller: str, data: Any) -> None:
        raise PermissionError(f"{caller} is not eligible")


class FixedCredits:
    """Returns `credit_data` when given, otherwise a fixed balance."""

    def __init__(self, credits: int = 100) -> None:
        self.credits = credits

    def get_voice_credits(self, caller: str, data: Any) -> int:
        return self.credits if data is None else data


def small_config(
    *,
    sign_up_seconds: int = SIGN_UP_SECONDS,
    voting_seconds: int = VOTING_SECONDS,
    max_users: int = 15,
    message_batch_size: int = 4,
    tally_batch_size: int = 4,
) -> MACIConfig:
    cfg = MACIConfig(
        depths=TreeDepths(state=4, message=4, vote_option=1),
        batches=BatchSizes(message=message_batch_size, tally=tally_batch_size),
        max_values=MaxValues(users=max_users, messages=16, vote_options=5),
        durations=Durations(sign_up_seconds=sign_up_seconds, voting_seconds=voting_seconds),
    )
    cfg.validate()
    return cfg


@dataclass
class EngineKit:
    engine: MACI
    clock: FakeClock
    gate: Any
    credits: Any
    batch_verifier: RecordingVerifier
    tally_verifier: RecordingVerifier
    events: EventLog

    def to_processing(self) -> None:
        self.clock.t = self.engine.voting_deadline + 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_engine(clock: FakeClock) -> Callable[..., EngineKit]:
    def _make(*, gate: Any = None, credits: Any = None, config: Optional[MACIConfig] = None, **cfg_kw: Any) -> EngineKit:
        g = gate if gate is not None else OpenGate()
        c = credits if credits is not None else FixedCredits()
        bv = RecordingVerifier()
        tv = RecordingVerifier()
        events = EventLog()
        engine = MACI(
            config=config or small_config(**cfg_kw),
            gate=g,
            credit_source=c,
            batch_ust_verifier=bv,
            vote_tally_verifier=tv,
            coordinator_pub_key=COORDINATOR_PK,
            coordinator_address=COORDINATOR,
            clock=clock,
            events=events,
        )
        return EngineKit(engine, clock, g, c, bv, tv, events)

    return _make


@pytest.fixture
def engine_kit(make_engine: Callable[..., EngineKit]) -> EngineKit:
    return make_engine()


@dataclass
class RoundKit:
    round: FundingRound
    token: InMemoryToken
    users: SimpleUserRegistry
    recipients: SimpleRecipientRegistry
    clock: FakeClock
    batch_verifier: RecordingVerifier
    tally_verifier: RecordingVerifier

    @property
    def engine(self) -> MACI:
        assert self.round.maci is not None
        return self.round.maci

    def fund(self, who: str, amount: int, *, verify: bool = True) -> None:
        """Mint `amount` to `who`, approve the round and (optionally) verify the user."""
        self.token.mint(who, amount)
        self.token.approve(who, self.round.address, amount)
        if verify:
            self.users.add_user(OWNER, who)


@pytest.fixture
def round_kit(clock: FakeClock) -> RoundKit:
    token = InMemoryToken(decimals=0)
    users = SimpleUserRegistry(OWNER)
    recipients = SimpleRecipientRegistry(OWNER, max_recipients=5, clock=clock)
    bv = RecordingVerifier()
    tv = RecordingVerifier()
    fr = deploy_round(
        token=token,
        user_registry=users,
        recipient_registry=recipients,
        batch_ust_verifier=bv,
        vote_tally_verifier=tv,
        coordinator=COORDINATOR,
        coordinator_pub_key=COORDINATOR_PK,
        owner=OWNER,
        config=small_config(),
        clock=clock,
    )
    return RoundKit(fr, token, users, recipients, clock, bv, tv)
