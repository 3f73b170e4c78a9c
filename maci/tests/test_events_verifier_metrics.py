from __future__ import annotations

from types import SimpleNamespace

import pytest

import maci
from maci import metrics
from maci.domain import PubKey
from maci.errors import MACIError, OutOfRangeInput, PhaseViolation
from maci.events import CoordinatorReset, EventLog, EventType, SignUp
from maci.verifier import CallableVerifier, EnvelopeVerifier, RecordingVerifier


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

def test_event_log_filters_and_serializes():
    log = EventLog()
    assert log.last() is None
    log.emit(SignUp(ts=1.0, state_index=1, pub_key_x="1", pub_key_y="2", voice_credit_balance=5))
    log.emit(CoordinatorReset(ts=2.0, state_root="9"))
    assert len(log) == 2
    assert [e.ts for e in log.of_type(SignUp)] == [1.0]
    assert log.last().etype is EventType.COORDINATOR_RESET
    d = log.last(SignUp).to_dict()
    assert d["type"] == "SignUp"
    assert d["state_index"] == 1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_error_payloads():
    e = PhaseViolation("too late", phase="voting")
    assert isinstance(e, MACIError)
    assert e.to_dict() == {"code": "MACI_PHASE_VIOLATION", "message": "too late", "details": {"phase": "voting"}}
    assert "MACI_PHASE_VIOLATION" in str(e)

    o = OutOfRangeInput("bad", name="x", value=7)
    assert o.details == {"name": "x", "value": "7"}


# ---------------------------------------------------------------------------
# Verifier adapters
# ---------------------------------------------------------------------------

def test_callable_verifier():
    seen = []

    def fn(proof, inputs):
        seen.append((proof, inputs))
        return proof == "ok"

    v = CallableVerifier(fn)
    assert v.verify("ok", (1, 2))
    assert not v.verify("no", (1, 2))
    assert seen[0] == ("ok", [1, 2])


def test_envelope_verifier_shapes_payload():
    captured = {}

    def backend(env):
        captured.update(env)
        return SimpleNamespace(ok=True)

    v = EnvelopeVerifier(backend, {"alpha": "1"}, protocol="plonk")
    assert v.verify({"a": 1}, [3, 4])
    assert captured["scheme"] == {"protocol": "plonk", "curve": "bn128"}
    assert captured["public"] == ["3", "4"]
    assert captured["vk"] == {"alpha": "1"}
    assert captured["proof"] == {"a": 1}


def test_envelope_verifier_fails_closed():
    def boom(env):
        raise RuntimeError("backend down")

    assert not EnvelopeVerifier(boom, {}).verify(None, [1])
    assert not EnvelopeVerifier(lambda env: False, {}).verify(None, [1])


def test_recording_verifier_script():
    v = RecordingVerifier().queue(False, True)
    assert v.last_inputs is None
    assert not v.verify("a", [1])
    assert v.verify("b", [2])
    assert v.verify("c", [3])
    assert list(v.inputs()) == [(1,), (2,), (3,)]
    assert RecordingVerifier(default=False).verify(None, []) is False


def test_engine_uses_callable_verifier(make_engine):
    kit = make_engine()
    e = kit.engine
    e.sign_up("0xa", PubKey(1, 2))
    kit.to_processing()
    # Swap in a verifier that checks the newState root is first.
    e._batch_ust_verifier = CallableVerifier(lambda proof, inputs: inputs[0] == 42)
    with pytest.raises(MACIError):
        e.batch_process_message(41, [PubKey(1, 1)] * 4, proof=None)
    assert e.batch_process_message(42, [PubKey(1, 1)] * 4, proof=None) == 0


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def _sample(name: str, **labels) -> float:
    v = metrics.REGISTRY.get_sample_value(name, labels or None)
    return v or 0.0


def test_metrics_move_with_engine(make_engine):
    kit = make_engine()
    e = kit.engine
    sign_ups = _sample("maci_sign_ups_total")
    accepted = _sample("maci_batches_total", kind="message", result="accepted")
    rejected = _sample("maci_batches_total", kind="message", result="rejected")

    e.sign_up("0xa", PubKey(1, 2))
    kit.to_processing()
    kit.batch_verifier.queue(False)
    with pytest.raises(MACIError):
        e.batch_process_message(1, [PubKey(1, 1)] * 4, proof=None)
    e.batch_process_message(1, [PubKey(1, 1)] * 4, proof=None)

    assert _sample("maci_sign_ups_total") == sign_ups + 1
    assert _sample("maci_num_sign_ups") == 1
    assert _sample("maci_batches_total", kind="message", result="accepted") == accepted + 1
    assert _sample("maci_batches_total", kind="message", result="rejected") == rejected + 1
    assert _sample("maci_proof_verify_seconds_count", kind="batch_ust") >= 2

    text = metrics.render_latest().decode()
    assert "maci_sign_ups_total" in text


def test_metrics_endpoint():
    pytest.importorskip("fastapi")
    from fastapi import FastAPI
    from fastapi.testclient import TestClient

    app = FastAPI()
    metrics.mount_fastapi(app)
    r = TestClient(app).get("/metrics")
    assert r.status_code == 200
    assert "maci_batches_total" in r.text


# ---------------------------------------------------------------------------
# Package surface
# ---------------------------------------------------------------------------

def test_lazy_package_surface():
    assert maci.engine.MACI is not None
    assert maci.get_version()
    assert "funding" in dir(maci)
    with pytest.raises(AttributeError):
        maci.not_a_module
