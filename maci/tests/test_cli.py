from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from maci.cli import app
from maci.cli.qf import verify_tally_document
from maci.crypto.hasher import commit
from maci.trees import MerkleTree

runner = CliRunner()


def _tally_doc(results, per_vo, spent, *, salts=(5, 6, 7), depth=1):
    rt = MerkleTree(depth, 0, 5, leaves=results)
    pt = MerkleTree(depth, 0, 5, leaves=per_vo)
    return {
        "results": {"tally": [str(x) for x in results], "salt": str(salts[0]), "commitment": str(commit(rt.root, salts[0]))},
        "totalVoiceCredits": {"spent": str(spent), "salt": str(salts[1]), "commitment": str(commit(spent, salts[1]))},
        "perVOSpentVoiceCredits": {
            "tally": [str(x) for x in per_vo],
            "salt": str(salts[2]),
            "commitment": str(commit(pt.root, salts[2])),
        },
    }


def test_alpha_command():
    res = runner.invoke(app, ["alpha", "--budget", "130", "--squares", "900", "--spent", "30", "--json"])
    assert res.exit_code == 0, res.output
    out = json.loads(res.output)
    assert out["alpha"] == "114942528735632183"
    assert out["matching_pool"] == 100


def test_alpha_command_invariant_failure():
    res = runner.invoke(app, ["alpha", "--budget", "10", "--squares", "900", "--spent", "30"])
    assert res.exit_code == 1


def test_allocation_command():
    res = runner.invoke(app, ["allocation", "--alpha", "114942528735632183", "--result", "30", "--spent", "30"])
    assert res.exit_code == 0, res.output
    assert res.output.strip() == "129"


def test_verify_tally_document_in_memory():
    doc = _tally_doc([30, 0, 2], [30, 0, 4], 34)
    report = verify_tally_document(doc, 1)
    assert all(v["ok"] for v in report.values())

    doc["totalVoiceCredits"]["spent"] = "35"
    assert not verify_tally_document(doc, 1)["totalVoiceCredits"]["ok"]


def test_verify_tally_command(tmp_path: Path):
    good = tmp_path / "tally.json"
    good.write_text(json.dumps(_tally_doc([30, 0, 0, 0, 0], [30, 0, 0, 0, 0], 30)))
    res = runner.invoke(app, ["verify-tally", str(good), "--depth", "1", "--json"])
    assert res.exit_code == 0, res.output
    assert json.loads(res.output)["ok"] is True

    doc = _tally_doc([30, 0, 0, 0, 0], [30, 0, 0, 0, 0], 30)
    doc["results"]["tally"][0] = "31"
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps(doc))
    res = runner.invoke(app, ["verify-tally", str(bad), "--depth", "1"])
    assert res.exit_code == 1
    assert "FAIL" in res.output


@pytest.mark.parametrize("payload", ["{not json", json.dumps({"results": {}}), json.dumps({"results": 1})])
def test_verify_tally_malformed(tmp_path: Path, payload: str):
    p = tmp_path / "broken.json"
    p.write_text(payload)
    res = runner.invoke(app, ["verify-tally", str(p), "--depth", "1"])
    assert res.exit_code == 2


def test_verify_tally_too_many_leaves(tmp_path: Path):
    doc = _tally_doc([1] * 5, [1] * 5, 5)
    doc["results"]["tally"] = ["1"] * 6
    p = tmp_path / "big.json"
    p.write_text(json.dumps(doc))
    res = runner.invoke(app, ["verify-tally", str(p), "--depth", "1"])
    assert res.exit_code == 2


def test_config_command(monkeypatch):
    monkeypatch.delenv("MACI_CONFIG_FILE", raising=False)
    monkeypatch.setenv("MACI_TALLY_BATCH_SIZE", "8")
    res = runner.invoke(app, ["config"])
    assert res.exit_code == 0, res.output
    assert json.loads(res.output)["batches"]["tally"] == 8

    monkeypatch.setenv("MACI_MAX_USERS", "99999")
    res = runner.invoke(app, ["config"])
    assert res.exit_code == 2


def test_version_command_honours_env_override(monkeypatch):
    from maci import version

    monkeypatch.setenv("MACI_VERSION", "9.9.9-test")
    assert version.build_version() == "9.9.9-test"
    monkeypatch.delenv("MACI_VERSION")
    assert version.build_version()

    res = runner.invoke(app, ["version"])
    assert res.exit_code == 0, res.output
    assert res.output.strip() == version.get_version()
