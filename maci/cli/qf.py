"""
maci.cli.qf
-----------

Operator tooling for quadratic-funding rounds:
- alpha:        compute alpha and the matching pool for finalize inputs
- allocation:   allocation of one recipient for a given alpha
- verify-tally: check a coordinator tally file against its own commitments
- config:       print the resolved MACI configuration

Examples
--------
# Alpha for the sample round (factor 1)
python -m maci.cli.qf alpha --budget 130 --squares 900 --spent 30

# What does option 0 receive?
python -m maci.cli.qf allocation --alpha 114942528735632183 --result 30 --spent 30

# Check the tally file produced by the coordinator (vote option tree depth 2)
python -m maci.cli.qf verify-tally tally.json --depth 2 --json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from .. import config as maci_config
from ..crypto.hasher import commit
from ..errors import MACIError
from ..funding.allocation import ALPHA_PRECISION, calc_alpha, get_allocated_amount, matching_pool_size
from ..trees.full import MerkleTree
from ..version import get_version

app = typer.Typer(
    name="maci-qf",
    add_completion=False,
    no_args_is_help=True,
    help="Quadratic-funding settlement helpers for MACI rounds.",
)

VOTE_OPTION_TREE_ARITY = 5

# -------------------- utils --------------------


def _fail(msg: str, code: int = 1) -> None:
    typer.secho(msg, fg=typer.colors.RED, err=True)
    raise typer.Exit(code)


def _ints(xs: Any) -> List[int]:
    return [int(x) for x in xs]


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    sec = data.get(key)
    if not isinstance(sec, dict):
        _fail(f"tally file is missing the '{key}' section", 2)
    return sec  # type: ignore[return-value]


def _check_tree_commitment(sec: Dict[str, Any], depth: int) -> Dict[str, Any]:
    leaves = _ints(sec["tally"])
    capacity = VOTE_OPTION_TREE_ARITY ** depth
    if len(leaves) > capacity:
        raise ValueError(f"{len(leaves)} leaves do not fit a depth-{depth} quinary tree")
    tree = MerkleTree(depth, 0, VOTE_OPTION_TREE_ARITY, leaves=leaves)
    computed = commit(tree.root, int(sec["salt"]))
    return {
        "ok": computed == int(sec["commitment"]),
        "root": str(tree.root),
        "commitment": str(sec["commitment"]),
        "computed": str(computed),
    }


def verify_tally_document(data: Dict[str, Any], depth: int) -> Dict[str, Dict[str, Any]]:
    """Check every commitment of a coordinator tally document."""
    results = _check_tree_commitment(_section(data, "results"), depth)
    per_vo = _check_tree_commitment(_section(data, "perVOSpentVoiceCredits"), depth)

    spent_sec = _section(data, "totalVoiceCredits")
    spent_computed = commit(int(spent_sec["spent"]), int(spent_sec["salt"]))
    spent = {
        "ok": spent_computed == int(spent_sec["commitment"]),
        "spent": str(spent_sec["spent"]),
        "commitment": str(spent_sec["commitment"]),
        "computed": str(spent_computed),
    }
    return {"results": results, "totalVoiceCredits": spent, "perVOSpentVoiceCredits": per_vo}


# -------------------- commands --------------------


@app.command("alpha")
def cmd_alpha(
    budget: int = typer.Option(..., "--budget", help="Round balance at finalize (base units)."),
    squares: int = typer.Option(..., "--squares", help="Sum of squared tally results."),
    spent: int = typer.Option(..., "--spent", help="Total spent voice credits."),
    factor: int = typer.Option(1, "--factor", min=1, help="Voice credit factor."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    try:
        alpha = calc_alpha(budget, squares, spent, factor)
        pool = matching_pool_size(budget, spent, factor)
    except MACIError as e:
        _fail(f"{e.code}: {e.message}")
        return
    if json_out:
        typer.echo(json.dumps({"alpha": str(alpha), "precision": str(ALPHA_PRECISION), "matching_pool": pool}))
        return
    typer.echo(f"alpha          {alpha}  ({alpha / ALPHA_PRECISION:.6f})")
    typer.echo(f"matching pool  {pool}")


@app.command("allocation")
def cmd_allocation(
    alpha: int = typer.Option(..., "--alpha", help="Alpha as a fixed-point integer (1e18 precision)."),
    result: int = typer.Option(..., "--result", help="Tally result of the vote option."),
    spent: int = typer.Option(..., "--spent", help="Voice credits spent on the vote option."),
    factor: int = typer.Option(1, "--factor", min=1, help="Voice credit factor."),
) -> None:
    try:
        amount = get_allocated_amount(alpha, factor, result, spent)
    except MACIError as e:
        _fail(f"{e.code}: {e.message}")
        return
    typer.echo(str(amount))


@app.command("verify-tally")
def cmd_verify_tally(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Tally JSON file."),
    depth: Optional[int] = typer.Option(None, "--depth", min=1, help="Vote option tree depth (default: config)."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    d = depth if depth is not None else maci_config.load().depths.vote_option
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        report = verify_tally_document(data, d)
    except (KeyError, TypeError, ValueError) as e:
        _fail(f"malformed tally file: {e}", 2)
        return

    ok = all(v["ok"] for v in report.values())
    if json_out:
        typer.echo(json.dumps({"ok": ok, "checks": report}, indent=2, sort_keys=True))
    else:
        for name, check in report.items():
            mark = typer.style("OK", fg=typer.colors.GREEN) if check["ok"] else typer.style("FAIL", fg=typer.colors.RED)
            typer.echo(f"{name:<24} {mark}")
    if not ok:
        raise typer.Exit(1)


@app.command("config")
def cmd_config() -> None:
    """Print the configuration resolved from $MACI_CONFIG_FILE and MACI_* variables."""
    try:
        typer.echo(maci_config.pretty())
    except ValueError as e:
        _fail(f"invalid configuration: {e}", 2)


@app.command("version")
def cmd_version() -> None:
    typer.echo(get_version())


def get_app() -> typer.Typer:
    return app


if __name__ == "__main__":
    app()
