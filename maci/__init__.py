"""
MACI - Minimum Anti-Collusion Infrastructure with a quadratic funding round.

This package holds the append-only Merkle accumulators, the proof-gated
state-transition and tally engines, and the capital-constrained quadratic
funding settlement that consumes their commitments. Submodules are lazily
imported to keep import time minimal.

Public surface (lazily loaded):
- config, errors, metrics, events
- crypto, trees, engine, funding
- domain, interfaces, verifier
- rpc, cli
"""

from __future__ import annotations

import importlib
from typing import List

from .version import __version__, get_version

__all__: List[str] = [
    "__version__",
    "get_version",
    "config",
    "errors",
    "metrics",
    "events",
    "crypto",
    "trees",
    "engine",
    "funding",
    "domain",
    "interfaces",
    "verifier",
    "rpc",
    "cli",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------

_lazy_modules = set(__all__) - {"__version__", "get_version"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)
