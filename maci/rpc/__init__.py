"""
maci.rpc
--------

Read-only RPC surface of a funding round:
  • `methods`: JSON-RPC method table and FastAPI router factory
  • `mount`: attach the router to an app / register methods on a dispatcher
"""

from __future__ import annotations

from typing import Dict, Final

# Base path under which the round endpoints are mounted.
RPC_PREFIX: Final[str] = "/maci"

MACI_OPENAPI_TAG: Final[Dict[str, str]] = {
    "name": "maci",
    "description": "MACI engine and quadratic-funding round status (read-only).",
}

__all__ = [
    "RPC_PREFIX",
    "MACI_OPENAPI_TAG",
]
