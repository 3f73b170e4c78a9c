"""
maci.rpc.mount
--------------

Helpers to mount the round's read-only RPC surface into an existing FastAPI
app and/or to register the JSON-RPC methods with your dispatcher.

Typical usage (REST):
    from fastapi import FastAPI
    from maci.rpc.mount import mount_round
    app = FastAPI()
    mount_round(app, funding_round, prefix="/maci")

Typical usage (JSON-RPC):
    from maci.rpc.mount import register_jsonrpc
    register_jsonrpc(dispatcher, funding_round)

The dispatcher only needs a `.add(name, callable)` or `.register(name, callable)` API.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..funding.round import FundingRound
from . import MACI_OPENAPI_TAG, RPC_PREFIX
from .methods import build_rest_router, make_methods

log = logging.getLogger(__name__)


class _JsonRpcDispatcherLike(Protocol):
    """Minimal protocol to support common JSON-RPC dispatchers."""
    def add(self, method: str, func: Any) -> None: ...
    def register(self, method: str, func: Any) -> None: ...


def mount_round(app: Any, funding_round: FundingRound, *, prefix: str = RPC_PREFIX) -> None:
    """
    Mount the round's REST endpoints under `prefix` on a FastAPI app.

    Parameters
    ----------
    app : fastapi.FastAPI
        Your FastAPI application instance.
    funding_round : FundingRound
        The round (and, through it, the MACI engine) to expose.
    prefix : str
        URL prefix for the mounted router (default: "/maci").
    """
    router = build_rest_router(funding_round)
    app.include_router(router, prefix=prefix, tags=[MACI_OPENAPI_TAG["name"]])
    log.info("mounted round %s under %s", funding_round.address, prefix)


def register_jsonrpc(dispatcher: _JsonRpcDispatcherLike, funding_round: FundingRound) -> None:
    """
    Register JSON-RPC methods on a dispatcher.

    `.add(name, fn)` is tried first, then `.register(name, fn)`.
    """
    for name, fn in make_methods(funding_round).items():
        try:
            dispatcher.add(name, fn)  # type: ignore[attr-defined]
        except AttributeError:
            dispatcher.register(name, fn)  # type: ignore[attr-defined]


__all__ = ["mount_round", "register_jsonrpc"]
