"""
maci.cli
========

Typer applications. Installed as the ``maci-qf`` console script.
"""

from __future__ import annotations

from .qf import app, get_app

__all__ = ["app", "get_app"]
