"""
maci.version: the package version string.

MACI_VERSION in the environment overrides the installed distribution's
metadata; a source checkout that was never installed reports BASE_VERSION.
"""

from __future__ import annotations

import os
from importlib import metadata

BASE_VERSION = "0.3.0"
DIST_NAME = "maci-qf"


def build_version() -> str:
    v = os.getenv("MACI_VERSION")
    if v:
        return v
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return BASE_VERSION


__version__ = build_version()


def get_version() -> str:
    return __version__


__all__ = ["__version__", "get_version", "build_version", "BASE_VERSION"]
