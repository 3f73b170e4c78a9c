"""
maci.tests helpers

Small utilities shared by the maci/* tests.

Exports:
- env_flag(name, default=False) -> bool
- configure_test_logging() -> None

Environment toggles:
- MACI_TEST_LOG=1   → enable INFO logging for maci.*
"""

from __future__ import annotations

import logging
import os


def env_flag(name: str, default: bool = False) -> bool:
    """
    Read an environment flag in a truthy/falsey way: "1", "true", "yes" → True.
    """
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on"}


def configure_test_logging(level: int | None = None) -> None:
    """
    Configure basic logging for maci.* loggers when MACI_TEST_LOG is set.
    """
    if level is None:
        level = logging.INFO
    if env_flag("MACI_TEST_LOG", False):
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logging.getLogger("maci").setLevel(level)


configure_test_logging()

__all__ = ["env_flag", "configure_test_logging"]
