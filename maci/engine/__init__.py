"""
maci.engine
===========

- processor: the state-transition engine (sign-up, messages, batch processing, reset)
- tally: proof-gated tally commitments and reveal checks
"""

from __future__ import annotations

from .processor import MACI, MAX_VOICE_CREDIT_BALANCE, Phase
from .tally import TallyEngine

__all__ = ["MACI", "Phase", "MAX_VOICE_CREDIT_BALANCE", "TallyEngine"]
