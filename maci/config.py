"""
maci.config: configuration for a MACI instance and its funding round

Covers:
- Tree depths (state / message: binary; vote options: quinary)
- Batch sizes for message processing and vote tallying
- Hard caps (users, messages, vote options)
- Sign-up and voting durations (seconds; 0 = coordinator-only debug mode)
- Funding parameters used to derive the voice credit factor

Environment overrides (all optional; sensible defaults provided):

  # Tree depths
  MACI_STATE_TREE_DEPTH=4
  MACI_MESSAGE_TREE_DEPTH=4
  MACI_VOTE_OPTION_TREE_DEPTH=2

  # Batch sizes
  MACI_MESSAGE_BATCH_SIZE=4
  MACI_TALLY_BATCH_SIZE=4

  # Caps (default: derived from the depths)
  MACI_MAX_USERS=15
  MACI_MAX_MESSAGES=16
  MACI_MAX_VOTE_OPTIONS=25

  # Durations (seconds)
  MACI_SIGN_UP_DURATION=604800
  MACI_VOTING_DURATION=604800

  # Funding
  MACI_TOKEN_DECIMALS=18
  MACI_MAX_CONTRIBUTION=10000
  MACI_MAX_VOICE_CREDITS=1000000000

You can also load from a JSON or YAML file via `MACI_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


# -------------------------- Data classes --------------------------


@dataclass
class TreeDepths:
    """Depths of the state and message trees (binary) and the vote option tree (quinary)."""
    state: int = 4
    message: int = 4
    vote_option: int = 2

    def validate(self) -> None:
        for name, v in (("state", self.state), ("message", self.message), ("vote_option", self.vote_option)):
            if not (1 <= v <= 32):
                raise ValueError(f"tree depth '{name}' must be in [1, 32] (got {v}).")


@dataclass
class BatchSizes:
    """Number of messages per processing proof and state leaves per tally proof."""
    message: int = 4
    tally: int = 4

    def validate(self) -> None:
        if self.message <= 0 or self.tally <= 0:
            raise ValueError("Batch sizes must be positive.")


@dataclass
class MaxValues:
    """Hard caps. The state tree keeps index 0 for the blank leaf."""
    users: int = 15
    messages: int = 16
    vote_options: int = 25

    def validate(self, depths: TreeDepths) -> None:
        if self.users <= 0 or self.messages <= 0 or self.vote_options <= 0:
            raise ValueError("Max values must be positive.")
        if self.users >= 2 ** depths.state:
            raise ValueError(f"max users must be < 2^state_depth = {2 ** depths.state} (got {self.users}).")
        if self.messages > 2 ** depths.message:
            raise ValueError(f"max messages must be <= 2^message_depth = {2 ** depths.message} (got {self.messages}).")
        if self.vote_options > 5 ** depths.vote_option:
            raise ValueError(
                f"max vote options must be <= 5^vote_option_depth = {5 ** depths.vote_option} (got {self.vote_options})."
            )


@dataclass
class Durations:
    """Phase lengths in seconds. Zero means coordinator-only debug mode for that phase."""
    sign_up_seconds: int = 604_800   # 7 days
    voting_seconds: int = 604_800    # 7 days

    def validate(self) -> None:
        if self.sign_up_seconds < 0 or self.voting_seconds < 0:
            raise ValueError("Durations must be non-negative seconds.")


@dataclass
class FundingParams:
    """Token parameters used to derive the voice credit factor."""
    token_decimals: int = 18
    max_contribution_tokens: int = 10_000
    max_voice_credits: int = 10 ** 9

    def validate(self) -> None:
        if self.token_decimals < 0:
            raise ValueError("token_decimals must be non-negative.")
        if self.max_contribution_tokens <= 0 or self.max_voice_credits <= 0:
            raise ValueError("max_contribution_tokens and max_voice_credits must be positive.")


@dataclass
class MACIConfig:
    """Top-level configuration container."""
    depths: TreeDepths = field(default_factory=TreeDepths)
    batches: BatchSizes = field(default_factory=BatchSizes)
    max_values: MaxValues = field(default_factory=MaxValues)
    durations: Durations = field(default_factory=Durations)
    funding: FundingParams = field(default_factory=FundingParams)

    def validate(self) -> None:
        self.depths.validate()
        self.batches.validate()
        self.max_values.validate(self.depths)
        self.durations.validate()
        self.funding.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ValueError(f"Invalid int for {name}: {v!r}") from e


def from_env(base: Optional[MACIConfig] = None, prefix: str = "MACI_") -> MACIConfig:
    """
    Build a MACIConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or MACIConfig()

    new_cfg = MACIConfig(
        depths=TreeDepths(
            state=_getenv_int(f"{prefix}STATE_TREE_DEPTH", cfg.depths.state),
            message=_getenv_int(f"{prefix}MESSAGE_TREE_DEPTH", cfg.depths.message),
            vote_option=_getenv_int(f"{prefix}VOTE_OPTION_TREE_DEPTH", cfg.depths.vote_option),
        ),
        batches=BatchSizes(
            message=_getenv_int(f"{prefix}MESSAGE_BATCH_SIZE", cfg.batches.message),
            tally=_getenv_int(f"{prefix}TALLY_BATCH_SIZE", cfg.batches.tally),
        ),
        max_values=MaxValues(
            users=_getenv_int(f"{prefix}MAX_USERS", cfg.max_values.users),
            messages=_getenv_int(f"{prefix}MAX_MESSAGES", cfg.max_values.messages),
            vote_options=_getenv_int(f"{prefix}MAX_VOTE_OPTIONS", cfg.max_values.vote_options),
        ),
        durations=Durations(
            sign_up_seconds=_getenv_int(f"{prefix}SIGN_UP_DURATION", cfg.durations.sign_up_seconds),
            voting_seconds=_getenv_int(f"{prefix}VOTING_DURATION", cfg.durations.voting_seconds),
        ),
        funding=FundingParams(
            token_decimals=_getenv_int(f"{prefix}TOKEN_DECIMALS", cfg.funding.token_decimals),
            max_contribution_tokens=_getenv_int(f"{prefix}MAX_CONTRIBUTION", cfg.funding.max_contribution_tokens),
            max_voice_credits=_getenv_int(f"{prefix}MAX_VOICE_CREDITS", cfg.funding.max_voice_credits),
        ),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> MACIConfig:
    """
    Load configuration from a JSON or YAML file.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")

    depths = data.get("depths", {})
    batches = data.get("batches", {})
    max_values = data.get("max_values", {})
    durations = data.get("durations", {})
    funding = data.get("funding", {})

    cfg = MACIConfig(
        depths=TreeDepths(**{**asdict(TreeDepths()), **depths}),
        batches=BatchSizes(**{**asdict(BatchSizes()), **batches}),
        max_values=MaxValues(**{**asdict(MaxValues()), **max_values}),
        durations=Durations(**{**asdict(Durations()), **durations}),
        funding=FundingParams(**{**asdict(FundingParams()), **funding}),
    )
    cfg.validate()
    return cfg


def load() -> MACIConfig:
    """
    Load configuration using the following precedence:
      1) File at $MACI_CONFIG_FILE (JSON/YAML)
      2) Environment variables (MACI_*), applied on top of defaults or file values
    """
    file_path = os.getenv("MACI_CONFIG_FILE")
    base = from_file(file_path) if file_path else MACIConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[MACIConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "TreeDepths",
    "BatchSizes",
    "MaxValues",
    "Durations",
    "FundingParams",
    "MACIConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
