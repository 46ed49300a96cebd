"""Pheromone policy loaded from driftguard.yaml.

Supports:
- Per-type decay rates (``pheromones`` section) and activation thresholds
  (``thresholds`` section)
- Portfolio defaults used to seed collaborator state
- No YAML file = built-in defaults

The file model is resolved once at startup into an immutable
``SignalPolicy`` lookup table. Anything that cannot be resolved raises
``PolicyError`` there, never later on a deposit or sense.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, NamedTuple

import yaml
from pydantic import BaseModel, ValidationError, model_validator

from driftguard.core.registry import PheromoneType
from driftguard.errors import PolicyError

logger = logging.getLogger(__name__)


class PheromoneDecayConfig(BaseModel):
    """Decay rate per pheromone type (larger = faster decay)."""

    price_freshness_decay: float | None = 0.3
    rebalance_opportunity_decay: float | None = 0.2
    execution_permit_decay: float | None = 0.5
    trade_executed_decay: float | None = 0.1


class ThresholdConfig(BaseModel):
    """Activation threshold per pheromone type."""

    price_freshness: float | None = 0.7
    rebalance_opportunity: float | None = 0.6
    execution_permit: float | None = 0.5
    trade_executed: float | None = 0.3


class PortfolioConfig(BaseModel):
    """Defaults used to seed portfolio state and target allocation."""

    default_stocks_pct: float = 60.0
    default_bonds_pct: float = 40.0
    initial_balance: float = 100000.0

    @model_validator(mode="after")
    def _validate(self):
        total = self.default_stocks_pct + self.default_bonds_pct
        if abs(total - 100.0) > 1e-6:
            raise ValueError(f"default allocation must sum to 100, got {total}")
        if self.initial_balance < 0:
            raise ValueError(f"initial_balance must be non-negative, got {self.initial_balance}")
        return self


class PolicyConfig(BaseModel):
    """Top-level driftguard.yaml configuration."""

    pheromones: PheromoneDecayConfig = PheromoneDecayConfig()
    thresholds: ThresholdConfig = ThresholdConfig()
    portfolio: PortfolioConfig = PortfolioConfig()

    def resolve(self) -> SignalPolicy:
        """Build the per-type policy table, rejecting unusable values."""
        table: dict[PheromoneType, KindPolicy] = {}
        for kind in PheromoneType:
            decay_rate = getattr(self.pheromones, f"{kind.value}_decay", None)
            threshold = getattr(self.thresholds, kind.value, None)

            if decay_rate is None:
                raise PolicyError(f"No decay rate configured for {kind.label}", kind=kind.value)
            if threshold is None:
                raise PolicyError(f"No threshold configured for {kind.label}", kind=kind.value)
            if not math.isfinite(decay_rate) or decay_rate <= 0:
                raise PolicyError(
                    f"Decay rate for {kind.label} must be a positive finite number, got {decay_rate}",
                    kind=kind.value,
                )
            if not math.isfinite(threshold) or not 0.0 <= threshold <= 1.0:
                raise PolicyError(
                    f"Threshold for {kind.label} must be within [0, 1], got {threshold}",
                    kind=kind.value,
                )

            table[kind] = KindPolicy(decay_rate=decay_rate, threshold=threshold)
            logger.info(
                "Policy [%s] decay=%.3f half-life=%.1fs threshold=%.2f",
                kind.label,
                decay_rate,
                math.log(2) / decay_rate,
                threshold,
            )

        return SignalPolicy(table)


class KindPolicy(NamedTuple):
    decay_rate: float
    threshold: float


class SignalPolicy:
    """Immutable pheromone type -> (decay rate, threshold) table."""

    def __init__(self, table: Mapping[PheromoneType, KindPolicy]):
        missing = [kind.label for kind in PheromoneType if kind not in table]
        if missing:
            raise PolicyError(f"No policy for: {', '.join(missing)}")
        self._table = MappingProxyType(dict(table))

    def for_kind(self, kind: PheromoneType) -> KindPolicy:
        return self._table[kind]

    def __repr__(self) -> str:
        entries = ", ".join(
            f"{kind.value}=({p.decay_rate}, {p.threshold})" for kind, p in self._table.items()
        )
        return f"SignalPolicy({entries})"


_DEFAULT_PATH = Path(__file__).parent.parent / "driftguard.yaml"


def load_policy_config(path: Path | None = None) -> PolicyConfig:
    """Load policy config from YAML file.

    Falls back to built-in defaults if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        logger.info("No policy file found at %s, using defaults", config_path)
        return PolicyConfig()

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        config = PolicyConfig(**raw)
    except (yaml.YAMLError, ValidationError, TypeError) as e:
        raise PolicyError(f"Invalid policy file {config_path}: {e}") from e

    logger.info("Loaded pheromone policy from %s", config_path)
    return config

