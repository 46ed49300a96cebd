"""Pheromone type registry.

The set of pheromone types is closed. Each type maps to a stable store key
and a display label; decay rate and activation threshold come from the
resolved policy so operators can retune them without code changes.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from driftguard.policy import SignalPolicy

KEY_PREFIX_PHEROMONE = "pheromone:"


class PheromoneType(str, Enum):
    """Standard pheromone types, in pipeline order."""

    PRICE_FRESHNESS = "price_freshness"  # Sensor: fresh market data
    REBALANCE_OPPORTUNITY = "rebalance_opportunity"  # Analyst: drift over threshold
    EXECUTION_PERMIT = "execution_permit"  # Guardian: volatility acceptable
    TRADE_EXECUTED = "trade_executed"  # Trader: audit trail

    @property
    def key(self) -> str:
        """Store key for this type's slot."""
        return f"{KEY_PREFIX_PHEROMONE}{self.value}"

    @property
    def label(self) -> str:
        """Human-readable label."""
        return _LABELS[self]

    def decay_rate(self, policy: SignalPolicy) -> float:
        return policy.for_kind(self).decay_rate

    def threshold(self, policy: SignalPolicy) -> float:
        return policy.for_kind(self).threshold


_LABELS: dict[PheromoneType, str] = {
    PheromoneType.PRICE_FRESHNESS: "Price Freshness",
    PheromoneType.REBALANCE_OPPORTUNITY: "Rebalance Opportunity",
    PheromoneType.EXECUTION_PERMIT: "Execution Permit",
    PheromoneType.TRADE_EXECUTED: "Trade Executed",
}
