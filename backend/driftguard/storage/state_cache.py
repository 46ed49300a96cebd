"""Portfolio state and target allocation shared through the blackboard store.

These keys belong to the pipeline collaborators, not to the pheromone
layer; they use the same store handle and are never decayed.

Data structure:
- state:portfolio -> JSON PortfolioState
- config:target_allocation -> JSON TargetAllocation
"""

from __future__ import annotations

import logging

import orjson
from pydantic import BaseModel, ValidationError, model_validator

from driftguard.errors import DecodeError
from driftguard.policy import PortfolioConfig
from driftguard.storage.store import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PORTFOLIO_STATE = "state:portfolio"
KEY_TARGET_ALLOCATION = "config:target_allocation"


class PortfolioState(BaseModel):
    """Simulated portfolio balance."""

    total_value: float = 100000.0
    stocks_value: float = 60000.0
    bonds_value: float = 40000.0
    stocks_pct: float = 60.0
    bonds_pct: float = 40.0
    last_trade_time: str | None = None


class TargetAllocation(BaseModel):
    """Target allocation set from the dashboard."""

    stocks_pct: float
    bonds_pct: float

    @model_validator(mode="after")
    def _validate(self):
        for name in ("stocks_pct", "bonds_pct"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be within [0, 100], got {value}")
        if abs(self.stocks_pct + self.bonds_pct - 100.0) > 1e-6:
            raise ValueError(
                f"allocation must sum to 100, got {self.stocks_pct + self.bonds_pct}"
            )
        return self


def initial_portfolio(config: PortfolioConfig) -> PortfolioState:
    """Portfolio state at startup, split by the configured defaults."""
    return PortfolioState(
        total_value=config.initial_balance,
        stocks_value=config.initial_balance * (config.default_stocks_pct / 100.0),
        bonds_value=config.initial_balance * (config.default_bonds_pct / 100.0),
        stocks_pct=config.default_stocks_pct,
        bonds_pct=config.default_bonds_pct,
    )


def _decode(raw: bytes, model: type[BaseModel], key: str):
    try:
        return model.model_validate(orjson.loads(raw))
    except (orjson.JSONDecodeError, ValidationError) as e:
        raise DecodeError(f"Invalid {model.__name__} at {key}: {e}", key=key) from e


async def set_portfolio_state(store: KeyValueStore, state: PortfolioState) -> None:
    await store.set(KEY_PORTFOLIO_STATE, orjson.dumps(state.model_dump()))


async def get_portfolio_state(store: KeyValueStore) -> PortfolioState | None:
    """Get portfolio state, or None if it was never written."""
    raw = await store.get(KEY_PORTFOLIO_STATE)
    if raw is None:
        return None
    return _decode(raw, PortfolioState, KEY_PORTFOLIO_STATE)


async def set_target_allocation(
    store: KeyValueStore,
    stocks_pct: float,
    bonds_pct: float,
) -> TargetAllocation:
    """Store a new target allocation.

    Raises:
        ValueError: If the percentages are out of range or don't sum to 100
    """
    allocation = TargetAllocation(stocks_pct=stocks_pct, bonds_pct=bonds_pct)
    await store.set(KEY_TARGET_ALLOCATION, orjson.dumps(allocation.model_dump()))
    logger.info(f"Target allocation updated: {stocks_pct}% stocks, {bonds_pct}% bonds")
    return allocation


async def get_target_allocation(
    store: KeyValueStore,
    defaults: PortfolioConfig,
) -> TargetAllocation:
    """Get target allocation, falling back to the configured defaults."""
    raw = await store.get(KEY_TARGET_ALLOCATION)
    if raw is None:
        return TargetAllocation(
            stocks_pct=defaults.default_stocks_pct,
            bonds_pct=defaults.default_bonds_pct,
        )
    return _decode(raw, TargetAllocation, KEY_TARGET_ALLOCATION)
