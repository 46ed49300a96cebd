"""REST API routes."""

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from driftguard.core.registry import PheromoneType
from driftguard.errors import BlackboardError
from driftguard.policy import PolicyConfig
from driftguard.storage import Blackboard, PheromoneStatus, state_cache
from driftguard.storage.state_cache import PortfolioState, TargetAllocation

logger = logging.getLogger(__name__)

router = APIRouter()


class PortfolioResponse(BaseModel):
    """Portfolio state together with the target allocation."""

    portfolio: PortfolioState | None
    target: TargetAllocation


class ResetResponse(BaseModel):
    """Reset response model."""

    success: bool
    message: str


def get_blackboard(request: Request) -> Blackboard:
    return request.app.state.blackboard


def get_policy_config(request: Request) -> PolicyConfig:
    return request.app.state.policy_config


def _store_unavailable(e: BlackboardError) -> HTTPException:
    logger.warning(f"Blackboard request failed: {e}")
    return HTTPException(status_code=503, detail=str(e))


@router.get("/pheromones", response_model=list[PheromoneStatus])
async def get_pheromones(request: Request):
    """Get intensity, threshold and timing for every pheromone type."""
    board = get_blackboard(request)
    try:
        return await board.status()
    except BlackboardError as e:
        raise _store_unavailable(e)


@router.get("/pheromones/{kind}", response_model=PheromoneStatus)
async def get_pheromone(request: Request, kind: PheromoneType):
    """Get the status of a single pheromone type."""
    board = get_blackboard(request)
    try:
        return await board.inspect(kind)
    except BlackboardError as e:
        raise _store_unavailable(e)


@router.get("/portfolio", response_model=PortfolioResponse)
async def get_portfolio(request: Request):
    """Get current portfolio state and target allocation."""
    board = get_blackboard(request)
    defaults = get_policy_config(request).portfolio
    try:
        portfolio = await state_cache.get_portfolio_state(board.store)
        target = await state_cache.get_target_allocation(board.store, defaults)
    except BlackboardError as e:
        raise _store_unavailable(e)
    return PortfolioResponse(portfolio=portfolio, target=target)


@router.put("/allocation", response_model=TargetAllocation)
async def set_allocation(request: Request, body: TargetAllocation):
    """Set the target allocation."""
    board = get_blackboard(request)
    try:
        return await state_cache.set_target_allocation(
            board.store, body.stocks_pct, body.bonds_pct
        )
    except BlackboardError as e:
        raise _store_unavailable(e)


@router.post("/reset", response_model=ResetResponse)
async def reset(request: Request):
    """Clear all pheromones and reset the portfolio to its initial state."""
    board = get_blackboard(request)
    portfolio_config = get_policy_config(request).portfolio
    try:
        await board.clear()
        await state_cache.set_portfolio_state(
            board.store, state_cache.initial_portfolio(portfolio_config)
        )
    except BlackboardError as e:
        raise _store_unavailable(e)
    return ResetResponse(success=True, message="All pheromones cleared, portfolio reset")
