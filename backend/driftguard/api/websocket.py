"""WebSocket endpoint for the live pheromone dashboard."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from driftguard.errors import BlackboardError
from driftguard.policy import PortfolioConfig
from driftguard.storage import Blackboard, PheromoneEvent, state_cache

logger = logging.getLogger(__name__)


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def _frame(msg_type: str, data: Any) -> str:
    return _orjson_dumps({
        "type": msg_type,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


class WebSocketMessage(BaseModel):
    """WebSocket message format."""

    type: str  # "pheromone_update", "portfolio_update", "event", ...
    data: Any
    timestamp: datetime

    def to_json(self) -> str:
        """Serialize to JSON string using orjson for performance."""
        return _orjson_dumps(self.model_dump(mode="json"))


# A dashboard that cannot take a frame within this many seconds is dropped
SEND_TIMEOUT = 2.0


class ConnectionManager:
    """Track open dashboards and fan frames out to all of them at once.

    A dashboard whose send fails or stalls past ``send_timeout`` is dropped.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT):
        self._dashboards: set[WebSocket] = set()
        self._send_timeout = send_timeout

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._dashboards.add(websocket)
        logger.info(f"Dashboard connected ({len(self._dashboards)} open)")

    async def disconnect(self, websocket: WebSocket) -> None:
        self._dashboards.discard(websocket)
        logger.info(f"Dashboard disconnected ({len(self._dashboards)} open)")

    async def _deliver(self, websocket: WebSocket, text: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(text), timeout=self._send_timeout)
        except Exception as e:
            logger.warning(f"Dropping dashboard after failed send: {e!r}")
            return False
        return True

    async def broadcast(self, message: WebSocketMessage) -> None:
        """Send one frame to every dashboard concurrently."""
        if not self._dashboards:
            return

        text = message.to_json()
        targets = list(self._dashboards)
        delivered = await asyncio.gather(*(self._deliver(ws, text) for ws in targets))
        for websocket, ok in zip(targets, delivered):
            if not ok:
                self._dashboards.discard(websocket)

    async def send_pheromones(self, statuses: list[dict]) -> None:
        """Broadcast current intensity of every pheromone."""
        await self.broadcast(WebSocketMessage(
            type="pheromone_update",
            data={"pheromones": statuses},
            timestamp=datetime.now(timezone.utc),
        ))

    async def send_portfolio(self, portfolio: dict) -> None:
        """Broadcast portfolio state."""
        await self.broadcast(WebSocketMessage(
            type="portfolio_update",
            data={"portfolio": portfolio},
            timestamp=datetime.now(timezone.utc),
        ))

    async def send_event(self, event: PheromoneEvent) -> None:
        """Broadcast a single deposit/sense/decay event."""
        await self.broadcast(WebSocketMessage(
            type="event",
            data={
                "event_type": event.action.value,
                "pheromone": event.pheromone_type,
                "intensity": event.intensity,
            },
            timestamp=datetime.now(timezone.utc),
        ))

    @property
    def connection_count(self) -> int:
        """Number of open dashboards."""
        return len(self._dashboards)


# Global connection manager
manager = ConnectionManager()


async def _snapshot(board: Blackboard) -> tuple[list[dict], dict | None]:
    statuses = [s.model_dump() for s in await board.status()]
    portfolio = await state_cache.get_portfolio_state(board.store)
    return statuses, portfolio.model_dump() if portfolio else None


async def dashboard_feed(
    board: Blackboard,
    interval: float = 0.5,
    connections: ConnectionManager = manager,
) -> None:
    """Forward blackboard events and periodic snapshots to all dashboards.

    Runs until cancelled. Store errors skip one snapshot; they never stop
    the feed.
    """
    loop = asyncio.get_running_loop()
    async with board.subscribe() as subscription:
        next_snapshot = loop.time()
        while True:
            now = loop.time()
            if now < next_snapshot:
                event = await subscription.get(timeout=next_snapshot - now)
                if event is not None:
                    await connections.send_event(event)
                continue

            next_snapshot = now + interval
            if not connections.connection_count:
                continue
            try:
                statuses, portfolio = await _snapshot(board)
            except BlackboardError as e:
                logger.warning(f"Dashboard snapshot failed: {e}")
                continue
            await connections.send_pheromones(statuses)
            if portfolio is not None:
                await connections.send_portfolio(portfolio)


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for the pheromone dashboard.

    Messages sent to clients:
    - pheromone_update: Intensity, threshold and timing of every pheromone
    - portfolio_update: Current portfolio state
    - event: A pheromone was deposited, sensed or found decayed

    Messages accepted from clients:
    - set_allocation: {"stocks_pct": 70, "bonds_pct": 30}
    - get_status: Resend the current snapshot
    - reset: Clear all pheromones and reset the portfolio
    - ping

    Message format:
    {
        "type": "event",
        "data": {...},
        "timestamp": "2024-01-01T00:00:00+00:00"
    }
    """
    await manager.connect(websocket)
    board: Blackboard = websocket.app.state.blackboard

    try:
        await handle_client_message(websocket, board, {"type": "get_status"})

        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=60.0)

                try:
                    message = orjson.loads(data)
                except orjson.JSONDecodeError:
                    await websocket.send_text(_frame("error", {"message": "Invalid JSON"}))
                    continue
                if not isinstance(message, dict):
                    await websocket.send_text(_frame("error", {"message": "Expected an object"}))
                    continue
                await handle_client_message(websocket, board, message)

            except asyncio.TimeoutError:
                await websocket.send_text(_frame("ping", {}))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)


async def send_status(websocket: WebSocket, board: Blackboard) -> None:
    """Send the current pheromone and portfolio snapshot to one client."""
    statuses, portfolio = await _snapshot(board)
    await websocket.send_text(_frame("pheromone_update", {"pheromones": statuses}))
    if portfolio is not None:
        await websocket.send_text(_frame("portfolio_update", {"portfolio": portfolio}))


async def handle_client_message(websocket: WebSocket, board: Blackboard, message: dict) -> None:
    """Handle incoming message from client.

    Store failures are reported to the client as an ``error`` frame; the
    connection stays open so the dashboard can retry.
    """
    msg_type = message.get("type", "")
    try:
        await _dispatch(websocket, board, msg_type, message)
    except BlackboardError as e:
        logger.warning(f"Dashboard request {msg_type!r} failed: {e}")
        await websocket.send_text(_frame("error", {"message": f"Blackboard unavailable: {e}"}))


async def _dispatch(websocket: WebSocket, board: Blackboard, msg_type: str, message: dict) -> None:
    portfolio_config: PortfolioConfig = websocket.app.state.policy_config.portfolio

    if msg_type == "ping":
        await websocket.send_text(_frame("pong", {}))
    elif msg_type == "get_status":
        await send_status(websocket, board)
    elif msg_type == "set_allocation":
        try:
            allocation = state_cache.TargetAllocation(
                stocks_pct=float(message.get("stocks_pct", 0)),
                bonds_pct=float(message.get("bonds_pct", 0)),
            )
        except (ValueError, TypeError) as e:
            await websocket.send_text(_frame("error", {"message": str(e)}))
            return
        await state_cache.set_target_allocation(
            board.store, allocation.stocks_pct, allocation.bonds_pct
        )
        await websocket.send_text(_frame("allocation_updated", allocation.model_dump()))
    elif msg_type == "reset":
        logger.info("Dashboard requested reset")
        await board.clear()
        await state_cache.set_portfolio_state(
            board.store, state_cache.initial_portfolio(portfolio_config)
        )
        await send_status(websocket, board)
    else:
        await websocket.send_text(_frame("error", {"message": f"Unknown message type: {msg_type}"}))
