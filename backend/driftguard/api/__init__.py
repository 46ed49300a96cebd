"""API endpoints."""

from driftguard.api.routes import router
from driftguard.api.websocket import (
    ConnectionManager,
    dashboard_feed,
    manager,
    websocket_endpoint,
)

__all__ = [
    "router",
    "manager",
    "dashboard_feed",
    "websocket_endpoint",
    "ConnectionManager",
]
