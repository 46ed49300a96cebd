"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("asyncio").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

# Try to use uvloop for better performance (Unix only)
try:
    import uvloop
    uvloop.install()
    _UVLOOP_ENABLED = True
except ImportError:
    _UVLOOP_ENABLED = False

from driftguard import __version__
from driftguard.api import dashboard_feed, manager, router, websocket_endpoint
from driftguard.config import get_settings
from driftguard.policy import load_policy_config
from driftguard.storage import Blackboard, EventChannel, RedisStore, state_cache

# Startup timeout in seconds
STARTUP_TIMEOUT = 10

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting DriftGuard blackboard...")

    # Policy problems must stop startup before anything touches the store
    policy_config = load_policy_config(settings.policy_path)
    policy = policy_config.resolve()

    store = RedisStore.from_url(settings.redis_url, settings.redis_max_connections)
    feed_task: asyncio.Task | None = None

    try:
        try:
            await asyncio.wait_for(store.connect(), timeout=STARTUP_TIMEOUT)
        except asyncio.TimeoutError:
            raise RuntimeError(f"Redis connection timed out after {STARTUP_TIMEOUT}s")
        logger.info(f"Blackboard connected to Redis at {settings.redis_url}")

        board = Blackboard(
            store=store,
            policy=policy,
            events=EventChannel(settings.event_buffer_size),
        )

        initial = state_cache.initial_portfolio(policy_config.portfolio)
        await state_cache.set_portfolio_state(store, initial)
        await state_cache.set_target_allocation(store, initial.stocks_pct, initial.bonds_pct)
        logger.info(
            f"Initial portfolio: ${initial.total_value:.2f} "
            f"({initial.stocks_pct:.0f}% stocks / {initial.bonds_pct:.0f}% bonds)"
        )

        app.state.blackboard = board
        app.state.policy_config = policy_config

        feed_task = asyncio.create_task(dashboard_feed(board, settings.snapshot_interval))
        logger.info("Dashboard feed started")

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        try:
            await store.close()
        except Exception as cleanup_err:
            logger.warning(f"Error closing store: {cleanup_err}")
        raise

    yield

    logger.info("Shutting down...")

    if feed_task:
        feed_task.cancel()
        try:
            await feed_task
        except asyncio.CancelledError:
            pass

    await store.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="DriftGuard",
    description="Stigmergic blackboard with time-decaying pheromones",
    version=__version__,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")

app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "DriftGuard",
        "version": __version__,
        "docs": "/docs",
        "event_loop": "uvloop" if _UVLOOP_ENABLED else "asyncio",
        "dashboards": manager.connection_count,
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "driftguard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
