"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries (must be set before importing them)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

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

from sarbot.api import RealtimeBroadcaster, router, websocket_endpoint
from sarbot.clients import parse_session
from sarbot.config import get_settings
from sarbot.services import BotController, ReadinessFeed
from sarbot.storage import InMemoryTradeStore, TradeRepository, close_database, init_database
from sarbot.universe_config import load_universe_config
from sarcore.events import BotEvents
from sarcore.trade_store import TradeStore

logger = logging.getLogger(__name__)


async def _init_trade_store() -> tuple[TradeStore, bool]:
    """Database-backed store, or in-memory if the database is off or unreachable."""
    settings = get_settings()
    if not settings.use_database:
        logger.info("Database disabled - trades kept in memory")
        return InMemoryTradeStore(), False

    try:
        await asyncio.wait_for(init_database(), timeout=30)
        logger.info("Database initialized")
        return TradeRepository(), True
    except Exception as e:
        logger.warning(f"Database unavailable ({e}) - trades kept in memory")
        await close_database()
        return InMemoryTradeStore(), False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting SAR signal bot...")
    logger.info(f"Event loop: {'uvloop' if _UVLOOP_ENABLED else 'asyncio'}")

    settings = get_settings()
    universe = load_universe_config()
    store, db_initialized = await _init_trade_store()

    session = parse_session(settings.pocket_option_ssid)
    if not settings.pocket_option_ssid:
        logger.warning("POCKET_OPTION_SSID not set - running disconnected")

    events = BotEvents()
    readiness_feed = ReadinessFeed()
    controller = BotController(
        settings=settings,
        universe=universe.get_specs(),
        readiness=readiness_feed,
        store=store,
        events=events,
        session=session,
    )
    broadcaster = RealtimeBroadcaster(events, controller.snapshot)

    # Expose services to API routes via app.state
    app.state.controller = controller
    app.state.readiness_feed = readiness_feed
    app.state.broadcaster = broadcaster

    logger.info(f"Monitoring {len(universe.get_specs())} assets")

    yield

    # Shutdown
    logger.info("Shutting down...")

    await controller.shutdown()
    await broadcaster.close()

    if db_initialized:
        try:
            await close_database()
            logger.info("Database connections closed")
        except Exception as e:
            logger.warning(f"Error closing database: {e}")

    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="SAR Signal Bot",
    description="Multi-timeframe Parabolic SAR signal service",
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")

# WebSocket endpoint
app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "SAR Signal Bot",
        "version": "0.1.0",
        "docs": "/docs",
        "event_loop": "uvloop" if _UVLOOP_ENABLED else "asyncio",
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
        "sarbot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
