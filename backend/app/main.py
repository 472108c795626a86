"""Main application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from app.api import router
from app.clients import create_venue
from app.config import Settings, get_settings
from app.services import DecisionOrchestrator
from app.storage import PriceRepository, TradeEventRepository, get_database, init_database
from app.trading_config import load_trading_config
from core.errors import FatalConfigError

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("ccxt").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def build_orchestrator(settings: Settings) -> DecisionOrchestrator:
    """Wire the orchestrator from settings and the trading config.

    Raises:
        FatalConfigError: If the configuration cannot support a safe start.
    """
    if not settings.database_url:
        raise FatalConfigError("DATABASE_URL is not set")

    trading_config = load_trading_config(settings.trading_config_path)
    venue = create_venue(settings, trading_config)
    market = PriceRepository(
        source=settings.price_source,
        max_age=settings.latest_price_max_age,
    )
    return DecisionOrchestrator(
        config=trading_config,
        market=market,
        venue=venue,
        event_log=TradeEventRepository(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info(f"Starting trading bot ({settings.trading_mode})...")

    # Refuse to start on any configuration problem
    try:
        orchestrator = build_orchestrator(settings)
    except FatalConfigError as e:
        logger.critical(f"Configuration error, refusing to start: {e}")
        raise

    try:
        await asyncio.wait_for(init_database(), timeout=30)
        logger.info("Database initialized")
    except asyncio.TimeoutError:
        await get_database().close()
        raise RuntimeError("Database initialization timed out after 30s")

    stop_event = asyncio.Event()
    engine_task = asyncio.create_task(orchestrator.run_forever(stop_event))
    app.state.orchestrator = orchestrator
    logger.info("Engine started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    app.state.orchestrator = None

    # Let the running cycle finish
    stop_event.set()
    try:
        await engine_task
    except Exception as e:
        logger.warning(f"Engine task ended with error: {e}")

    close = getattr(orchestrator.venue, "close", None)
    if close is not None:
        await close()

    try:
        await get_database().close()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Shutdown complete")


# Create FastAPI app with orjson for faster JSON serialization
app = FastAPI(
    title="Trading Bot",
    description="Rule-based spot trading engine",
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    settings = get_settings()
    return {
        "name": "Trading Bot",
        "version": "0.1.0",
        "docs": "/docs",
        "trading_mode": settings.trading_mode,
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
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
