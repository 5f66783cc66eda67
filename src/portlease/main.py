"""portlease main application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portlease import __version__
from portlease.api import router
from portlease.config import Settings, settings as default_settings
from portlease.db import LeaseStore, close_db, create_engine, create_session_factory, init_db
from portlease.engine import LeaseManager
from portlease.tasks import LeaseSweeper

logger = logging.getLogger("portlease")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("Starting portlease daemon...")
    logger.info(f"Port range: {settings.pool_min}-{settings.pool_max}")
    logger.info(f"Using database: {settings.database_path}")

    # Initialize database
    engine = create_engine(settings.database_path, echo=settings.debug)
    await init_db(engine)
    store = LeaseStore(create_session_factory(engine))

    manager = LeaseManager(
        store,
        pool_min=settings.pool_min,
        pool_max=settings.pool_max,
        default_ttl_seconds=settings.default_ttl_seconds,
    )

    existing = await store.list_all()
    if existing:
        logger.info(f"Loaded {len(existing)} existing lease(s) from database")
    for lease in manager.out_of_pool(existing):
        logger.warning(
            f"Lease on port {lease.port} ({lease.service_name}) is outside the pool "
            f"{settings.pool_min}-{settings.pool_max}, it will be evicted"
        )
    app.state.manager = manager

    # Start background tasks; the first pass evicts leases that expired while down
    sweeper = LeaseSweeper(manager, settings.sweep_interval_seconds)
    sweeper.start()
    logger.info("Lease sweep task started")

    yield

    # Cleanup
    logger.info("Shutting down portlease daemon...")
    await sweeper.stop()
    app.state.manager = None
    await close_db(engine)
    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application for the given settings."""
    settings = settings or default_settings

    app = FastAPI(
        title="portlease",
        description="Lease-based TCP port allocation for processes on one host",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.manager = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(router)
    return app


app = create_app()


def main(settings: Settings | None = None):
    """Entry point for the daemon."""
    settings = settings or default_settings
    configure_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
