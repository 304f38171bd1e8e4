"""
FastAPI application entry point for the Performance Tracker Deep Dive API.

Configures logging and CORS, builds the BigQuery warehouse client and the
PostgreSQL pool in the lifespan, and registers the API routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from perftracker import __version__
from perftracker.api import api_router
from perftracker.core.config import get_settings
from perftracker.core.database import init_db, close_db
from perftracker.core.warehouse import WarehouseClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown.

    On startup:
        - Build the BigQuery warehouse client (app.state.warehouse)
        - Initialize the PostgreSQL pool when DATABASE_URL is set

    On shutdown:
        - Close the warehouse client and the PostgreSQL pool
    """
    logger.info("Performance Tracker API starting")
    settings = get_settings()

    app.state.warehouse = None
    try:
        app.state.warehouse = WarehouseClient.from_settings(settings)
        logger.info(f"Warehouse client initialized for {settings.metrics_table_ref}")
    except Exception as e:
        logger.error(f"Failed to initialize warehouse client: {e}")

    if settings.database_url:
        try:
            await init_db()
            logger.info("Database connection pool initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            # Team features fail per request until the database is reachable
    else:
        logger.warning("DATABASE_URL not set; team perspective and team filters are unavailable")

    yield

    logger.info("Performance Tracker API shutting down")
    if app.state.warehouse is not None:
        app.state.warehouse.close()
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Performance Tracker Deep Dive API",
    version=__version__,
    description=(
        "Period-over-period comparison and Pareto revenue tiering for "
        "publisher, media, zone, product, PIC and team perspectives."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Performance Tracker Deep Dive API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "perftracker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
