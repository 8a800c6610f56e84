"""Marketplace API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, exception handlers and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api import (
    admin_orders_router,
    carts_router,
    health_router,
    me_cart_router,
    me_orders_router,
    store_router,
)
from marketplace.api.errors import register_exception_handlers
from marketplace.api.middleware import setup_middleware
from marketplace.infrastructure.config import settings
from marketplace.infrastructure.container import close_container, get_container
from marketplace.infrastructure.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging()
    logger.info(
        "Starting Marketplace API",
        version=settings.api_version,
        debug=settings.debug,
        catalog_backend=settings.catalog_backend,
    )
    get_container()

    yield

    # Shutdown
    await close_container()
    logger.info("Shutting down Marketplace API")


app = FastAPI(
    title="Marketplace API",
    description="Multi-seller marketplace commerce engine: carts, orders and returns",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, identity, error handling)
setup_middleware(app)

register_exception_handlers(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(carts_router)
app.include_router(me_cart_router)
app.include_router(me_orders_router)
app.include_router(store_router)
app.include_router(admin_orders_router)
