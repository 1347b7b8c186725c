"""Unified billing FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from unified_billing.api import payments_router
from unified_billing.api.errors import register_error_handlers
from unified_billing.models import Base
from unified_billing.services import async_engine
from unified_billing.services.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    # Startup: Initialize database tables
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")
    yield
    # Shutdown: Cleanup if needed
    await async_engine.dispose()
    logger.info("Application shutting down")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.api_title,
        description="Unified payment distribution for HOA dues and water bills",
        version=settings.api_version,
        lifespan=lifespan,
    )
    register_error_handlers(app)
    app.include_router(payments_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


def main() -> None:
    import uvicorn

    from unified_billing.services.logging import setup_server_logging

    load_dotenv()
    setup_server_logging(get_settings())
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
