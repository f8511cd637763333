"""Cuotas billing service FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env before settings are read
load_dotenv()

from cuotas.api.errors import register_exception_handlers  # noqa: E402
from cuotas.api.routes import ROUTERS  # noqa: E402
from cuotas.config import settings  # noqa: E402
from cuotas.models import Base  # noqa: E402
from cuotas.services import async_engine  # noqa: E402
from cuotas.services.logging import setup_server_logging  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    setup_server_logging(settings.log_file, settings.log_level)
    # Startup: Initialize database tables
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")
    yield
    # Shutdown: release pooled connections
    await async_engine.dispose()
    logger.info("Application shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.api_title,
        description="Monthly dues, delinquency and payroll billing for residential buildings",
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
