"""
catalog/main.py
Minimal FastAPI host for the course catalog core

Owns the database lifespan, logging setup, error mapping and a health check.
Course routes belong to the host service and are not defined here.
"""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from catalog.config.settings import settings
from catalog.database import close_db, init_db
from catalog.errors import register_exception_handlers
from catalog.tasks.enrollment_refresh import start_refresh_task

logger = logging.getLogger(__name__)


def setup_logging(level: str = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting course catalog...")
    try:
        await init_db()
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    refresh_task = None
    if app.state.run_background_tasks:
        refresh_task = start_refresh_task(settings.ENROLLMENT_REFRESH_INTERVAL_SECONDS)

    yield

    logger.info("Shutting down course catalog...")
    if refresh_task is not None:
        refresh_task.cancel()
        with suppress(asyncio.CancelledError):
            await refresh_task
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")


def create_app(run_background_tasks: bool = True) -> FastAPI:
    setup_logging()
    app = FastAPI(
        title="Course Catalog",
        description="Course catalog domain core",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.run_background_tasks = run_background_tasks
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "settings": settings.as_dict(),
        }

    return app
