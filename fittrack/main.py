"""
FastAPI application entrypoint for the Fit Track backend.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from fittrack.api.routes import pages_router, router as api_router
from fittrack.core.config import get_settings
from fittrack.core.logging import configure_logging
from fittrack.dependencies import get_reminder_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tie the reminder loop to the application's lifetime."""
    settings = get_settings()
    scheduler = get_reminder_scheduler()
    if settings.reminders.autostart:
        scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Fit Track",
        version="0.1.0",
        description="Sign-in callback handling and meal/weight reminders for Fit Track.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    app.include_router(pages_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
