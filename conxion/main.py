"""ConXion API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map ConxionError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py; this module only wires
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conxion.api.error_handlers import register_error_handlers
from conxion.api.routes import (
    connections, events, health, messages, moderation, notifications,
    references, syncs, trips,
)
from conxion.config import get_settings
from conxion.infrastructure.database import close_db, init_db
from conxion.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("ConXion API started")
    yield
    await close_db()
    logger.info("ConXion API shutting down")


app = FastAPI(title="ConXion API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(references.router)
app.include_router(connections.router)
app.include_router(syncs.router)
app.include_router(events.router)
app.include_router(trips.router)
app.include_router(moderation.router)
app.include_router(notifications.router)
app.include_router(messages.router)

register_error_handlers(app)
