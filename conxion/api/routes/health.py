"""Health Routes — liveness and database readiness for the ConXion API.

Invariants:
    - GET /api/v1/health/ answers 200 while the process serves requests,
      without touching the database
    - GET /api/v1/health/ready answers 503 until init_db() has run and a
      SELECT 1 round-trips through the request session factory
    - Neither endpoint needs a bearer token

Design Decisions:
    - db_manager is read through the module at request time: init_db() assigns
      it from the lifespan, after this module is imported
"""

import logging
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from conxion.infrastructure import database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Liveness: the process is up."""
    return {
        "status": "healthy",
        "service": "conxion-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness: the database answers."""
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        logger.warning(
            "Readiness check failed",
            extra={"error_code": "database_unavailable", "path": "/api/v1/health/ready"},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    return {"status": "ready", "checks": {"database": "healthy"}}
