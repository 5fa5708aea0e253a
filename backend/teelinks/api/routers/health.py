"""Simple health and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from teelinks.api.dependencies.db import get_session
from teelinks.api.dependencies.services import get_storage
from teelinks.core.errors import UpstreamError
from teelinks.storage.bucket_client import StorageBucketClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "teelinks-catalog-api"


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    """Indicates API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/ready", summary="Readiness probe")
async def ready(
    db: Session = Depends(get_session),
    storage: StorageBucketClient = Depends(get_storage),
) -> dict[str, Any]:
    """Check the relational store and the image bucket.

    Used by load balancers to determine if traffic should be routed to this instance.
    """
    checks: dict[str, Any] = {
        "status": "ok",
        "service": SERVICE_NAME,
        "checks": {},
    }
    all_healthy = True

    try:
        await run_in_threadpool(lambda: db.execute(text("SELECT 1")).fetchone())
        checks["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful",
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        checks["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
        }
        all_healthy = False

    try:
        await run_in_threadpool(storage.check_bucket)
        checks["checks"]["storage"] = {
            "status": "healthy",
            "message": f"Bucket {storage.bucket} reachable",
        }
    except UpstreamError as e:
        logger.error(f"Storage health check failed: {e.error or e.message}")
        checks["checks"]["storage"] = {
            "status": "unhealthy",
            "message": f"{e.message} {e.error or ''}".strip(),
        }
        all_healthy = False

    if not all_healthy:
        checks["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )

    return checks
