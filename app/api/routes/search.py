from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from supabase import Client

from app.api.deps import get_db
from app.services.catalog import CatalogService

router = APIRouter(prefix="/api", tags=["search"])
logger = structlog.get_logger()


@router.get("/search")
async def search(q: str = Query("", max_length=100), db: Client = Depends(get_db)) -> dict[str, Any]:
    """Courts, venues and forum threads matching q."""
    results = CatalogService(db).search(q)
    logger.info("Search served", query=q, results=len(results))
    return {"data": [result.to_api() for result in results]}


@router.get("/recommended-courts")
async def recommended_courts(db: Client = Depends(get_db)) -> dict[str, Any]:
    courts = CatalogService(db).recommended_courts()
    return {"data": [court.to_api() for court in courts]}
