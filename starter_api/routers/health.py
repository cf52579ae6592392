from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncEngine

from starter_api.cache import cache
from starter_api.database import get_engine, health_check, pool_stats, utcnow
from starter_api.errors import AppError, DatabaseError, ErrorCode
from starter_api.schemas import APIResponse, HealthResponse, success

router = APIRouter(tags=["health"])


@router.get("/health", response_model=APIResponse[HealthResponse])
async def health(engine: Annotated[AsyncEngine, Depends(get_engine)]):
    try:
        await health_check(engine)
    except DatabaseError as exc:
        raise AppError(
            "Service unavailable", ErrorCode.SERVICE_UNAVAILABLE, details="database unreachable", cause=exc
        ) from exc
    return success(
        HealthResponse(
            status="healthy",
            timestamp=utcnow(),
            database=pool_stats(engine),
            cache=cache.stats,
        )
    )


@router.get("/api/v1/ping", response_model=APIResponse[dict])
async def ping():
    return success({"status": "ok"}, "pong")
