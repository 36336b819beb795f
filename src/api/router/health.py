from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, status
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.controller.auth.dto.output_dto import HealthCheckResponseDto
from src.core.dependencies import get_redis_client
from src.infra.database import get_async_session

router = APIRouter()


async def check_redis_health(redis_client: Redis) -> Dict[str, str]:
    """Check Redis connection health."""
    try:
        await redis_client.ping()
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection failed: {str(e)}"}


async def check_database_health(session: AsyncSession) -> Dict[str, str]:
    """Check database connection health."""
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection failed: {str(e)}"}


@router.get("/health", response_model=HealthCheckResponseDto, status_code=status.HTTP_200_OK)
async def health_check(
    redis_client: Redis = Depends(get_redis_client),
    session: AsyncSession = Depends(get_async_session)
) -> HealthCheckResponseDto:
    """Status of the service and its backing stores"""
    services = {
        "redis": await check_redis_health(redis_client),
        "database": await check_database_health(session),
    }
    overall = "ok" if all(s["status"] == "healthy" for s in services.values()) else "degraded"

    return HealthCheckResponseDto(
        status=overall,
        services=services,
        timestamp=datetime.now(timezone.utc).isoformat()
    )
