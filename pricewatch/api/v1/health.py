"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.config import settings
from pricewatch.db.utils import check_database_health
from pricewatch.dependencies import get_db
from pricewatch.schemas import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Return service health status.

    Reports database connectivity and whether the rendering proxy used for
    generic storefronts is configured.
    """
    db_check = await check_database_health(db)
    database = "ok" if db_check["healthy"] else f"error: {db_check.get('error')}"
    proxy = "configured" if settings.SCRAPING_API_KEY else "not_configured"

    return HealthCheckResponse(
        status="ok" if db_check["healthy"] else "degraded",
        database=database,
        services={"database": database, "rendering_proxy": proxy},
    )
