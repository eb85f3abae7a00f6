"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from pricewatch.api.v1 import competitors, discovery, health, sync

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(discovery.router, prefix="/discovery", tags=["discovery"])
api_v1_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_v1_router.include_router(competitors.router, prefix="/competitors", tags=["competitors"])
