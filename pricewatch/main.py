"""PriceWatch API application."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from pricewatch.api.v1.router import api_v1_router
from pricewatch.config import settings
from pricewatch.db.session import engine
from pricewatch.models import Base

API_VERSION = "0.1.0"

log_level = logging.INFO if settings.DEBUG else logging.WARNING
logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("api_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)
    if not settings.SCRAPING_API_KEY:
        logger.warning("rendering_proxy_not_configured", detail="generic storefronts and product pages cannot be scraped")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready")
    except SQLAlchemyError as e:
        logger.error("database_schema_failed", error=str(e), exc_info=True)

    yield

    logger.info("api_stopping")
    await engine.dispose()


app = FastAPI(
    title="PriceWatch API",
    description="Competitor product discovery, matching and price tracking",
    version=API_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys([settings.FRONTEND_URL, "http://localhost:3000"])),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "name": "PriceWatch API",
        "version": API_VERSION,
        "docs": app.docs_url,
        "health": "/api/v1/health",
    }
