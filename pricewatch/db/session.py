"""Engine and session factory shared by the API and the scripts."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from pricewatch.config import settings


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine for ``url``.

    Pool sizing only applies to server databases; SQLite gets the driver
    defaults.
    """
    options: dict = {"echo": settings.DB_ECHO}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **options)


engine = build_engine(settings.DATABASE_URL)

# Services read attributes after committing, so rows must not expire
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
