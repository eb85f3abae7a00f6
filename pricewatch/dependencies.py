"""FastAPI dependency injection providers."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.db.session import async_session_factory
from pricewatch.scrapers.factory import ScraperFactory, get_scraper_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is committed on success or rolled back on error, and always
    closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_scrapers() -> ScraperFactory:
    """Scraper factory used by discovery, sync and add-by-url requests."""
    return get_scraper_factory()
