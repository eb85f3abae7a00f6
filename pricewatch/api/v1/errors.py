"""Translation of service exceptions into HTTP errors."""

from fastapi import HTTPException, status

from pricewatch.core.exceptions import (
    NotFoundError,
    PriceWatchException,
    ScraperError,
    ValidationError,
)
from pricewatch.schemas import ErrorResponse

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request or cross-tenant reference"},
    404: {"model": ErrorResponse, "description": "Resource not found for this store"},
}


def to_http_exception(exc: PriceWatchException) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, ValidationError):
        detail = {"message": exc.message, "errors": exc.errors} if exc.errors else exc.message
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if isinstance(exc, ScraperError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
