"""Pydantic request/response schemas."""

from pricewatch.schemas.common import CamelModel, ErrorDetail, ErrorResponse
from pricewatch.schemas.competitor import (
    AddByUrlRequest,
    CandidateResponse,
    CompetitorCreate,
    CompetitorDeleteResponse,
    CompetitorResponse,
    ConfirmedMatchResponse,
)
from pricewatch.schemas.confirmation import ConfirmMatchesRequest, ConfirmMatchesResponse, SelectionItem
from pricewatch.schemas.discovery import DiscoveryRunRequest, DiscoveryRunResponse, QuotaResponse
from pricewatch.schemas.health import HealthCheckResponse
from pricewatch.schemas.sync import SyncRequest, SyncResponse

__all__ = [
    "CamelModel",
    "ErrorDetail",
    "ErrorResponse",
    "AddByUrlRequest",
    "CandidateResponse",
    "CompetitorCreate",
    "CompetitorDeleteResponse",
    "CompetitorResponse",
    "ConfirmedMatchResponse",
    "ConfirmMatchesRequest",
    "ConfirmMatchesResponse",
    "SelectionItem",
    "DiscoveryRunRequest",
    "DiscoveryRunResponse",
    "QuotaResponse",
    "HealthCheckResponse",
    "SyncRequest",
    "SyncResponse",
]
