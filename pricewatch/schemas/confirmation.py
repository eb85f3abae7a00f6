"""Schemas for confirming match candidates."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from pricewatch.schemas.common import CamelModel


class SelectionItem(CamelModel):
    """One user choice. A null, empty, ``none`` or ``__NONE__`` product skips the row."""

    competitor_item_id: str = Field(..., min_length=1)
    product_id: Optional[str] = None

    @field_validator("competitor_item_id", "product_id", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        if v is None:
            return v
        return str(v)


class ConfirmMatchesRequest(CamelModel):
    selections: List[SelectionItem] = Field(default_factory=list)
    store_id: Optional[UUID] = None


class ConfirmMatchesResponse(CamelModel):
    ok: bool = True
    inserted: int = 0
    already_confirmed: int = 0
    skipped: int = 0
    rejected: int = 0
    errors: List[Dict[str, Any]] = Field(default_factory=list)
