"""Shared catalog schema (v1).

Wire shape returned by the catalog service for a ValidateProducts request.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class CatalogProductV1(BaseModel):
    id: int
    name: str
    price: Decimal = Field(..., ge=0)


class ValidateProductsRequestV1(BaseModel):
    ids: list[int] = Field(..., min_length=1)
