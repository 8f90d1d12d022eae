from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class PoolStateResponse(BaseModel):
    total_pool_ceiling: Decimal
    total_paid_across_sources: Decimal
    remaining: Decimal
    display_remaining: Decimal
    percentage: Decimal
    over_distributed: bool
    paid_by_source: dict[str, Decimal]
    config_version: int


class GlobalUnpaidResponse(BaseModel):
    total_unpaid: Decimal
    unpaid_by_source: dict[str, Decimal]
