from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class RankResponse(BaseModel):
    user_id: str
    token_id: str
    rank: int
    total_score: Decimal
    total_ranked: int


class LeaderboardResponse(BaseModel):
    token_id: str
    items: list[RankResponse]
