from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class ScoreEntry(BaseModel):
    """user_scores 의 한 행 (토큰/카테고리별 누적 점수)."""

    id: str | None = None
    user_id: str
    token_id: str
    total_score: Decimal
    achieved_at: datetime


class RankResult(BaseModel):
    user_id: str
    token_id: str
    rank: int  # 1부터 시작
    total_score: Decimal
    total_ranked: int
