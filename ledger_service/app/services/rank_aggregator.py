"""토큰/카테고리별 랭킹 조회.

점수 테이블은 다른 서비스가 유지하며, 여기서는 정렬된 목록에서 위치만 찾는다.
동점이면 먼저 달성한(achieved_at 이 이른) 유저가, 그것도 같으면 먼저 기록된 유저가 앞선다.
"""

from __future__ import annotations

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database

from ..models.rank import RankResult
from ..repositories.interfaces import ScoreRepositoryInterface
from ..repositories.score_repository import ScoreRepository


DEFAULT_LEADERBOARD_SIZE = 10


class RankAggregator:
    def __init__(self, score_repo: ScoreRepositoryInterface) -> None:
        self._score_repo = score_repo

    def get_rank(self, user_id: str, token_id: str) -> RankResult | None:
        """1부터 시작하는 순위. 유저의 항목이 여러 개면 가장 높은 항목 기준, 없으면 None."""
        entries = self._score_repo.list_ranked(token_id)
        for position, entry in enumerate(entries, start=1):
            if entry.user_id == user_id:
                return RankResult(
                    user_id=user_id,
                    token_id=token_id,
                    rank=position,
                    total_score=entry.total_score,
                    total_ranked=len(entries),
                )
        return None

    def top(
        self, token_id: str, limit: int = DEFAULT_LEADERBOARD_SIZE
    ) -> list[RankResult]:
        entries = self._score_repo.list_ranked(token_id)
        return [
            RankResult(
                user_id=entry.user_id,
                token_id=token_id,
                rank=position,
                total_score=entry.total_score,
                total_ranked=len(entries),
            )
            for position, entry in enumerate(entries[:limit], start=1)
        ]


def get_score_repository(
    db: Database = Depends(get_database),
) -> ScoreRepositoryInterface:
    return ScoreRepository(db)


def get_rank_aggregator(
    repo: ScoreRepositoryInterface = Depends(get_score_repository),
) -> RankAggregator:
    """FastAPI DI용 RankAggregator 팩토리."""

    return RankAggregator(repo)
