from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..schemas.ranks import LeaderboardResponse, RankResponse
from ...errors import RankNotFound
from ...services.rank_aggregator import RankAggregator, get_rank_aggregator


router = APIRouter()


@router.get(
    "/{token_id}",
    response_model=LeaderboardResponse,
    summary="토큰별 상위 랭킹",
)
def get_leaderboard(
    token_id: str,
    aggregator: Annotated[RankAggregator, Depends(get_rank_aggregator)],
    limit: int = Query(10, ge=1, le=100),
) -> LeaderboardResponse:
    ranks = aggregator.top(token_id, limit)
    return LeaderboardResponse(
        token_id=token_id,
        items=[RankResponse.model_validate(r.model_dump()) for r in ranks],
    )


@router.get(
    "/{token_id}/users/{user_id}",
    response_model=RankResponse,
    summary="유저 순위 조회",
)
def get_user_rank(
    token_id: str,
    user_id: str,
    aggregator: Annotated[RankAggregator, Depends(get_rank_aggregator)],
) -> RankResponse:
    result = aggregator.get_rank(user_id, token_id)
    if result is None:
        raise RankNotFound(user_id, token_id)
    return RankResponse.model_validate(result.model_dump())
