from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ..schemas.pool import GlobalUnpaidResponse, PoolStateResponse
from ...services.pool_accountant import PoolAccountant, get_pool_accountant


router = APIRouter()


@router.get("", response_model=PoolStateResponse, summary="리워드 풀 지급 현황")
def get_pool_state(
    accountant: Annotated[PoolAccountant, Depends(get_pool_accountant)],
) -> PoolStateResponse:
    state = accountant.compute_pool_state()
    return PoolStateResponse.model_validate(state.model_dump())


@router.get(
    "/unpaid",
    response_model=GlobalUnpaidResponse,
    summary="전체 유저 미지급 적립 합계",
)
def get_global_unpaid(
    accountant: Annotated[PoolAccountant, Depends(get_pool_accountant)],
) -> GlobalUnpaidResponse:
    summary = accountant.compute_global_unpaid()
    return GlobalUnpaidResponse.model_validate(summary.model_dump())
