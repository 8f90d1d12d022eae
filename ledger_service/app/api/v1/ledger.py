"""유저 레저 내부 API.

Gateway 와 지급 실행기가 호출한다. 도메인 예외(LedgerError)는 main 의
exception handler 가 상태 코드로 변환한다.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from common.schemas.pagination import PaginatedResponse, normalize_page

from ..schemas.ledger import (
    ActivityRequest,
    ActivityResponse,
    BurnCreateRequest,
    BurnResponse,
    CreditBalanceResponse,
    DecayHistoryItem,
    DecayPreviewResponse,
    PayoutClaimResponse,
)
from ...services.activity_service import ActivityService, get_activity_service
from ...services.balance_calculator import BalanceCalculator, get_balance_calculator
from ...services.decay_engine import DecayEngine, get_decay_engine
from ...services.payout_service import PayoutService, get_payout_service


router = APIRouter()


@router.get(
    "/{user_id}/balance",
    response_model=CreditBalanceResponse,
    summary="유저 지급 가능 잔액 조회 (Offline Decay 확정 포함)",
)
def get_balance(
    user_id: str,
    calculator: Annotated[BalanceCalculator, Depends(get_balance_calculator)],
) -> CreditBalanceResponse:
    snapshot = calculator.compute_spendable(user_id)
    return CreditBalanceResponse.model_validate(snapshot.model_dump())


@router.get(
    "/{user_id}/decay",
    response_model=DecayPreviewResponse,
    summary="대기 중인 decay 미리보기",
)
def preview_decay(
    user_id: str,
    calculator: Annotated[BalanceCalculator, Depends(get_balance_calculator)],
) -> DecayPreviewResponse:
    result = calculator.preview_decay(user_id)
    return DecayPreviewResponse(
        user_id=user_id,
        state=result.state,
        elapsed_seconds=result.elapsed_seconds,
        rate_per_second=result.rate_per_second,
        raw_decay=result.raw_decay,
        pending_decay=result.decay,
        last_activity_at=result.last_activity_at,
    )


@router.get(
    "/{user_id}/decay-history",
    response_model=PaginatedResponse[DecayHistoryItem],
    summary="Offline Decay 이력 조회",
)
def list_decay_history(
    user_id: str,
    decay_engine: Annotated[DecayEngine, Depends(get_decay_engine)],
    page: int = Query(1, ge=1, description="조회할 페이지 (1부터 시작)"),
    page_size: int = Query(20, ge=1, le=100, description="페이지당 아이템 개수 (1~100)"),
) -> PaginatedResponse[DecayHistoryItem]:
    page, page_size = normalize_page(page, page_size)
    entries, total = decay_engine.history(user_id, page, page_size)
    items = [DecayHistoryItem.model_validate(e.model_dump()) for e in entries]
    return PaginatedResponse[DecayHistoryItem](
        items=items, total=total, page=page, page_size=page_size
    )


@router.post(
    "/{user_id}/activity",
    response_model=ActivityResponse,
    summary="활동/하트비트 등록",
)
def register_activity(
    user_id: str,
    body: ActivityRequest,
    activity_service: Annotated[ActivityService, Depends(get_activity_service)],
) -> ActivityResponse:
    state = activity_service.record_activity(
        user_id, body.occurred_at, heartbeat=body.heartbeat
    )
    return ActivityResponse.model_validate(state.model_dump())


@router.post(
    "/{user_id}/burns",
    response_model=BurnResponse,
    status_code=201,
    summary="소비 레코드 기록",
)
def record_burn(
    user_id: str,
    body: BurnCreateRequest,
    activity_service: Annotated[ActivityService, Depends(get_activity_service)],
) -> BurnResponse:
    record = activity_service.record_burn(
        user_id, body.burn_type, body.amount, body.occurred_at
    )
    return BurnResponse(
        id=record.id,
        user_id=record.user_id,
        burn_type=record.burn_type.value,
        amount=record.amount,
        created_at=record.created_at,
    )


@router.post(
    "/{user_id}/payouts",
    response_model=PayoutClaimResponse,
    summary="지급 대상 레코드 선점 (paid 전이)",
)
def claim_payout(
    user_id: str,
    payout_service: Annotated[PayoutService, Depends(get_payout_service)],
) -> PayoutClaimResponse:
    """다른 지급이 레코드를 먼저 가져갔으면 409. 잔액을 다시 조회한 뒤 재요청해야 한다."""
    claim = payout_service.claim(user_id)
    return PayoutClaimResponse.model_validate(claim.model_dump())
