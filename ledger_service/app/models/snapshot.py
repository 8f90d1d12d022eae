"""계산 결과(파생) 모델. 저장하지 않고 요청 시마다 다시 계산한다."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .decay import DecayState


class UserCreditSnapshot(BaseModel):
    """유저 크레딧 집계 결과.

    spendable_balance = max(0, unpaid_raw - burned_since_last_payout - decay_since_last_activity)
    """

    user_id: str
    total_earned_all_time: Decimal
    unpaid_raw: Decimal
    burned_since_last_payout: Decimal
    decay_since_last_activity: Decimal  # 마지막 지급 이후 확정된 Offline Decay 합계
    spendable_balance: Decimal
    last_paid_at: datetime | None = None
    last_activity_at: datetime | None = None
    decay_state: DecayState = DecayState.ACTIVE
    unpaid_by_source: dict[str, Decimal] = Field(default_factory=dict)
    burned_by_type: dict[str, Decimal] = Field(default_factory=dict)
    computed_at: datetime


class PoolState(BaseModel):
    """플랫폼 전체 지급 풀 현황."""

    total_pool_ceiling: Decimal
    total_paid_across_sources: Decimal
    remaining: Decimal  # 한도를 낮춘 경우 음수일 수 있다
    display_remaining: Decimal  # 화면 표시용, 0 이상
    percentage: Decimal  # [0, 100] 로 clamp
    over_distributed: bool = False
    paid_by_source: dict[str, Decimal] = Field(default_factory=dict)
    config_version: int = 0


class GlobalUnpaidSummary(BaseModel):
    """전체 유저의 적립됐지만 아직 지급되지 않은 합계."""

    total_unpaid: Decimal
    unpaid_by_source: dict[str, Decimal] = Field(default_factory=dict)


class PayoutClaim(BaseModel):
    """지급 대상 레코드 선점 결과."""

    payout_id: str
    user_id: str
    record_ids: list[str]
    claimed_amount: Decimal  # 선점한 레코드 금액 합계
    payable_amount: Decimal  # 실제 지급해야 할 금액 (spendable_balance)
    paid_at: datetime
