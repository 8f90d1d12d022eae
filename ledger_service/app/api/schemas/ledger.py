from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime

from ...models.burn import BurnType
from ...models.decay import DecayState


class CreditBalanceResponse(BaseModel):
    """유저 지급 가능 잔액 스냅샷."""

    user_id: str
    total_earned_all_time: Decimal
    unpaid_raw: Decimal
    burned_since_last_payout: Decimal
    decay_since_last_activity: Decimal
    spendable_balance: Decimal
    last_paid_at: UtcDateTime | None = None
    last_activity_at: UtcDateTime | None = None
    decay_state: DecayState
    unpaid_by_source: dict[str, Decimal]
    burned_by_type: dict[str, Decimal]
    computed_at: UtcDateTime


class DecayPreviewResponse(BaseModel):
    """지금 확정하면 적용될 decay (기록되지 않음)."""

    user_id: str
    state: DecayState
    elapsed_seconds: Decimal
    rate_per_second: Decimal
    raw_decay: Decimal
    pending_decay: Decimal
    last_activity_at: UtcDateTime | None = None


class DecayHistoryItem(BaseModel):
    id: str | None
    label: str
    amount: Decimal
    elapsed_seconds: Decimal
    rate_per_second: Decimal
    created_at: UtcDateTime


class ActivityRequest(BaseModel):
    """활동/하트비트 등록 요청. occurred_at 이 없으면 서버 시각."""

    occurred_at: datetime | None = None
    heartbeat: bool = False


class ActivityResponse(BaseModel):
    user_id: str
    last_activity_at: UtcDateTime | None = None
    last_seen_at: UtcDateTime | None = None
    last_heartbeat_at: UtcDateTime | None = None


class BurnCreateRequest(BaseModel):
    burn_type: BurnType
    amount: Decimal = Field(ge=0)
    occurred_at: datetime | None = None


class BurnResponse(BaseModel):
    id: str | None
    user_id: str
    burn_type: str
    amount: Decimal
    created_at: UtcDateTime


class PayoutClaimResponse(BaseModel):
    """선점 결과. payable_amount 만큼 지급해야 한다."""

    payout_id: str
    user_id: str
    record_ids: list[str]
    claimed_amount: Decimal
    payable_amount: Decimal
    paid_at: UtcDateTime
