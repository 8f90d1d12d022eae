"""오프라인 decay 도메인 모델."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field


OFFLINE_DECAY_LABEL = "Offline Decay"


class DecayState(StrEnum):
    ACTIVE = "active"
    OFFLINE = "offline"


class ActivityState(BaseModel):
    """유저별 활동 시각.

    - last_activity_at: decay 기준점. 활동 이벤트와 decay 확정 시 앞으로 이동한다.
    - last_seen_at: 실제 활동 이벤트 시각. grace window 는 여기서부터 센다.
    - last_heartbeat_at: 적립 세션 하트비트 시각.
    """

    user_id: str
    last_activity_at: datetime | None = None
    last_seen_at: datetime | None = None
    last_heartbeat_at: datetime | None = None


class DecayResult(BaseModel):
    """decay 계산 결과.

    - raw_decay: 경과 시간 * rate (cap 적용 전)
    - decay: min(raw_decay, decayable)
    - applied: 이번 호출에서 실제로 레저에 기록한 양 (preview 또는 선점 실패 시 0)
    """

    state: DecayState
    elapsed_seconds: Decimal
    rate_per_second: Decimal
    raw_decay: Decimal
    decay: Decimal
    applied: Decimal = Decimal(0)
    entry_id: str | None = None
    last_activity_at: datetime | None = None


class OfflineDecayEntry(BaseModel):
    """Offline Decay 레저 항목 (append-only, 이력 표시용)."""

    id: str | None = None
    user_id: str
    label: str = OFFLINE_DECAY_LABEL
    amount: Decimal = Field(ge=0)
    elapsed_seconds: Decimal = Field(ge=0)
    rate_per_second: Decimal = Field(ge=0)
    created_at: datetime
