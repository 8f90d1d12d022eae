"""적립(earning) 레코드 도메인 모델.

활동 세션(게임/음악/영상/숏폼)이나 스왑이 완료될 때마다 하나씩 append 되며,
지급 실행기가 unpaid -> paid 로 딱 한 번 전이시키는 것 외에는 변경되지 않는다.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


COMPLETED_STATUS = "completed"


class EarningSource(StrEnum):
    GAME = "game"
    MUSIC = "music"
    WATCH = "watch"
    SHORT_VIDEO = "short_video"
    SWAP = "swap"


# 세션이 없는 소스는 재생 시간 없이도 완료로 인정한다.
SESSIONLESS_SOURCES: frozenset[EarningSource] = frozenset({EarningSource.SWAP})


class EarningRecord(BaseModel):
    """개별 적립 레코드 도메인 모델."""

    id: str | None = None
    user_id: str
    source: EarningSource
    amount: Decimal = Field(ge=0)
    status: str = COMPLETED_STATUS  # "completed" | "active" | "abandoned" ...
    play_time_seconds: int = Field(default=0, ge=0)
    paid: bool = False
    paid_at: datetime | None = None
    payout_id: str | None = None  # paid 전이를 수행한 지급 배치 ID
    created_at: datetime

    @model_validator(mode="after")
    def _paid_at_matches_paid(self) -> "EarningRecord":
        if self.paid and self.paid_at is None:
            raise ValueError("paid_at is required when paid is true")
        if not self.paid and self.paid_at is not None:
            raise ValueError("paid_at must be empty while the record is unpaid")
        return self

    @property
    def is_completed(self) -> bool:
        if self.status != COMPLETED_STATUS:
            return False
        return self.source in SESSIONLESS_SOURCES or self.play_time_seconds > 0

    @property
    def is_payable(self) -> bool:
        """잔액(unpaid_raw)에 포함되는 레코드인지 여부."""
        return not self.paid and self.is_completed and self.amount > 0


@dataclass(frozen=True, slots=True)
class EarningFilter:
    """listEarningRecords 조회 조건.

    None 인 필드는 조건에서 제외한다.
    """

    paid: bool | None = None
    sources: tuple[EarningSource, ...] | None = None
    completed_only: bool = False
    positive_only: bool = False

    @classmethod
    def payable(cls) -> "EarningFilter":
        return cls(paid=False, completed_only=True, positive_only=True)

    def matches(self, record: EarningRecord) -> bool:
        if self.paid is not None and record.paid != self.paid:
            return False
        if self.sources is not None and record.source not in self.sources:
            return False
        if self.completed_only and not record.is_completed:
            return False
        if self.positive_only and record.amount <= 0:
            return False
        return True
