from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class LedgerConfig(BaseModel):
    """버전이 붙은 레저 설정 레코드.

    계산 시점마다 최신 버전을 읽어 DecayEngine 에 명시적으로 넘긴다.
    version 0 은 config.yaml 기본값으로 만든 초기 설정이다.
    """

    version: int = Field(ge=0)
    reward_per_second: Decimal = Field(ge=0)
    decay_rate_per_second: Decimal | None = Field(default=None, ge=0)
    total_pool_ceiling: Decimal = Field(ge=0)
    decay_grace_seconds: int = Field(default=0, ge=0)
    active_session_window_seconds: int = Field(default=120, ge=0)
    updated_by: str = "system"
    created_at: datetime | None = None

    @property
    def effective_decay_rate(self) -> Decimal:
        """decay 속도. 별도 설정이 없으면 적립 속도와 같다."""
        if self.decay_rate_per_second is None:
            return self.reward_per_second
        return self.decay_rate_per_second
