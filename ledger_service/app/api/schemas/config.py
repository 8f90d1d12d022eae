from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from common.types.datetime import UtcDateTime


class LedgerConfigResponse(BaseModel):
    version: int
    reward_per_second: Decimal
    decay_rate_per_second: Decimal | None = None
    effective_decay_rate: Decimal
    total_pool_ceiling: Decimal
    decay_grace_seconds: int
    active_session_window_seconds: int
    updated_by: str
    created_at: UtcDateTime | None = None


class LedgerConfigUpdateRequest(BaseModel):
    """관리자 설정 변경 요청. 보낸 필드만 바뀐다.

    decay_rate_per_second 를 null 로 보내면 적립 속도를 따르도록 되돌린다.
    범위 검증은 서비스 레이어에서 한다.
    """

    model_config = ConfigDict(extra="forbid")

    reward_per_second: Decimal | None = None
    decay_rate_per_second: Decimal | None = None
    total_pool_ceiling: Decimal | None = None
    decay_grace_seconds: int | None = None
    active_session_window_seconds: int | None = None
    expected_version: int | None = None
