"""활동 이벤트 반영.

Offline -> Active 전이: 그동안 쌓인 decay 를 먼저 확정한 뒤 활동 시각을 갱신한다.
순서를 바꾸면 오프라인 구간이 통째로 사라진다.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from fastapi import Depends

from common.types.datetime import Clock, utc_now

from ..models.burn import BurnRecord, BurnType
from ..models.decay import ActivityState
from ..repositories.interfaces import (
    ActivityRepositoryInterface,
    BurnRecordRepositoryInterface,
)
from .balance_calculator import (
    BalanceCalculator,
    get_balance_calculator,
    get_burn_repository,
)
from .decay_engine import get_activity_repository


logger = logging.getLogger(__name__)


class ActivityService:
    def __init__(
        self,
        activity_repo: ActivityRepositoryInterface,
        burn_repo: BurnRecordRepositoryInterface,
        balance_calculator: BalanceCalculator,
        clock: Clock = utc_now,
    ) -> None:
        self._activity_repo = activity_repo
        self._burn_repo = burn_repo
        self._balance_calculator = balance_calculator
        self._clock = clock

    def record_activity(
        self,
        user_id: str,
        at: datetime | None = None,
        *,
        heartbeat: bool = False,
    ) -> ActivityState:
        """활동(또는 적립 세션 하트비트)을 기록한다.

        at 이 이미 기록된 시각보다 과거면 시각은 그대로 둔다.
        """
        self._balance_calculator.compute_spendable(user_id)
        state = self._activity_repo.touch(
            user_id, at or self._clock(), heartbeat=heartbeat
        )
        logger.debug(
            "activity recorded for %s (heartbeat=%s)",
            user_id,
            heartbeat,
            extra={"user_id": user_id},
        )
        return state

    def record_burn(
        self,
        user_id: str,
        burn_type: BurnType,
        amount: Decimal,
        at: datetime | None = None,
    ) -> BurnRecord:
        record = self._burn_repo.record_burn(
            user_id, burn_type, amount, at or self._clock()
        )
        logger.info(
            "burn recorded: user=%s type=%s amount=%s",
            user_id,
            burn_type.value,
            amount,
            extra={"user_id": user_id},
        )
        return record


def get_activity_service(
    activity_repo: ActivityRepositoryInterface = Depends(get_activity_repository),
    burn_repo: BurnRecordRepositoryInterface = Depends(get_burn_repository),
    balance_calculator: BalanceCalculator = Depends(get_balance_calculator),
) -> ActivityService:
    """FastAPI DI용 ActivityService 팩토리."""

    return ActivityService(activity_repo, burn_repo, balance_calculator)
