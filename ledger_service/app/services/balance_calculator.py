"""유저 지급 가능 잔액 계산.

spendable_balance = max(0, unpaid_raw - burned_since_last_payout - decay_since_last_activity)

모든 값은 요청 시마다 레코드 스토어에서 다시 읽는다. 스토어를 읽지 못하면
DataUnavailable 이 그대로 올라가며, 0 잔액으로 대체하지 않는다.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from fastapi import Depends
from pymongo.database import Database

from common.mongo.client import get_database
from common.types.datetime import Clock, utc_now

from ..models.burn import SPENDABLE_BURN_TYPES
from ..models.decay import DecayResult
from ..models.earning import EarningFilter, EarningRecord
from ..models.ledger_config import LedgerConfig
from ..models.snapshot import UserCreditSnapshot
from ..repositories.burn_repository import BurnRecordRepository
from ..repositories.earning_repository import EarningRecordRepository
from ..repositories.interfaces import (
    BurnRecordRepositoryInterface,
    DecayLedgerRepositoryInterface,
    EarningRecordRepositoryInterface,
)
from .config_service import ConfigService, get_config_service
from .decay_engine import DecayEngine, get_decay_engine, get_decay_ledger_repository


logger = logging.getLogger(__name__)

ZERO = Decimal(0)


@dataclass(slots=True)
class _LedgerInputs:
    """decay 적용 전 단계의 집계 값."""

    config: LedgerConfig
    unpaid_raw: Decimal
    unpaid_by_source: dict[str, Decimal]
    total_earned: Decimal
    last_paid_at: datetime | None
    burned: Decimal
    burned_by_type: dict[str, Decimal]
    recorded_decay: Decimal

    @property
    def decayable(self) -> Decimal:
        # 지난 지급 이후 이미 decay 로 소모된 만큼은 다시 깎지 않는다
        return max(ZERO, self.unpaid_raw - self.recorded_decay)


def sum_by_source(records: Iterable[EarningRecord]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for record in records:
        totals[record.source.value] += record.amount
    return dict(totals)


class BalanceCalculator:
    """유저 크레딧 스냅샷 계산기.

    유일한 부수효과는 DecayEngine 이 수행하는 Offline Decay 확정이다.
    """

    def __init__(
        self,
        earning_repo: EarningRecordRepositoryInterface,
        burn_repo: BurnRecordRepositoryInterface,
        decay_repo: DecayLedgerRepositoryInterface,
        decay_engine: DecayEngine,
        config_service: ConfigService,
        clock: Clock = utc_now,
    ) -> None:
        self._earning_repo = earning_repo
        self._burn_repo = burn_repo
        self._decay_repo = decay_repo
        self._decay_engine = decay_engine
        self._config_service = config_service
        self._clock = clock

    def compute_spendable(self, user_id: str) -> UserCreditSnapshot:
        now = self._clock()
        inputs = self._gather(user_id)
        result = self._decay_engine.apply(
            user_id, inputs.config, inputs.decayable, now
        )

        # 동시 조회가 먼저 확정한 decay 까지 포함하도록 기록된 값을 다시 읽는다
        if result.applied > 0 or result.decay > 0 or result.elapsed_seconds > 0:
            decay_total = self._decay_repo.sum_since(user_id, inputs.last_paid_at)
        else:
            decay_total = inputs.recorded_decay

        return self._build_snapshot(user_id, inputs, decay_total, result, now)

    def preview_decay(self, user_id: str) -> DecayResult:
        """지금 확정하면 적용될 decay. 아무것도 기록하지 않는다."""
        now = self._clock()
        inputs = self._gather(user_id)
        return self._decay_engine.preview(
            user_id, inputs.config, inputs.decayable, now
        )

    def _gather(self, user_id: str) -> _LedgerInputs:
        config = self._config_service.get_current()

        unpaid_records = self._earning_repo.list_earning_records(
            user_id, EarningFilter.payable()
        )
        unpaid_by_source = sum_by_source(unpaid_records)
        unpaid_raw = sum(unpaid_by_source.values(), ZERO)

        total_earned = self._earning_repo.sum_earned(user_id)
        last_paid_at = self._earning_repo.get_last_paid_at(user_id)

        burns = self._burn_repo.list_burn_records(
            user_id, last_paid_at, SPENDABLE_BURN_TYPES
        )
        burned_by_type: dict[str, Decimal] = defaultdict(Decimal)
        for burn in burns:
            burned_by_type[burn.burn_type.value] += burn.amount
        burned = sum(burned_by_type.values(), ZERO)

        recorded_decay = self._decay_repo.sum_since(user_id, last_paid_at)

        return _LedgerInputs(
            config=config,
            unpaid_raw=unpaid_raw,
            unpaid_by_source=unpaid_by_source,
            total_earned=total_earned,
            last_paid_at=last_paid_at,
            burned=burned,
            burned_by_type=dict(burned_by_type),
            recorded_decay=recorded_decay,
        )

    def _build_snapshot(
        self,
        user_id: str,
        inputs: _LedgerInputs,
        decay_total: Decimal,
        result: DecayResult,
        now: datetime,
    ) -> UserCreditSnapshot:
        spendable = inputs.unpaid_raw - inputs.burned - decay_total
        if spendable < 0:
            logger.debug(
                "spendable for %s clamped to 0 (unpaid=%s burned=%s decay=%s)",
                user_id,
                inputs.unpaid_raw,
                inputs.burned,
                decay_total,
            )
        spendable = min(max(ZERO, spendable), inputs.unpaid_raw)

        return UserCreditSnapshot(
            user_id=user_id,
            total_earned_all_time=inputs.total_earned,
            unpaid_raw=inputs.unpaid_raw,
            burned_since_last_payout=inputs.burned,
            decay_since_last_activity=decay_total,
            spendable_balance=spendable,
            last_paid_at=inputs.last_paid_at,
            last_activity_at=result.last_activity_at,
            decay_state=result.state,
            unpaid_by_source=inputs.unpaid_by_source,
            burned_by_type=inputs.burned_by_type,
            computed_at=now,
        )


def get_earning_repository(
    db: Database = Depends(get_database),
) -> EarningRecordRepositoryInterface:
    """FastAPI DI용 EarningRecordRepository 팩토리."""

    return EarningRecordRepository(db)


def get_burn_repository(
    db: Database = Depends(get_database),
) -> BurnRecordRepositoryInterface:
    """FastAPI DI용 BurnRecordRepository 팩토리."""

    return BurnRecordRepository(db)


def get_balance_calculator(
    earning_repo: EarningRecordRepositoryInterface = Depends(get_earning_repository),
    burn_repo: BurnRecordRepositoryInterface = Depends(get_burn_repository),
    decay_repo: DecayLedgerRepositoryInterface = Depends(get_decay_ledger_repository),
    decay_engine: DecayEngine = Depends(get_decay_engine),
    config_service: ConfigService = Depends(get_config_service),
) -> BalanceCalculator:
    """FastAPI DI용 BalanceCalculator 팩토리."""

    return BalanceCalculator(
        earning_repo, burn_repo, decay_repo, decay_engine, config_service
    )
