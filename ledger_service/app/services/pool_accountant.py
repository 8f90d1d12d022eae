"""플랫폼 전체 지급 풀 집계.

읽기 전용 집계이므로 여러 요청에서 동시에 호출해도 안전하다.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from fastapi import Depends

from ..models.snapshot import GlobalUnpaidSummary, PoolState
from ..repositories.interfaces import EarningRecordRepositoryInterface
from .balance_calculator import get_earning_repository
from .config_service import ConfigService, get_config_service


logger = logging.getLogger(__name__)

ZERO = Decimal(0)
HUNDRED = Decimal(100)
PERCENT_QUANTUM = Decimal("0.01")


def distribution_percentage(distributed: Decimal, ceiling: Decimal) -> Decimal:
    """distributed / ceiling * 100 을 [0, 100] 으로 clamp 한다.

    한도가 0 이면 지급액이 있을 때 100, 없을 때 0 으로 본다.
    """
    if ceiling <= 0:
        return HUNDRED if distributed > 0 else ZERO
    percentage = distributed / ceiling * HUNDRED
    percentage = min(max(percentage, ZERO), HUNDRED)
    return percentage.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


class PoolAccountant:
    def __init__(
        self,
        earning_repo: EarningRecordRepositoryInterface,
        config_service: ConfigService,
    ) -> None:
        self._earning_repo = earning_repo
        self._config_service = config_service

    def compute_pool_state(self) -> PoolState:
        """paid == true 레코드만 지급액으로 집계한다."""
        config = self._config_service.get_current()
        paid_by_source = self._earning_repo.sum_paid_by_source()
        distributed = sum(paid_by_source.values(), ZERO)

        ceiling = config.total_pool_ceiling
        remaining = ceiling - distributed
        over_distributed = remaining < 0
        if over_distributed:
            logger.warning(
                "reward pool over-distributed: ceiling=%s distributed=%s remaining=%s (config version=%d)",
                ceiling,
                distributed,
                remaining,
                config.version,
            )

        return PoolState(
            total_pool_ceiling=ceiling,
            total_paid_across_sources=distributed,
            remaining=remaining,
            display_remaining=max(ZERO, remaining),
            percentage=distribution_percentage(distributed, ceiling),
            over_distributed=over_distributed,
            paid_by_source=paid_by_source,
            config_version=config.version,
        )

    def compute_global_unpaid(self) -> GlobalUnpaidSummary:
        """전체 유저의 적립됐지만 아직 지급되지 않은 합계 (완료/양수 레코드만)."""
        unpaid_by_source = self._earning_repo.sum_unpaid_by_source()
        return GlobalUnpaidSummary(
            total_unpaid=sum(unpaid_by_source.values(), ZERO),
            unpaid_by_source=unpaid_by_source,
        )


def get_pool_accountant(
    earning_repo: EarningRecordRepositoryInterface = Depends(get_earning_repository),
    config_service: ConfigService = Depends(get_config_service),
) -> PoolAccountant:
    """FastAPI DI용 PoolAccountant 팩토리."""

    return PoolAccountant(earning_repo, config_service)
