"""지급 대상 레코드 선점.

지급 실행기는 이 서비스로 미지급 레코드를 paid 로 전이시키고, 응답의
payable_amount 만큼 실제 지급(트랜잭션 전송)을 수행한다. 전송 자체는 이 서비스 밖의 일이다.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from fastapi import Depends

from common.eventbus.core import EventPublisher
from common.eventbus.helpers import wrap_domain_event
from common.eventbus.kafka import get_kafka_event_bus
from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import LedgerEventType, RewardsPaidEvent
from common.types.datetime import Clock, utc_now

from ..errors import ConcurrentPayoutConflict
from ..models.earning import EarningFilter
from ..models.snapshot import PayoutClaim
from ..repositories.interfaces import EarningRecordRepositoryInterface
from .balance_calculator import (
    BalanceCalculator,
    get_balance_calculator,
    get_earning_repository,
)


logger = logging.getLogger(__name__)

ZERO = Decimal(0)


class PayoutService:
    def __init__(
        self,
        earning_repo: EarningRecordRepositoryInterface,
        balance_calculator: BalanceCalculator,
        event_bus: EventPublisher | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._earning_repo = earning_repo
        self._balance_calculator = balance_calculator
        self._event_bus = event_bus
        self._clock = clock

    def claim(self, user_id: str) -> PayoutClaim:
        """유저의 지급 가능 레코드를 paid 로 선점한다.

        - 레코드 목록을 먼저 읽고 잔액을 계산하므로, 그 사이 추가된 레코드는 다음 지급으로 넘어간다.
        - 일부 레코드를 다른 지급이 먼저 가져갔다면 이번에 선점한 레코드를 unpaid 로
          되돌린 뒤 ConcurrentPayoutConflict. 호출자는 재조회 후 다시 요청한다.
        """
        records = self._earning_repo.list_earning_records(
            user_id, EarningFilter.payable()
        )
        snapshot = self._balance_calculator.compute_spendable(user_id)

        payout_id = uuid.uuid4().hex
        paid_at = self._clock()
        if not records:
            return PayoutClaim(
                payout_id=payout_id,
                user_id=user_id,
                record_ids=[],
                claimed_amount=ZERO,
                payable_amount=ZERO,
                paid_at=paid_at,
            )

        record_ids = [r.id for r in records if r.id is not None]
        claimed_ids = self._earning_repo.mark_paid(record_ids, paid_at, payout_id)

        claimed = set(claimed_ids)
        conflicting = [rid for rid in record_ids if rid not in claimed]
        if conflicting:
            released = self._earning_repo.release_paid(claimed_ids, payout_id)
            logger.warning(
                "payout %s for %s lost %d record(s) to another payout, released %d",
                payout_id,
                user_id,
                len(conflicting),
                len(released),
                extra={"user_id": user_id},
            )
            raise ConcurrentPayoutConflict(user_id, conflicting, released)

        claimed_amount = sum(
            (r.amount for r in records if r.id in claimed), ZERO
        )
        payable_amount = min(snapshot.spendable_balance, claimed_amount)

        claim = PayoutClaim(
            payout_id=payout_id,
            user_id=user_id,
            record_ids=claimed_ids,
            claimed_amount=claimed_amount,
            payable_amount=payable_amount,
            paid_at=paid_at,
        )
        logger.info(
            "payout %s claimed %d record(s) for %s: claimed=%s payable=%s",
            payout_id,
            len(claimed_ids),
            user_id,
            claimed_amount,
            payable_amount,
            extra={"user_id": user_id},
        )
        self._publish_rewards_paid(claim)
        return claim

    def _publish_rewards_paid(self, claim: PayoutClaim) -> None:
        if self._event_bus is None:
            return

        event = RewardsPaidEvent(
            id=claim.payout_id,
            type=LedgerEventType.REWARDS_PAID,
            timestamp=self._clock().isoformat(),
            source="ledger-service",
            version="1.0",
            user_id=claim.user_id,
            payout_id=claim.payout_id,
            amount=str(claim.payable_amount),
            paid_at=claim.paid_at.isoformat(),
            record_ids=list(claim.record_ids),
        )
        self._event_bus.publish(
            TOPIC_LEDGER.base, wrap_domain_event(event, key=claim.user_id)
        )


def get_payout_service(
    earning_repo: EarningRecordRepositoryInterface = Depends(get_earning_repository),
    balance_calculator: BalanceCalculator = Depends(get_balance_calculator),
    event_bus: EventPublisher = Depends(get_kafka_event_bus),
) -> PayoutService:
    """FastAPI DI용 PayoutService 팩토리."""

    return PayoutService(earning_repo, balance_calculator, event_bus=event_bus)
