"""오프라인 decay 엔진.

유저 상태는 두 가지다.

- Active: 적립 세션 하트비트가 최근에 있었거나, 마지막 활동 후 grace window 안.
  decay 가 쌓이지 않는다.
- Offline: 설정된 초당 decay 속도로 미지급 잔액이 줄어든다.

Active -> Offline 전이는 명시적으로 일어나지 않고, 다음 잔액 조회 때 지연 계산된다.
계산된 decay 는 last_activity_at compare-and-swap 에 성공한 조회 한 건만
"Offline Decay" 레저 항목으로 기록하므로 동시에 조회해도 같은 구간을 두 번 깎지 않는다.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import Depends
from pymongo.database import Database

from common.eventbus.core import EventPublisher
from common.eventbus.helpers import wrap_domain_event
from common.eventbus.kafka import get_kafka_event_bus
from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import LedgerEventType, OfflineDecayAppliedEvent
from common.mongo.client import get_database
from common.types.datetime import Clock, elapsed_seconds, ensure_utc, utc_now

from ..models.decay import (
    ActivityState,
    DecayResult,
    DecayState,
    OfflineDecayEntry,
)
from ..models.ledger_config import LedgerConfig
from ..repositories.activity_repository import ActivityRepository
from ..repositories.decay_repository import DecayLedgerRepository
from ..repositories.interfaces import (
    ActivityRepositoryInterface,
    DecayLedgerRepositoryInterface,
)


logger = logging.getLogger(__name__)

ZERO = Decimal(0)


def _is_session_active(
    activity: ActivityState, config: LedgerConfig, now: datetime
) -> bool:
    if activity.last_heartbeat_at is None:
        return False
    since_heartbeat = elapsed_seconds(activity.last_heartbeat_at, now)
    return since_heartbeat <= config.active_session_window_seconds


def _decay_start(activity: ActivityState, config: LedgerConfig) -> datetime | None:
    """decay 를 세기 시작하는 시각. grace window 는 실제 활동 시각부터 센다."""
    start = activity.last_activity_at
    if start is None:
        return None
    if config.decay_grace_seconds > 0 and activity.last_seen_at is not None:
        grace_end = ensure_utc(activity.last_seen_at) + timedelta(
            seconds=config.decay_grace_seconds
        )
        start = max(ensure_utc(start), grace_end)
    return start


class DecayEngine:
    """decay 계산(evaluate)과 확정(apply)."""

    def __init__(
        self,
        activity_repo: ActivityRepositoryInterface,
        decay_repo: DecayLedgerRepositoryInterface,
        event_bus: EventPublisher | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._activity_repo = activity_repo
        self._decay_repo = decay_repo
        self._event_bus = event_bus
        self._clock = clock

    @staticmethod
    def evaluate(
        config: LedgerConfig,
        activity: ActivityState | None,
        decayable: Decimal,
        now: datetime,
    ) -> DecayResult:
        """저장소를 건드리지 않는 순수 계산.

        decayable 은 지난 지급 이후 아직 decay 로 소모되지 않은 미지급 잔액이다.
        decay = min(elapsed * rate, decayable) 이므로 결과는 항상 [0, decayable].
        """
        rate = config.effective_decay_rate
        last_activity_at = activity.last_activity_at if activity else None

        # 기준 시각이 없는 신규 유저는 decay 하지 않는다
        if activity is None or last_activity_at is None:
            return DecayResult(
                state=DecayState.ACTIVE,
                elapsed_seconds=ZERO,
                rate_per_second=rate,
                raw_decay=ZERO,
                decay=ZERO,
                last_activity_at=last_activity_at,
            )

        if _is_session_active(activity, config, now):
            return DecayResult(
                state=DecayState.ACTIVE,
                elapsed_seconds=ZERO,
                rate_per_second=rate,
                raw_decay=ZERO,
                decay=ZERO,
                last_activity_at=last_activity_at,
            )

        start = _decay_start(activity, config)
        elapsed = elapsed_seconds(start, now)
        if elapsed == 0 and start is not None and ensure_utc(start) > ensure_utc(
            last_activity_at
        ):
            # 아직 grace window 안
            state = DecayState.ACTIVE
        else:
            state = DecayState.OFFLINE

        raw_decay = elapsed * rate
        decay = min(raw_decay, max(decayable, ZERO))
        return DecayResult(
            state=state,
            elapsed_seconds=elapsed,
            rate_per_second=rate,
            raw_decay=raw_decay,
            decay=decay,
            last_activity_at=last_activity_at,
        )

    def preview(
        self,
        user_id: str,
        config: LedgerConfig,
        decayable: Decimal,
        now: datetime | None = None,
    ) -> DecayResult:
        """지금 확정하면 적용될 decay (기록하지 않음)."""
        now = now or self._clock()
        activity = self._activity_repo.get(user_id)
        return self.evaluate(config, activity, decayable, now)

    def apply(
        self,
        user_id: str,
        config: LedgerConfig,
        decayable: Decimal,
        now: datetime | None = None,
    ) -> DecayResult:
        """decay 를 계산하고, 경과 구간이 있으면 확정한다.

        1. last_activity_at 을 now 로 compare-and-swap (실패하면 다른 조회가 이미 확정함)
        2. decay > 0 이면 Offline Decay 항목을 append 하고 이벤트 발행
        """
        now = now or self._clock()
        activity = self._activity_repo.get(user_id)
        result = self.evaluate(config, activity, decayable, now)

        if activity is None or result.state is not DecayState.OFFLINE:
            return result
        if result.elapsed_seconds <= 0:
            return result

        advanced = self._activity_repo.advance_last_activity(
            user_id, activity.last_activity_at, now
        )
        if not advanced:
            logger.info(
                "offline decay for %s already settled by a concurrent read",
                user_id,
                extra={"user_id": user_id},
            )
            latest = self._activity_repo.get(user_id)
            return result.model_copy(
                update={
                    "decay": ZERO,
                    "last_activity_at": latest.last_activity_at if latest else None,
                }
            )

        if result.decay <= 0:
            return result.model_copy(update={"last_activity_at": now})

        entry = self._decay_repo.append(
            OfflineDecayEntry(
                user_id=user_id,
                amount=result.decay,
                elapsed_seconds=result.elapsed_seconds,
                rate_per_second=result.rate_per_second,
                created_at=now,
            )
        )
        logger.info(
            "offline decay applied: user=%s amount=%s elapsed=%ss",
            user_id,
            result.decay,
            result.elapsed_seconds,
            extra={"user_id": user_id},
        )
        self._publish_decay_applied(entry)

        return result.model_copy(
            update={
                "applied": result.decay,
                "entry_id": entry.id,
                "last_activity_at": now,
            }
        )

    def history(
        self, user_id: str, page: int = 1, page_size: int = 20
    ) -> tuple[list[OfflineDecayEntry], int]:
        """확정된 Offline Decay 항목 (최신순)."""
        return self._decay_repo.list_by_user(user_id, page, page_size)

    def _publish_decay_applied(self, entry: OfflineDecayEntry) -> None:
        if self._event_bus is None:
            return

        event = OfflineDecayAppliedEvent(
            id=str(uuid.uuid4()),
            type=LedgerEventType.DECAY_APPLIED,
            timestamp=self._clock().isoformat(),
            source="ledger-service",
            version="1.0",
            user_id=entry.user_id,
            entry_id=entry.id or "",
            amount=str(entry.amount),
            elapsed_seconds=str(entry.elapsed_seconds),
            applied_at=ensure_utc(entry.created_at).isoformat(),
        )
        # decay 는 이미 확정됐으므로 알림 발행 실패로 조회를 실패시키지 않는다
        try:
            self._event_bus.publish(
                TOPIC_LEDGER.base, wrap_domain_event(event, key=entry.user_id)
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "failed to publish %s for %s: %s",
                LedgerEventType.DECAY_APPLIED,
                entry.user_id,
                exc,
                extra={"user_id": entry.user_id, "event_id": event.id},
            )


def get_activity_repository(
    db: Database = Depends(get_database),
) -> ActivityRepositoryInterface:
    """FastAPI DI용 ActivityRepository 팩토리."""

    return ActivityRepository(db)


def get_decay_ledger_repository(
    db: Database = Depends(get_database),
) -> DecayLedgerRepositoryInterface:
    """FastAPI DI용 DecayLedgerRepository 팩토리."""

    return DecayLedgerRepository(db)


def get_decay_engine(
    activity_repo: ActivityRepositoryInterface = Depends(get_activity_repository),
    decay_repo: DecayLedgerRepositoryInterface = Depends(get_decay_ledger_repository),
    event_bus: EventPublisher = Depends(get_kafka_event_bus),
) -> DecayEngine:
    return DecayEngine(activity_repo, decay_repo, event_bus=event_bus)
