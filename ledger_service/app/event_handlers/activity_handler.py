"""활동 이벤트 핸들러.

활동 소스(게임/음악/영상/스왑, 소비 기능)가 발행한 이벤트를 소비해
유저의 Offline -> Active 전이를 처리한다. 적립/소비 레코드 자체는 소스가
스토어에 직접 append 하므로 여기서는 활동 시각만 반영한다.
"""

from __future__ import annotations

import logging

from pymongo.database import Database

from common.eventbus.config import get_brokers, get_group_id
from common.eventbus.core import Event
from common.eventbus.kafka import KafkaEventBus
from common.eventbus.topics import TOPIC_ACTIVITY
from common.events.ledger import (
    ActivityEventType,
    BurnRecordedEvent,
    EarningRecordedEvent,
    SessionHeartbeatEvent,
)
from common.types.datetime import parse_utc_iso8601

from ..config import get_ledger_settings
from ..repositories.activity_repository import ActivityRepository
from ..repositories.burn_repository import BurnRecordRepository
from ..repositories.config_repository import LedgerConfigRepository
from ..repositories.decay_repository import DecayLedgerRepository
from ..repositories.earning_repository import EarningRecordRepository
from ..services.activity_service import ActivityService
from ..services.balance_calculator import BalanceCalculator
from ..services.config_service import ConfigService
from ..services.decay_engine import DecayEngine


logger = logging.getLogger(__name__)


def _handle_activity_event(evt: Event, *, activity_service: ActivityService) -> None:
    """활동 이벤트 하나를 처리한다. 예외는 버스가 재시도/DLQ 로 보낸다."""
    payload = evt.payload
    if not isinstance(payload, dict):
        logger.error("unexpected payload type for event %s: %r", evt.id, type(payload))
        return

    event_type = str(payload.get("type", ""))

    if event_type == ActivityEventType.EARNING_RECORDED:
        _handle_earning_recorded(payload, activity_service)
    elif event_type == ActivityEventType.SESSION_HEARTBEAT:
        _handle_session_heartbeat(payload, activity_service)
    elif event_type == ActivityEventType.BURN_RECORDED:
        _handle_burn_recorded(payload, activity_service)
    else:
        logger.debug("ignoring unknown activity event type=%s id=%s", event_type, evt.id)


def _handle_earning_recorded(payload: dict, activity_service: ActivityService) -> None:
    try:
        event = EarningRecordedEvent.from_dict(payload)
    except Exception:
        logger.exception("failed to decode EarningRecordedEvent payload=%r", payload)
        raise

    logger.info(
        "handling earning.recorded event id=%s user_id=%s source=%s amount=%s",
        event.id,
        event.user_id,
        event.earning_source,
        event.amount,
        extra={"event_id": event.id, "user_id": event.user_id},
    )
    activity_service.record_activity(
        event.user_id, parse_utc_iso8601(event.occurred_at)
    )


def _handle_session_heartbeat(payload: dict, activity_service: ActivityService) -> None:
    try:
        event = SessionHeartbeatEvent.from_dict(payload)
    except Exception:
        logger.exception("failed to decode SessionHeartbeatEvent payload=%r", payload)
        raise

    activity_service.record_activity(
        event.user_id, parse_utc_iso8601(event.occurred_at), heartbeat=True
    )


def _handle_burn_recorded(payload: dict, activity_service: ActivityService) -> None:
    try:
        event = BurnRecordedEvent.from_dict(payload)
    except Exception:
        logger.exception("failed to decode BurnRecordedEvent payload=%r", payload)
        raise

    logger.info(
        "handling burn.recorded event id=%s user_id=%s type=%s amount=%s",
        event.id,
        event.user_id,
        event.burn_type,
        event.amount,
        extra={"event_id": event.id, "user_id": event.user_id},
    )
    activity_service.record_activity(
        event.user_id, parse_utc_iso8601(event.occurred_at)
    )


def build_activity_service(database: Database, bus: KafkaEventBus) -> ActivityService:
    activity_repo = ActivityRepository(database)
    burn_repo = BurnRecordRepository(database)
    decay_repo = DecayLedgerRepository(database)
    config_service = ConfigService(
        LedgerConfigRepository(database), get_ledger_settings(), event_bus=bus
    )
    calculator = BalanceCalculator(
        EarningRecordRepository(database),
        burn_repo,
        decay_repo,
        DecayEngine(activity_repo, decay_repo, event_bus=bus),
        config_service,
    )
    return ActivityService(activity_repo, burn_repo, calculator)


def run_activity_consumer(stop_flag: list[bool], database: Database) -> None:
    """활동 이벤트를 소비하는 구독 루프를 실행한다."""
    logger.info("activity-consumer starting up")

    brokers = get_brokers()
    group_id = get_group_id() + "-activity"

    bus = KafkaEventBus(brokers)
    activity_service = build_activity_service(database, bus)

    try:
        logger.info(
            "subscribing to topic=%s group_id=%s", TOPIC_ACTIVITY.base, group_id
        )
        bus.subscribe(
            group_id=group_id,
            topic=TOPIC_ACTIVITY,
            handler=lambda evt: _handle_activity_event(
                evt, activity_service=activity_service
            ),
            stop_flag=stop_flag,
        )
    finally:
        bus.close()
        logger.info("activity-consumer stopped")
