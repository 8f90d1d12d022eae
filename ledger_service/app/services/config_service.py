"""레저 설정 서비스.

설정은 버전 레코드로만 쌓이며, 계산 시점마다 최신 버전을 읽는다.
값 검증은 쓰기 시점에만 한다 (읽기 경로에서는 이미 검증된 값만 본다).
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from fastapi import Depends
from pymongo.database import Database

from common.eventbus.core import EventPublisher
from common.eventbus.helpers import wrap_domain_event
from common.eventbus.kafka import get_kafka_event_bus
from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import LedgerConfigUpdatedEvent, LedgerEventType
from common.mongo.client import get_database
from common.types.datetime import Clock, utc_now

from ..config import LedgerSettings, get_ledger_settings
from ..errors import ConfigVersionConflict, InvalidConfiguration
from ..models.ledger_config import LedgerConfig
from ..repositories.config_repository import LedgerConfigRepository
from ..repositories.interfaces import LedgerConfigRepositoryInterface


logger = logging.getLogger(__name__)

DECIMAL_FIELDS = ("reward_per_second", "total_pool_ceiling")
NULLABLE_DECIMAL_FIELDS = ("decay_rate_per_second",)
INT_FIELDS = ("decay_grace_seconds", "active_session_window_seconds")


def parse_non_negative_decimal(field: str, value: Any) -> Decimal:
    """음수, 숫자가 아닌 값, NaN/Infinity 를 거부한다."""
    if isinstance(value, bool):
        raise InvalidConfiguration(field, value, "must be a number")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidConfiguration(field, value, "must be a number") from exc
    if not parsed.is_finite():
        raise InvalidConfiguration(field, value, "must be finite")
    if parsed < 0:
        raise InvalidConfiguration(field, value, "must not be negative")
    return parsed


def parse_non_negative_int(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidConfiguration(field, value, "must be an integer")
    try:
        parsed = int(value)
    except ValueError as exc:
        raise InvalidConfiguration(field, value, "must be an integer") from exc
    if parsed < 0:
        raise InvalidConfiguration(field, value, "must not be negative")
    return parsed


def validate_config_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    """변경 요청을 검증해 LedgerConfig 필드 값으로 변환한다.

    decay_rate_per_second 에 명시적으로 None 을 주면 적립 속도를 따르도록 되돌린다.
    """
    validated: dict[str, Any] = {}
    for field, value in changes.items():
        if field in DECIMAL_FIELDS:
            if value is None:
                raise InvalidConfiguration(field, value, "is required")
            validated[field] = parse_non_negative_decimal(field, value)
        elif field in NULLABLE_DECIMAL_FIELDS:
            validated[field] = (
                None if value is None else parse_non_negative_decimal(field, value)
            )
        elif field in INT_FIELDS:
            validated[field] = parse_non_negative_int(field, value)
        else:
            raise InvalidConfiguration(field, value, "unknown configuration field")
    return validated


class ConfigService:
    """레저 설정 조회/변경 비즈니스 로직."""

    def __init__(
        self,
        config_repo: LedgerConfigRepositoryInterface,
        settings: LedgerSettings,
        event_bus: EventPublisher | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._config_repo = config_repo
        self._settings = settings
        self._event_bus = event_bus
        self._clock = clock

    def get_current(self) -> LedgerConfig:
        """최신 버전 설정. 저장된 버전이 없으면 config.yaml 기본값(version 0)."""
        latest = self._config_repo.get_latest()
        if latest is not None:
            return latest
        return LedgerConfig(
            version=0,
            reward_per_second=self._settings.reward_per_second,
            decay_rate_per_second=self._settings.decay_rate_per_second,
            total_pool_ceiling=self._settings.total_pool_ceiling,
            decay_grace_seconds=self._settings.decay_grace_seconds,
            active_session_window_seconds=self._settings.active_session_window_seconds,
        )

    def update(
        self,
        changes: Mapping[str, Any],
        *,
        updated_by: str,
        expected_version: int | None = None,
    ) -> LedgerConfig:
        """검증된 변경분으로 새 버전을 기록한다.

        expected_version 이 주어졌는데 현재 버전과 다르면 ConfigVersionConflict.
        """
        validated = validate_config_changes(changes)

        current = self.get_current()
        if expected_version is not None and expected_version != current.version:
            raise ConfigVersionConflict(current.version, expected_version)

        updated = current.model_copy(
            update={
                **validated,
                "version": current.version + 1,
                "updated_by": updated_by,
                "created_at": self._clock(),
            }
        )
        saved = self._config_repo.insert_version(updated)

        if saved.total_pool_ceiling < current.total_pool_ceiling:
            logger.warning(
                "total_pool_ceiling lowered from %s to %s (version=%d)",
                current.total_pool_ceiling,
                saved.total_pool_ceiling,
                saved.version,
            )
        logger.info(
            "ledger config updated to version %d by %s", saved.version, updated_by
        )
        self._publish_config_updated(saved)
        return saved

    def _publish_config_updated(self, config: LedgerConfig) -> None:
        if self._event_bus is None:
            return

        event = LedgerConfigUpdatedEvent(
            id=str(uuid.uuid4()),
            type=LedgerEventType.CONFIG_UPDATED,
            timestamp=self._clock().isoformat(),
            source="ledger-service",
            version="1.0",
            config_version=config.version,
            reward_per_second=str(config.reward_per_second),
            decay_rate_per_second=(
                None
                if config.decay_rate_per_second is None
                else str(config.decay_rate_per_second)
            ),
            total_pool_ceiling=str(config.total_pool_ceiling),
            updated_by=config.updated_by,
        )
        self._event_bus.publish(TOPIC_LEDGER.base, wrap_domain_event(event))


def get_ledger_config_repository(
    db: Database = Depends(get_database),
) -> LedgerConfigRepositoryInterface:
    """FastAPI DI용 LedgerConfigRepository 팩토리."""

    return LedgerConfigRepository(db)


def get_config_service(
    repo: LedgerConfigRepositoryInterface = Depends(get_ledger_config_repository),
    event_bus: EventPublisher = Depends(get_kafka_event_bus),
) -> ConfigService:
    """FastAPI DI용 ConfigService 팩토리."""

    return ConfigService(repo, get_ledger_settings(), event_bus=event_bus)
