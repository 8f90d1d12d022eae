"""리워드 레저 관련 이벤트 정의.

금액은 부동소수 오차 없이 전달하기 위해 10진 문자열로 직렬화한다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Self


class ActivityEventType:
    """활동 소스가 발행하는 이벤트 타입 상수."""

    EARNING_RECORDED = "earning.recorded"
    SESSION_HEARTBEAT = "session.heartbeat"
    BURN_RECORDED = "burn.recorded"


class LedgerEventType:
    """레저 서비스가 발행하는 이벤트 타입 상수."""

    DECAY_APPLIED = "ledger.decay_applied"
    REWARDS_PAID = "ledger.rewards_paid"
    CONFIG_UPDATED = "ledger.config_updated"


@dataclass(slots=True)
class EarningRecordedEvent:
    """활동 세션이 완료되어 적립 레코드가 추가되면 발행된다."""

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    user_id: str
    record_id: str
    earning_source: str
    amount: str
    occurred_at: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            user_id=str(data["user_id"]),
            record_id=str(data["record_id"]),
            earning_source=str(data["earning_source"]),
            amount=str(data["amount"]),
            occurred_at=str(data["occurred_at"]),
        )


@dataclass(slots=True)
class SessionHeartbeatEvent:
    """적립 세션이 살아있음을 알리는 하트비트."""

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    user_id: str
    session_id: str
    occurred_at: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            user_id=str(data["user_id"]),
            session_id=str(data["session_id"]),
            occurred_at=str(data["occurred_at"]),
        )


@dataclass(slots=True)
class BurnRecordedEvent:
    """플랫폼 기능에서 크레딧을 소비했을 때 발행된다."""

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    user_id: str
    burn_type: str
    amount: str
    occurred_at: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            user_id=str(data["user_id"]),
            burn_type=str(data["burn_type"]),
            amount=str(data["amount"]),
            occurred_at=str(data["occurred_at"]),
        )


@dataclass(slots=True)
class OfflineDecayAppliedEvent:
    """오프라인 decay 가 확정되어 레저 항목이 기록되면 발행된다."""

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    user_id: str
    entry_id: str
    amount: str
    elapsed_seconds: str
    applied_at: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            user_id=str(data["user_id"]),
            entry_id=str(data["entry_id"]),
            amount=str(data["amount"]),
            elapsed_seconds=str(data["elapsed_seconds"]),
            applied_at=str(data["applied_at"]),
        )


@dataclass(slots=True)
class RewardsPaidEvent:
    """지급 대상 적립 레코드를 paid 로 선점(claim)한 뒤 발행된다."""

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    user_id: str
    payout_id: str
    amount: str
    paid_at: str
    record_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            user_id=str(data["user_id"]),
            payout_id=str(data["payout_id"]),
            amount=str(data["amount"]),
            paid_at=str(data["paid_at"]),
            record_ids=[str(v) for v in data.get("record_ids") or []],
        )


@dataclass(slots=True)
class LedgerConfigUpdatedEvent:
    """관리자가 레저 설정(decay rate, 풀 한도)을 변경하면 발행된다."""

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    config_version: int
    reward_per_second: str
    decay_rate_per_second: str | None
    total_pool_ceiling: str
    updated_by: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        raw_rate = data.get("decay_rate_per_second")
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            config_version=int(data["config_version"]),
            reward_per_second=str(data["reward_per_second"]),
            decay_rate_per_second=None if raw_rate is None else str(raw_rate),
            total_pool_ceiling=str(data["total_pool_ceiling"]),
            updated_by=str(data["updated_by"]),
        )
