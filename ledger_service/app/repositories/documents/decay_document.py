"""Offline Decay 레저 / 유저 활동 상태 MongoDB 도큐먼트."""

from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDecimal,
    OptionalMongoDateTime,
    from_object_id,
)

from ...models.decay import ActivityState, OfflineDecayEntry


class OfflineDecayDocument(BaseDocument):
    """MongoDB offline_decay_entries 컬렉션 도큐먼트 모델."""

    user_id: str
    label: str
    amount: MongoDecimal
    elapsed_seconds: MongoDecimal
    rate_per_second: MongoDecimal

    @classmethod
    def from_domain(cls, entry: OfflineDecayEntry) -> "OfflineDecayDocument":
        return cls.model_validate(entry.model_dump(exclude={"id"}))

    def to_domain(self) -> OfflineDecayEntry:
        return OfflineDecayEntry(
            id=from_object_id(self.id),
            user_id=self.user_id,
            label=self.label,
            amount=self.amount,
            elapsed_seconds=self.elapsed_seconds,
            rate_per_second=self.rate_per_second,
            created_at=self.created_at,
        )


class ActivityDocument(BaseDocument):
    """MongoDB user_activity 컬렉션 도큐먼트 모델 (유저당 1개)."""

    user_id: str
    last_activity_at: OptionalMongoDateTime = None
    last_seen_at: OptionalMongoDateTime = None
    last_heartbeat_at: OptionalMongoDateTime = None

    def to_domain(self) -> ActivityState:
        return ActivityState(
            user_id=self.user_id,
            last_activity_at=self.last_activity_at,
            last_seen_at=self.last_seen_at,
            last_heartbeat_at=self.last_heartbeat_at,
        )
