"""적립 레코드 MongoDB 도큐먼트."""

from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDecimal,
    OptionalMongoDateTime,
    from_object_id,
)

from ...models.earning import EarningRecord, EarningSource


class EarningRecordDocument(BaseDocument):
    """MongoDB earning_records 컬렉션 도큐먼트 모델."""

    user_id: str
    source: str
    amount: MongoDecimal
    status: str
    play_time_seconds: int = 0
    paid: bool = False
    paid_at: OptionalMongoDateTime = None
    payout_id: str | None = None

    @classmethod
    def from_domain(cls, record: EarningRecord) -> "EarningRecordDocument":
        data = record.model_dump(exclude={"id"})
        if record.id is not None:
            data["_id"] = record.id
        return cls.model_validate(data)

    def to_domain(self) -> EarningRecord:
        return EarningRecord(
            id=from_object_id(self.id),
            user_id=self.user_id,
            source=EarningSource(self.source),
            amount=self.amount,
            status=self.status,
            play_time_seconds=self.play_time_seconds,
            # 레거시 행은 paid 가 null 일 수 있으므로 paid_at 유무로 보정한다.
            paid=bool(self.paid) or self.paid_at is not None,
            paid_at=self.paid_at,
            payout_id=self.payout_id,
            created_at=self.created_at,
        )
