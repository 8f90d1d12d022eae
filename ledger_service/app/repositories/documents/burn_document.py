from __future__ import annotations

from common.mongo.types import BaseDocument, MongoDecimal, from_object_id

from ...models.burn import BurnRecord, BurnType


class BurnRecordDocument(BaseDocument):
    """MongoDB burn_records 컬렉션 도큐먼트 모델."""

    user_id: str
    burn_type: str
    amount: MongoDecimal

    @classmethod
    def from_domain(cls, record: BurnRecord) -> "BurnRecordDocument":
        data = record.model_dump(exclude={"id"})
        return cls.model_validate(data)

    def to_domain(self) -> BurnRecord:
        return BurnRecord(
            id=from_object_id(self.id),
            user_id=self.user_id,
            burn_type=BurnType(self.burn_type),
            amount=self.amount,
            created_at=self.created_at,
        )
