from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    MongoDecimal,
    OptionalMongoDateTime,
    from_object_id,
)

from ...models.rank import ScoreEntry


class ScoreDocument(BaseDocument):
    """MongoDB user_scores 컬렉션 도큐먼트 모델.

    랭킹 테이블은 다른 서비스가 채우므로 created_at 이 없을 수 있다.
    """

    created_at: OptionalMongoDateTime = None  # type: ignore[assignment]
    user_id: str
    token_id: str
    total_score: MongoDecimal
    achieved_at: MongoDateTime

    def to_domain(self) -> ScoreEntry:
        return ScoreEntry(
            id=from_object_id(self.id),
            user_id=self.user_id,
            token_id=self.token_id,
            total_score=self.total_score,
            achieved_at=self.achieved_at,
        )
