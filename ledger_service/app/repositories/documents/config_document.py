from __future__ import annotations

from typing import Optional

from common.mongo.types import BaseDocument, MongoDecimal

from ...models.ledger_config import LedgerConfig


class LedgerConfigDocument(BaseDocument):
    """MongoDB ledger_config 컬렉션 도큐먼트 모델 (버전별 1개, 덮어쓰지 않음)."""

    version: int
    reward_per_second: MongoDecimal
    decay_rate_per_second: Optional[MongoDecimal] = None
    total_pool_ceiling: MongoDecimal
    decay_grace_seconds: int = 0
    active_session_window_seconds: int = 120
    updated_by: str

    @classmethod
    def from_domain(cls, config: LedgerConfig) -> "LedgerConfigDocument":
        return cls.model_validate(config.model_dump())

    def to_domain(self) -> LedgerConfig:
        return LedgerConfig(
            version=self.version,
            reward_per_second=self.reward_per_second,
            decay_rate_per_second=self.decay_rate_per_second,
            total_pool_ceiling=self.total_pool_ceiling,
            decay_grace_seconds=self.decay_grace_seconds,
            active_session_window_seconds=self.active_session_window_seconds,
            updated_by=self.updated_by,
            created_at=self.created_at,
        )
