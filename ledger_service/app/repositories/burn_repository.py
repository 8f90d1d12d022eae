from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from common.types.datetime import ensure_utc

from ..models.burn import BurnRecord, BurnType
from .documents.burn_document import BurnRecordDocument
from .interfaces import BurnRecordRepositoryInterface
from .store_errors import store_errors


STORE_NAME = "burn_records"


class BurnRecordRepository(BurnRecordRepositoryInterface):
    """burn_records 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[STORE_NAME]

    def list_burn_records(
        self,
        user_id: str,
        since: datetime | None,
        types: Iterable[BurnType],
    ) -> list[BurnRecord]:
        type_values = [t.value for t in types]
        if not type_values:
            return []

        query: dict[str, Any] = {"user_id": user_id, "burn_type": {"$in": type_values}}
        if since is not None:
            # 지급 시각과 같은 순간의 소비는 이전 지급 주기에 속한다
            query["created_at"] = {"$gt": ensure_utc(since)}

        with store_errors(STORE_NAME):
            cursor = self._col.find(
                query, sort=[("created_at", DESCENDING), ("_id", ASCENDING)]
            )
            return [BurnRecordDocument.model_validate(doc).to_domain() for doc in cursor]

    def record_burn(
        self,
        user_id: str,
        burn_type: BurnType,
        amount: Decimal,
        created_at: datetime,
    ) -> BurnRecord:
        record = BurnRecord(
            user_id=user_id,
            burn_type=burn_type,
            amount=amount,
            created_at=ensure_utc(created_at),
        )
        doc = BurnRecordDocument.from_domain(record)
        with store_errors(STORE_NAME):
            result = self._col.insert_one(doc.to_mongo_record())
        doc.id = result.inserted_id
        return doc.to_domain()
