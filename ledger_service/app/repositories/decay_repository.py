from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from common.mongo.types import to_decimal
from common.types.datetime import ensure_utc

from ..models.decay import OfflineDecayEntry
from .documents.decay_document import OfflineDecayDocument
from .interfaces import DecayLedgerRepositoryInterface
from .store_errors import store_errors


STORE_NAME = "offline_decay_entries"


class DecayLedgerRepository(DecayLedgerRepositoryInterface):
    """offline_decay_entries 컬렉션 (append-only)."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[STORE_NAME]
        with store_errors(STORE_NAME):
            self._col.create_index(
                [("user_id", ASCENDING), ("created_at", DESCENDING)],
                name="idx_user_created_at_desc",
            )

    def append(self, entry: OfflineDecayEntry) -> OfflineDecayEntry:
        doc = OfflineDecayDocument.from_domain(entry)
        with store_errors(STORE_NAME):
            result = self._col.insert_one(doc.to_mongo_record())
        doc.id = result.inserted_id
        return doc.to_domain()

    def sum_since(self, user_id: str, since: datetime | None) -> Decimal:
        match: dict[str, Any] = {"user_id": user_id}
        if since is not None:
            match["created_at"] = {"$gt": ensure_utc(since)}

        pipeline = [
            {"$match": match},
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ]
        with store_errors(STORE_NAME):
            rows = list(self._col.aggregate(pipeline))
        if not rows:
            return Decimal(0)
        return to_decimal(rows[0]["total"])

    def list_by_user(
        self, user_id: str, page: int, page_size: int
    ) -> tuple[list[OfflineDecayEntry], int]:
        query = {"user_id": user_id}
        skip = (page - 1) * page_size
        with store_errors(STORE_NAME):
            total = self._col.count_documents(query)
            cursor = (
                self._col.find(query)
                .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
                .skip(skip)
                .limit(page_size)
            )
            items = [OfflineDecayDocument.model_validate(doc).to_domain() for doc in cursor]
        return items, total
