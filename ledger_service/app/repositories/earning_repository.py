"""적립 레코드 레포지토리 구현체.

적립 레코드는 활동 소스가 append 하고, 이 레이어는 조회/집계와 unpaid -> paid
전이(조건부 update)만 담당한다.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from bson import Decimal128
from pymongo.database import Database

from common.mongo.types import ensure_utc_datetime, to_decimal, to_object_id
from common.types.datetime import ensure_utc

from ..models.earning import (
    COMPLETED_STATUS,
    SESSIONLESS_SOURCES,
    EarningFilter,
    EarningRecord,
)
from .documents.earning_document import EarningRecordDocument
from .interfaces import EarningRecordRepositoryInterface
from .store_errors import store_errors


STORE_NAME = "earning_records"


def build_earning_query(user_id: str | None, flt: EarningFilter) -> dict[str, Any]:
    """EarningFilter 를 Mongo 쿼리로 변환한다. user_id 가 None 이면 전체 유저 대상."""
    query: dict[str, Any] = {}
    if user_id is not None:
        query["user_id"] = user_id

    if flt.paid is True:
        query["paid"] = True
    elif flt.paid is False:
        # 레거시 행은 paid 가 null 이다
        query["paid"] = {"$ne": True}

    if flt.sources is not None:
        query["source"] = {"$in": [s.value for s in flt.sources]}

    if flt.positive_only:
        query["amount"] = {"$gt": Decimal128("0")}

    if flt.completed_only:
        query["status"] = COMPLETED_STATUS
        query["$or"] = [
            {"play_time_seconds": {"$gt": 0}},
            {"source": {"$in": [s.value for s in SESSIONLESS_SOURCES]}},
        ]

    return query


class EarningRecordRepository(EarningRecordRepositoryInterface):
    """earning_records 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[STORE_NAME]

    def list_earning_records(
        self, user_id: str, flt: EarningFilter
    ) -> list[EarningRecord]:
        query = build_earning_query(user_id, flt)
        with store_errors(STORE_NAME):
            cursor = self._col.find(query, sort=[("created_at", -1), ("_id", -1)])
            return [
                EarningRecordDocument.model_validate(doc).to_domain() for doc in cursor
            ]

    def sum_earned(self, user_id: str) -> Decimal:
        pipeline = [
            {"$match": {"user_id": user_id}},
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ]
        with store_errors(STORE_NAME):
            rows = list(self._col.aggregate(pipeline))
        if not rows:
            return Decimal(0)
        return to_decimal(rows[0]["total"])

    def get_last_paid_at(self, user_id: str) -> datetime | None:
        with store_errors(STORE_NAME):
            doc = self._col.find_one(
                {"user_id": user_id, "paid": True, "paid_at": {"$ne": None}},
                projection={"paid_at": 1},
                sort=[("paid_at", -1)],
            )
        if not doc:
            return None
        return ensure_utc_datetime(doc["paid_at"])

    def sum_paid_by_source(self) -> dict[str, Decimal]:
        return self._sum_by_source(build_earning_query(None, EarningFilter(paid=True)))

    def sum_unpaid_by_source(self) -> dict[str, Decimal]:
        return self._sum_by_source(build_earning_query(None, EarningFilter.payable()))

    def mark_paid(
        self, record_ids: list[str], paid_at: datetime, payout_id: str
    ) -> list[str]:
        """paid == false 조건부 update 로 레코드를 선점한다.

        같은 레코드를 두 지급 요청이 동시에 노려도 paid 조건 때문에 하나만 성공한다.
        이번 호출이 선점한 레코드는 payout_id 로 다시 찾아 반환한다.
        """
        if not record_ids:
            return []

        object_ids = [to_object_id(rid) for rid in record_ids]
        with store_errors(STORE_NAME):
            self._col.update_many(
                {"_id": {"$in": object_ids}, "paid": {"$ne": True}},
                {
                    "$set": {
                        "paid": True,
                        "paid_at": ensure_utc(paid_at),
                        "payout_id": payout_id,
                    }
                },
            )
            claimed = self._col.find(
                {"_id": {"$in": object_ids}, "payout_id": payout_id},
                projection={"_id": 1},
            )
            return [str(doc["_id"]) for doc in claimed]

    def release_paid(self, record_ids: list[str], payout_id: str) -> list[str]:
        """mark_paid 로 선점했던 레코드를 unpaid 로 되돌린다.

        payout_id 조건이 있으므로 다른 지급이 가져간 레코드는 건드리지 않는다.
        """
        if not record_ids:
            return []

        query = {
            "_id": {"$in": [to_object_id(rid) for rid in record_ids]},
            "payout_id": payout_id,
        }
        with store_errors(STORE_NAME):
            owned = [str(doc["_id"]) for doc in self._col.find(query, projection={"_id": 1})]
            self._col.update_many(
                query,
                {"$set": {"paid": False, "paid_at": None, "payout_id": None}},
            )
        return owned

    def _sum_by_source(self, match: dict[str, Any]) -> dict[str, Decimal]:
        pipeline = [
            {"$match": match},
            {"$group": {"_id": "$source", "total": {"$sum": "$amount"}}},
        ]
        with store_errors(STORE_NAME):
            rows = list(self._col.aggregate(pipeline))
        return {str(row["_id"]): to_decimal(row["total"]) for row in rows}
