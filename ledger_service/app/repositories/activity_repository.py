"""유저 활동 시각 레포지토리.

last_activity_at 은 decay 계산의 기준점이므로 갱신은 항상 조건부 update 로 한다.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.types.datetime import ensure_utc

from ..models.decay import ActivityState
from .documents.decay_document import ActivityDocument
from .interfaces import ActivityRepositoryInterface
from .store_errors import store_errors


STORE_NAME = "user_activity"


class ActivityRepository(ActivityRepositoryInterface):
    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[STORE_NAME]
        with store_errors(STORE_NAME):
            self._col.create_index(
                [("user_id", ASCENDING)], name="uniq_user_id", unique=True
            )

    def get(self, user_id: str) -> ActivityState | None:
        with store_errors(STORE_NAME):
            doc = self._col.find_one({"user_id": user_id})
        if not doc:
            return None
        return ActivityDocument.model_validate(doc).to_domain()

    def advance_last_activity(
        self, user_id: str, expected: datetime | None, new_value: datetime
    ) -> bool:
        """저장된 last_activity_at 이 expected 와 같을 때만 new_value 로 바꾼다.

        expected 가 None 이면 도큐먼트가 없거나 값이 null 인 경우에만 성공한다.
        도큐먼트가 없을 때는 upsert 로 만들고, 동시에 다른 요청이 먼저 만들었다면
        unique 인덱스 때문에 DuplicateKeyError 가 나므로 선점 실패로 본다.
        """
        new_value = ensure_utc(new_value)
        update: dict[str, Any] = {
            "$set": {"last_activity_at": new_value},
            "$setOnInsert": {"created_at": new_value},
        }

        with store_errors(STORE_NAME):
            if expected is None:
                try:
                    result = self._col.update_one(
                        {"user_id": user_id, "last_activity_at": None},
                        update,
                        upsert=True,
                    )
                except DuplicateKeyError:
                    return False
                return result.upserted_id is not None or result.modified_count == 1

            result = self._col.update_one(
                {"user_id": user_id, "last_activity_at": ensure_utc(expected)},
                update,
            )
            return result.modified_count == 1

    def touch(
        self, user_id: str, at: datetime, *, heartbeat: bool = False
    ) -> ActivityState:
        at = ensure_utc(at)
        latest: dict[str, Any] = {"last_activity_at": at, "last_seen_at": at}
        if heartbeat:
            latest["last_heartbeat_at"] = at

        with store_errors(STORE_NAME):
            try:
                doc = self._col.find_one_and_update(
                    {"user_id": user_id},
                    {"$max": latest, "$setOnInsert": {"created_at": at}},
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                # 동시 upsert 경합: 이미 만들어졌으니 일반 update 로 재시도
                doc = self._col.find_one_and_update(
                    {"user_id": user_id},
                    {"$max": latest},
                    return_document=ReturnDocument.AFTER,
                )
        return ActivityDocument.model_validate(doc).to_domain()
