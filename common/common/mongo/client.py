from __future__ import annotations

import logging
import threading
from typing import Optional, cast

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from .config import get_mongo_db_name, get_mongo_timeout_ms, get_mongo_uri


logger = logging.getLogger(__name__)


_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_lock = threading.Lock()


def get_client() -> MongoClient:
    """전역 MongoClient 싱글톤을 반환한다.

    - MONGO_URI 에서 URI 를 읽어온다.
    - ping 으로 연결을 검증한다.
    - URI 에 기본 데이터베이스가 포함되어 있지 않으면 에러를 발생시킨다.
    - 레코드 스토어 컬렉션에 필요한 인덱스를 한 번만 생성한다.
    """

    global _client, _db

    if _client is not None:
        return _client

    with _lock:
        if _client is not None:
            return _client

        uri = get_mongo_uri()
        timeout_ms = get_mongo_timeout_ms()
        client = MongoClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
            tz_aware=True,
        )

        try:
            client.admin.command("ping")
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

        # MONGO_DB_NAME 우선, 없으면 URI의 기본 DB 사용
        db_name = get_mongo_db_name()
        try:
            if db_name:
                db = client[db_name]
            else:
                db = client.get_default_database()
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(
                "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
            ) from exc

        _client = client
        _db = db

        try:
            _ensure_indexes(_db)
        except Exception as exc:  # noqa: BLE001
            logger.error("failed to ensure MongoDB indexes: %s", exc)
            raise

        safe_db = cast(Database, _db)
        logger.info("MongoDB connected and indexes ensured (db=%s)", safe_db.name)
        return _client


def get_database() -> Database:
    """전역 기본 Database 객체를 반환한다."""

    global _db

    if _db is None:
        get_client()
    if _db is None:
        raise RuntimeError("MongoDB database is not initialized")
    return _db


def _ensure_indexes(db: Database) -> None:
    """earning_records / burn_records 컬렉션의 필수 인덱스를 생성한다.

    두 컬렉션은 외부 활동 소스가 append 하는 레코드 스토어이며, 잔액 계산은
    user_id + paid 상태, user_id + created_at 범위 조회에 의존한다.
    중복 생성해도 MongoDB 가 처리하므로 idempotent 하다.
    """

    earnings = db["earning_records"]

    earnings.create_index(
        [("user_id", ASCENDING), ("paid", ASCENDING), ("source", ASCENDING)],
        name="idx_user_paid_source",
    )

    # lastPaidAt 조회 (paid_at desc)
    earnings.create_index(
        [("user_id", ASCENDING), ("paid_at", DESCENDING)],
        name="idx_user_paid_at_desc",
    )

    # 풀 집계 (paid=true 전체 합계)
    earnings.create_index(
        [("paid", ASCENDING), ("source", ASCENDING)],
        name="idx_paid_source",
    )

    burns = db["burn_records"]

    burns.create_index(
        [("user_id", ASCENDING), ("created_at", DESCENDING)],
        name="idx_user_created_at_desc",
    )

    burns.create_index(
        [("user_id", ASCENDING), ("burn_type", ASCENDING), ("created_at", DESCENDING)],
        name="idx_user_burn_type_created_at",
    )
