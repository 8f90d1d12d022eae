from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Callable

from pydantic.functional_serializers import PlainSerializer


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_utc_iso8601(value: str) -> datetime:
    """ISO8601 문자열을 UTC datetime 으로 파싱한다 (타임존 없으면 UTC 로 간주)."""
    return ensure_utc(datetime.fromisoformat(value))


def elapsed_seconds(start: datetime | None, end: datetime) -> Decimal:
    """start 부터 end 까지 경과 초.

    - start 가 없으면 0.
    - 시계 오차로 end 가 start 보다 앞서면 음수가 아니라 0 을 반환한다.
    """
    if start is None:
        return Decimal(0)
    delta = ensure_utc(end) - ensure_utc(start)
    seconds = Decimal(str(delta.total_seconds()))
    return seconds if seconds > 0 else Decimal(0)


def serialize_datetime_to_utc_iso8601(value: datetime) -> str:
    """모든 datetime을 UTC 기준 ISO8601(+타임존) 문자열로 직렬화한다."""
    return ensure_utc(value).isoformat()


UtcDateTime = Annotated[
    datetime,
    PlainSerializer(
        serialize_datetime_to_utc_iso8601,
        return_type=str,
        when_used="json",
    ),
]
