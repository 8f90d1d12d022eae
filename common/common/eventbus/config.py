from __future__ import annotations

import os


_TRUTHY = ("1", "true", "yes", "y", "on")


def get_brokers() -> str:
    value = os.getenv("KAFKA_BOOTSTRAP_SERVERS")
    if not value:
        raise RuntimeError("KAFKA_BOOTSTRAP_SERVERS environment variable is required")
    return value


def get_group_id() -> str:
    value = os.getenv("KAFKA_GROUP_ID")
    if not value:
        raise RuntimeError("KAFKA_GROUP_ID environment variable is required")
    return value


def is_consumer_enabled(default: bool = True) -> bool:
    """KAFKA_CONSUMER_ENABLED 로 백그라운드 컨슈머 기동 여부를 제어한다.

    로컬 개발이나 API 단독 기동 시에는 0/false 로 꺼둘 수 있다.
    """

    raw_value = os.getenv("KAFKA_CONSUMER_ENABLED")
    if raw_value is None:
        return default
    return raw_value.strip().lower() in _TRUTHY


def get_message_max_bytes() -> int | None:
    """Kafka producer 의 message.max.bytes 값을 반환한다.

    - 비어있거나 0 이하이면 None (라이브러리 기본값 사용).
    - 정수가 아니면 RuntimeError 로 설정 문제를 조기에 드러낸다.
    """

    raw_value = os.getenv("KAFKA_MESSAGE_MAX_BYTES", "").strip()
    if not raw_value:
        return None

    try:
        value = int(raw_value)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(
            f"KAFKA_MESSAGE_MAX_BYTES must be an integer value, got: {raw_value!r}"
        ) from exc

    return value if value > 0 else None
