from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


# 재시도 토픽 순서와 대기 시간 (retry.1 ~ retry.5)
RetryDelays: list[float] = [
    60.0,
    300.0,
    600.0,
    1800.0,
    3600.0,
]


class MaxRetryExceededError(Exception):
    """최대 재시도 횟수를 초과한 경우 사용되는 예외."""


@dataclass(slots=True)
class Event:
    """Kafka 메시지의 메타데이터와 페이로드를 표현하는 이벤트.

    payload 는 직렬화 직전/직후 형태(dict)를 저장하고, JSON 인코딩/디코딩은
    Kafka I/O 레이어에서 담당한다. key 가 있으면 파티션 키로 사용해 같은 유저의
    이벤트 순서를 보장한다.
    """

    id: str
    payload: Any
    retry: int = 0
    max_retry: int = 0
    last_error: str | None = None
    key: str | None = None

    def __post_init__(self) -> None:
        if self.max_retry <= 0 or self.max_retry > len(RetryDelays):
            self.max_retry = len(RetryDelays)


@dataclass(frozen=True, slots=True)
class Topic:
    base: str

    def dlq(self) -> str:
        return f"{self.base}.dlq"

    def get_retry_topics(self) -> list[str]:
        return [
            f"{self.base}.retry.{index}" for index in range(1, len(RetryDelays) + 1)
        ]

    def get_retry_topic(self, retry_count: int) -> str:
        if retry_count <= 0 or retry_count > len(RetryDelays):
            raise MaxRetryExceededError()
        return f"{self.base}.retry.{retry_count}"


class EventPublisher(Protocol):
    """서비스 레이어가 의존하는 최소 발행 계약 (KafkaEventBus 가 구현)."""

    def publish(self, topic: str, event: Event) -> None:  # pragma: no cover - Protocol
        ...
