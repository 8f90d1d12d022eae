from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict
from typing import Callable

from confluent_kafka import Consumer, KafkaError, Message, Producer

from .config import get_brokers, get_message_max_bytes
from .core import Event, MaxRetryExceededError, Topic

logger = logging.getLogger(__name__)


def encode_event(event: Event) -> bytes:
    # Decimal 금액은 문자열로 직렬화된다.
    return json.dumps(asdict(event), ensure_ascii=False, default=str).encode("utf-8")


def decode_event(raw: dict) -> Event:
    return Event(
        id=str(raw.get("id", "")),
        payload=raw.get("payload"),
        retry=int(raw.get("retry", 0)),
        max_retry=int(raw.get("max_retry", 0)),
        last_error=raw.get("last_error"),
        key=raw.get("key"),
    )


class KafkaEventBus:
    """Kafka 기반 EventBus 구현.

    - 발행 시 Event.key(보통 user_id)를 메시지 키로 사용한다.
    - 핸들러 실패 시 retry.N 토픽으로 재발행하고, 최대 횟수를 넘으면 DLQ 로 보낸다.
    - 오프셋은 처리(또는 재시도/DLQ 발행) 성공 후에만 커밋한다.
    """

    def __init__(self, brokers: str) -> None:
        producer_conf: dict[str, object] = {"bootstrap.servers": brokers}
        max_bytes = get_message_max_bytes()
        if max_bytes is not None:
            producer_conf["message.max.bytes"] = max_bytes
        self._producer = Producer(producer_conf)
        self._brokers = brokers

    def close(self) -> None:
        self._producer.flush()

    # 발행 -----------------------------------------------------------------
    def publish(self, topic: str, event: Event) -> None:
        def _delivery_callback(err, msg) -> None:  # type: ignore[no-untyped-def]
            if err is not None:
                logger.error(
                    "failed to deliver message to %s: %s",
                    msg.topic(),
                    err,
                    extra={"event_id": event.id},
                )

        key = event.key or event.id
        self._producer.produce(
            topic=topic,
            value=encode_event(event),
            key=key.encode("utf-8"),
            callback=_delivery_callback,
        )
        self._producer.poll(0)

    # 구독 -----------------------------------------------------------------
    def subscribe(
        self,
        group_id: str,
        topic: Topic,
        handler: Callable[[Event], None],
        *,
        poll_timeout: float = 0.1,
        stop_flag: list[bool] | None = None,
    ) -> None:
        consumer = Consumer(
            {
                "bootstrap.servers": self._brokers,
                "group.id": group_id,
                "auto.offset.reset": "earliest",
                "enable.auto.commit": False,
            }
        )
        # 본 토픽과 재시도 토픽을 함께 구독한다.
        consumer.subscribe([topic.base, *topic.get_retry_topics()])

        try:
            logger.info(
                "Kafka consumer started. group_id=%s topic=%s", group_id, topic.base
            )
            while True:
                if stop_flag and stop_flag[0]:
                    break

                msg = consumer.poll(poll_timeout)
                if msg is None:
                    continue
                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        continue
                    logger.error("consumer error: %s", msg.error())
                    continue

                if self._dispatch(msg, topic, handler):
                    try:
                        consumer.commit(message=msg, asynchronous=False)
                    except Exception as exc:  # noqa: BLE001
                        logger.error("offset commit error: %s", exc)
        finally:
            consumer.close()

    def _dispatch(
        self, msg: Message, topic: Topic, handler: Callable[[Event], None]
    ) -> bool:
        """메시지 하나를 처리한다. 오프셋을 커밋해도 되면 True."""
        try:
            raw = json.loads(msg.value())
        except Exception as exc:  # noqa: BLE001
            # 복구 불가능한 메시지는 건너뛴다.
            logger.error("invalid event payload on topic %s: %s", msg.topic(), exc)
            return True

        evt = decode_event(raw)
        try:
            handler(evt)
        except Exception as exc:  # noqa: BLE001
            evt.last_error = str(exc)
            return self._route_failed_event(evt, topic)
        return True

    def _route_failed_event(self, evt: Event, topic: Topic) -> bool:
        next_retry = evt.retry + 1
        try:
            target = topic.get_retry_topic(next_retry)
        except MaxRetryExceededError:
            target = topic.dlq()
            logger.error(
                "event %s exceeded max retry, sending to DLQ %s: %s",
                evt.id,
                target,
                evt.last_error,
                extra={"event_id": evt.id},
            )
        else:
            evt.retry = next_retry
            logger.warning(
                "event %s failed, scheduling retry %d/%d to %s",
                evt.id,
                evt.retry,
                evt.max_retry,
                target,
                extra={"event_id": evt.id},
            )

        try:
            self.publish(target, evt)
        except Exception as pub_exc:  # noqa: BLE001
            logger.error(
                "failed to publish event %s to %s: %s", evt.id, target, pub_exc
            )
            # 커밋하지 않음 -> 다시 처리 시도
            return False
        return True


_bus: KafkaEventBus | None = None
_bus_lock = threading.Lock()


def get_kafka_event_bus() -> KafkaEventBus:
    """프로세스 전역 KafkaEventBus (producer 재사용). FastAPI Depends 로도 사용한다."""

    global _bus

    if _bus is None:
        with _bus_lock:
            if _bus is None:
                _bus = KafkaEventBus(get_brokers())
    return _bus


def close_kafka_event_bus() -> None:
    global _bus

    with _bus_lock:
        if _bus is not None:
            _bus.close()
            _bus = None
