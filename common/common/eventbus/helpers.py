from __future__ import annotations

import time
import uuid
from dataclasses import asdict, is_dataclass
from typing import Any, Mapping

from .core import Event, RetryDelays


def new_json_event(
    payload: Mapping[str, Any],
    *,
    max_retry: int | None = None,
    event_id: str | None = None,
    key: str | None = None,
) -> Event:
    """payload(dict)를 Event 로 감싼다.

    - id가 비어 있으면 고해상도 타임스탬프 기반 문자열을 생성한다.
    - max_retry가 1~len(RetryDelays) 범위를 벗어나면 기본값(len(RetryDelays))을 사용한다.
    """
    if max_retry is None or max_retry <= 0 or max_retry > len(RetryDelays):
        max_retry = len(RetryDelays)

    if not event_id:
        event_id = str(time.time_ns())

    return Event(
        id=event_id, payload=dict(payload), retry=0, max_retry=max_retry, key=key
    )


def wrap_domain_event(domain_event: Any, *, key: str | None = None) -> Event:
    """dataclass 도메인 이벤트(id 필드 보유)를 Event 로 감싼다."""
    if not is_dataclass(domain_event):
        raise TypeError(f"expected dataclass event, got {type(domain_event)!r}")
    payload = asdict(domain_event)
    event_id = str(payload.get("id") or uuid.uuid4())
    return new_json_event(payload=payload, event_id=event_id, key=key)
