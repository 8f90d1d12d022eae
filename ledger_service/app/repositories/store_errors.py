from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from pymongo.errors import PyMongoError

from ..errors import DataUnavailable


logger = logging.getLogger(__name__)


@contextmanager
def store_errors(store: str) -> Iterator[None]:
    """pymongo 예외를 DataUnavailable 로 변환한다.

    DuplicateKeyError 처럼 호출부가 직접 처리해야 하는 예외는 안쪽에서 먼저 잡아야 한다.
    """
    try:
        yield
    except PyMongoError as exc:
        logger.error("%s store access failed: %s", store, exc)
        raise DataUnavailable(store, str(exc)) from exc
