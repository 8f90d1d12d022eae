"""레저 도메인 예외.

레코드 스토어 장애나 동시 지급 충돌을 0 잔액 같은 값으로 숨기지 않고,
호출자에게 타입이 있는 예외로 전달한다. API 레이어는 http_status 로 응답 코드를 정한다.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """레저 예외 공통 베이스."""

    code = "ledger_error"
    http_status = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class DataUnavailable(LedgerError):
    """레코드 스토어를 읽을 수 없음. 절대 0 으로 대체하지 않는다."""

    code = "data_unavailable"
    http_status = 503

    def __init__(self, store: str, reason: str = "") -> None:
        message = f"{store} store is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, store=store)
        self.store = store


class InvalidConfiguration(LedgerError):
    """decay rate / 풀 한도가 음수이거나 숫자가 아님. 설정 쓰기 시점에 거부한다."""

    code = "invalid_configuration"
    http_status = 422

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(
            f"invalid {field}={value!r}: {reason}", field=field, value=str(value)
        )
        self.field = field
        self.value = value


class ConcurrentPayoutConflict(LedgerError):
    """다른 지급 요청이 먼저 레코드를 paid 로 선점함. 재조회 후 다시 계산해야 한다."""

    code = "concurrent_payout_conflict"
    http_status = 409

    def __init__(
        self,
        user_id: str,
        conflicting_ids: list[str],
        released_ids: list[str] | None = None,
    ) -> None:
        super().__init__(
            f"{len(conflicting_ids)} earning record(s) were already paid by another payout",
            user_id=user_id,
            conflicting_ids=list(conflicting_ids),
            released_ids=list(released_ids or []),
        )
        self.user_id = user_id
        self.conflicting_ids = list(conflicting_ids)
        self.released_ids = list(released_ids or [])


class ConfigVersionConflict(LedgerError):
    """동시에 두 관리자가 같은 버전으로 설정을 쓰려고 함."""

    code = "config_version_conflict"
    http_status = 409

    def __init__(self, version: int, expected_version: int | None = None) -> None:
        if expected_version is None:
            message = f"ledger config version {version} already exists"
        else:
            message = f"ledger config is at version {version}, expected {expected_version}"
        super().__init__(message, version=version, expected_version=expected_version)
        self.version = version
        self.expected_version = expected_version


class NotFound(LedgerError):
    code = "not_found"
    http_status = 404


class RankNotFound(NotFound):
    code = "rank_not_found"

    def __init__(self, user_id: str, token_id: str) -> None:
        super().__init__(
            f"{user_id} has no rank for token {token_id}",
            user_id=user_id,
            token_id=token_id,
        )
