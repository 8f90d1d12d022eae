from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from ..models.burn import BurnRecord, BurnType
from ..models.decay import ActivityState, OfflineDecayEntry
from ..models.earning import EarningFilter, EarningRecord
from ..models.ledger_config import LedgerConfig
from ..models.rank import ScoreEntry


class EarningRecordRepositoryInterface(Protocol):
    """적립 레코드 스토어 계약.

    Service 레이어는 이 인터페이스에만 의존한다. 구현체는 스토어 장애 시
    DataUnavailable 을 던져야 하며, 빈 결과로 대체해서는 안 된다.
    """

    def list_earning_records(
        self, user_id: str, flt: EarningFilter
    ) -> list[EarningRecord]:  # pragma: no cover - Protocol
        ...

    def sum_earned(self, user_id: str) -> Decimal:  # pragma: no cover - Protocol
        """paid 여부와 무관하게 유저의 전체 적립 합계."""
        ...

    def get_last_paid_at(
        self, user_id: str
    ) -> datetime | None:  # pragma: no cover - Protocol
        ...

    def sum_paid_by_source(self) -> dict[str, Decimal]:  # pragma: no cover - Protocol
        """전체 유저, paid == true 레코드의 소스별 합계."""
        ...

    def sum_unpaid_by_source(
        self,
    ) -> dict[str, Decimal]:  # pragma: no cover - Protocol
        """전체 유저, 지급 가능(unpaid/completed/양수) 레코드의 소스별 합계."""
        ...

    def mark_paid(
        self, record_ids: list[str], paid_at: datetime, payout_id: str
    ) -> list[str]:  # pragma: no cover - Protocol
        """paid == false 인 레코드만 paid 로 전이하고, 이번 호출이 선점한 ID 목록을 반환한다."""
        ...

    def release_paid(
        self, record_ids: list[str], payout_id: str
    ) -> list[str]:  # pragma: no cover - Protocol
        """payout_id 가 선점한 레코드만 unpaid 로 되돌리고, 되돌린 ID 목록을 반환한다."""
        ...


class BurnRecordRepositoryInterface(Protocol):
    """소비 레코드 스토어 계약."""

    def list_burn_records(
        self,
        user_id: str,
        since: datetime | None,
        types: Iterable[BurnType],
    ) -> list[BurnRecord]:  # pragma: no cover - Protocol
        """created_at > since 인 레코드 (since 가 None 이면 전체)."""
        ...

    def record_burn(
        self,
        user_id: str,
        burn_type: BurnType,
        amount: Decimal,
        created_at: datetime,
    ) -> BurnRecord:  # pragma: no cover - Protocol
        ...


class DecayLedgerRepositoryInterface(Protocol):
    """Offline Decay 레저 항목 저장소 (append-only)."""

    def append(
        self, entry: OfflineDecayEntry
    ) -> OfflineDecayEntry:  # pragma: no cover - Protocol
        ...

    def sum_since(
        self, user_id: str, since: datetime | None
    ) -> Decimal:  # pragma: no cover - Protocol
        ...

    def list_by_user(
        self, user_id: str, page: int, page_size: int
    ) -> tuple[list[OfflineDecayEntry], int]:  # pragma: no cover - Protocol
        ...


class ActivityRepositoryInterface(Protocol):
    """유저 활동 시각 저장소.

    - advance_last_activity 는 compare-and-swap: 저장된 값이 expected 와 같을 때만 갱신한다.
    - touch 는 시각을 뒤로 돌리지 않는다.
    """

    def get(self, user_id: str) -> ActivityState | None:  # pragma: no cover - Protocol
        ...

    def advance_last_activity(
        self, user_id: str, expected: datetime | None, new_value: datetime
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def touch(
        self, user_id: str, at: datetime, *, heartbeat: bool = False
    ) -> ActivityState:  # pragma: no cover - Protocol
        ...


class LedgerConfigRepositoryInterface(Protocol):
    """버전이 붙은 레저 설정 저장소."""

    def get_latest(self) -> LedgerConfig | None:  # pragma: no cover - Protocol
        ...

    def insert_version(
        self, config: LedgerConfig
    ) -> LedgerConfig:  # pragma: no cover - Protocol
        """같은 version 이 이미 있으면 ConfigVersionConflict."""
        ...


class ScoreRepositoryInterface(Protocol):
    """비정규화된 점수 테이블 (읽기 전용)."""

    def list_ranked(
        self, token_id: str
    ) -> list[ScoreEntry]:  # pragma: no cover - Protocol
        """total_score desc, achieved_at asc, 삽입 순서 asc 로 정렬된 목록."""
        ...
