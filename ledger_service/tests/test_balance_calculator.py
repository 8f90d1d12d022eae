from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

import pytest

from common.events.ledger import LedgerEventType
from ledger_service.app.config import LedgerSettings
from ledger_service.app.errors import DataUnavailable
from ledger_service.app.models.burn import BurnType
from ledger_service.app.models.decay import (
    OFFLINE_DECAY_LABEL,
    ActivityState,
    DecayState,
    OfflineDecayEntry,
)
from ledger_service.app.models.earning import EarningSource
from ledger_service.app.services.balance_calculator import BalanceCalculator
from ledger_service.app.services.config_service import ConfigService
from ledger_service.app.services.decay_engine import DecayEngine

from .fakes import (
    BASE_TIME,
    FakeActivityRepository,
    FakeBurnRecordRepository,
    FakeDecayLedgerRepository,
    FakeEarningRecordRepository,
    FakeEventBus,
    FakeLedgerConfigRepository,
    FixedClock,
    burn,
    earning,
)


USER = "user-1"


@dataclass
class _Fixture:
    calculator: BalanceCalculator
    earnings: FakeEarningRecordRepository
    burns: FakeBurnRecordRepository
    decay_ledger: FakeDecayLedgerRepository
    activity: FakeActivityRepository
    bus: FakeEventBus
    clock: FixedClock = field(default_factory=FixedClock)


def _build_fixture(
    *,
    earnings=(),
    burns=(),
    offline_seconds: float | None = None,
    settings: LedgerSettings | None = None,
) -> _Fixture:
    clock = FixedClock()
    earning_repo = FakeEarningRecordRepository(earnings)
    burn_repo = FakeBurnRecordRepository(burns)
    decay_repo = FakeDecayLedgerRepository()
    states = []
    if offline_seconds is not None:
        last = clock.now - timedelta(seconds=offline_seconds)
        states.append(ActivityState(user_id=USER, last_activity_at=last, last_seen_at=last))
    activity_repo = FakeActivityRepository(states)
    bus = FakeEventBus()

    config_service = ConfigService(
        FakeLedgerConfigRepository(), settings or LedgerSettings(), clock=clock
    )
    engine = DecayEngine(activity_repo, decay_repo, event_bus=bus, clock=clock)
    calculator = BalanceCalculator(
        earning_repo, burn_repo, decay_repo, engine, config_service, clock=clock
    )
    return _Fixture(
        calculator=calculator,
        earnings=earning_repo,
        burns=burn_repo,
        decay_ledger=decay_repo,
        activity=activity_repo,
        bus=bus,
        clock=clock,
    )


def test_offline_decay_reduces_unpaid_balance() -> None:
    # given: 미지급 4060, 1시간 오프라인, decay 속도 1/s
    fx = _build_fixture(earnings=[earning("e1", 4060)], offline_seconds=3600)

    # when
    snapshot = fx.calculator.compute_spendable(USER)

    # then
    assert snapshot.unpaid_raw == Decimal("4060")
    assert snapshot.decay_since_last_activity == Decimal("3600")
    assert snapshot.spendable_balance == Decimal("460")
    assert snapshot.decay_state == DecayState.OFFLINE

    assert len(fx.decay_ledger.entries) == 1
    entry = fx.decay_ledger.entries[0]
    assert entry.label == OFFLINE_DECAY_LABEL
    assert entry.amount == Decimal("3600")
    assert entry.created_at == fx.clock.now
    assert fx.activity.get(USER).last_activity_at == fx.clock.now
    assert fx.bus.payload_types() == [LedgerEventType.DECAY_APPLIED]


def test_decay_is_capped_at_unpaid_balance() -> None:
    fx = _build_fixture(earnings=[earning("e1", 4060)], offline_seconds=10_000)

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.decay_since_last_activity == Decimal("4060")
    assert snapshot.spendable_balance == Decimal("0")


def test_burns_since_last_payout_are_subtracted() -> None:
    paid_at = BASE_TIME - timedelta(hours=5)
    fx = _build_fixture(
        earnings=[
            earning("old", 500, paid_at=paid_at),
            earning("e1", 1000),
        ],
        burns=[
            burn(400, created_at=paid_at + timedelta(minutes=1)),
            # 지난 지급 이전 소비는 이미 정산됨
            burn(300, created_at=paid_at - timedelta(minutes=1)),
            # 지갑 토큰으로 결제된 소비는 크레딧 잔액과 무관
            burn(200, burn_type=BurnType.ELITE_BADGE, created_at=paid_at + timedelta(minutes=2)),
        ],
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.unpaid_raw == Decimal("1000")
    assert snapshot.total_earned_all_time == Decimal("1500")
    assert snapshot.last_paid_at == paid_at
    assert snapshot.burned_since_last_payout == Decimal("400")
    assert snapshot.burned_by_type == {BurnType.CHAT_MESSAGE.value: Decimal("400")}
    assert snapshot.decay_since_last_activity == Decimal("0")
    assert snapshot.spendable_balance == Decimal("600")


def test_spendable_never_goes_negative_when_burns_exceed_unpaid() -> None:
    fx = _build_fixture(
        earnings=[earning("e1", 1000)],
        burns=[burn(1000), burn(500, burn_type=BurnType.PACK_OPENING)],
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.burned_since_last_payout == Decimal("1500")
    assert snapshot.spendable_balance == Decimal("0")


def test_compute_spendable_is_idempotent() -> None:
    fx = _build_fixture(earnings=[earning("e1", 4060)], offline_seconds=3600)

    first = fx.calculator.compute_spendable(USER)
    second = fx.calculator.compute_spendable(USER)

    assert first.spendable_balance == second.spendable_balance == Decimal("460")
    assert first.decay_since_last_activity == second.decay_since_last_activity
    assert len(fx.decay_ledger.entries) == 1


def test_new_user_without_activity_never_decays() -> None:
    fx = _build_fixture(earnings=[earning("e1", 1000)])

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.spendable_balance == Decimal("1000")
    assert snapshot.last_activity_at is None
    assert fx.decay_ledger.entries == []


def test_zero_decay_rate_disables_decay() -> None:
    fx = _build_fixture(
        earnings=[earning("e1", 1000)],
        offline_seconds=3600,
        settings=LedgerSettings(decay_rate_per_second=Decimal("0")),
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.spendable_balance == Decimal("1000")
    assert fx.decay_ledger.entries == []
    assert fx.bus.published == []


def test_active_earn_session_suppresses_decay() -> None:
    fx = _build_fixture(earnings=[earning("e1", 1000)], offline_seconds=3600)
    state = fx.activity.get(USER)
    fx.activity.states[USER] = state.model_copy(
        update={"last_heartbeat_at": fx.clock.now - timedelta(seconds=30)}
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.decay_state == DecayState.ACTIVE
    assert snapshot.spendable_balance == Decimal("1000")


def test_grace_period_is_not_decayed() -> None:
    fx = _build_fixture(
        earnings=[earning("e1", 5000)],
        offline_seconds=3600,
        settings=LedgerSettings(decay_grace_seconds=60),
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.decay_since_last_activity == Decimal("3540")
    assert snapshot.spendable_balance == Decimal("1460")


def test_clock_skew_never_produces_negative_decay() -> None:
    fx = _build_fixture(earnings=[earning("e1", 1000)], offline_seconds=-120)

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.decay_since_last_activity == Decimal("0")
    assert snapshot.spendable_balance == Decimal("1000")


def test_decay_already_recorded_since_last_payout_limits_new_decay() -> None:
    fx = _build_fixture(earnings=[earning("e1", 4060)], offline_seconds=3600)
    fx.decay_ledger.entries.append(
        OfflineDecayEntry(
            id="decay-0",
            user_id=USER,
            amount=Decimal("4000"),
            elapsed_seconds=Decimal("4000"),
            rate_per_second=Decimal("1"),
            created_at=BASE_TIME - timedelta(hours=2),
        )
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert fx.decay_ledger.entries[-1].amount == Decimal("60")
    assert snapshot.decay_since_last_activity == Decimal("4060")
    assert snapshot.spendable_balance == Decimal("0")


def test_only_completed_positive_records_count_as_unpaid() -> None:
    fx = _build_fixture(
        earnings=[
            earning("e1", 100),
            earning("abandoned", 50, status="abandoned"),
            earning("no-play", 70, play_time_seconds=0),
            earning("zero", 0),
            earning("swap", 30, source=EarningSource.SWAP, play_time_seconds=0),
            earning("other-user", 999, user_id="user-2"),
        ]
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.unpaid_raw == Decimal("130")
    assert snapshot.unpaid_by_source == {
        EarningSource.GAME.value: Decimal("100"),
        EarningSource.SWAP.value: Decimal("30"),
    }


@pytest.mark.parametrize("offline_seconds", [0, 1, 999, 1000, 1001, 86_400])
@pytest.mark.parametrize("burned", [0, 250, 2000])
def test_spendable_stays_within_zero_and_unpaid(offline_seconds: int, burned: int) -> None:
    burns = [burn(burned)] if burned else []
    fx = _build_fixture(
        earnings=[earning("e1", 1000)], burns=burns, offline_seconds=offline_seconds
    )

    snapshot = fx.calculator.compute_spendable(USER)

    assert Decimal(0) <= snapshot.spendable_balance <= snapshot.unpaid_raw
    assert snapshot.decay_since_last_activity == min(Decimal(offline_seconds), Decimal(1000))


@pytest.mark.parametrize("store", ["earnings", "burns"])
def test_store_failure_is_raised_instead_of_zero_balance(store: str) -> None:
    fx = _build_fixture(earnings=[earning("e1", 1000)])
    getattr(fx, store).fail = True

    with pytest.raises(DataUnavailable):
        fx.calculator.compute_spendable(USER)
