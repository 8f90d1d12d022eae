from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from common.events.ledger import LedgerEventType
from ledger_service.app.config import LedgerSettings
from ledger_service.app.errors import ConcurrentPayoutConflict
from ledger_service.app.services.balance_calculator import BalanceCalculator
from ledger_service.app.services.config_service import ConfigService
from ledger_service.app.services.decay_engine import DecayEngine
from ledger_service.app.services.payout_service import PayoutService

from .fakes import (
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
    service: PayoutService
    calculator: BalanceCalculator
    earnings: FakeEarningRecordRepository
    burns: FakeBurnRecordRepository
    bus: FakeEventBus
    clock: FixedClock


def _build_fixture(earnings=(), burns=()) -> _Fixture:
    clock = FixedClock()
    earning_repo = FakeEarningRecordRepository(earnings)
    burn_repo = FakeBurnRecordRepository(burns)
    decay_repo = FakeDecayLedgerRepository()
    bus = FakeEventBus()
    calculator = BalanceCalculator(
        earning_repo,
        burn_repo,
        decay_repo,
        DecayEngine(FakeActivityRepository(), decay_repo, clock=clock),
        ConfigService(FakeLedgerConfigRepository(), LedgerSettings(), clock=clock),
        clock=clock,
    )
    service = PayoutService(earning_repo, calculator, event_bus=bus, clock=clock)
    return _Fixture(service, calculator, earning_repo, burn_repo, bus, clock)


def test_claim_marks_payable_records_paid() -> None:
    fx = _build_fixture(
        earnings=[earning("e1", 600), earning("e2", 400), earning("bad", 100, status="abandoned")],
        burns=[burn(250)],
    )

    claim = fx.service.claim(USER)

    assert sorted(claim.record_ids) == ["e1", "e2"]
    assert claim.claimed_amount == Decimal("1000")
    assert claim.payable_amount == Decimal("750")
    assert claim.paid_at == fx.clock.now

    paid = {r.id: r for r in fx.earnings.records}
    assert paid["e1"].paid and paid["e1"].payout_id == claim.payout_id
    assert not paid["bad"].paid

    assert fx.bus.payload_types() == [LedgerEventType.REWARDS_PAID]
    _, evt = fx.bus.published[0]
    assert evt.payload["amount"] == "750"
    assert evt.key == USER


def test_balance_after_payout_starts_a_new_cycle() -> None:
    fx = _build_fixture(earnings=[earning("e1", 1000)], burns=[burn(250)])
    fx.service.claim(USER)
    fx.clock.advance(60)

    snapshot = fx.calculator.compute_spendable(USER)

    assert snapshot.unpaid_raw == Decimal("0")
    assert snapshot.burned_since_last_payout == Decimal("0")
    assert snapshot.spendable_balance == Decimal("0")
    assert snapshot.total_earned_all_time == Decimal("1000")


def test_claim_with_nothing_payable_returns_empty_claim() -> None:
    fx = _build_fixture()

    claim = fx.service.claim(USER)

    assert claim.record_ids == []
    assert claim.payable_amount == Decimal("0")
    assert fx.bus.published == []


def test_lost_race_releases_own_claims_so_retry_pays_them() -> None:
    # given: e2 를 다른 지급이 먼저 가져감
    fx = _build_fixture(earnings=[earning("e1", 600), earning("e2", 400)])
    fx.earnings.stolen_ids = {"e2"}

    # when
    with pytest.raises(ConcurrentPayoutConflict) as exc_info:
        fx.service.claim(USER)

    # then: 이번에 선점했던 e1 은 다시 unpaid
    err = exc_info.value
    assert err.conflicting_ids == ["e2"]
    assert err.released_ids == ["e1"]
    assert err.http_status == 409
    assert fx.bus.published == []

    e1 = next(r for r in fx.earnings.records if r.id == "e1")
    assert not e1.paid and e1.paid_at is None and e1.payout_id is None

    # 재조회 후 재요청하면 e1 의 600 이 그대로 지급된다
    fx.clock.advance(1)
    assert fx.calculator.compute_spendable(USER).spendable_balance == Decimal("600")

    retry = fx.service.claim(USER)

    assert retry.record_ids == ["e1"]
    assert retry.payable_amount == Decimal("600")
    assert fx.bus.payload_types() == [LedgerEventType.REWARDS_PAID]


def test_second_claim_finds_nothing_left_to_pay() -> None:
    fx = _build_fixture(earnings=[earning("e1", 500)])

    first = fx.service.claim(USER)
    fx.clock.advance(1)
    second = fx.service.claim(USER)

    assert first.record_ids == ["e1"]
    assert second.record_ids == []
