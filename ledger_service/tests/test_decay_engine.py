from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from common.eventbus.topics import TOPIC_LEDGER
from ledger_service.app.models.decay import ActivityState, DecayState
from ledger_service.app.models.ledger_config import LedgerConfig
from ledger_service.app.services.decay_engine import DecayEngine

from .fakes import (
    BASE_TIME,
    FakeActivityRepository,
    FakeDecayLedgerRepository,
    FakeEventBus,
    FixedClock,
)


USER = "user-1"
NOW = BASE_TIME


def _config(**overrides) -> LedgerConfig:
    values = {
        "version": 1,
        "reward_per_second": Decimal("1"),
        "total_pool_ceiling": Decimal("100000000"),
    }
    values.update(overrides)
    return LedgerConfig(**values)


def _offline(seconds: float, **extra) -> ActivityState:
    last = NOW - timedelta(seconds=seconds)
    return ActivityState(user_id=USER, last_activity_at=last, last_seen_at=last, **extra)


@pytest.mark.parametrize(
    ("elapsed", "decayable", "expected"),
    [
        (3600, "4060", "3600"),
        (10_000, "4060", "4060"),
        (0, "4060", "0"),
        (100, "0", "0"),
        (100, "-5", "0"),
    ],
)
def test_evaluate_caps_decay_at_decayable(elapsed, decayable, expected) -> None:
    result = DecayEngine.evaluate(_config(), _offline(elapsed), Decimal(decayable), NOW)

    assert result.decay == Decimal(expected)
    assert result.raw_decay == Decimal(elapsed)


def test_evaluate_uses_explicit_decay_rate_over_reward_rate() -> None:
    config = _config(reward_per_second=Decimal("2"), decay_rate_per_second=Decimal("0.5"))

    result = DecayEngine.evaluate(config, _offline(100), Decimal("1000"), NOW)

    assert result.rate_per_second == Decimal("0.5")
    assert result.decay == Decimal("50")


def test_evaluate_mirrors_reward_rate_when_decay_rate_unset() -> None:
    config = _config(reward_per_second=Decimal("2"))

    result = DecayEngine.evaluate(config, _offline(100), Decimal("1000"), NOW)

    assert result.rate_per_second == Decimal("2")
    assert result.decay == Decimal("200")


def test_evaluate_inside_grace_window_is_active() -> None:
    config = _config(decay_grace_seconds=60)

    result = DecayEngine.evaluate(config, _offline(30), Decimal("1000"), NOW)

    assert result.state == DecayState.ACTIVE
    assert result.decay == Decimal("0")


def test_evaluate_recent_heartbeat_is_active() -> None:
    activity = _offline(3600, last_heartbeat_at=NOW - timedelta(seconds=120))

    result = DecayEngine.evaluate(_config(), activity, Decimal("1000"), NOW)

    assert result.state == DecayState.ACTIVE
    assert result.decay == Decimal("0")


def test_evaluate_stale_heartbeat_is_offline() -> None:
    activity = _offline(3600, last_heartbeat_at=NOW - timedelta(seconds=121))

    result = DecayEngine.evaluate(_config(), activity, Decimal("5000"), NOW)

    assert result.state == DecayState.OFFLINE
    assert result.decay == Decimal("3600")


def test_apply_records_entry_and_publishes_event() -> None:
    activity_repo = FakeActivityRepository([_offline(3600)])
    decay_repo = FakeDecayLedgerRepository()
    bus = FakeEventBus()
    engine = DecayEngine(activity_repo, decay_repo, event_bus=bus, clock=FixedClock(NOW))

    result = engine.apply(USER, _config(), Decimal("4060"))

    assert result.applied == Decimal("3600")
    assert result.entry_id == "decay-1"
    assert result.last_activity_at == NOW
    assert activity_repo.get(USER).last_activity_at == NOW

    topic, evt = bus.published[0]
    assert topic == TOPIC_LEDGER.base
    assert evt.key == USER
    assert evt.payload["amount"] == "3600.0"
    assert evt.payload["entry_id"] == "decay-1"


def test_apply_skips_write_when_concurrent_read_already_settled() -> None:
    activity_repo = FakeActivityRepository([_offline(3600)])
    activity_repo.lose_next_cas = True
    decay_repo = FakeDecayLedgerRepository()
    engine = DecayEngine(activity_repo, decay_repo, clock=FixedClock(NOW))

    result = engine.apply(USER, _config(), Decimal("4060"))

    assert result.applied == Decimal("0")
    assert result.decay == Decimal("0")
    assert decay_repo.entries == []


def test_apply_advances_checkpoint_even_when_nothing_left_to_decay() -> None:
    activity_repo = FakeActivityRepository([_offline(3600)])
    decay_repo = FakeDecayLedgerRepository()
    engine = DecayEngine(activity_repo, decay_repo, clock=FixedClock(NOW))

    result = engine.apply(USER, _config(), Decimal("0"))

    assert result.applied == Decimal("0")
    assert decay_repo.entries == []
    assert activity_repo.get(USER).last_activity_at == NOW


def test_apply_without_activity_record_does_nothing() -> None:
    activity_repo = FakeActivityRepository()
    engine = DecayEngine(activity_repo, FakeDecayLedgerRepository(), clock=FixedClock(NOW))

    result = engine.apply(USER, _config(), Decimal("1000"))

    assert result.decay == Decimal("0")
    assert activity_repo.cas_calls == 0


def test_preview_does_not_write() -> None:
    activity_repo = FakeActivityRepository([_offline(600)])
    decay_repo = FakeDecayLedgerRepository()
    engine = DecayEngine(activity_repo, decay_repo, clock=FixedClock(NOW))

    result = engine.preview(USER, _config(), Decimal("1000"))

    assert result.decay == Decimal("600")
    assert decay_repo.entries == []
    assert activity_repo.cas_calls == 0
    assert activity_repo.get(USER).last_activity_at == NOW - timedelta(seconds=600)


def test_history_returns_latest_first() -> None:
    activity_repo = FakeActivityRepository([_offline(100)])
    decay_repo = FakeDecayLedgerRepository()
    clock = FixedClock(NOW)
    engine = DecayEngine(activity_repo, decay_repo, clock=clock)

    engine.apply(USER, _config(), Decimal("1000"))
    clock.advance(50)
    engine.apply(USER, _config(), Decimal("1000"))

    items, total = engine.history(USER, page=1, page_size=10)

    assert total == 2
    assert [e.amount for e in items] == [Decimal("50"), Decimal("100")]
