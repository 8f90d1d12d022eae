from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from ledger_service.app.config import LedgerSettings
from ledger_service.app.main import create_app
from ledger_service.app.models.decay import ActivityState
from ledger_service.app.models.rank import ScoreEntry
from ledger_service.app.services.activity_service import (
    ActivityService,
    get_activity_service,
)
from ledger_service.app.services.balance_calculator import (
    BalanceCalculator,
    get_balance_calculator,
)
from ledger_service.app.services.config_service import ConfigService, get_config_service
from ledger_service.app.services.decay_engine import DecayEngine, get_decay_engine
from ledger_service.app.services.payout_service import PayoutService, get_payout_service
from ledger_service.app.services.pool_accountant import (
    PoolAccountant,
    get_pool_accountant,
)
from ledger_service.app.services.rank_aggregator import (
    RankAggregator,
    get_rank_aggregator,
)

from .fakes import (
    BASE_TIME,
    FakeActivityRepository,
    FakeBurnRecordRepository,
    FakeDecayLedgerRepository,
    FakeEarningRecordRepository,
    FakeEventBus,
    FakeLedgerConfigRepository,
    FakeScoreRepository,
    FixedClock,
    earning,
)


USER = "user-1"


@dataclass
class _Fixture:
    client: TestClient
    earnings: FakeEarningRecordRepository
    burns: FakeBurnRecordRepository
    activity: FakeActivityRepository
    clock: FixedClock


@pytest.fixture
def fx() -> Iterator[_Fixture]:
    clock = FixedClock()
    last = clock.now - timedelta(seconds=3600)
    earning_repo = FakeEarningRecordRepository([earning("e1", 4060)])
    burn_repo = FakeBurnRecordRepository()
    decay_repo = FakeDecayLedgerRepository()
    activity_repo = FakeActivityRepository(
        [ActivityState(user_id=USER, last_activity_at=last, last_seen_at=last)]
    )
    score_repo = FakeScoreRepository(
        [
            ScoreEntry(user_id="u-a", token_id="tok", total_score=Decimal(5), achieved_at=BASE_TIME),
            ScoreEntry(user_id=USER, token_id="tok", total_score=Decimal(9), achieved_at=BASE_TIME),
        ]
    )
    bus = FakeEventBus()

    config_service = ConfigService(
        FakeLedgerConfigRepository(), LedgerSettings(), event_bus=bus, clock=clock
    )
    engine = DecayEngine(activity_repo, decay_repo, event_bus=bus, clock=clock)
    calculator = BalanceCalculator(
        earning_repo, burn_repo, decay_repo, engine, config_service, clock=clock
    )

    app = create_app()
    app.dependency_overrides[get_config_service] = lambda: config_service
    app.dependency_overrides[get_decay_engine] = lambda: engine
    app.dependency_overrides[get_balance_calculator] = lambda: calculator
    app.dependency_overrides[get_activity_service] = lambda: ActivityService(
        activity_repo, burn_repo, calculator, clock=clock
    )
    app.dependency_overrides[get_payout_service] = lambda: PayoutService(
        earning_repo, calculator, event_bus=bus, clock=clock
    )
    app.dependency_overrides[get_pool_accountant] = lambda: PoolAccountant(
        earning_repo, config_service
    )
    app.dependency_overrides[get_rank_aggregator] = lambda: RankAggregator(score_repo)

    yield _Fixture(TestClient(app), earning_repo, burn_repo, activity_repo, clock)
    app.dependency_overrides.clear()


def test_health(fx: _Fixture) -> None:
    resp = fx.client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_balance_applies_offline_decay(fx: _Fixture) -> None:
    resp = fx.client.get(f"/api/v1/ledger/{USER}/balance")

    assert resp.status_code == 200
    body = resp.json()
    assert Decimal(body["unpaid_raw"]) == Decimal("4060")
    assert Decimal(body["decay_since_last_activity"]) == Decimal("3600")
    assert Decimal(body["spendable_balance"]) == Decimal("460")
    assert body["decay_state"] == "offline"
    assert resp.headers["X-Request-Id"]


def test_decay_preview_then_history(fx: _Fixture) -> None:
    preview = fx.client.get(f"/api/v1/ledger/{USER}/decay").json()
    assert Decimal(preview["pending_decay"]) == Decimal("3600")

    history = fx.client.get(f"/api/v1/ledger/{USER}/decay-history").json()
    assert history["total"] == 0

    fx.client.get(f"/api/v1/ledger/{USER}/balance")
    history = fx.client.get(f"/api/v1/ledger/{USER}/decay-history").json()
    assert history["total"] == 1
    assert history["items"][0]["label"] == "Offline Decay"


def test_record_burn_and_activity(fx: _Fixture) -> None:
    resp = fx.client.post(
        f"/api/v1/ledger/{USER}/burns",
        json={"burn_type": "pack_opening", "amount": "60"},
    )
    assert resp.status_code == 201
    assert resp.json()["burn_type"] == "pack_opening"

    resp = fx.client.post(f"/api/v1/ledger/{USER}/activity", json={"heartbeat": True})
    assert resp.status_code == 200
    assert resp.json()["last_heartbeat_at"] is not None

    balance = fx.client.get(f"/api/v1/ledger/{USER}/balance").json()
    assert Decimal(balance["spendable_balance"]) == Decimal("400")
    assert balance["decay_state"] == "active"


def test_unknown_burn_type_is_rejected(fx: _Fixture) -> None:
    resp = fx.client.post(
        f"/api/v1/ledger/{USER}/burns", json={"burn_type": "lottery", "amount": "1"}
    )

    assert resp.status_code == 422


def test_store_failure_maps_to_503(fx: _Fixture) -> None:
    fx.earnings.fail = True

    resp = fx.client.get(f"/api/v1/ledger/{USER}/balance")

    assert resp.status_code == 503
    assert resp.json()["detail"]["code"] == "data_unavailable"


def test_payout_claim_and_conflict(fx: _Fixture) -> None:
    resp = fx.client.post(f"/api/v1/ledger/{USER}/payouts")
    assert resp.status_code == 200
    body = resp.json()
    assert body["record_ids"] == ["e1"]
    assert Decimal(body["payable_amount"]) == Decimal("460")

    fx.earnings.records.append(earning("e2", 100))
    fx.earnings.stolen_ids = {"e2"}
    resp = fx.client.post(f"/api/v1/ledger/{USER}/payouts")
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["code"] == "concurrent_payout_conflict"
    assert detail["conflicting_ids"] == ["e2"]


def test_pool_endpoints(fx: _Fixture) -> None:
    fx.earnings.records.append(earning("paid", 1000, user_id="user-2", paid_at=BASE_TIME))

    pool = fx.client.get("/api/v1/pool").json()
    assert Decimal(pool["total_paid_across_sources"]) == Decimal("1000")
    assert Decimal(pool["remaining"]) == Decimal("99999000")

    unpaid = fx.client.get("/api/v1/pool/unpaid").json()
    assert Decimal(unpaid["total_unpaid"]) == Decimal("4060")


def test_rank_endpoints(fx: _Fixture) -> None:
    rank = fx.client.get(f"/api/v1/ranks/tok/users/{USER}")
    assert rank.status_code == 200
    assert rank.json()["rank"] == 1

    missing = fx.client.get("/api/v1/ranks/tok/users/nobody")
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "rank_not_found"
    assert missing.json()["detail"]["token_id"] == "tok"

    top = fx.client.get("/api/v1/ranks/tok", params={"limit": 1}).json()
    assert [item["user_id"] for item in top["items"]] == [USER]


def test_config_read_and_admin_write(fx: _Fixture) -> None:
    current = fx.client.get("/api/v1/config").json()
    assert current["version"] == 0
    assert Decimal(current["effective_decay_rate"]) == Decimal("1")

    no_admin = fx.client.put("/api/v1/config", json={"total_pool_ceiling": "10"})
    assert no_admin.status_code == 422

    resp = fx.client.put(
        "/api/v1/config",
        json={"decay_rate_per_second": "0.5"},
        headers={"X-Admin-Id": "admin-1"},
    )
    assert resp.status_code == 200
    assert resp.json()["version"] == 1
    assert resp.json()["updated_by"] == "admin-1"


def test_negative_config_value_maps_to_422(fx: _Fixture) -> None:
    resp = fx.client.put(
        "/api/v1/config",
        json={"total_pool_ceiling": "-5"},
        headers={"X-Admin-Id": "admin-1"},
    )

    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "invalid_configuration"
    assert resp.json()["detail"]["field"] == "total_pool_ceiling"
