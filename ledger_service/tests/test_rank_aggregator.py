from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from ledger_service.app.models.rank import ScoreEntry
from ledger_service.app.services.rank_aggregator import RankAggregator

from .fakes import BASE_TIME, FakeScoreRepository


TOKEN = "token-a"


def _score(user_id: str, score: int, *, minutes_ago: int = 0, token_id: str = TOKEN) -> ScoreEntry:
    return ScoreEntry(
        user_id=user_id,
        token_id=token_id,
        total_score=Decimal(score),
        achieved_at=BASE_TIME - timedelta(minutes=minutes_ago),
    )


def _aggregator(*entries: ScoreEntry) -> RankAggregator:
    return RankAggregator(FakeScoreRepository(entries))


def test_rank_is_one_indexed_by_score_desc() -> None:
    aggregator = _aggregator(_score("u1", 10), _score("u2", 30), _score("u3", 20))

    result = aggregator.get_rank("u3", TOKEN)

    assert result is not None
    assert result.rank == 2
    assert result.total_score == Decimal("20")
    assert result.total_ranked == 3


def test_ties_go_to_earlier_achievement() -> None:
    aggregator = _aggregator(
        _score("late", 50, minutes_ago=1),
        _score("early", 50, minutes_ago=10),
    )

    assert aggregator.get_rank("early", TOKEN).rank == 1
    assert aggregator.get_rank("late", TOKEN).rank == 2


def test_full_ties_keep_insertion_order() -> None:
    aggregator = _aggregator(_score("first", 50), _score("second", 50))

    assert aggregator.get_rank("first", TOKEN).rank == 1
    assert aggregator.get_rank("second", TOKEN).rank == 2


def test_user_with_multiple_entries_uses_first_match() -> None:
    aggregator = _aggregator(_score("u1", 10), _score("u2", 20), _score("u1", 40))

    assert aggregator.get_rank("u1", TOKEN).rank == 1


def test_unranked_user_returns_none() -> None:
    aggregator = _aggregator(_score("u1", 10), _score("u2", 99, token_id="token-b"))

    assert aggregator.get_rank("u2", TOKEN) is None
    assert aggregator.get_rank("nobody", TOKEN) is None


def test_top_returns_first_n_entries() -> None:
    aggregator = _aggregator(*[_score(f"u{i}", i) for i in range(1, 6)])

    top = aggregator.top(TOKEN, limit=3)

    assert [(r.user_id, r.rank) for r in top] == [("u5", 1), ("u4", 2), ("u3", 3)]
    assert all(r.total_ranked == 5 for r in top)
