"""Concurrency tests: many threads mutating the same player at once.

Each thread calls the public ledger operations against a shared store. The
checks are on the final state: no update lost, no overdraft, one event per
commit.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from coin_server.db.store import LedgerStore
from coin_server.ledger import (
    InsufficientFundsError,
    award_party_result,
    get_balance,
    get_player,
    list_events,
    spend_coins,
    verify_player_ledger,
)
from tests.constants import PHONE

pytestmark = [pytest.mark.integration, pytest.mark.slow]


@pytest.fixture
def busy_store(temp_db_path: Path):
    ledger_store = LedgerStore(temp_db_path, max_attempts=200, backoff_ms=1)
    ledger_store.open()
    yield ledger_store
    ledger_store.close()


def _run_threads(count: int, target: Callable[[int], None]) -> list[BaseException]:
    errors: list[BaseException] = []
    lock = threading.Lock()
    start = threading.Barrier(count)

    def runner(index: int) -> None:
        start.wait()
        try:
            target(index)
        except BaseException as exc:  # noqa: BLE001
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=runner, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return errors


def test_concurrent_awards_sum_exactly(busy_store: LedgerStore):
    threads, per_thread = 6, 5

    def award(index: int) -> None:
        for round_number in range(per_thread):
            award_party_result(
                busy_store, PHONE, "run", score=index * 10 + round_number, coins=index + 1
            )

    errors = _run_threads(threads, award)

    assert errors == []
    expected = per_thread * sum(index + 1 for index in range(threads))
    assert get_balance(busy_store, PHONE) == expected
    assert len(list_events(busy_store, PHONE, limit=500)) == threads * per_thread
    assert get_player(busy_store, PHONE).party_scores["run"].best_score == (threads - 1) * 10 + 4
    assert verify_player_ledger(busy_store, PHONE).status == "ok"


def test_concurrent_spends_never_overdraw(busy_store: LedgerStore):
    award_party_result(busy_store, PHONE, "run", coins=10)
    outcomes: list[str] = []
    lock = threading.Lock()

    def spend(index: int) -> None:
        try:
            spend_coins(busy_store, PHONE, 1)
            outcome = "ok"
        except InsufficientFundsError:
            outcome = "rejected"
        with lock:
            outcomes.append(outcome)

    errors = _run_threads(15, spend)

    assert errors == []
    assert outcomes.count("ok") == 10
    assert outcomes.count("rejected") == 5
    assert get_balance(busy_store, PHONE) == 0
    spends = [event for event in list_events(busy_store, PHONE) if event.source == "spend"]
    assert len(spends) == 10


def test_concurrent_first_awards_create_one_player(busy_store: LedgerStore):
    def award(index: int) -> None:
        award_party_result(busy_store, PHONE, f"game{index}", score=1, coins=1)

    errors = _run_threads(8, award)

    assert errors == []
    player = get_player(busy_store, PHONE)
    assert player.coins == 8
    assert len(player.party_scores) == 8
    assert verify_player_ledger(busy_store, PHONE).status == "ok"


def test_default_store_absorbs_threadpool_contention(temp_db_path: Path):
    """Forty mixed writers on one key all commit with the shipped retry settings."""
    ledger_store = LedgerStore(temp_db_path)
    ledger_store.open()
    threads, per_thread = 40, 5
    outcomes: list[str] = []
    lock = threading.Lock()

    def mixed(index: int) -> None:
        for round_number in range(per_thread):
            if (index + round_number) % 2 == 0:
                award_party_result(ledger_store, PHONE, "run", score=round_number, coins=2)
                outcome = "award"
            else:
                try:
                    spend_coins(ledger_store, PHONE, 1)
                    outcome = "spend"
                except InsufficientFundsError:
                    outcome = "rejected"
            with lock:
                outcomes.append(outcome)

    try:
        errors = _run_threads(threads, mixed)

        assert errors == []
        assert len(outcomes) == threads * per_thread
        expected = 2 * outcomes.count("award") - outcomes.count("spend")
        assert get_balance(ledger_store, PHONE) == expected
        committed = outcomes.count("award") + outcomes.count("spend")
        assert len(list_events(ledger_store, PHONE, limit=500)) == committed
        assert verify_player_ledger(ledger_store, PHONE).status == "ok"
    finally:
        ledger_store.close()
