"""
Concurrency tests: racing joins and settlements against one database file.

Each thread opens its own SQLite connection, the same way independent API
workers would.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from services import error_codes
from tests.conftest import ADMIN, PLATFORM, assert_ledger_consistent

THREADS = 8


@pytest.fixture
def slow_lock_services(wager_service, account_repository):
    """Raise the lock wait so racing writers queue rather than time out."""
    wager_service.wager_repo.busy_timeout_ms = 30_000
    account_repository.busy_timeout_ms = 30_000
    return wager_service


def test_same_user_racing_joins_stake_once(make_wager, slow_lock_services, fund, account_repository):
    wager = make_wager(amount="100")
    fund("alice", 100_000)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(pool.map(lambda _: slow_lock_services.join(wager["wager_id"], "alice", "a"), range(THREADS)))

    assert sum(1 for r in results if r.success) == 1
    assert {r.error_code for r in results if not r.success} == {error_codes.DUPLICATE_STAKE}
    assert account_repository.get_balance("alice") == 100_000 - 10000
    assert len(slow_lock_services.get_entries(wager["wager_id"]).value) == 1
    assert_ledger_consistent(account_repository)


def test_one_account_across_wagers_never_overdraws(make_wager, slow_lock_services, fund, account_repository):
    """Balance covers one stake; eight wagers race for it."""
    wager_ids = [make_wager(amount="100")["wager_id"] for _ in range(THREADS)]
    fund("alice", 10_000)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(pool.map(lambda wid: slow_lock_services.join(wid, "alice", "a"), wager_ids))

    assert sum(1 for r in results if r.success) == 1
    assert {r.error_code for r in results if not r.success} == {error_codes.INSUFFICIENT_FUNDS}
    assert account_repository.get_balance("alice") == 0
    staked = [wid for wid in wager_ids if slow_lock_services.get_entries(wid).value]
    assert len(staked) == 1
    assert_ledger_consistent(account_repository)


def test_many_users_join_concurrently(make_wager, slow_lock_services, fund, account_repository):
    wager = make_wager(amount="100")
    users = [f"user{i}" for i in range(THREADS)]
    for user in users:
        fund(user, 10_000)

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(
            pool.map(lambda u: slow_lock_services.join(wager["wager_id"], u, "a" if u[-1] in "0246" else "b"), users)
        )

    assert all(r.success for r in results)
    totals = slow_lock_services.get_wager(wager["wager_id"]).value
    assert totals["total_pool"] == 10000 * THREADS
    assert totals["participant_count"] == THREADS
    assert all(account_repository.get_balance(u) == 0 for u in users)


def test_racing_settlements_pay_once(make_wager, slow_lock_services, fund, clock, account_repository):
    wager = make_wager(amount="100")
    for user, side in (("alice", "a"), ("bob", "a"), ("carol", "b")):
        fund(user, 10_000)
        slow_lock_services.join(wager["wager_id"], user, side)
    clock.advance(3600)
    slow_lock_services.set_outcome(wager["wager_id"], "a", ADMIN)
    total_before = account_repository.get_total_balance()

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(pool.map(lambda _: slow_lock_services.settle(wager["wager_id"]), range(THREADS)))

    assert sum(1 for r in results if r.success) == 1
    assert all(r.is_no_op for r in results if not r.success)
    # pool 300.00, fee 15.00, 285.00 split evenly
    assert account_repository.get_balance("alice") == 14250
    assert account_repository.get_balance("bob") == 14250
    assert account_repository.get_balance(PLATFORM) == 1500
    assert account_repository.get_total_balance() == total_before + 30000
    assert_ledger_consistent(account_repository)
