"""
Tests for wager settlement: payouts, idempotence, rollback and conservation.
"""

from decimal import Decimal

import pytest

from repositories import balance_ops
from services import error_codes
from tests.conftest import ADMIN, PLATFORM, assert_ledger_consistent


@pytest.fixture
def resolved_wager(make_wager, wager_service, fund, clock):
    """
    Five players at 100.00 each: alice, bob, carol on side a; dave, erin on b.
    Side a wins.
    """

    def _build(winning_side="a", sides=None):
        wager = make_wager(amount="100")
        sides = sides or {"alice": "a", "bob": "a", "carol": "a", "dave": "b", "erin": "b"}
        for user, side in sides.items():
            fund(user, 100_000)
            assert wager_service.join(wager["wager_id"], user, side).success
        clock.advance(3600)
        assert wager_service.set_outcome(wager["wager_id"], winning_side, ADMIN).success
        return wager["wager_id"]

    return _build


class TestSettle:
    def test_pari_mutuel_payouts(self, resolved_wager, wager_service, account_repository):
        wager_id = resolved_wager()
        total_before = account_repository.get_total_balance()

        result = wager_service.settle(wager_id)

        assert result.success
        settlement = result.value
        assert settlement.status == "SETTLED"
        assert settlement.outcome == "a"
        assert settlement.total_pool == Decimal("500.00")
        assert settlement.platform_fee == Decimal("25.00")
        assert settlement.rounding_remainder == Decimal("0.01")
        assert settlement.platform_credit == Decimal("25.01")
        assert [p.amount for p in settlement.payouts] == [Decimal("158.33")] * 3

        for winner in ("alice", "bob", "carol"):
            assert account_repository.get_balance(winner) == 100_000 - 10000 + 15833
        for loser in ("dave", "erin"):
            assert account_repository.get_balance(loser) == 100_000 - 10000
        assert account_repository.get_balance(PLATFORM) == 2501

        # stakes held by the wager return to accounts as payouts and fee
        assert account_repository.get_total_balance() == total_before + 50000
        assert_ledger_consistent(account_repository)

    def test_entries_closed_out(self, resolved_wager, wager_service):
        wager_id = resolved_wager()
        wager_service.settle(wager_id)

        entries = {e["user_id"]: e for e in wager_service.get_entries(wager_id).value}
        assert entries["alice"]["payout"] == 15833
        assert entries["dave"]["payout"] == 0
        assert all(e["paid_at"] is not None for e in entries.values())

    def test_settlement_record(self, resolved_wager, wager_service):
        wager_id = resolved_wager()
        wager_service.settle(wager_id)

        record = wager_service.get_settlement(wager_id).value
        assert record["outcome"] == "a"
        assert record["total_pool"] == 50000
        assert record["platform_fee"] == 2500
        assert record["rounding_remainder"] == 1
        assert record["distributed"] == 47499
        assert record["winner_count"] == 3

    def test_second_settle_is_no_op(self, resolved_wager, wager_service, account_repository):
        wager_id = resolved_wager()
        wager_service.settle(wager_id)
        balances = {u: account_repository.get_balance(u) for u in ("alice", "dave", PLATFORM)}

        again = wager_service.settle(wager_id)

        assert again.error_code == error_codes.ALREADY_SETTLED
        assert again.is_no_op
        assert {u: account_repository.get_balance(u) for u in balances} == balances

    def test_settle_requires_outcome(self, make_wager, wager_service, clock):
        wager = make_wager()
        clock.advance(3600)

        assert wager_service.settle(wager["wager_id"]).error_code == error_codes.NOT_RESOLVED

    def test_settle_unknown(self, wager_service):
        assert wager_service.settle(12345).error_code == error_codes.NOT_FOUND


class TestRefundOutcomes:
    def test_no_winning_stakes_refunds_everyone(self, resolved_wager, wager_service, account_repository):
        wager_id = resolved_wager(winning_side="b", sides={"alice": "a", "bob": "a"})

        result = wager_service.settle(wager_id)

        assert result.value.status == "REFUNDED"
        assert result.value.outcome == "no_winning_stakes"
        assert result.value.platform_fee == Decimal("0.00")
        assert result.value.refunded == Decimal("200.00")
        assert account_repository.get_balance("alice") == 100_000
        assert account_repository.get_balance(PLATFORM) == 0
        assert_ledger_consistent(account_repository)

    def test_single_participant_at_settlement(self, resolved_wager, wager_service, account_repository):
        wager_id = resolved_wager(sides={"alice": "a"})

        result = wager_service.settle(wager_id)

        assert result.value.outcome == "single_participant"
        assert account_repository.get_balance("alice") == 100_000


class TestAtomicity:
    def test_failure_mid_disbursement_rolls_back(
        self, resolved_wager, wager_service, account_repository, monkeypatch
    ):
        """A crash after the first winner is credited leaves no partial payout."""
        wager_id = resolved_wager()
        total_before = account_repository.get_total_balance()
        balances_before = {
            u: account_repository.get_balance(u) for u in ("alice", "bob", "carol", PLATFORM)
        }

        real_apply = balance_ops.apply
        calls = {"wins": 0}

        def flaky_apply(cursor, user_id, delta, tx_type, *args, **kwargs):
            if tx_type == "wager_win":
                calls["wins"] += 1
                if calls["wins"] == 2:
                    raise RuntimeError("simulated crash")
            return real_apply(cursor, user_id, delta, tx_type, *args, **kwargs)

        monkeypatch.setattr(balance_ops, "apply", flaky_apply)

        with pytest.raises(RuntimeError):
            wager_service.settle(wager_id)

        assert {u: account_repository.get_balance(u) for u in balances_before} == balances_before
        assert account_repository.get_total_balance() == total_before
        assert wager_service.get_wager(wager_id).value["status"] == "RESOLVED"
        assert wager_service.get_settlement(wager_id).error_code == error_codes.NOT_FOUND
        assert all(e["paid_at"] is None for e in wager_service.get_entries(wager_id).value)

        # Retry once the fault is gone
        monkeypatch.setattr(balance_ops, "apply", real_apply)
        retry = wager_service.settle(wager_id)
        assert retry.success
        assert account_repository.get_balance("alice") == 100_000 - 10000 + 15833
        assert_ledger_consistent(account_repository)
