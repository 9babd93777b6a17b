"""
Tests for WagerService: creation, edits, joining and outcomes.
"""

from decimal import Decimal

import pytest

from services import error_codes
from tests.conftest import ADMIN, assert_ledger_consistent


class TestCreateWager:
    def test_create_defaults(self, make_wager):
        wager = make_wager(amount="250")

        assert wager["status"] == "OPEN"
        assert wager["amount"] == 25000
        assert Decimal(wager["fee_percentage"]) == Decimal("0.05")
        assert wager["winning_side"] is None

    def test_creator_side_debits_creator(self, make_wager, wager_service, account_repository):
        wager = make_wager(amount="100", creator_side="a")

        entries = wager_service.get_entries(wager["wager_id"]).value
        assert [(e["user_id"], e["side"], e["amount"]) for e in entries] == [("creator", "a", 10000)]
        assert account_repository.get_balance("creator") == 1_000_000 - 10000

    def test_creator_side_needs_funds(self, wager_service, fund, clock):
        fund("poor", 500)
        result = wager_service.create_wager(
            creator_id="poor",
            title="Derby",
            side_a="Home",
            side_b="Away",
            amount="10",
            deadline=clock.now + 3600,
            creator_side="b",
        )
        assert result.error_code == error_codes.INSUFFICIENT_FUNDS
        assert wager_service.wager_repo.get_wagers_by_status("OPEN") == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "   "},
            {"side_a": "Yes", "side_b": "yes"},
            {"amount": "0.50"},
            {"amount": "-1"},
            {"window": 30},
            {"window": 31 * 86400},
            {"fee_percentage": "1.2"},
            {"creator_side": "c"},
        ],
    )
    def test_validation(self, wager_service, fund, clock, overrides):
        fund("creator", 1_000_000)
        params = {
            "creator_id": "creator",
            "title": "Derby",
            "side_a": "Home",
            "side_b": "Away",
            "amount": "10",
            "deadline": clock.now + overrides.pop("window", 3600),
        }
        params.update(overrides)

        result = wager_service.create_wager(**params)

        assert not result.success
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_custom_fee(self, make_wager):
        wager = make_wager(fee_percentage="0.10")
        assert Decimal(wager["fee_percentage"]) == Decimal("0.10")


class TestEditAndDelete:
    def test_creator_can_edit_before_others_join(self, make_wager, wager_service, clock):
        wager = make_wager(creator_side="a")

        result = wager_service.update_wager(
            wager["wager_id"], "creator", title="New title", deadline=clock.now + 7200
        )

        assert result.success
        assert result.value["title"] == "New title"
        assert result.value["deadline"] == clock.now + 7200

    def test_non_creator_cannot_edit(self, make_wager, wager_service):
        wager = make_wager()
        result = wager_service.update_wager(wager["wager_id"], "mallory", title="Mine now")
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_edit_locked_after_join(self, make_wager, wager_service, fund):
        wager = make_wager()
        fund("alice")
        wager_service.join(wager["wager_id"], "alice", "a")

        result = wager_service.update_wager(wager["wager_id"], "creator", title="Changed")
        assert result.error_code == error_codes.STATE_ERROR

    def test_empty_edit(self, make_wager, wager_service):
        wager = make_wager()
        result = wager_service.update_wager(wager["wager_id"], "creator")
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_delete_refunds_creator(self, make_wager, wager_service, account_repository):
        wager = make_wager(amount="100", creator_side="b")

        result = wager_service.delete_wager(wager["wager_id"], "creator")

        assert result.value["refunded"] == 10000
        assert account_repository.get_balance("creator") == 1_000_000
        assert wager_service.get_wager(wager["wager_id"]).error_code == error_codes.NOT_FOUND
        assert_ledger_consistent(account_repository)


class TestJoin:
    def test_join_debits_and_updates_pool(self, make_wager, wager_service, fund):
        wager = make_wager(amount="100")
        fund("alice", 50_000)

        result = wager_service.join(wager["wager_id"], "alice", "a")

        assert result.success
        assert result.value.amount == Decimal("100.00")
        assert result.value.new_balance == Decimal("400.00")
        view = wager_service.get_wager(wager["wager_id"]).value
        assert view["side_a_total"] == 10000
        assert view["participant_count"] == 1

    def test_user_entry_lookup(self, make_wager, wager_service, wager_repository, fund):
        wager = make_wager()
        fund("alice")
        wager_service.join(wager["wager_id"], "alice", "b")

        entry = wager_repository.get_user_entry(wager["wager_id"], "alice")
        assert entry["side"] == "b"
        assert entry["amount"] == 10000
        assert entry["paid_at"] is None
        assert wager_repository.get_user_entry(wager["wager_id"], "bob") is None

    def test_duplicate_join(self, make_wager, wager_service, fund, account_repository):
        wager = make_wager()
        fund("alice")
        wager_service.join(wager["wager_id"], "alice", "a")

        again = wager_service.join(wager["wager_id"], "alice", "b")

        assert again.error_code == error_codes.DUPLICATE_STAKE
        assert account_repository.get_balance("alice") == 100_000 - 10000

    def test_insufficient_funds(self, make_wager, wager_service, fund, account_repository):
        wager = make_wager(amount="100")
        fund("alice", 9999)

        result = wager_service.join(wager["wager_id"], "alice", "a")

        assert result.error_code == error_codes.INSUFFICIENT_FUNDS
        assert account_repository.get_balance("alice") == 9999
        assert wager_service.get_entries(wager["wager_id"]).value == []

    def test_deadline_elapsed(self, make_wager, wager_service, fund, clock):
        wager = make_wager()
        fund("alice")
        clock.advance(3600)

        assert wager_service.join(wager["wager_id"], "alice", "a").error_code == error_codes.DEADLINE_ELAPSED

    def test_closed_check_precedes_funds_check(self, make_wager, wager_service, fund, clock):
        """A closed wager reports deadline_elapsed even for a broke user."""
        wager = make_wager()
        fund("broke", 0)
        clock.advance(3600)

        assert wager_service.join(wager["wager_id"], "broke", "a").error_code == error_codes.DEADLINE_ELAPSED

    def test_not_open(self, make_wager, wager_service, fund, clock):
        wager = make_wager()
        fund("alice")
        clock.advance(3600)
        wager_service.set_outcome(wager["wager_id"], "a", ADMIN)

        assert wager_service.join(wager["wager_id"], "alice", "a").error_code == error_codes.INSTANCE_NOT_OPEN

    def test_unknown_wager(self, wager_service, fund):
        fund("alice")
        assert wager_service.join(999, "alice", "a").error_code == error_codes.NOT_FOUND

    def test_invalid_side(self, make_wager, wager_service):
        wager = make_wager()
        assert wager_service.join(wager["wager_id"], "alice", "x").error_code == error_codes.VALIDATION_ERROR


class TestPotentialReturns:
    def test_projection_for_next_entry(self, make_wager, wager_service, fund):
        wager = make_wager(amount="100", creator_side="a")
        fund("bob")
        wager_service.join(wager["wager_id"], "bob", "a")

        view = wager_service.get_potential_returns(wager["wager_id"]).value

        # pool 300, fee 15, distributable 285
        assert view.total_pool == Decimal("300.00")
        assert view.platform_fee == Decimal("15.00")
        assert view.side_a_potential == Decimal("95.00")
        assert view.side_b_potential == Decimal("285.00")
        assert view.side_b_multiplier == Decimal("2.85")


class TestSetOutcome:
    def test_admin_only(self, make_wager, wager_service, clock):
        wager = make_wager()
        clock.advance(3600)

        result = wager_service.set_outcome(wager["wager_id"], "a", "creator")
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_explicit_admin_flag(self, make_wager, wager_service, clock):
        wager = make_wager()
        clock.advance(3600)

        result = wager_service.set_outcome(wager["wager_id"], "b", "moderator", is_admin=True)
        assert result.value["status"] == "RESOLVED"
        assert result.value["winning_side"] == "b"
        assert result.value["resolved_by"] == "moderator"

    def test_before_deadline(self, make_wager, wager_service, clock):
        wager = make_wager()
        clock.advance(3599)

        result = wager_service.set_outcome(wager["wager_id"], "a", ADMIN)
        assert result.error_code == error_codes.DEADLINE_NOT_ELAPSED

    def test_outcome_is_write_once(self, make_wager, wager_service, clock):
        wager = make_wager()
        clock.advance(3600)
        wager_service.set_outcome(wager["wager_id"], "a", ADMIN)

        second = wager_service.set_outcome(wager["wager_id"], "b", ADMIN)

        assert second.error_code == error_codes.OUTCOME_ALREADY_SET
        assert wager_service.get_wager(wager["wager_id"]).value["winning_side"] == "a"

    def test_invalid_side(self, make_wager, wager_service, clock):
        wager = make_wager()
        clock.advance(3600)
        assert wager_service.set_outcome(wager["wager_id"], "draw", ADMIN).error_code == error_codes.VALIDATION_ERROR
