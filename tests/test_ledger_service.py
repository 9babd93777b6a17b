"""
Tests for LedgerService: Decimal amounts in, Result out.
"""

from decimal import Decimal

import pytest

from services import error_codes
from tests.conftest import ADMIN


class TestDepositWithdraw:
    def test_deposit_returns_major_units(self, ledger_service):
        ledger_service.open_account("alice")

        result = ledger_service.deposit("alice", "250.50", "psk_1")

        assert result.success
        assert result.value.amount == Decimal("250.50")
        assert result.value.new_balance == Decimal("250.50")
        assert ledger_service.get_balance("alice").value == Decimal("250.50")

    def test_repeated_confirmation(self, ledger_service):
        ledger_service.open_account("alice")
        ledger_service.deposit("alice", "100", "psk_1")
        again = ledger_service.deposit("alice", "100", "psk_1")

        assert again.success
        assert again.value.duplicate is True
        assert ledger_service.get_balance("alice").value == Decimal("100.00")

    @pytest.mark.parametrize("amount", ["0", "-5", "1.001", "abc"])
    def test_invalid_amounts(self, ledger_service, amount):
        ledger_service.open_account("alice")
        result = ledger_service.deposit("alice", amount, "psk_x")
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_float_rejected(self, ledger_service):
        ledger_service.open_account("alice")
        result = ledger_service.deposit("alice", 10.5, "psk_f")
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_missing_reference(self, ledger_service):
        result = ledger_service.deposit("alice", "10", "")
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_deposit_unknown_account(self, ledger_service):
        result = ledger_service.deposit("ghost", "10", "psk_g")
        assert result.error_code == error_codes.ACCOUNT_NOT_FOUND

    def test_withdrawal_limits(self, ledger_service):
        ledger_service.open_account("alice")
        ledger_service.deposit("alice", "5000", "psk_1")

        too_small = ledger_service.withdraw("alice", "99.99", "trf_1")
        assert too_small.error_code == error_codes.WITHDRAWAL_LIMIT_EXCEEDED

        too_much = ledger_service.withdraw("alice", "6000", "trf_2")
        assert too_much.error_code == error_codes.INSUFFICIENT_FUNDS

        ok = ledger_service.withdraw("alice", "1000", "trf_3")
        assert ok.success
        assert ok.value.amount == Decimal("-1000.00")
        assert ok.value.new_balance == Decimal("4000.00")

    def test_reverse_withdrawal(self, ledger_service):
        ledger_service.open_account("alice")
        ledger_service.deposit("alice", "5000", "psk_1")
        ledger_service.withdraw("alice", "1000", "trf_1")

        result = ledger_service.reverse_withdrawal("trf_1")
        assert result.value.amount == Decimal("1000.00")
        assert result.value.new_balance == Decimal("5000.00")

        again = ledger_service.reverse_withdrawal("trf_1")
        assert again.value.duplicate is True
        assert ledger_service.get_balance("alice").value == Decimal("5000.00")


class TestTransfer:
    def test_transfer(self, ledger_service):
        ledger_service.open_account("alice")
        ledger_service.open_account("bob")
        ledger_service.deposit("alice", "100", "psk_1")

        result = ledger_service.transfer("alice", "bob", "40")

        assert result.success
        assert result.value.sender_balance == Decimal("60.00")
        assert result.value.recipient_balance == Decimal("40.00")

    def test_transfer_insufficient(self, ledger_service):
        ledger_service.open_account("alice")
        ledger_service.open_account("bob")

        result = ledger_service.transfer("alice", "bob", "1")
        assert result.error_code == error_codes.INSUFFICIENT_FUNDS

    def test_transfer_to_self(self, ledger_service):
        result = ledger_service.transfer("alice", "alice", "1")
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_transfer_to_unknown(self, ledger_service):
        ledger_service.open_account("alice")
        ledger_service.deposit("alice", "100", "psk_1")

        result = ledger_service.transfer("alice", "ghost", "10")
        assert result.error_code == error_codes.ACCOUNT_NOT_FOUND
        assert ledger_service.get_balance("alice").value == Decimal("100.00")


class TestAdminAdjust:
    def test_requires_admin(self, ledger_service):
        ledger_service.open_account("alice")
        result = ledger_service.adjust("alice", "10", actor_id="alice", reason="gift")
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_admin_credit_and_debit(self, ledger_service):
        ledger_service.open_account("alice")
        assert ledger_service.adjust("alice", "10", actor_id=ADMIN, reason="promo").success

        debit = ledger_service.adjust("alice", "-4", actor_id=ADMIN, reason="chargeback")
        assert debit.value.new_balance == Decimal("6.00")

        lines = ledger_service.get_transactions("alice", tx_type="adjustment").value
        assert [line["amount"] for line in lines] == [Decimal("-4.00"), Decimal("10.00")]
        assert lines[0]["reference"] == f"admin:{ADMIN}"

    def test_debit_cannot_overdraw(self, ledger_service):
        ledger_service.open_account("alice")
        result = ledger_service.adjust("alice", "-1", actor_id=ADMIN, reason="oops")
        assert result.error_code == error_codes.INSUFFICIENT_FUNDS

    def test_reason_required(self, ledger_service):
        ledger_service.open_account("alice")
        result = ledger_service.adjust("alice", "1", actor_id=ADMIN, reason="  ")
        assert result.error_code == error_codes.VALIDATION_ERROR


class TestAudit:
    def test_clean_ledger(self, ledger_service):
        ledger_service.open_account("alice")
        ledger_service.deposit("alice", "10", "psk_1")
        assert ledger_service.audit().value == []

    def test_get_balance_unknown(self, ledger_service):
        assert ledger_service.get_balance("ghost").error_code == error_codes.ACCOUNT_NOT_FOUND

    def test_bad_pagination(self, ledger_service):
        result = ledger_service.get_transactions("alice", limit=0)
        assert result.error_code == error_codes.VALIDATION_ERROR
