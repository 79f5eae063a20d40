"""
Tests for LedgerSelector: running balances and the trial balance.
"""

from datetime import date
from decimal import Decimal

import pytest

from books_kernel.domain.dtos import LedgerEntrySpec
from books_kernel.models.transaction import TransactionType
from books_kernel.selectors.ledger_selector import LedgerSelector, signed_amount
from books_kernel.services.ledger_service import LedgerService


@pytest.fixture
def ledger(session, deterministic_clock):
    return LedgerService(session, clock=deterministic_clock)


@pytest.fixture
def post(ledger, org_id, test_actor_id):
    def _post(day, debit_account, credit_account, amount, description="Entry"):
        txn = ledger.create_transaction(
            organization_id=org_id,
            transaction_date=day,
            transaction_type=TransactionType.JOURNAL_ENTRY,
            description=description,
            entries=[
                LedgerEntrySpec.debit(debit_account.id, Decimal(amount)),
                LedgerEntrySpec.credit(credit_account.id, Decimal(amount)),
            ],
            actor_id=test_actor_id,
        )
        ledger.post_transaction(org_id, txn.id)
        return txn

    return _post


class TestSignedAmount:

    def test_debit_on_debit_normal_increases(self):
        assert signed_amount("DEBIT", Decimal("10"), "DEBIT") == Decimal("10")

    def test_debit_on_credit_normal_decreases(self):
        assert signed_amount("DEBIT", Decimal("10"), "CREDIT") == Decimal("-10")

    def test_credit_on_credit_normal_increases(self):
        assert signed_amount("CREDIT", Decimal("10"), "CREDIT") == Decimal("10")


class TestAccountLedger:

    def test_running_balance(self, session, post, org_id, accounts):
        post(date(2025, 1, 5), accounts["1000"], accounts["3000"], "1000", "Capital")
        post(date(2025, 2, 1), accounts["6500"], accounts["1000"], "300", "Rent")

        ledger = LedgerSelector(session).account_ledger(org_id, accounts["1000"].id)

        assert [line.running_balance for line in ledger.lines] == [
            Decimal("1000"), Decimal("700"),
        ]
        assert ledger.closing_balance == Decimal("700")

    def test_start_date_folds_into_opening(self, session, post, org_id, accounts):
        post(date(2025, 1, 5), accounts["1000"], accounts["3000"], "1000")
        post(date(2025, 3, 1), accounts["6500"], accounts["1000"], "250")

        ledger = LedgerSelector(session).account_ledger(
            org_id, accounts["1000"].id, start_date=date(2025, 2, 1),
        )

        assert ledger.opening_balance == Decimal("1000")
        assert len(ledger.lines) == 1
        assert ledger.closing_balance == Decimal("750")

    def test_credit_normal_account_positive(self, session, post, org_id, accounts):
        post(date(2025, 1, 5), accounts["1000"], accounts["4000"], "400")

        balance = LedgerSelector(session).account_balance(org_id, accounts["4000"].id)

        assert balance == Decimal("400")

    def test_as_of_date_excludes_later_entries(self, session, post, org_id, accounts):
        post(date(2025, 1, 5), accounts["1000"], accounts["4000"], "400")
        post(date(2025, 4, 5), accounts["1000"], accounts["4000"], "600")

        balance = LedgerSelector(session).account_balance(
            org_id, accounts["1000"].id, as_of_date=date(2025, 3, 31),
        )

        assert balance == Decimal("400")

    def test_drafts_ignored(self, session, ledger, org_id, accounts, test_actor_id):
        ledger.create_transaction(
            organization_id=org_id,
            transaction_date=date(2025, 1, 5),
            transaction_type=TransactionType.JOURNAL_ENTRY,
            description="Draft only",
            entries=[
                LedgerEntrySpec.debit(accounts["1000"].id, Decimal("50")),
                LedgerEntrySpec.credit(accounts["4000"].id, Decimal("50")),
            ],
            actor_id=test_actor_id,
        )

        assert LedgerSelector(session).account_balance(org_id, accounts["1000"].id) == 0

    def test_voided_ignored(self, session, ledger, post, org_id, accounts, test_actor_id):
        txn = post(date(2025, 1, 5), accounts["1000"], accounts["4000"], "50")
        ledger.void_transaction(org_id, txn.id, test_actor_id)

        assert LedgerSelector(session).account_balance(org_id, accounts["1000"].id) == 0


class TestTrialBalance:

    def test_debits_equal_credits(self, session, post, org_id, accounts):
        post(date(2025, 1, 5), accounts["1000"], accounts["3000"], "5000")
        post(date(2025, 1, 20), accounts["1500"], accounts["2000"], "1200")
        post(date(2025, 2, 1), accounts["6500"], accounts["1000"], "800")

        rows = LedgerSelector(session).trial_balance(org_id)

        assert [r.account_code for r in rows] == ["1000", "1500", "2000", "3000", "6500"]
        assert sum(r.debit_total for r in rows) == sum(r.credit_total for r in rows)
        cash = rows[0]
        assert cash.debit_total == Decimal("5000")
        assert cash.credit_total == Decimal("800")
        assert cash.balance == Decimal("4200")

    def test_empty_ledger(self, session, org_id, accounts):
        assert LedgerSelector(session).trial_balance(org_id) == []
