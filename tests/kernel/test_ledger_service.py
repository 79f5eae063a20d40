"""
Tests for LedgerService.

Covers:
- Draft creation, numbering and base-currency amounts
- Posting with the balance tolerance
- Voiding and reversal, including the net-to-zero property
- Bulk approval with partial failure
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from books_kernel.domain.dtos import LedgerEntrySpec
from books_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyReversedError,
    InactiveAccountError,
    InvalidEntryError,
    InvalidTransitionError,
    TransactionNotFoundError,
    UnbalancedTransactionError,
    ValidationError,
)
from books_kernel.models.transaction import (
    REVERSAL_REFERENCE_TYPE,
    TransactionStatus,
    TransactionType,
)
from books_kernel.selectors.ledger_selector import LedgerSelector
from books_kernel.services.ledger_service import LedgerService


@pytest.fixture
def ledger(session, deterministic_clock):
    return LedgerService(session, clock=deterministic_clock)


@pytest.fixture
def rent_entry(ledger, org_id, accounts, test_actor_id):
    """Factory: a rent payment draft (DEBIT rent, CREDIT cash)."""

    def _make(debit=Decimal("1500.00"), credit=None, description="June rent"):
        return ledger.create_transaction(
            organization_id=org_id,
            transaction_date=date(2025, 6, 1),
            transaction_type=TransactionType.PAYMENT,
            description=description,
            entries=[
                LedgerEntrySpec.debit(accounts["6500"].id, debit),
                LedgerEntrySpec.credit(accounts["1000"].id, credit if credit is not None else debit),
            ],
            actor_id=test_actor_id,
        )

    return _make


class TestCreateTransaction:

    def test_creates_draft_with_entries(self, rent_entry):
        txn = rent_entry()

        assert txn.status == TransactionStatus.DRAFT
        assert txn.transaction_number == "JE-2025-0001"
        assert len(txn.entries) == 2
        assert [e.line_seq for e in txn.entries] == [0, 1]
        assert txn.total_debits == txn.total_credits == Decimal("1500.00")

    def test_numbers_increase_within_year(self, rent_entry):
        first = rent_entry()
        second = rent_entry(description="July rent")

        assert first.transaction_number == "JE-2025-0001"
        assert second.transaction_number == "JE-2025-0002"

    def test_draft_may_be_unbalanced(self, rent_entry):
        txn = rent_entry(debit=Decimal("100"), credit=Decimal("90"))

        assert txn.is_draft
        assert txn.total_debits - txn.total_credits == Decimal("10")

    def test_foreign_currency_amount_in_base(self, ledger, org_id, accounts, test_actor_id):
        txn = ledger.create_transaction(
            organization_id=org_id,
            transaction_date=date(2025, 6, 2),
            transaction_type=TransactionType.JOURNAL_ENTRY,
            description="EUR supplier payment",
            entries=[
                LedgerEntrySpec.debit(
                    accounts["2000"].id, Decimal("100"),
                    currency="EUR", exchange_rate=Decimal("1.10"),
                ),
                LedgerEntrySpec.credit(accounts["1000"].id, Decimal("110")),
            ],
            actor_id=test_actor_id,
        )

        eur_leg = txn.entries[0]
        assert eur_leg.currency == "EUR"
        assert eur_leg.amount == Decimal("100")
        assert eur_leg.amount_in_base == Decimal("110.00")

    def test_base_currency_forces_rate_of_one(self, ledger, org_id, accounts, test_actor_id):
        txn = ledger.create_transaction(
            organization_id=org_id,
            transaction_date=date(2025, 6, 2),
            transaction_type=TransactionType.JOURNAL_ENTRY,
            description="Rate ignored",
            entries=[
                LedgerEntrySpec.debit(
                    accounts["6500"].id, Decimal("50"), exchange_rate=Decimal("3"),
                ),
                LedgerEntrySpec.credit(accounts["1000"].id, Decimal("50")),
            ],
            actor_id=test_actor_id,
        )

        assert txn.entries[0].exchange_rate == Decimal("1")
        assert txn.entries[0].amount_in_base == Decimal("50")

    def test_empty_entries_rejected(self, ledger, org_id, test_actor_id):
        with pytest.raises(ValidationError):
            ledger.create_transaction(
                organization_id=org_id,
                transaction_date=date(2025, 6, 1),
                transaction_type=TransactionType.JOURNAL_ENTRY,
                description="Nothing",
                entries=[],
                actor_id=test_actor_id,
            )

    def test_negative_amount_rejected(self, ledger, org_id, accounts, test_actor_id):
        with pytest.raises(InvalidEntryError):
            ledger.create_transaction(
                organization_id=org_id,
                transaction_date=date(2025, 6, 1),
                transaction_type=TransactionType.JOURNAL_ENTRY,
                description="Negative",
                entries=[
                    LedgerEntrySpec.debit(accounts["6500"].id, Decimal("-5")),
                    LedgerEntrySpec.credit(accounts["1000"].id, Decimal("-5")),
                ],
                actor_id=test_actor_id,
            )

    def test_unknown_account_rejected(self, ledger, org_id, accounts, test_actor_id):
        with pytest.raises(AccountNotFoundError):
            ledger.create_transaction(
                organization_id=org_id,
                transaction_date=date(2025, 6, 1),
                transaction_type=TransactionType.JOURNAL_ENTRY,
                description="Foreign account",
                entries=[
                    LedgerEntrySpec.debit(uuid4(), Decimal("5")),
                    LedgerEntrySpec.credit(accounts["1000"].id, Decimal("5")),
                ],
                actor_id=test_actor_id,
            )

    def test_inactive_account_rejected(self, session, rent_entry, accounts):
        accounts["6500"].is_active = False
        session.flush()

        with pytest.raises(InactiveAccountError):
            rent_entry()


class TestPostTransaction:

    def test_posts_balanced_draft(self, ledger, rent_entry, org_id, test_actor_id, deterministic_clock):
        txn = rent_entry()

        posted = ledger.post_transaction(org_id, txn.id, actor_id=test_actor_id)

        assert posted.status == TransactionStatus.POSTED
        assert posted.posted_at == deterministic_clock.now()

    def test_unbalanced_stays_draft(self, ledger, rent_entry, org_id):
        txn = rent_entry(debit=Decimal("100"), credit=Decimal("90"))

        with pytest.raises(UnbalancedTransactionError):
            ledger.post_transaction(org_id, txn.id)

        assert txn.status == TransactionStatus.DRAFT

    def test_difference_within_tolerance_posts(self, ledger, rent_entry, org_id):
        txn = rent_entry(debit=Decimal("100.00"), credit=Decimal("99.995"))

        ledger.post_transaction(org_id, txn.id)

        assert txn.is_posted

    def test_cannot_post_twice(self, ledger, rent_entry, org_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)

        with pytest.raises(InvalidTransitionError):
            ledger.post_transaction(org_id, txn.id)

    def test_other_organization_sees_not_found(self, ledger, rent_entry):
        txn = rent_entry()

        with pytest.raises(TransactionNotFoundError):
            ledger.post_transaction(uuid4(), txn.id)

    def test_posting_logs_event(self, ledger, rent_entry, org_id, captured_logs):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)

        events = [r for r in captured_logs() if r["message"] == "transaction_posted"]
        assert len(events) == 1
        assert events[0]["transaction_number"] == txn.transaction_number


class TestVoidAndReverse:

    def test_void_deactivates_entries(self, ledger, rent_entry, org_id, test_actor_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)

        ledger.void_transaction(org_id, txn.id, test_actor_id)

        assert txn.is_voided
        assert txn.voided_by_id == test_actor_id
        assert all(not e.is_active for e in txn.entries)

    def test_void_draft_rejected(self, ledger, rent_entry, org_id, test_actor_id):
        txn = rent_entry()

        with pytest.raises(InvalidTransitionError):
            ledger.void_transaction(org_id, txn.id, test_actor_id)

    def test_reversal_is_posted_with_swapped_sides(self, ledger, rent_entry, org_id, test_actor_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)

        reversal_id = ledger.create_reverse_entry(org_id, txn.id, test_actor_id, reason="Duplicate")
        reversal = ledger.get_transaction(org_id, reversal_id)

        assert reversal.is_posted
        assert reversal.reversal_of_id == txn.id
        assert reversal.reference_type == REVERSAL_REFERENCE_TYPE
        assert reversal.description == "Reversal of June rent - Duplicate"
        assert [e.entry_type for e in reversal.entries] == ["CREDIT", "DEBIT"]
        assert f"[REVERSED by {reversal.transaction_number}]" in txn.notes

    def test_reversal_nets_accounts_to_zero(self, session, ledger, rent_entry, org_id, accounts, test_actor_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)
        ledger.create_reverse_entry(org_id, txn.id, test_actor_id)
        session.flush()

        selector = LedgerSelector(session)
        assert selector.account_balance(org_id, accounts["6500"].id) == 0
        assert selector.account_balance(org_id, accounts["1000"].id) == 0

    def test_second_reversal_rejected(self, ledger, rent_entry, org_id, test_actor_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)
        ledger.create_reverse_entry(org_id, txn.id, test_actor_id)

        with pytest.raises(AlreadyReversedError):
            ledger.create_reverse_entry(org_id, txn.id, test_actor_id)

    def test_void_after_reversal_rejected(self, ledger, rent_entry, org_id, test_actor_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)
        ledger.create_reverse_entry(org_id, txn.id, test_actor_id)

        with pytest.raises(AlreadyReversedError):
            ledger.void_transaction(org_id, txn.id, test_actor_id)

    def test_reversing_draft_rejected(self, ledger, rent_entry, org_id, test_actor_id):
        txn = rent_entry()

        with pytest.raises(InvalidTransitionError):
            ledger.create_reverse_entry(org_id, txn.id, test_actor_id)


class TestBulkApprove:

    def test_partial_failure(self, ledger, rent_entry, org_id, test_actor_id):
        good_a = rent_entry(description="A")
        good_b = rent_entry(description="B")
        bad = rent_entry(debit=Decimal("100"), credit=Decimal("90"), description="C")

        result = ledger.bulk_approve(org_id, [good_a.id, bad.id, good_b.id], test_actor_id)

        assert result.successful == (good_a.id, good_b.id)
        assert result.failed == (bad.id,)
        assert result.reasons[bad.id].startswith("UNBALANCED_TRANSACTION")
        assert not result.all_succeeded
        assert bad.status == TransactionStatus.DRAFT
        assert good_a.approved_by_id == test_actor_id

    def test_missing_id_collected(self, ledger, rent_entry, org_id, test_actor_id):
        txn = rent_entry()
        missing = uuid4()

        result = ledger.bulk_approve(org_id, [missing, txn.id], test_actor_id)

        assert result.successful == (txn.id,)
        assert result.failed == (missing,)


class TestDraftMaintenance:

    def test_delete_draft(self, ledger, rent_entry, org_id):
        txn = rent_entry()

        ledger.delete_draft(org_id, txn.id)

        with pytest.raises(TransactionNotFoundError):
            ledger.get_transaction(org_id, txn.id)

    def test_posted_cannot_be_deleted(self, ledger, rent_entry, org_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)

        with pytest.raises(InvalidTransitionError):
            ledger.delete_draft(org_id, txn.id)

    def test_append_note_on_posted(self, ledger, rent_entry, org_id):
        txn = rent_entry()
        ledger.post_transaction(org_id, txn.id)

        ledger.append_note(org_id, txn.id, "Checked by audit")

        assert txn.notes == "Checked by audit"
