"""
Tests for JournalListService: filtered listing, computed metadata,
compliance flags, and the journal write actions.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from books_kernel.domain.dtos import LedgerEntrySpec
from books_kernel.exceptions import (
    AlreadyReversedError,
    OrganizationNotFoundError,
    UnbalancedTransactionError,
)
from books_kernel.models.transaction import TransactionStatus, TransactionType
from books_kernel.selectors.journal_selector import JournalFilters
from books_modules.gl import JournalListService


@pytest.fixture
def service(session, deterministic_clock, settings):
    return JournalListService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def journal(service, org_id, accounts, test_actor_id):
    """Factory: a two-leg manual journal entry, posted by default."""

    def _journal(
        description="Office rent",
        amount="1500.00",
        debit="6500",
        credit="1000",
        day=date(2025, 6, 1),
        post=True,
        actor_id=None,
        notes=None,
    ):
        return service.record_journal_entry(
            organization_id=org_id,
            transaction_date=day,
            description=description,
            entries=[
                LedgerEntrySpec.debit(accounts[debit].id, Decimal(amount)),
                LedgerEntrySpec.credit(accounts[credit].id, Decimal(amount)),
            ],
            actor_id=actor_id or test_actor_id,
            post=post,
            notes=notes,
        )

    return _journal


class TestRecordJournalEntry:

    def test_posted_on_request(self, journal):
        txn = journal()

        assert txn.transaction_number == "JE-2025-0001"
        assert txn.transaction_type == TransactionType.JOURNAL_ENTRY
        assert txn.status == TransactionStatus.POSTED

    def test_draft_by_default(self, journal):
        assert journal(post=False).status == TransactionStatus.DRAFT

    def test_unbalanced_post_rolls_back(self, service, org_id, accounts, test_actor_id):
        with pytest.raises(UnbalancedTransactionError):
            service.record_journal_entry(
                organization_id=org_id,
                transaction_date=date(2025, 6, 1),
                description="Typo",
                entries=[
                    LedgerEntrySpec.debit(accounts["6500"].id, Decimal("100")),
                    LedgerEntrySpec.credit(accounts["1000"].id, Decimal("10")),
                ],
                actor_id=test_actor_id,
                post=True,
            )

        assert service.list_journal_entries(org_id).total == 0


class TestListing:

    def test_newest_first(self, service, org_id, journal):
        journal(description="May rent", day=date(2025, 5, 1))
        journal(description="June rent", day=date(2025, 6, 1))
        journal(description="June utilities", day=date(2025, 6, 1))

        page = service.list_journal_entries(org_id)

        assert [e.description for e in page.entries] == [
            "June utilities", "June rent", "May rent",
        ]
        assert page.total == 3
        assert page.base_currency == "USD"
        assert page.home_country == "US"

    def test_pagination(self, service, org_id, journal):
        for day in range(1, 6):
            journal(day=date(2025, 6, day))

        page = service.list_journal_entries(org_id, page=3, limit=2)

        assert page.total == 5
        assert len(page.entries) == 1
        assert page.entries[0].transaction_date == date(2025, 6, 1)

    def test_invalid_page(self, service, org_id):
        with pytest.raises(ValueError):
            service.list_journal_entries(org_id, page=0)

    def test_unknown_organization(self, service):
        with pytest.raises(OrganizationNotFoundError):
            service.list_journal_entries(uuid4())

    def test_other_organization_hidden(self, service, journal):
        journal()

        with pytest.raises(OrganizationNotFoundError):
            service.list_journal_entries(uuid4())

    def test_debit_lines_first(self, service, org_id, journal):
        journal()

        view = service.list_journal_entries(org_id).entries[0]

        assert [line.entry_type for line in view.lines] == ["DEBIT", "CREDIT"]
        assert view.lines[0].account_code == "6500"
        assert view.lines[0].account_name == "Rent Expense"


class TestFilters:

    @pytest.fixture
    def ledger_history(self, journal):
        journal(description="Office rent", day=date(2025, 5, 1))
        journal(description="Internet", amount="80.00", debit="6500", day=date(2025, 6, 2))
        journal(description="Owner top-up", amount="5000.00", debit="1000", credit="3000",
                day=date(2025, 6, 3), notes="Rent reserve")
        journal(description="Draft rent accrual", day=date(2025, 6, 4), post=False)

    def test_status(self, service, org_id, ledger_history):
        page = service.list_journal_entries(org_id, JournalFilters(status="DRAFT"))

        assert [e.description for e in page.entries] == ["Draft rent accrual"]

    def test_date_range(self, service, org_id, ledger_history):
        page = service.list_journal_entries(
            org_id, JournalFilters(start_date=date(2025, 6, 2), end_date=date(2025, 6, 3)),
        )

        assert page.total == 2

    def test_amount_range_matches_any_leg(self, service, org_id, ledger_history):
        page = service.list_journal_entries(
            org_id, JournalFilters(min_amount=Decimal("1000"), max_amount=Decimal("2000")),
        )

        assert sorted(e.description for e in page.entries) == [
            "Draft rent accrual", "Office rent",
        ]

    def test_search_is_case_insensitive_and_covers_notes(
        self, service, org_id, ledger_history,
    ):
        page = service.list_journal_entries(org_id, JournalFilters(search="RENT"))

        assert sorted(e.description for e in page.entries) == [
            "Draft rent accrual", "Office rent", "Owner top-up",
        ]

    def test_search_by_number(self, service, org_id, ledger_history):
        page = service.list_journal_entries(org_id, JournalFilters(search="je-2025-0002"))

        assert [e.description for e in page.entries] == ["Internet"]

    def test_created_by(self, service, org_id, journal, ledger_history):
        clerk = uuid4()
        journal(description="Petty cash", amount="20.00", actor_id=clerk)

        page = service.list_journal_entries(org_id, JournalFilters(created_by_id=clerk))

        assert [e.description for e in page.entries] == ["Petty cash"]

    def test_transaction_type(self, service, org_id, ledger_history):
        manual = service.list_journal_entries(
            org_id, JournalFilters(transaction_type=TransactionType.JOURNAL_ENTRY),
        )
        depreciation = service.list_journal_entries(
            org_id, JournalFilters(transaction_type="DEPRECIATION"),
        )

        assert manual.total == 4
        assert depreciation.total == 0

    def test_status_enum(self, service, org_id, ledger_history):
        page = service.list_journal_entries(
            org_id, JournalFilters(status=TransactionStatus.POSTED),
        )

        assert page.total == 3


class TestMetadata:

    def test_balanced_base_currency_entry(self, service, org_id, journal):
        txn = journal()

        meta = service.list_journal_entries(org_id).entries[0].metadata

        assert meta.reference == txn.transaction_number
        assert meta.is_balanced
        assert meta.total_debits == Decimal("1500.00")
        assert meta.base_currency_equivalent == Decimal("1500.00")
        assert meta.foreign_amount is None
        assert meta.compliance_flags == {}

    def test_foreign_leg_reported(self, service, org_id, accounts, test_actor_id):
        service.record_journal_entry(
            organization_id=org_id,
            transaction_date=date(2025, 6, 5),
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

        meta = service.list_journal_entries(org_id).entries[0].metadata

        assert meta.foreign_amount == Decimal("100")
        assert meta.foreign_currency == "EUR"
        assert meta.base_currency_equivalent == Decimal("110.00")
        assert meta.is_balanced

    def test_unbalanced_draft_flagged(self, service, org_id, accounts, test_actor_id):
        service.record_journal_entry(
            organization_id=org_id,
            transaction_date=date(2025, 6, 5),
            description="Work in progress",
            entries=[
                LedgerEntrySpec.debit(accounts["6500"].id, Decimal("100")),
                LedgerEntrySpec.credit(accounts["1000"].id, Decimal("60")),
            ],
            actor_id=test_actor_id,
        )

        assert not service.list_journal_entries(org_id).entries[0].metadata.is_balanced

    def test_vat_flags_for_ugandan_organization(
        self, session, service, organization, org_id, accounts, test_actor_id,
    ):
        organization.home_country = "UG"
        session.commit()

        service.record_journal_entry(
            organization_id=org_id,
            transaction_date=date(2025, 6, 5),
            description="Cash sale",
            entries=[
                LedgerEntrySpec.debit(accounts["1000"].id, Decimal("118")),
                LedgerEntrySpec.credit(accounts["4000"].id, Decimal("100")),
                LedgerEntrySpec.credit(accounts["2200"].id, Decimal("18")),
            ],
            actor_id=test_actor_id,
        )

        flags = service.list_journal_entries(org_id).entries[0].metadata.compliance_flags

        assert flags == {
            "vat_accounts_involved": True,
            "vat_amount": Decimal("18"),
            "vat_inclusive": True,
        }


class TestActions:

    def test_bulk_approve_commits_successes(
        self, service, org_id, journal, accounts, test_actor_id,
    ):
        good = journal(post=False)
        bad = service.record_journal_entry(
            organization_id=org_id,
            transaction_date=date(2025, 6, 2),
            description="Unbalanced",
            entries=[
                LedgerEntrySpec.debit(accounts["6500"].id, Decimal("100")),
                LedgerEntrySpec.credit(accounts["1000"].id, Decimal("60")),
            ],
            actor_id=test_actor_id,
        )

        result = service.bulk_approve(org_id, [good.id, bad.id], test_actor_id)

        assert result.successful == (good.id,)
        assert result.failed == (bad.id,)
        page = service.list_journal_entries(org_id, JournalFilters(status="POSTED"))
        assert [e.transaction_id for e in page.entries] == [good.id]

    def test_void(self, service, org_id, journal, test_actor_id):
        txn = journal()

        voided = service.void_transaction(org_id, txn.id, test_actor_id)

        assert voided.status == TransactionStatus.VOIDED
        page = service.list_journal_entries(org_id, JournalFilters(status="VOIDED"))
        assert page.total == 1

    def test_reverse(self, service, org_id, journal, test_actor_id):
        txn = journal()

        reversal_id = service.create_reverse_entry(org_id, txn.id, test_actor_id, reason="Duplicate")

        page = service.list_journal_entries(org_id, JournalFilters(status="POSTED"))
        assert {e.transaction_id for e in page.entries} == {txn.id, reversal_id}
        with pytest.raises(AlreadyReversedError):
            service.create_reverse_entry(org_id, txn.id, test_actor_id)
