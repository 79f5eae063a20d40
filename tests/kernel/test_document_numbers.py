"""
Tests for document number formatting and allocation.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from books_kernel.domain.clock import DeterministicClock
from books_kernel.domain.dtos import LedgerEntrySpec
from books_kernel.exceptions import ConflictError, DuplicateDocumentNumberError
from books_kernel.models.transaction import Transaction, TransactionType
from books_kernel.services.document_number_service import (
    DocumentNumberService,
    format_document_number,
    parse_suffix,
)
from books_kernel.services.ledger_service import LedgerService
from books_modules.assets import FixedAssetService


class TestFormatting:

    def test_padded_to_four_digits(self):
        assert format_document_number("JE", 2025, 7) == "JE-2025-0007"

    def test_padding_overflow_keeps_digits(self):
        assert format_document_number("JE", 2025, 12345) == "JE-2025-12345"

    def test_parse_suffix(self):
        assert parse_suffix("REV-2025-0042") == 42
        assert parse_suffix("manual") is None


class TestAllocation:

    def test_first_number_of_year(self, session, org_id):
        numbers = DocumentNumberService(session)

        assert numbers.next_number(
            org_id, "JE", 2025,
            Transaction.transaction_number, Transaction.organization_id,
        ) == "JE-2025-0001"

    def test_sequence_restarts_each_year(self, session, org_id, accounts, test_actor_id):
        def create(clock):
            return LedgerService(session, clock=clock).create_transaction(
                organization_id=org_id,
                transaction_date=clock.today(),
                transaction_type=TransactionType.JOURNAL_ENTRY,
                description="Numbered",
                entries=[
                    LedgerEntrySpec.debit(accounts["6500"].id, Decimal("1")),
                    LedgerEntrySpec.credit(accounts["1000"].id, Decimal("1")),
                ],
                actor_id=test_actor_id,
            )

        create(DeterministicClock(datetime(2025, 12, 31, 12, tzinfo=UTC)))
        create(DeterministicClock(datetime(2025, 12, 31, 12, tzinfo=UTC)))
        first_2026 = create(DeterministicClock(datetime(2026, 1, 1, 12, tzinfo=UTC)))

        assert first_2026.transaction_number == "JE-2026-0001"

    def test_sequences_are_per_organization(self, session, org_id, accounts, test_actor_id):
        ledger = LedgerService(session, clock=DeterministicClock())
        ledger.create_transaction(
            organization_id=org_id,
            transaction_date=date(2025, 6, 1),
            transaction_type=TransactionType.JOURNAL_ENTRY,
            description="Org A",
            entries=[
                LedgerEntrySpec.debit(accounts["6500"].id, Decimal("1")),
                LedgerEntrySpec.credit(accounts["1000"].id, Decimal("1")),
            ],
            actor_id=test_actor_id,
        )

        other = DocumentNumberService(session).next_number(
            uuid4(), "JE", 2025,
            Transaction.transaction_number, Transaction.organization_id,
        )
        assert other == "JE-2025-0001"


class TestConflicts:
    """A number taken by a concurrent writer surfaces as a ConflictError."""

    @pytest.fixture
    def stale_numbers(self, monkeypatch):
        def _pin(number):
            monkeypatch.setattr(
                DocumentNumberService, "next_number", lambda self, *args, **kwargs: number,
            )
        return _pin

    def test_duplicate_transaction_number(
        self, session, org_id, accounts, test_actor_id, stale_numbers,
    ):
        ledger = LedgerService(session, clock=DeterministicClock())

        def create():
            return ledger.create_transaction(
                organization_id=org_id,
                transaction_date=date(2025, 6, 1),
                transaction_type=TransactionType.JOURNAL_ENTRY,
                description="Racing writer",
                entries=[
                    LedgerEntrySpec.debit(accounts["6500"].id, Decimal("1")),
                    LedgerEntrySpec.credit(accounts["1000"].id, Decimal("1")),
                ],
                actor_id=test_actor_id,
            )

        stale_numbers("JE-2025-0001")
        create()
        session.commit()

        with pytest.raises(DuplicateDocumentNumberError) as excinfo:
            create()
        session.rollback()

        assert isinstance(excinfo.value, ConflictError)
        assert excinfo.value.number == "JE-2025-0001"
        assert excinfo.value.code == "DUPLICATE_DOCUMENT_NUMBER"

    def test_duplicate_asset_number(
        self, session, org_id, accounts, test_actor_id, stale_numbers,
    ):
        assets = FixedAssetService(session, clock=DeterministicClock())
        category = assets.create_category(
            organization_id=org_id,
            code="EQ",
            name="Equipment",
            asset_account_id=accounts["1500"].id,
            accumulated_depreciation_account_id=accounts["1510"].id,
            depreciation_expense_account_id=accounts["6100"].id,
            actor_id=test_actor_id,
        )

        def register():
            return assets.register_asset(
                organization_id=org_id,
                category_id=category.id,
                name="Forklift",
                purchase_date=date(2025, 1, 10),
                purchase_price=Decimal("12000"),
                actor_id=test_actor_id,
            )

        stale_numbers("ASSET-2025-0001")
        register()

        with pytest.raises(ConflictError) as excinfo:
            register()

        assert isinstance(excinfo.value, DuplicateDocumentNumberError)
        assert excinfo.value.number == "ASSET-2025-0001"
