"""
Module: books_kernel.selectors.journal_selector
Responsibility: Filtered, paginated listing of transactions with computed
    per-entry metadata (reference, balance flag, base-currency totals,
    foreign-currency leg, compliance flags).
Architecture position: Kernel > Selectors.  Jurisdiction rules arrive as
    plain data from the caller; the kernel never reads configuration itself.

Invariants enforced:
    - Results are scoped to one organization.
    - Ordering is transaction_date DESC, then created_at DESC (newest first),
      with transaction_number DESC as a final tiebreaker.
    - The balance flag uses the same tolerance check as posting.

Failure modes:
    - OrganizationNotFoundError for an unknown organization.
    - ValueError for page < 1 or limit < 1.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import Session

from books_kernel.domain.balance import (
    DEFAULT_BALANCE_TOLERANCE,
    EntryType,
    summarize_entries,
)
from books_kernel.exceptions import OrganizationNotFoundError
from books_kernel.models.organization import Organization
from books_kernel.models.transaction import LedgerEntry, Transaction
from books_kernel.selectors.base import BaseSelector


def _enum_value(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)


@dataclass(frozen=True)
class JournalFilters:
    """Optional filters; every field left as None is ignored."""

    start_date: date | None = None
    end_date: date | None = None
    transaction_type: str | None = None
    status: str | None = None
    created_by_id: UUID | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    search: str | None = None


@dataclass(frozen=True)
class JournalEntryLine:
    account_id: UUID
    account_code: str
    account_name: str
    entry_type: str
    amount: Decimal
    currency: str
    exchange_rate: Decimal
    amount_in_base: Decimal
    description: str | None


@dataclass(frozen=True)
class JournalEntryMetadata:
    reference: str
    is_balanced: bool
    total_debits: Decimal
    total_credits: Decimal
    base_currency: str
    base_currency_equivalent: Decimal
    foreign_amount: Decimal | None = None
    foreign_currency: str | None = None
    compliance_flags: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class JournalEntryView:
    transaction_id: UUID
    transaction_number: str
    transaction_date: date
    transaction_type: str
    status: str
    description: str
    notes: str | None
    created_by_id: UUID
    lines: tuple[JournalEntryLine, ...]
    metadata: JournalEntryMetadata


@dataclass(frozen=True)
class JournalPage:
    entries: tuple[JournalEntryView, ...]
    total: int
    page: int
    limit: int
    base_currency: str
    home_country: str | None


class JournalSelector(BaseSelector[Transaction]):
    """
    Read model for journal listing screens.

    ``compliance_markers`` maps a country code to account-name markers
    (e.g. ``{"UG": ["VAT"]}``); transactions in an organization of that
    country touching a marked account get compliance flags.
    """

    def __init__(
        self,
        session: Session,
        tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
        compliance_markers: Mapping[str, Sequence[str]] | None = None,
    ):
        super().__init__(session)
        self._tolerance = tolerance
        self._markers = dict(compliance_markers or {})

    def list_entries(
        self,
        organization_id: UUID,
        filters: JournalFilters | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> JournalPage:
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")
        filters = filters or JournalFilters()

        organization = self.session.get(Organization, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(str(organization_id))

        conditions = self._conditions(organization_id, filters)

        total = self.session.scalar(
            select(func.count()).select_from(Transaction).where(*conditions)
        ) or 0

        rows = self.session.scalars(
            select(Transaction)
            .where(*conditions)
            .order_by(
                Transaction.transaction_date.desc(),
                Transaction.created_at.desc(),
                Transaction.transaction_number.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        views = tuple(self._view(txn, organization) for txn in rows)
        return JournalPage(
            entries=views,
            total=total,
            page=page,
            limit=limit,
            base_currency=organization.base_currency,
            home_country=organization.home_country,
        )

    def _conditions(self, organization_id: UUID, filters: JournalFilters) -> list:
        conditions: list = [Transaction.organization_id == organization_id]

        if filters.start_date is not None:
            conditions.append(Transaction.transaction_date >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(Transaction.transaction_date <= filters.end_date)
        if filters.transaction_type is not None:
            conditions.append(Transaction.transaction_type == _enum_value(filters.transaction_type))
        if filters.status is not None:
            conditions.append(Transaction.status == _enum_value(filters.status))
        if filters.created_by_id is not None:
            conditions.append(Transaction.created_by_id == filters.created_by_id)

        if filters.min_amount is not None or filters.max_amount is not None:
            # Any single leg within the range qualifies the transaction.
            leg = [LedgerEntry.transaction_id == Transaction.id]
            if filters.min_amount is not None:
                leg.append(LedgerEntry.amount >= filters.min_amount)
            if filters.max_amount is not None:
                leg.append(LedgerEntry.amount <= filters.max_amount)
            conditions.append(exists().where(*leg))

        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Transaction.description).like(pattern),
                    func.lower(Transaction.transaction_number).like(pattern),
                    func.lower(func.coalesce(Transaction.notes, "")).like(pattern),
                )
            )
        return conditions

    def _view(self, txn: Transaction, organization: Organization) -> JournalEntryView:
        # DEBIT legs first for readability
        ordered = sorted(
            txn.entries,
            key=lambda e: (e.entry_type != EntryType.DEBIT.value, e.line_seq),
        )
        lines = tuple(
            JournalEntryLine(
                account_id=e.account_id,
                account_code=e.account.code,
                account_name=e.account.name,
                entry_type=e.entry_type,
                amount=e.amount,
                currency=e.currency,
                exchange_rate=e.exchange_rate,
                amount_in_base=e.amount_in_base,
                description=e.description,
            )
            for e in ordered
        )
        return JournalEntryView(
            transaction_id=txn.id,
            transaction_number=txn.transaction_number,
            transaction_date=txn.transaction_date,
            transaction_type=txn.transaction_type,
            status=txn.status,
            description=txn.description,
            notes=txn.notes,
            created_by_id=txn.created_by_id,
            lines=lines,
            metadata=self.compute_metadata(txn, organization),
        )

    def compute_metadata(
        self, txn: Transaction, organization: Organization,
    ) -> JournalEntryMetadata:
        summary = summarize_entries(txn.entries, self._tolerance)
        base_currency = organization.base_currency

        foreign = next(
            (e for e in txn.entries if e.currency != base_currency), None,
        )
        reference = txn.transaction_number or f"JE-{str(txn.id)[:8]}"

        return JournalEntryMetadata(
            reference=reference,
            is_balanced=summary.is_balanced,
            total_debits=summary.total_debits,
            total_credits=summary.total_credits,
            base_currency=base_currency,
            base_currency_equivalent=summary.total_debits,
            foreign_amount=foreign.amount if foreign is not None else None,
            foreign_currency=foreign.currency if foreign is not None else None,
            compliance_flags=self._compliance_flags(txn, organization.home_country),
        )

    def _compliance_flags(self, txn: Transaction, country: str | None) -> dict[str, object]:
        markers = self._markers.get(country or "", ())
        flags: dict[str, object] = {}
        for marker in markers:
            needle = marker.upper()
            tax_legs = [
                e for e in txn.entries
                if needle in e.account.code.upper() or needle in e.account.name.upper()
            ]
            if not tax_legs:
                continue
            tax_amount = sum((e.amount_in_base for e in tax_legs), Decimal("0"))
            key = marker.lower()
            flags[f"{key}_accounts_involved"] = True
            flags[f"{key}_amount"] = tax_amount
            flags[f"{key}_inclusive"] = tax_amount > 0
        return flags
