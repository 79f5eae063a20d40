"""
General Ledger Module Service (``books_modules.gl.service``).

Responsibility
--------------
Module-level entry point for journal screens: manual journal entries,
filtered journal listing with compliance metadata, bulk approval, voiding
and reversal.  Listing goes through the kernel ``JournalSelector``; every
write goes through the kernel ``LedgerService``.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  Reads the balance tolerance and the
jurisdiction compliance markers from ``books_config`` and hands them to
the kernel as plain values.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on exception).
* ``bulk_approve`` commits the items that succeeded even when others
  failed; the failures come back in the result, not as an exception.

Failure modes
-------------
* Kernel exceptions propagate unchanged (``TransactionNotFoundError``,
  ``InvalidTransitionError``, ``UnbalancedTransactionError``,
  ``AlreadyReversedError`` ...).

Usage::

    service = JournalListService(session, clock=clock)
    page = service.list_journal_entries(
        org_id, JournalFilters(status="POSTED", search="rent"), page=1, limit=20,
    )
    result = service.bulk_approve(org_id, [txn_a, txn_b], approver_id)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from books_config import BooksSettings, get_active_config
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.dtos import BulkApprovalResult, LedgerEntrySpec
from books_kernel.logging_config import get_logger
from books_kernel.models.transaction import Transaction, TransactionType
from books_kernel.selectors.journal_selector import (
    JournalFilters,
    JournalPage,
    JournalSelector,
)
from books_kernel.services.ledger_service import LedgerService

logger = get_logger("modules.gl.service")


class JournalListService:
    """
    Journal listing and the bulk actions offered next to it.

    Contract
    --------
    * ``list_journal_entries`` is read-only.
    * Write methods commit on success and roll back on any exception.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: BooksSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        settings = settings or get_active_config()
        self._ledger = LedgerService(
            session,
            clock=self._clock,
            balance_tolerance=settings.ledger.balance_tolerance,
            number_prefix=settings.ledger.journal_prefix,
        )
        self._selector = JournalSelector(
            session,
            tolerance=settings.ledger.balance_tolerance,
            compliance_markers=settings.compliance,
        )

    # =========================================================================
    # Listing
    # =========================================================================

    def list_journal_entries(
        self,
        organization_id: UUID,
        filters: JournalFilters | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> JournalPage:
        """One page of transactions, newest first, with computed metadata."""
        result = self._selector.list_entries(organization_id, filters, page=page, limit=limit)
        logger.debug("journal_listed", extra={
            "organization_id": str(organization_id),
            "page": page,
            "limit": limit,
            "total": result.total,
        })
        return result

    # =========================================================================
    # Writes
    # =========================================================================

    def record_journal_entry(
        self,
        organization_id: UUID,
        transaction_date: date,
        description: str,
        entries: Sequence[LedgerEntrySpec],
        actor_id: UUID,
        post: bool = False,
        notes: str | None = None,
    ) -> Transaction:
        """Create a manual journal entry, posting it at once when ``post``."""
        try:
            txn = self._ledger.create_transaction(
                organization_id=organization_id,
                transaction_date=transaction_date,
                transaction_type=TransactionType.JOURNAL_ENTRY,
                description=description,
                entries=entries,
                actor_id=actor_id,
                notes=notes,
            )
            if post:
                self._ledger.post_transaction(organization_id, txn.id, actor_id=actor_id)
            self._session.commit()
            return txn
        except Exception:
            self._session.rollback()
            raise

    def bulk_approve(
        self,
        organization_id: UUID,
        transaction_ids: Sequence[UUID],
        approver_id: UUID,
    ) -> BulkApprovalResult:
        try:
            result = self._ledger.bulk_approve(organization_id, transaction_ids, approver_id)
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def void_transaction(
        self, organization_id: UUID, transaction_id: UUID, user_id: UUID,
    ) -> Transaction:
        try:
            txn = self._ledger.void_transaction(organization_id, transaction_id, user_id)
            self._session.commit()
            return txn
        except Exception:
            self._session.rollback()
            raise

    def create_reverse_entry(
        self,
        organization_id: UUID,
        transaction_id: UUID,
        user_id: UUID,
        reason: str | None = None,
    ) -> UUID:
        """Post a reversal of ``transaction_id`` and return the reversal's id."""
        try:
            reversal_id = self._ledger.create_reverse_entry(
                organization_id, transaction_id, user_id, reason=reason,
            )
            self._session.commit()
            return reversal_id
        except Exception:
            self._session.rollback()
            raise
