"""
LedgerService -- creation, posting, voiding, and reversal of transactions.

Responsibility:
    Owns the DRAFT -> POSTED -> VOIDED lifecycle of double-entry transactions
    and the creation of posted reversals.  Every other component (fixed
    assets, revaluation, journal listing) writes to the ledger through this
    service and nothing else.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits; the
    caller owns the storage transaction.

Invariants enforced:
    - Tenant isolation: every account referenced by an entry belongs to the
      transaction's organization; foreign ids raise the same NotFoundError
      as missing ids.
    - Posting requires balance: base-currency debits and credits must agree
      within an absolute tolerance (default 0.01).  A failed post leaves the
      transaction in DRAFT.
    - Posted transactions are frozen except for status transitions and
      appended notes.
    - Voiding never deletes: entries are marked inactive and drop out of
      every running-balance fold.
    - A transaction is reversed at most once, and a reversed transaction is
      not voided (that would cancel it twice).

Failure modes:
    - ValidationError family: empty entry list, negative amount,
      non-positive exchange rate, inactive account, out of balance.
    - NotFoundError family: unknown organization, account, or transaction.
    - InvalidStateError family: posting a non-DRAFT, voiding a non-POSTED,
      reversing a DRAFT/VOIDED/already-reversed transaction.
    - ConflictError: a concurrent writer took the same transaction number.

Audit relevance:
    Each state change emits a structured log event (transaction_created,
    transaction_posted, transaction_voided, transaction_reversed,
    bulk_approval_completed) carrying ids, totals, and actors.
"""

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from books_kernel.domain.balance import (
    DEFAULT_BALANCE_TOLERANCE,
    BalanceSummary,
    EntryType,
    summarize_entries,
)
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.dtos import BulkApprovalResult, LedgerEntrySpec
from books_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyReversedError,
    BooksKernelError,
    InactiveAccountError,
    InvalidEntryError,
    InvalidTransitionError,
    OrganizationNotFoundError,
    TransactionNotFoundError,
    UnbalancedTransactionError,
    ValidationError,
)
from books_kernel.logging_config import LogContext, get_logger
from books_kernel.models.account import Account
from books_kernel.models.organization import Organization
from books_kernel.models.transaction import (
    REVERSAL_REFERENCE_TYPE,
    LedgerEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from books_kernel.services.base import BaseService
from books_kernel.services.document_number_service import DocumentNumberService

logger = get_logger("services.ledger")

JOURNAL_NUMBER_PREFIX = "JE"


class LedgerService(BaseService[Transaction]):
    """
    Double-entry transaction lifecycle.

    Contract:
        Accepts an already-authorized ``organization_id`` and actor id on
        every call.  Returns ORM ``Transaction`` rows (still attached to the
        caller's session) or ids.

    Guarantees:
        - ``amount_in_base`` is computed once at creation and persisted.
        - ``bulk_approve`` never aborts the batch on a per-item domain error;
          each item runs inside its own SAVEPOINT.

    Non-goals:
        - Does NOT commit.  Does NOT translate currencies; it only consumes
          the exchange rate carried on each entry.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        balance_tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
        number_prefix: str = JOURNAL_NUMBER_PREFIX,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._tolerance = balance_tolerance
        self._prefix = number_prefix
        self._numbers = DocumentNumberService(session)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_transaction(
        self,
        organization_id: UUID,
        transaction_date: date,
        transaction_type: TransactionType | str,
        description: str,
        entries: Sequence[LedgerEntrySpec],
        actor_id: UUID,
        reference_type: str | None = None,
        reference_id: str | UUID | None = None,
        notes: str | None = None,
    ) -> Transaction:
        """
        Create a DRAFT transaction with its ledger entries.

        Balance is NOT required here; drafts may be unbalanced while being
        edited.  ``post_transaction`` enforces it.

        Raises:
            ValidationError: empty entries or missing description.
            InvalidEntryError: negative amount, bad side, bad exchange rate.
            AccountNotFoundError: account outside the organization.
            InactiveAccountError: account is deactivated.
            DuplicateDocumentNumberError: lost a numbering race.
        """
        if not entries:
            raise ValidationError(
                "Transaction requires at least one ledger entry", field="entries",
            )
        if not description:
            raise ValidationError("Transaction description is required", field="description")

        organization = self._get_organization(organization_id)
        accounts = self._load_accounts(organization_id, [e.account_id for e in entries])

        txn = Transaction(
            organization_id=organization_id,
            transaction_number=self._next_number(organization_id),
            transaction_date=transaction_date,
            transaction_type=TransactionType(transaction_type).value,
            status=TransactionStatus.DRAFT.value,
            description=description,
            notes=notes,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            created_by_id=actor_id,
            created_at=self._clock.now(),
        )

        for index, spec in enumerate(entries):
            txn.entries.append(
                self._build_entry(index, spec, accounts, organization.base_currency, actor_id)
            )

        self.session.add(txn)
        self._numbers.flush_unique(txn.transaction_number)

        logger.info(
            "transaction_created",
            extra={
                "organization_id": str(organization_id),
                "transaction_id": str(txn.id),
                "transaction_number": txn.transaction_number,
                "transaction_type": txn.transaction_type,
                "entry_count": len(txn.entries),
            },
        )
        return txn

    def _build_entry(
        self,
        index: int,
        spec: LedgerEntrySpec,
        accounts: dict[UUID, Account],
        base_currency: str,
        actor_id: UUID,
    ) -> LedgerEntry:
        try:
            entry_type = EntryType(spec.entry_type)
        except ValueError as exc:
            raise InvalidEntryError(index, f"unknown entry type {spec.entry_type!r}") from exc

        amount = Decimal(spec.amount)
        if amount < 0:
            raise InvalidEntryError(index, "amount must be non-negative")

        currency = (spec.currency or base_currency).upper()
        if currency == base_currency:
            rate = Decimal("1")
        else:
            rate = Decimal(spec.exchange_rate)
            if rate <= 0:
                raise InvalidEntryError(index, "exchange rate must be positive")

        account = accounts[spec.account_id]
        return LedgerEntry(
            account_id=account.id,
            entry_type=entry_type.value,
            amount=amount,
            currency=currency,
            exchange_rate=rate,
            amount_in_base=amount * rate,
            description=spec.description,
            line_seq=index,
            is_active=True,
            created_by_id=actor_id,
            created_at=self._clock.now(),
        )

    # =========================================================================
    # Posting
    # =========================================================================

    def post_transaction(
        self,
        organization_id: UUID,
        transaction_id: UUID,
        actor_id: UUID | None = None,
    ) -> Transaction:
        """
        Transition a DRAFT transaction to POSTED.

        Raises:
            TransactionNotFoundError: id does not resolve in the organization.
            InvalidTransitionError: status is not DRAFT.
            UnbalancedTransactionError: debits and credits differ by more than
                the tolerance; the transaction stays DRAFT.
        """
        txn = self.get_transaction(organization_id, transaction_id)
        with LogContext.bind(transaction_id=str(txn.id)):
            self._post(txn, actor_id)
        return txn

    def _post(
        self,
        txn: Transaction,
        actor_id: UUID | None,
        approver_id: UUID | None = None,
    ) -> BalanceSummary:
        if not txn.is_draft:
            raise InvalidTransitionError(
                "Transaction", str(txn.id), txn.status, TransactionStatus.POSTED.value,
            )

        summary = self.check_balance(txn)
        if not summary.is_balanced:
            logger.warning(
                "transaction_unbalanced",
                extra={
                    "transaction_id": str(txn.id),
                    "total_debits": str(summary.total_debits),
                    "total_credits": str(summary.total_credits),
                },
            )
            raise UnbalancedTransactionError(
                summary.total_debits, summary.total_credits, self._tolerance,
            )

        now = self._clock.now()
        txn.status = TransactionStatus.POSTED.value
        txn.posted_at = now
        if approver_id is not None:
            txn.approved_by_id = approver_id
            txn.approved_at = now
        if actor_id is not None or approver_id is not None:
            txn.updated_by_id = approver_id or actor_id
        self.session.flush()

        logger.info(
            "transaction_posted",
            extra={
                "transaction_id": str(txn.id),
                "transaction_number": txn.transaction_number,
                "total_debits": str(summary.total_debits),
                "total_credits": str(summary.total_credits),
            },
        )
        return summary

    def check_balance(self, txn: Transaction) -> BalanceSummary:
        """Base-currency balance of the transaction's active entries."""
        return summarize_entries(
            (e for e in txn.entries if e.is_active), self._tolerance,
        )

    # =========================================================================
    # Voiding
    # =========================================================================

    def void_transaction(
        self,
        organization_id: UUID,
        transaction_id: UUID,
        user_id: UUID,
    ) -> Transaction:
        """
        Transition a POSTED transaction to VOIDED.

        Entries stay in place for audit and are flagged inactive so they no
        longer contribute to balances.

        Raises:
            InvalidTransitionError: status is not POSTED.
            AlreadyReversedError: a posted reversal already cancels it.
        """
        txn = self.get_transaction(organization_id, transaction_id)
        if not txn.is_posted:
            raise InvalidTransitionError(
                "Transaction", str(txn.id), txn.status, TransactionStatus.VOIDED.value,
            )
        reversal = self.find_reversal(organization_id, txn.id)
        if reversal is not None:
            raise AlreadyReversedError(str(txn.id), str(reversal.id))

        now = self._clock.now()
        txn.status = TransactionStatus.VOIDED.value
        txn.voided_at = now
        txn.voided_by_id = user_id
        txn.updated_by_id = user_id
        for entry in txn.entries:
            entry.is_active = False
        self.session.flush()

        logger.info(
            "transaction_voided",
            extra={
                "transaction_id": str(txn.id),
                "transaction_number": txn.transaction_number,
                "voided_by": str(user_id),
            },
        )
        return txn

    # =========================================================================
    # Reversal
    # =========================================================================

    def create_reverse_entry(
        self,
        organization_id: UUID,
        original_transaction_id: UUID,
        user_id: UUID,
        reason: str | None = None,
    ) -> UUID:
        """
        Create and immediately post a reversal of a POSTED transaction.

        Every active entry is copied with DEBIT and CREDIT swapped; amount,
        currency, exchange rate, and amount_in_base are preserved so the pair
        nets every account to zero.  The reversal is dated today (clock) and
        both transactions get a note pointing at the other.

        Returns:
            The id of the new reversal transaction.

        Raises:
            InvalidTransitionError: original is VOIDED or DRAFT.
            AlreadyReversedError: original already has a posted reversal.
        """
        original = self.get_transaction(organization_id, original_transaction_id)
        if not original.is_posted:
            raise InvalidTransitionError(
                "Transaction", str(original.id), original.status, "REVERSED",
            )
        existing = self.find_reversal(organization_id, original.id)
        if existing is not None:
            raise AlreadyReversedError(str(original.id), str(existing.id))

        now = self._clock.now()
        description = f"Reversal of {original.description}"
        if reason:
            description = f"{description} - {reason}"

        reversal = Transaction(
            organization_id=organization_id,
            transaction_number=self._next_number(organization_id),
            transaction_date=self._clock.today(),
            transaction_type=original.transaction_type,
            status=TransactionStatus.POSTED.value,
            description=description[:500],
            notes=f"This entry reverses transaction {original.transaction_number}",
            reference_type=REVERSAL_REFERENCE_TYPE,
            reference_id=str(original.id),
            reversal_of_id=original.id,
            posted_at=now,
            created_by_id=user_id,
            created_at=now,
        )
        for seq, entry in enumerate(e for e in original.entries if e.is_active):
            reversal.entries.append(
                LedgerEntry(
                    account_id=entry.account_id,
                    entry_type=EntryType(entry.entry_type).opposite().value,
                    amount=entry.amount,
                    currency=entry.currency,
                    exchange_rate=entry.exchange_rate,
                    amount_in_base=entry.amount_in_base,
                    description=f"Reversal: {entry.description or ''}".strip(),
                    line_seq=seq,
                    is_active=True,
                    created_by_id=user_id,
                    created_at=now,
                )
            )

        self.session.add(reversal)
        self._append_note(original, f"[REVERSED by {reversal.transaction_number}]")
        original.updated_by_id = user_id
        self._numbers.flush_unique(reversal.transaction_number)

        logger.info(
            "transaction_reversed",
            extra={
                "original_transaction_id": str(original.id),
                "reversal_transaction_id": str(reversal.id),
                "reversal_number": reversal.transaction_number,
                "reason": reason,
            },
        )
        return reversal.id

    def find_reversal(
        self, organization_id: UUID, transaction_id: UUID,
    ) -> Transaction | None:
        """The posted reversal of ``transaction_id``, if any."""
        return self.session.scalars(
            select(Transaction).where(
                Transaction.organization_id == organization_id,
                Transaction.reversal_of_id == transaction_id,
                Transaction.status == TransactionStatus.POSTED.value,
            )
        ).first()

    # =========================================================================
    # Bulk approval
    # =========================================================================

    def bulk_approve(
        self,
        organization_id: UUID,
        transaction_ids: Sequence[UUID],
        approver_id: UUID,
    ) -> BulkApprovalResult:
        """
        Approve-and-post each DRAFT transaction independently.

        Partial success is the designed behavior: a missing, non-DRAFT, or
        unbalanced id is recorded in ``failed`` with its reason and the
        batch continues.
        """
        successful: list[UUID] = []
        failed: list[UUID] = []
        reasons: dict[UUID, str] = {}

        for transaction_id in transaction_ids:
            try:
                with self.session.begin_nested():
                    txn = self.get_transaction(organization_id, transaction_id)
                    self._post(txn, actor_id=None, approver_id=approver_id)
            except BooksKernelError as exc:
                failed.append(transaction_id)
                reasons[transaction_id] = f"{exc.code}: {exc}"
                continue
            successful.append(transaction_id)

        logger.info(
            "bulk_approval_completed",
            extra={
                "organization_id": str(organization_id),
                "approver_id": str(approver_id),
                "successful_count": len(successful),
                "failed_count": len(failed),
            },
        )
        return BulkApprovalResult(
            successful=tuple(successful),
            failed=tuple(failed),
            reasons=reasons,
        )

    # =========================================================================
    # Draft maintenance
    # =========================================================================

    def delete_draft(self, organization_id: UUID, transaction_id: UUID) -> None:
        """Delete a DRAFT transaction together with its entries."""
        txn = self.get_transaction(organization_id, transaction_id)
        if not txn.is_draft:
            raise InvalidTransitionError(
                "Transaction", str(txn.id), txn.status, "DELETED",
            )
        self.session.delete(txn)
        self.session.flush()
        logger.info("draft_deleted", extra={"transaction_id": str(transaction_id)})

    def append_note(
        self, organization_id: UUID, transaction_id: UUID, note: str,
    ) -> Transaction:
        """Append to the notes of a transaction in any status."""
        txn = self.get_transaction(organization_id, transaction_id)
        self._append_note(txn, note)
        self.session.flush()
        return txn

    @staticmethod
    def _append_note(txn: Transaction, note: str) -> None:
        txn.notes = f"{txn.notes or ''} {note}".strip()

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_transaction(self, organization_id: UUID, transaction_id: UUID) -> Transaction:
        txn = self.session.scalars(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.organization_id == organization_id,
            )
        ).first()
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    def _get_organization(self, organization_id: UUID) -> Organization:
        organization = self.session.get(Organization, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(str(organization_id))
        return organization

    def _load_accounts(
        self, organization_id: UUID, account_ids: Sequence[UUID],
    ) -> dict[UUID, Account]:
        wanted = set(account_ids)
        rows = self.session.scalars(
            select(Account).where(
                Account.organization_id == organization_id,
                Account.id.in_(wanted),
            )
        ).all()
        accounts = {a.id: a for a in rows}

        for account_id in account_ids:
            account = accounts.get(account_id)
            if account is None:
                raise AccountNotFoundError(str(account_id))
            if not account.is_active:
                raise InactiveAccountError(str(account.id), account.code)
        return accounts

    def _next_number(self, organization_id: UUID) -> str:
        return self._numbers.next_number(
            organization_id,
            self._prefix,
            self._clock.today().year,
            Transaction.transaction_number,
            Transaction.organization_id,
        )
