"""
Module: books_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries -- per-account running balances,
    point-in-time account balances, and the trial balance.  The ledger is a
    derived view over ledger entries; no balance is stored anywhere.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/balance.py, and selectors/base.py.

Invariants enforced:
    - Only active entries of POSTED transactions contribute.  DRAFT and
      VOIDED transactions, and entries marked inert, are excluded.
    - Fold order is transaction_date ASC, then creation timestamp ASC, then
      transaction number, then line sequence.  Running balances depend on
      this order and must be reproduced exactly.
    - Sign follows the account's normal balance: DEBIT-normal accounts add
      debits and subtract credits; CREDIT-normal accounts do the inverse.
    - All amounts are base-currency amounts (amount_in_base).

Failure modes:
    - AccountNotFoundError if the account is not in the organization.
    - Returns zero balances / empty ledgers when nothing is posted.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from books_kernel.db.types import to_decimal
from books_kernel.domain.balance import EntryType
from books_kernel.exceptions import AccountNotFoundError
from books_kernel.models.account import Account, NormalBalance
from books_kernel.models.transaction import LedgerEntry, Transaction, TransactionStatus
from books_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


@dataclass(frozen=True)
class LedgerLine:
    """One folded entry with the account's balance after it."""

    transaction_id: UUID
    transaction_number: str
    transaction_date: date
    entry_id: UUID
    entry_type: EntryType
    amount_in_base: Decimal
    running_balance: Decimal
    description: str | None


@dataclass(frozen=True)
class AccountLedger:
    account_id: UUID
    account_code: str
    normal_balance: NormalBalance
    opening_balance: Decimal
    lines: tuple[LedgerLine, ...]

    @property
    def closing_balance(self) -> Decimal:
        return self.lines[-1].running_balance if self.lines else self.opening_balance


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance report."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


def signed_amount(
    entry_type: str, amount: Decimal, normal_balance: str,
) -> Decimal:
    """Effect of one entry on an account with the given normal balance."""
    if EntryType(entry_type) is EntryType.DEBIT:
        delta = amount
    else:
        delta = -amount
    if NormalBalance(normal_balance) is NormalBalance.CREDIT:
        delta = -delta
    return delta


class LedgerSelector(BaseSelector[LedgerEntry]):
    """
    Selector for ledger queries -- the authoritative balance computation.

    Non-goals:
        - Does NOT convert currencies; it folds the amount_in_base that was
          persisted when each entry was written.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _active_entries(self, organization_id: UUID):
        return (
            select(LedgerEntry)
            .join(Transaction, LedgerEntry.transaction_id == Transaction.id)
            .where(
                Transaction.organization_id == organization_id,
                Transaction.status == TransactionStatus.POSTED.value,
                LedgerEntry.is_active.is_(True),
            )
        )

    def _get_account(self, organization_id: UUID, account_id: UUID) -> Account:
        account = self.session.scalars(
            select(Account).where(
                Account.id == account_id,
                Account.organization_id == organization_id,
            )
        ).first()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def account_ledger(
        self,
        organization_id: UUID,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> AccountLedger:
        """
        Running balance for one account.

        Entries before ``start_date`` are folded into the opening balance;
        entries after ``end_date`` are ignored.
        """
        account = self._get_account(organization_id, account_id)

        query = (
            self._active_entries(organization_id)
            .add_columns(
                Transaction.transaction_number,
                Transaction.transaction_date,
            )
            .where(LedgerEntry.account_id == account_id)
            .order_by(
                Transaction.transaction_date,
                Transaction.created_at,
                Transaction.transaction_number,
                LedgerEntry.line_seq,
            )
        )
        if end_date is not None:
            query = query.where(Transaction.transaction_date <= end_date)

        opening = ZERO
        running = ZERO
        lines: list[LedgerLine] = []
        for entry, number, txn_date in self.session.execute(query).all():
            running += signed_amount(
                entry.entry_type, entry.amount_in_base, account.normal_balance,
            )
            if start_date is not None and txn_date < start_date:
                opening = running
                continue
            lines.append(
                LedgerLine(
                    transaction_id=entry.transaction_id,
                    transaction_number=number,
                    transaction_date=txn_date,
                    entry_id=entry.id,
                    entry_type=EntryType(entry.entry_type),
                    amount_in_base=entry.amount_in_base,
                    running_balance=running,
                    description=entry.description,
                )
            )

        return AccountLedger(
            account_id=account.id,
            account_code=account.code,
            normal_balance=NormalBalance(account.normal_balance),
            opening_balance=opening,
            lines=tuple(lines),
        )

    def account_balance(
        self,
        organization_id: UUID,
        account_id: UUID,
        as_of_date: date | None = None,
    ) -> Decimal:
        """Balance of one account, signed by its normal balance side."""
        return self.account_ledger(
            organization_id, account_id, end_date=as_of_date,
        ).closing_balance

    def trial_balance(
        self,
        organization_id: UUID,
        as_of_date: date | None = None,
    ) -> list[TrialBalanceRow]:
        """
        Debit and credit totals per account, ordered by account code.

        For a consistent ledger the sum of debit_total equals the sum of
        credit_total within the balance tolerance.
        """
        debit_sum = func.sum(
            case(
                (LedgerEntry.entry_type == EntryType.DEBIT.value, LedgerEntry.amount_in_base),
                else_=ZERO,
            )
        ).label("debit_total")
        credit_sum = func.sum(
            case(
                (LedgerEntry.entry_type == EntryType.CREDIT.value, LedgerEntry.amount_in_base),
                else_=ZERO,
            )
        ).label("credit_total")

        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                debit_sum,
                credit_sum,
            )
            .select_from(LedgerEntry)
            .join(Transaction, LedgerEntry.transaction_id == Transaction.id)
            .join(Account, LedgerEntry.account_id == Account.id)
            .where(
                Transaction.organization_id == organization_id,
                Transaction.status == TransactionStatus.POSTED.value,
                LedgerEntry.is_active.is_(True),
            )
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )
        if as_of_date is not None:
            query = query.where(Transaction.transaction_date <= as_of_date)

        return [
            TrialBalanceRow(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                account_type=row.account_type,
                debit_total=to_decimal(row.debit_total or 0),
                credit_total=to_decimal(row.credit_total or 0),
            )
            for row in self.session.execute(query).all()
        ]
