"""
DocumentNumberService -- year-scoped human-readable document numbers.

Responsibility:
    Allocates numbers of the form ``{PREFIX}-{YEAR}-{NNNN}`` (JE, ASSET, REV,
    CAPA, QI, ...) by scanning the existing numbers for the prefix and year,
    taking the numeric maximum, and adding one.  The suffix is zero-padded to
    four digits and grows past four when needed (``JE-2025-10000``).

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Used by
    LedgerService for transaction numbers and by module services for asset
    and revaluation numbers.

Invariants enforced:
    - Numbers are strictly increasing within (organization, prefix, year).
    - Not gapless: a number allocated by a transaction that later rolls back
      is simply never used.
    - Uniqueness is guaranteed by the owning table's unique constraint; two
      concurrent allocators can compute the same number, and the loser's
      flush raises IntegrityError, which callers translate to
      DuplicateDocumentNumberError (a ConflictError).

Failure modes:
    - DuplicateDocumentNumberError from ``flush_unique`` on a lost race.
"""

import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from books_kernel.exceptions import DuplicateDocumentNumberError
from books_kernel.logging_config import get_logger

logger = get_logger("services.document_number")

_SUFFIX_RE = re.compile(r"-(\d+)$")

DEFAULT_PADDING = 4


def format_document_number(
    prefix: str, year: int, value: int, padding: int = DEFAULT_PADDING,
) -> str:
    return f"{prefix}-{year}-{value:0{padding}d}"


def parse_suffix(number: str) -> int | None:
    """Return the numeric suffix of a document number, or None."""
    match = _SUFFIX_RE.search(number)
    return int(match.group(1)) if match else None


class DocumentNumberService:
    """
    Increment-by-scan document number allocator.

    Contract:
        ``next_number`` reads, never writes.  The caller assigns the number
        to a new row and flushes (see ``flush_unique``).

    Non-goals:
        - Does NOT lock rows; the unique constraint is the concurrency guard.
    """

    def __init__(self, session: Session, padding: int = DEFAULT_PADDING):
        self._session = session
        self._padding = padding

    def next_number(
        self,
        organization_id: Any,
        prefix: str,
        year: int,
        column: InstrumentedAttribute,
        org_column: InstrumentedAttribute,
    ) -> str:
        """
        Next number for ``prefix`` in ``year`` within one organization.

        Args:
            organization_id: Tenant owning the sequence.
            prefix: Document prefix, e.g. "JE".
            year: Calendar year embedded in the number.
            column: Mapped attribute holding the number (e.g.
                ``Transaction.transaction_number``).
            org_column: Mapped attribute holding the organization id.
        """
        stem = f"{prefix}-{year}-"
        existing = self._session.scalars(
            select(column).where(
                org_column == organization_id,
                column.like(f"{stem}%"),
            )
        ).all()

        highest = 0
        for number in existing:
            suffix = parse_suffix(number)
            if suffix is not None and suffix > highest:
                highest = suffix

        number = format_document_number(prefix, year, highest + 1, self._padding)
        logger.debug(
            "document_number_allocated",
            extra={"prefix": prefix, "year": year, "number": number},
        )
        return number

    def flush_unique(self, number: str) -> None:
        """
        Flush pending rows, mapping a unique violation on the number to
        DuplicateDocumentNumberError.  The session must be rolled back by
        its owner afterwards.
        """
        try:
            self._session.flush()
        except IntegrityError as exc:
            logger.warning(
                "document_number_conflict",
                extra={"number": number, "error": str(exc.orig)},
            )
            raise DuplicateDocumentNumberError(number) from exc
