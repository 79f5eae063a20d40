"""
Fixed Assets Module Service (``books_modules.assets.service``).

Responsibility
--------------
Orchestrates the fixed-asset lifecycle -- categories, registration, monthly
depreciation, GL posting of depreciation, and disposal -- by delegating the
arithmetic to ``books_engines.depreciation`` and journal persistence to the
kernel ``LedgerService``.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``FixedAssetService`` is the sole
public entry point for fixed-asset operations.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on exception).
* Only ACTIVE assets are depreciated.
* A period is computed at most once per asset (unique (asset, period)) and
  posted at most once (``is_posted``).
* Opening values come from the latest persisted period before the one
  being computed, otherwise from the purchase price.
* ``run_monthly_depreciation`` is idempotent: assets with a record for the
  period are skipped, and each asset runs in its own SAVEPOINT so one
  failure is collected without aborting the batch.

Failure modes
-------------
* ``AssetNotFoundError`` / ``AssetCategoryNotFoundError`` /
  ``AccountNotFoundError`` for ids outside the organization.
* ``InvalidStateError`` when depreciating or disposing a non-ACTIVE asset.
* ``DepreciationRecordNotFoundError``, ``AlreadyPostedError``, or
  ``ValidationError`` (zero amount) from ``post_depreciation_to_gl``.
* ``UnsupportedMethodError`` for units-of-production.

Audit relevance
---------------
Structured log events for registration, each computed period, batch
completion, GL posting, and disposal.  Each period keeps its calculation
details (method, rates, months, year number) as JSON.

Usage::

    service = FixedAssetService(session, clock=clock)
    summary = service.run_monthly_depreciation(org_id, "2025-06", actor_id)
    txn_id = service.post_depreciation_to_gl(org_id, asset_id, "2025-06", actor_id)
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from books_config import BooksSettings, get_active_config
from books_engines.depreciation import (
    DepreciationCalculator,
    DepreciationMethod,
    DepreciationTerms,
    PeriodDepreciation,
    add_months,
    calculate_disposal_gain_loss,
    month_index,
    months_in_period,
    parse_period,
)
from books_kernel.db.types import round_money
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.dtos import LedgerEntrySpec
from books_kernel.exceptions import (
    AccountNotFoundError,
    AlreadyPostedError,
    AssetCategoryNotFoundError,
    AssetNotFoundError,
    BooksKernelError,
    DepreciationRecordNotFoundError,
    DuplicateDepreciationPeriodError,
    InvalidStateError,
    OrganizationNotFoundError,
    ValidationError,
)
from books_kernel.logging_config import LogContext, get_logger
from books_kernel.models.account import Account
from books_kernel.models.organization import Organization
from books_kernel.models.transaction import TransactionType
from books_kernel.services.document_number_service import DocumentNumberService
from books_kernel.services.ledger_service import LedgerService
from books_modules.assets.models import (
    ASSET_REFERENCE_TYPE,
    AssetDisposal,
    AssetStatus,
    DepreciationRunSummary,
)
from books_modules.assets.orm import (
    AssetCategoryModel,
    AssetDepreciationModel,
    AssetModel,
)

logger = get_logger("modules.assets.service")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class FixedAssetService:
    """
    Orchestrates fixed-asset operations through the depreciation engine and
    the ledger.

    Contract
    --------
    * Write methods commit on success and roll back on any exception.
    * ``calculate_period_depreciation`` and
      ``generate_depreciation_schedule`` are read-only.

    Guarantees
    ----------
    * The GL transaction, the posted flag on the period record, and the
      asset's cached book values are committed together.
    * Clock and settings are injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT schedule the monthly run; an external caller invokes it.
    * Does NOT post disposals to the GL.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: BooksSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_config()
        self._ledger = LedgerService(
            session,
            clock=self._clock,
            balance_tolerance=self._settings.ledger.balance_tolerance,
            number_prefix=self._settings.ledger.journal_prefix,
        )
        self._numbers = DocumentNumberService(
            session, padding=self._settings.ledger.number_padding,
        )
        self._calculator = DepreciationCalculator()

    # =========================================================================
    # Categories and registration
    # =========================================================================

    def create_category(
        self,
        organization_id: UUID,
        code: str,
        name: str,
        asset_account_id: UUID,
        accumulated_depreciation_account_id: UUID,
        depreciation_expense_account_id: UUID,
        actor_id: UUID,
        default_method: DepreciationMethod | str = DepreciationMethod.STRAIGHT_LINE,
        default_useful_life_years: int = 5,
        default_salvage_percent: Decimal = ZERO,
        tax_depreciation_rate: Decimal | None = None,
        tax_class: str | None = None,
    ) -> AssetCategoryModel:
        """Create an asset category bound to three accounts of the organization."""
        try:
            for account_id in (
                asset_account_id,
                accumulated_depreciation_account_id,
                depreciation_expense_account_id,
            ):
                self._require_account(organization_id, account_id)
            if default_useful_life_years <= 0:
                raise ValidationError(
                    "Default useful life must be positive",
                    field="default_useful_life_years",
                )
            if not ZERO <= Decimal(default_salvage_percent) <= HUNDRED:
                raise ValidationError(
                    "Default salvage percent must be between 0 and 100",
                    field="default_salvage_percent",
                )

            category = AssetCategoryModel(
                organization_id=organization_id,
                code=code,
                name=name,
                asset_account_id=asset_account_id,
                accumulated_depreciation_account_id=accumulated_depreciation_account_id,
                depreciation_expense_account_id=depreciation_expense_account_id,
                default_method=DepreciationMethod(default_method).value,
                default_useful_life_years=default_useful_life_years,
                default_salvage_percent=Decimal(default_salvage_percent),
                tax_depreciation_rate=tax_depreciation_rate,
                tax_class=tax_class,
                created_by_id=actor_id,
            )
            self._session.add(category)
            self._session.commit()
            logger.info("asset_category_created", extra={
                "organization_id": str(organization_id),
                "category_id": str(category.id),
                "code": code,
            })
            return category
        except Exception:
            self._session.rollback()
            raise

    def register_asset(
        self,
        organization_id: UUID,
        category_id: UUID,
        name: str,
        purchase_date: date,
        purchase_price: Decimal,
        actor_id: UUID,
        salvage_value: Decimal | None = None,
        useful_life_years: int | None = None,
        depreciation_method: DepreciationMethod | str | None = None,
        depreciation_start_date: date | None = None,
    ) -> AssetModel:
        """
        Register an ACTIVE asset with the next ``ASSET-{year}-NNNN`` number.

        Method, useful life, and salvage default from the category; book
        value starts at the purchase price.
        """
        try:
            category = self._get_category(organization_id, category_id)
            price = Decimal(purchase_price)
            life = useful_life_years or category.default_useful_life_years
            method = DepreciationMethod(depreciation_method or category.default_method)
            salvage = (
                Decimal(salvage_value) if salvage_value is not None
                else round_money(price * category.default_salvage_percent / HUNDRED)
            )

            if price < 0:
                raise ValidationError("Purchase price must be non-negative", field="purchase_price")
            if salvage < 0 or salvage > price:
                raise ValidationError(
                    "Salvage value must be between 0 and the purchase price",
                    field="salvage_value",
                )
            if life <= 0:
                raise ValidationError("Useful life must be positive", field="useful_life_years")

            number = self._numbers.next_number(
                organization_id,
                self._settings.numbering.asset_prefix,
                self._clock.today().year,
                AssetModel.asset_number,
                AssetModel.organization_id,
            )
            asset = AssetModel(
                organization_id=organization_id,
                asset_number=number,
                name=name,
                category_id=category.id,
                purchase_date=purchase_date,
                purchase_price=price,
                salvage_value=salvage,
                useful_life_years=life,
                depreciation_method=method.value,
                depreciation_start_date=depreciation_start_date or purchase_date,
                current_book_value=price,
                accumulated_depreciation=ZERO,
                status=AssetStatus.ACTIVE.value,
                created_by_id=actor_id,
            )
            self._session.add(asset)
            self._numbers.flush_unique(number)
            self._session.commit()

            logger.info("asset_registered", extra={
                "organization_id": str(organization_id),
                "asset_id": str(asset.id),
                "asset_number": number,
                "purchase_price": str(price),
                "method": method.value,
            })
            return asset
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Calculation
    # =========================================================================

    def calculate_period_depreciation(
        self,
        organization_id: UUID,
        asset_id: UUID,
        period: str,
    ) -> PeriodDepreciation:
        """
        Compute (without persisting) one month of depreciation.

        Raises:
            InvalidStateError: the asset is not ACTIVE.
            UnsupportedMethodError: units-of-production.
        """
        asset = self._get_asset(organization_id, asset_id)
        self._require_active(asset)
        return self._calculate(asset, period)

    def _calculate(self, asset: AssetModel, period: str) -> PeriodDepreciation:
        period_start, period_end = parse_period(period)
        previous = self._session.scalars(
            select(AssetDepreciationModel)
            .where(
                AssetDepreciationModel.asset_id == asset.id,
                AssetDepreciationModel.period < period,
            )
            .order_by(AssetDepreciationModel.period.desc())
            .limit(1)
        ).first()

        if previous is not None:
            opening = previous.closing_book_value
            accumulated = previous.accumulated_depreciation
            tax_opening = previous.tax_book_value
        else:
            opening = asset.purchase_price
            accumulated = ZERO
            tax_opening = None

        return self._calculator.calculate_period(
            terms=self._terms(asset),
            period_start=period_start,
            period_end=period_end,
            opening_book_value=opening,
            accumulated_depreciation=accumulated,
            tax_opening_book_value=tax_opening,
        )

    def generate_depreciation_schedule(
        self,
        organization_id: UUID,
        asset_id: UUID,
    ) -> Iterator[PeriodDepreciation]:
        """
        Lazy month-by-month schedule over the asset's useful life.

        Persisted periods are yielded as recorded; the remaining months are
        recomputed from the last persisted closing values.  Nothing is
        cached between calls.  Lookups run eagerly so a bad id fails here,
        not on first iteration.
        """
        asset = self._get_asset(organization_id, asset_id)
        terms = self._terms(asset)
        records = self._session.scalars(
            select(AssetDepreciationModel)
            .where(AssetDepreciationModel.asset_id == asset.id)
            .order_by(AssetDepreciationModel.period)
        ).all()
        return self._schedule(terms, list(records))

    def _schedule(
        self,
        terms: DepreciationTerms,
        records: list[AssetDepreciationModel],
    ) -> Iterator[PeriodDepreciation]:
        for record in records:
            yield self._record_to_period(terms, record)

        if not records:
            yield from self._calculator.iter_schedule(terms)
            return

        last = records[-1]
        yield from self._calculator.iter_schedule(
            terms,
            first_period_start=add_months(last.period_start_date, 1),
            opening_book_value=last.closing_book_value,
            accumulated_depreciation=last.accumulated_depreciation,
            tax_opening_book_value=last.tax_book_value,
        )

    @staticmethod
    def _record_to_period(
        terms: DepreciationTerms, record: AssetDepreciationModel,
    ) -> PeriodDepreciation:
        tax_opening = None
        if record.tax_book_value is not None and record.tax_depreciation_amount is not None:
            tax_opening = record.tax_book_value + record.tax_depreciation_amount
        return PeriodDepreciation(
            period=record.period,
            period_start=record.period_start_date,
            period_end=record.period_end_date,
            method=DepreciationMethod(record.depreciation_method),
            months_in_period=months_in_period(record.period_start_date, record.period_end_date),
            year_number=max(month_index(terms.start_date, record.period_start_date), 0) // 12 + 1,
            opening_book_value=record.opening_book_value,
            depreciation_amount=record.depreciation_amount,
            accumulated_depreciation=record.accumulated_depreciation,
            closing_book_value=record.closing_book_value,
            tax_opening_book_value=tax_opening,
            tax_depreciation_amount=record.tax_depreciation_amount,
            tax_book_value=record.tax_book_value,
            details=dict(record.calculation_details or {}),
        )

    # =========================================================================
    # Persistence of periods
    # =========================================================================

    def record_period_depreciation(
        self,
        organization_id: UUID,
        asset_id: UUID,
        period: str,
        actor_id: UUID,
    ) -> AssetDepreciationModel:
        """
        Compute and persist one period for one asset.

        Raises:
            DuplicateDepreciationPeriodError: the period already exists.
        """
        try:
            asset = self._get_asset(organization_id, asset_id)
            self._require_active(asset)
            record = self._record(asset, period, actor_id)
            self._session.commit()
            return record
        except Exception:
            self._session.rollback()
            raise

    def _record(
        self, asset: AssetModel, period: str, actor_id: UUID,
    ) -> AssetDepreciationModel:
        result = self._calculate(asset, period)
        record = AssetDepreciationModel(
            organization_id=asset.organization_id,
            asset_id=asset.id,
            period=result.period,
            period_start_date=result.period_start,
            period_end_date=result.period_end,
            depreciation_method=result.method.value,
            opening_book_value=result.opening_book_value,
            depreciation_amount=result.depreciation_amount,
            accumulated_depreciation=result.accumulated_depreciation,
            closing_book_value=result.closing_book_value,
            tax_depreciation_amount=result.tax_depreciation_amount,
            tax_book_value=result.tax_book_value,
            calculation_details=result.details,
            is_posted=False,
            created_by_id=actor_id,
        )
        self._session.add(record)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise DuplicateDepreciationPeriodError(str(asset.id), period) from exc

        logger.info("depreciation_period_recorded", extra={
            "asset_id": str(asset.id),
            "period": period,
            "depreciation_amount": str(result.depreciation_amount),
            "closing_book_value": str(result.closing_book_value),
        })
        return record

    def run_monthly_depreciation(
        self,
        organization_id: UUID,
        period: str,
        actor_id: UUID,
    ) -> DepreciationRunSummary:
        """
        Compute and persist ``period`` for every ACTIVE asset whose
        depreciation has started by the end of the period.

        Assets that already have a record for the period, or whose book
        value has reached salvage, are skipped.  Failures are collected as
        ``"<asset number>: <message>"`` and do not stop the batch.
        """
        _, period_end = parse_period(period)
        processed = 0
        skipped = 0
        total = ZERO
        errors: list[str] = []

        try:
            with LogContext.bind(organization_id=str(organization_id), actor_id=str(actor_id)):
                logger.info("depreciation_batch_started", extra={"period": period})
                assets = self._session.scalars(
                    select(AssetModel)
                    .where(
                        AssetModel.organization_id == organization_id,
                        AssetModel.status == AssetStatus.ACTIVE.value,
                        AssetModel.depreciation_start_date <= period_end,
                    )
                    .order_by(AssetModel.asset_number)
                ).all()
                already_done = set(
                    self._session.scalars(
                        select(AssetDepreciationModel.asset_id).where(
                            AssetDepreciationModel.organization_id == organization_id,
                            AssetDepreciationModel.period == period,
                        )
                    ).all()
                )

                for asset in assets:
                    if asset.id in already_done:
                        skipped += 1
                        continue
                    try:
                        with self._session.begin_nested():
                            result = self._calculate(asset, period)
                            if result.opening_book_value <= asset.salvage_value:
                                skipped += 1
                                continue
                            self._record(asset, period, actor_id)
                    except (BooksKernelError, ValueError) as exc:
                        logger.warning("depreciation_asset_failed", extra={
                            "asset_id": str(asset.id),
                            "asset_number": asset.asset_number,
                            "error": str(exc),
                        })
                        errors.append(f"{asset.asset_number}: {exc}")
                        continue
                    processed += 1
                    total += result.depreciation_amount

                self._session.commit()
                logger.info("depreciation_batch_completed", extra={
                    "period": period,
                    "assets_processed": processed,
                    "assets_skipped": skipped,
                    "total_depreciation": str(total),
                    "error_count": len(errors),
                })
        except Exception:
            self._session.rollback()
            raise

        return DepreciationRunSummary(
            period=period,
            assets_processed=processed,
            assets_skipped=skipped,
            total_depreciation=total,
            errors=tuple(errors),
        )

    # =========================================================================
    # GL posting
    # =========================================================================

    def post_depreciation_to_gl(
        self,
        organization_id: UUID,
        asset_id: UUID,
        period: str,
        user_id: UUID,
    ) -> UUID:
        """
        Post a computed period: DEBIT depreciation expense, CREDIT
        accumulated depreciation, both from the asset's category.

        The transaction is dated at the period end.  The record is marked
        posted and the asset's cached book value and accumulated
        depreciation are updated in the same commit.

        Returns:
            The id of the posted transaction.

        Raises:
            DepreciationRecordNotFoundError: no record for the period.
            AlreadyPostedError: the record is already posted.
            ValidationError: the record's amount is zero.
        """
        try:
            asset = self._get_asset(organization_id, asset_id)
            record = self._session.scalars(
                select(AssetDepreciationModel).where(
                    AssetDepreciationModel.asset_id == asset.id,
                    AssetDepreciationModel.period == period,
                )
            ).first()
            if record is None:
                raise DepreciationRecordNotFoundError(str(asset.id), period)
            if record.is_posted:
                raise AlreadyPostedError("Depreciation", f"{asset.asset_number}/{period}")
            if record.depreciation_amount == 0:
                raise ValidationError(
                    f"Depreciation for {asset.asset_number} in {period} is zero; nothing to post",
                    field="depreciation_amount",
                )

            category = asset.category
            amount = record.depreciation_amount
            txn = self._ledger.create_transaction(
                organization_id=organization_id,
                transaction_date=record.period_end_date,
                transaction_type=TransactionType.DEPRECIATION,
                description=f"Depreciation - {asset.name} - {period}",
                entries=[
                    LedgerEntrySpec.debit(
                        category.depreciation_expense_account_id, amount,
                        description=f"Depreciation expense - {asset.name}",
                    ),
                    LedgerEntrySpec.credit(
                        category.accumulated_depreciation_account_id, amount,
                        description=f"Accumulated depreciation - {asset.name}",
                    ),
                ],
                actor_id=user_id,
                reference_type=ASSET_REFERENCE_TYPE,
                reference_id=asset.id,
                notes=f"{record.depreciation_method} depreciation",
            )
            self._ledger.post_transaction(organization_id, txn.id, actor_id=user_id)

            record.is_posted = True
            record.transaction_id = txn.id
            record.posted_at = self._clock.now()
            record.posted_by_id = user_id
            asset.current_book_value = record.closing_book_value
            asset.accumulated_depreciation = record.accumulated_depreciation
            asset.updated_by_id = user_id
            self._session.commit()

            logger.info("depreciation_posted", extra={
                "asset_id": str(asset.id),
                "period": period,
                "transaction_id": str(txn.id),
                "amount": str(amount),
            })
            return txn.id
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Disposal
    # =========================================================================

    def dispose_asset(
        self,
        organization_id: UUID,
        asset_id: UUID,
        disposal_date: date,
        proceeds: Decimal,
        user_id: UUID,
    ) -> AssetDisposal:
        """ACTIVE -> DISPOSED, recording gain or loss against posted book value."""
        try:
            asset = self._get_asset(organization_id, asset_id)
            self._require_active(asset)
            result = calculate_disposal_gain_loss(
                cost=asset.purchase_price,
                accumulated_depreciation=asset.accumulated_depreciation,
                proceeds=Decimal(proceeds),
            )
            asset.status = AssetStatus.DISPOSED.value
            asset.disposal_date = disposal_date
            asset.disposal_price = Decimal(proceeds)
            asset.disposal_gain_loss = result.gain_loss
            asset.updated_by_id = user_id
            self._session.commit()

            logger.info("asset_disposed", extra={
                "asset_id": str(asset.id),
                "proceeds": str(proceeds),
                "gain_loss": str(result.gain_loss),
                "gain_loss_type": result.gain_loss_type,
            })
            return AssetDisposal(
                asset_id=asset.id,
                proceeds=Decimal(proceeds),
                book_value=result.book_value,
                gain_loss=result.gain_loss,
                gain_loss_type=result.gain_loss_type,
            )
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Helpers
    # =========================================================================

    def _terms(self, asset: AssetModel) -> DepreciationTerms:
        category = asset.category
        organization = self._session.get(Organization, asset.organization_id)
        if organization is None:
            raise OrganizationNotFoundError(str(asset.organization_id))

        tax_rate = category.tax_depreciation_rate
        if tax_rate is None:
            tax_rate = self._settings.depreciation.statutory_rate(
                organization.home_country, category.tax_class,
            )
        declining_rate = (
            tax_rate if tax_rate is not None
            else self._settings.depreciation.default_declining_rate
        )
        return DepreciationTerms(
            cost=asset.purchase_price,
            salvage_value=asset.salvage_value,
            useful_life_years=asset.useful_life_years,
            method=DepreciationMethod(asset.depreciation_method),
            start_date=asset.depreciation_start_date,
            declining_rate=declining_rate,
            tax_rate=tax_rate,
        )

    def get_asset(self, organization_id: UUID, asset_id: UUID) -> AssetModel:
        return self._get_asset(organization_id, asset_id)

    def _get_asset(self, organization_id: UUID, asset_id: UUID) -> AssetModel:
        asset = self._session.scalars(
            select(AssetModel).where(
                AssetModel.id == asset_id,
                AssetModel.organization_id == organization_id,
            )
        ).first()
        if asset is None:
            raise AssetNotFoundError(str(asset_id))
        return asset

    def _get_category(self, organization_id: UUID, category_id: UUID) -> AssetCategoryModel:
        category = self._session.scalars(
            select(AssetCategoryModel).where(
                AssetCategoryModel.id == category_id,
                AssetCategoryModel.organization_id == organization_id,
            )
        ).first()
        if category is None:
            raise AssetCategoryNotFoundError(str(category_id))
        return category

    def _require_account(self, organization_id: UUID, account_id: UUID) -> None:
        found = self._session.scalars(
            select(Account.id).where(
                Account.id == account_id,
                Account.organization_id == organization_id,
            )
        ).first()
        if found is None:
            raise AccountNotFoundError(str(account_id))

    @staticmethod
    def _require_active(asset: AssetModel) -> None:
        if not asset.is_active:
            raise InvalidStateError(
                f"Asset {asset.asset_number} is {asset.status}; only ACTIVE assets can change"
            )
