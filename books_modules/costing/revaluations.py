"""
Revaluation Service (``books_modules.costing.revaluations``).

Responsibility
--------------
Proposes, approves, posts and rejects changes of a product's inventory
unit cost.  Posting writes the balancing journal entry through the kernel
``LedgerService`` and moves the inventory average cost to the new value.

Architecture position
---------------------
**Modules layer** -- thin ERP glue over ``books_engines.revaluation``.

Invariants enforced
-------------------
* ``value_difference == (new_unit_cost - old_unit_cost) * quantity``.
* Status follows DRAFT -> SUBMITTED -> APPROVED -> POSTED, with REJECTED
  reachable from any state before POSTED.  Anything else raises
  ``InvalidTransitionError``.
* An increase debits inventory and credits revaluation gain; a decrease
  debits revaluation loss and credits inventory.  The accounts are looked
  up by the configured codes (default 1300 / 4900 / 6900).
* The GL transaction, the POSTED status and the new average cost are
  committed together.

Failure modes
-------------
* ``ProductNotFoundError``, ``RevaluationNotFoundError``,
  ``AccountNotFoundError`` when a revaluation account code is missing.
* ``InvalidReasonCodeError`` for a reason code outside the organization's
  jurisdiction list.
* ``ValidationError`` for zero quantity, zero difference or a negative
  unit cost.

Audit relevance
---------------
Every transition is logged with the revaluation number and the actor.

Usage::

    service = RevaluationService(session, clock=clock)
    result = service.create_revaluation(
        org_id, product_id, "MARKET_INCREASE", Decimal("15"),
        clock.today(), actor_id, auto_approve=True,
    )
    assert result.transaction.is_posted
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from books_config import BooksSettings, get_active_config
from books_engines.revaluation import (
    RevaluationAccountRole,
    RevaluationFigures,
    compute_revaluation,
    percentage_change,
)
from books_kernel.db.types import round_money
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.domain.dtos import LedgerEntrySpec
from books_kernel.exceptions import (
    AccountNotFoundError,
    InvalidReasonCodeError,
    InvalidTransitionError,
    OrganizationNotFoundError,
    RevaluationNotFoundError,
    ValidationError,
)
from books_kernel.logging_config import get_logger
from books_kernel.models.account import Account
from books_kernel.models.organization import Organization
from books_kernel.models.transaction import Transaction, TransactionType
from books_kernel.services.document_number_service import DocumentNumberService
from books_kernel.services.ledger_service import LedgerService
from books_modules.costing.models import (
    REVALUATION_REFERENCE_TYPE,
    MarketPriceSuggestion,
    RevaluationPreview,
    RevaluationResult,
    RevaluationStatus,
    can_transition,
)
from books_modules.costing.orm import CostRevaluationModel
from books_modules.inventory.helpers import (
    get_product,
    inventory_position,
    last_purchase_price,
)
from books_modules.inventory.orm import InventoryItemModel

logger = get_logger("modules.costing.revaluations")

DEFAULT_COUNTRY = "US"
UNIT_COST_PLACES = 4


class RevaluationService:
    """
    Inventory cost revaluations for one organization.

    Contract
    --------
    * Write methods commit on success and roll back on any exception.
    * ``preview_revaluation`` and ``suggest_market_price`` are read-only.

    Non-goals
    ---------
    * No approval threshold: ``auto_approve`` is the caller's decision.
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
        self._settings = settings.revaluation
        self._prefix = settings.numbering.revaluation_prefix
        self._ledger = LedgerService(
            session,
            clock=self._clock,
            balance_tolerance=settings.ledger.balance_tolerance,
            number_prefix=settings.ledger.journal_prefix,
        )
        self._numbers = DocumentNumberService(session, padding=settings.ledger.number_padding)

    # =========================================================================
    # Preview and suggestion
    # =========================================================================

    def preview_revaluation(
        self,
        organization_id: UUID,
        product_id: UUID,
        new_unit_cost: Decimal,
        quantity: Decimal | None = None,
        warehouse_id: UUID | None = None,
    ) -> RevaluationPreview:
        """Figures, GL accounts and warnings for a proposed new unit cost."""
        product = get_product(self._session, organization_id, product_id)
        country = self._country(organization_id)
        figures = self._figures(organization_id, product.id, new_unit_cost, quantity, warehouse_id, country)
        return RevaluationPreview(
            product_id=product.id,
            quantity=figures.quantity,
            old_unit_cost=figures.old_unit_cost,
            new_unit_cost=figures.new_unit_cost,
            current_total_value=figures.current_total_value,
            new_total_value=figures.new_total_value,
            value_difference=figures.value_difference,
            percentage_change=figures.percentage_change,
            is_increase=figures.legs.is_increase,
            debit_account_code=self._account_code(figures.legs.debit_role),
            credit_account_code=self._account_code(figures.legs.credit_role),
            warnings=figures.warnings,
        )

    def suggest_market_price(
        self, organization_id: UUID, product_id: UUID,
    ) -> MarketPriceSuggestion:
        """Suggest the last received purchase price as the new unit cost."""
        product = get_product(self._session, organization_id, product_id)
        position = inventory_position(self._session, product.id)
        current = round_money(position.unit_cost, UNIT_COST_PLACES)
        price = last_purchase_price(self._session, organization_id, product.id)
        if price is None:
            return MarketPriceSuggestion(
                product_id=product.id,
                current_unit_cost=current,
                suggested_unit_cost=None,
                source="NO_PURCHASE_HISTORY",
            )
        return MarketPriceSuggestion(
            product_id=product.id,
            current_unit_cost=current,
            suggested_unit_cost=price,
            source="LAST_PURCHASE_PRICE",
            percentage_change=percentage_change(current, price - current),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_revaluation(
        self,
        organization_id: UUID,
        product_id: UUID,
        reason_code: str,
        new_unit_cost: Decimal,
        posting_date: date,
        actor_id: UUID,
        quantity: Decimal | None = None,
        auto_approve: bool = False,
        warehouse_id: UUID | None = None,
        notes: str | None = None,
    ) -> RevaluationResult:
        """
        Record a revaluation and submit it.

        The old unit cost is the product's current weighted average cost
        and the quantity defaults to the quantity on hand.  With
        ``auto_approve`` the revaluation is approved and posted at once.
        """
        try:
            product = get_product(self._session, organization_id, product_id)
            country = self._country(organization_id)
            allowed = self._settings.reason_codes_for(country)
            if reason_code not in allowed:
                raise InvalidReasonCodeError(reason_code, list(allowed))
            if Decimal(new_unit_cost) < 0:
                raise ValidationError("New unit cost must be non-negative", field="new_unit_cost")

            figures = self._figures(
                organization_id, product.id, new_unit_cost, quantity, warehouse_id, country,
            )
            if figures.quantity <= 0:
                raise ValidationError("No quantity to revalue", field="quantity")
            if round_money(figures.value_difference) == 0:
                raise ValidationError(
                    "Revaluation rounds to zero; nothing to revalue",
                    field="new_unit_cost",
                )

            number = self._numbers.next_number(
                organization_id,
                self._prefix,
                self._clock.today().year,
                CostRevaluationModel.revaluation_number,
                CostRevaluationModel.organization_id,
            )
            revaluation = CostRevaluationModel(
                organization_id=organization_id,
                revaluation_number=number,
                product_id=product.id,
                warehouse_id=warehouse_id,
                reason_code=reason_code,
                old_unit_cost=figures.old_unit_cost,
                new_unit_cost=figures.new_unit_cost,
                quantity=figures.quantity,
                value_difference=figures.value_difference,
                status=RevaluationStatus.DRAFT.value,
                posting_date=posting_date,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(revaluation)
            self._numbers.flush_unique(number)
            self._transition(revaluation, RevaluationStatus.SUBMITTED, actor_id)

            transaction = None
            if auto_approve:
                self._approve(revaluation, actor_id)
                transaction = self._post(revaluation, actor_id)

            self._session.commit()
            logger.info("revaluation_created", extra={
                "organization_id": str(organization_id),
                "revaluation_id": str(revaluation.id),
                "revaluation_number": number,
                "value_difference": str(figures.value_difference),
                "auto_approved": auto_approve,
                "warnings": list(figures.warnings),
            })
            return RevaluationResult(revaluation=revaluation, transaction=transaction)
        except Exception:
            self._session.rollback()
            raise

    def approve_revaluation(
        self, organization_id: UUID, revaluation_id: UUID, approver_id: UUID,
    ) -> CostRevaluationModel:
        try:
            revaluation = self.get_revaluation(organization_id, revaluation_id)
            self._approve(revaluation, approver_id)
            self._session.commit()
            return revaluation
        except Exception:
            self._session.rollback()
            raise

    def post_revaluation(
        self, organization_id: UUID, revaluation_id: UUID, actor_id: UUID,
    ) -> RevaluationResult:
        """Post an APPROVED revaluation to the GL and apply the new cost."""
        try:
            revaluation = self.get_revaluation(organization_id, revaluation_id)
            transaction = self._post(revaluation, actor_id)
            self._session.commit()
            return RevaluationResult(revaluation=revaluation, transaction=transaction)
        except Exception:
            self._session.rollback()
            raise

    def reject_revaluation(
        self,
        organization_id: UUID,
        revaluation_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> CostRevaluationModel:
        try:
            revaluation = self.get_revaluation(organization_id, revaluation_id)
            self._transition(revaluation, RevaluationStatus.REJECTED, actor_id)
            revaluation.rejection_reason = reason
            self._session.commit()
            return revaluation
        except Exception:
            self._session.rollback()
            raise

    def get_revaluation(
        self, organization_id: UUID, revaluation_id: UUID,
    ) -> CostRevaluationModel:
        revaluation = self._session.scalars(
            select(CostRevaluationModel).where(
                CostRevaluationModel.id == revaluation_id,
                CostRevaluationModel.organization_id == organization_id,
            )
        ).first()
        if revaluation is None:
            raise RevaluationNotFoundError(str(revaluation_id))
        return revaluation

    # =========================================================================
    # Internals
    # =========================================================================

    def _approve(self, revaluation: CostRevaluationModel, approver_id: UUID) -> None:
        self._transition(revaluation, RevaluationStatus.APPROVED, approver_id)
        revaluation.approved_by_id = approver_id
        revaluation.approved_at = self._clock.now()

    def _post(self, revaluation: CostRevaluationModel, actor_id: UUID) -> Transaction:
        if not can_transition(revaluation.status, RevaluationStatus.POSTED):
            raise InvalidTransitionError(
                "CostRevaluation", str(revaluation.id), revaluation.status,
                RevaluationStatus.POSTED.value,
            )

        figures = compute_revaluation(
            old_unit_cost=revaluation.old_unit_cost,
            new_unit_cost=revaluation.new_unit_cost,
            quantity=revaluation.quantity,
        )
        legs = figures.legs
        amount = round_money(legs.amount)
        product = revaluation.product
        organization_id = revaluation.organization_id

        txn = self._ledger.create_transaction(
            organization_id=organization_id,
            transaction_date=revaluation.posting_date,
            transaction_type=TransactionType.INVENTORY_ADJUSTMENT,
            description=f"Inventory revaluation {revaluation.revaluation_number} - {product.name}",
            entries=[
                LedgerEntrySpec.debit(
                    self._account_id(organization_id, legs.debit_role), amount,
                    description=f"Revaluation {revaluation.reason_code}",
                ),
                LedgerEntrySpec.credit(
                    self._account_id(organization_id, legs.credit_role), amount,
                    description=f"Revaluation {revaluation.reason_code}",
                ),
            ],
            actor_id=actor_id,
            reference_type=REVALUATION_REFERENCE_TYPE,
            reference_id=revaluation.id,
            notes=revaluation.notes,
        )
        self._ledger.post_transaction(organization_id, txn.id, actor_id=actor_id)

        items = select(InventoryItemModel).where(InventoryItemModel.product_id == product.id)
        if revaluation.warehouse_id is not None:
            items = items.where(InventoryItemModel.warehouse_id == revaluation.warehouse_id)
        for item in self._session.scalars(items).all():
            item.average_cost = revaluation.new_unit_cost
            item.updated_by_id = actor_id

        self._transition(revaluation, RevaluationStatus.POSTED, actor_id)
        revaluation.transaction_id = txn.id
        revaluation.posted_at = self._clock.now()
        self._session.flush()
        return txn

    def _transition(
        self,
        revaluation: CostRevaluationModel,
        target: RevaluationStatus,
        actor_id: UUID,
    ) -> None:
        current = revaluation.status
        if not can_transition(current, target):
            raise InvalidTransitionError(
                "CostRevaluation", str(revaluation.id), current, target.value,
            )
        revaluation.status = target.value
        revaluation.updated_by_id = actor_id
        logger.info("revaluation_status_changed", extra={
            "revaluation_number": revaluation.revaluation_number,
            "from_status": current,
            "to_status": target.value,
            "actor_id": str(actor_id),
        })

    def _figures(
        self,
        organization_id: UUID,
        product_id: UUID,
        new_unit_cost: Decimal,
        quantity: Decimal | None,
        warehouse_id: UUID | None,
        country: str,
    ) -> RevaluationFigures:
        position = inventory_position(self._session, product_id, warehouse_id)
        return compute_revaluation(
            old_unit_cost=round_money(position.unit_cost, UNIT_COST_PLACES),
            new_unit_cost=Decimal(new_unit_cost),
            quantity=Decimal(quantity) if quantity is not None else position.quantity,
            large_variance_percent=self._settings.large_variance_for(country),
            country=country,
        )

    def _country(self, organization_id: UUID) -> str:
        organization = self._session.get(Organization, organization_id)
        if organization is None:
            raise OrganizationNotFoundError(str(organization_id))
        return organization.home_country or DEFAULT_COUNTRY

    def _account_code(self, role: RevaluationAccountRole) -> str:
        return {
            RevaluationAccountRole.INVENTORY: self._settings.inventory_account_code,
            RevaluationAccountRole.REVALUATION_GAIN: self._settings.gain_account_code,
            RevaluationAccountRole.REVALUATION_LOSS: self._settings.loss_account_code,
        }[role]

    def _account_id(self, organization_id: UUID, role: RevaluationAccountRole) -> UUID:
        code = self._account_code(role)
        account_id = self._session.scalars(
            select(Account.id).where(
                Account.organization_id == organization_id,
                Account.code == code,
            )
        ).first()
        if account_id is None:
            raise AccountNotFoundError(code)
        return account_id
