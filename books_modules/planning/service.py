"""
Planning Module Service (``books_modules.planning.service``).

Responsibility
--------------
Gathers sales and purchase history for a product, hands it to the
safety-stock strategies in ``books_engines.safety_stock``, and stores the
recommendation a planner accepts.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  Reads inventory documents, never
writes to the ledger.

Invariants enforced
-------------------
* Demand is the trailing window (default 90 days) of PAID sales invoice
  lines; lead times are the trailing window (default 180 days) of RECEIVED
  purchase orders, newest first, capped at 20 lines.
* "Current quantity" is the safety-stock record effective today, else 0.
* At most one safety-stock record is effective per product and warehouse:
  ``save_recommendation`` ends earlier records the day before the new
  level starts and deactivates any that start on or after it.

Failure modes
-------------
* ``ProductNotFoundError`` for a product outside the organization.
* ``ValueError`` for an unknown method or a negative risk multiplier.

Usage::

    service = SafetyStockService(session, clock=clock)
    result = service.calculate(org_id, "STATISTICAL", product_id)
    service.save_recommendation(org_id, product_id, None,
                                result.suggested_quantity, result.method,
                                clock.today(), actor_id, result=result)
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from books_config import BooksSettings, get_active_config
from books_engines.safety_stock import (
    DemandHistory,
    LeadTimeStats,
    PercentageOfDemandStrategy,
    SafetyStockCalculator,
    SafetyStockInputs,
    SafetyStockMethod,
    SafetyStockResult,
    SimpleSafetyStockStrategy,
    StatisticalSafetyStockStrategy,
)
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.exceptions import ValidationError
from books_kernel.logging_config import get_logger
from books_modules.inventory.helpers import get_product
from books_modules.inventory.models import PurchaseOrderStatus, SalesInvoiceStatus
from books_modules.inventory.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    SalesInvoiceLineModel,
    SalesInvoiceModel,
)
from books_modules.planning.models import MethodDescription
from books_modules.planning.orm import SafetyStockModel

logger = get_logger("modules.planning.service")

ZERO = Decimal("0")
ONE = Decimal("1")


class SafetyStockService:
    """
    Safety-stock recommendations for one organization's products.

    Contract
    --------
    * ``calculate``, ``calculate_all_methods`` and ``available_methods``
      are read-only.
    * ``save_recommendation`` commits on success and rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: BooksSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = (settings or get_active_config()).safety_stock
        params = self._settings
        self._calculator = SafetyStockCalculator(strategies=(
            SimpleSafetyStockStrategy(
                default_lead_time_days=Decimal(params.default_lead_time_days),
                max_lead_time_factor=params.max_lead_time_factor,
            ),
            StatisticalSafetyStockStrategy(
                default_lead_time_days=Decimal(params.default_lead_time_days),
                max_lead_time_factor=params.max_lead_time_factor,
                min_history_days=params.min_history_days,
                z_scores=params.z_scores or None,
                default_z_score=params.default_z_score,
            ),
            PercentageOfDemandStrategy(
                default_lead_time_days=Decimal(params.default_lead_time_days),
                max_lead_time_factor=params.max_lead_time_factor,
                percentage_factor=params.percentage_factor,
            ),
        ))

    # =========================================================================
    # Recommendations
    # =========================================================================

    def calculate(
        self,
        organization_id: UUID,
        method: SafetyStockMethod | str,
        product_id: UUID,
        warehouse_id: UUID | None = None,
        service_level: Decimal | None = None,
        lead_time_days: Decimal | None = None,
        regional_risk_multiplier: Decimal = ONE,
    ) -> SafetyStockResult:
        """Recommend a safety-stock level with one strategy."""
        strategy_method = SafetyStockMethod(method)
        inputs = self.build_inputs(
            organization_id, product_id, warehouse_id,
            service_level, lead_time_days, regional_risk_multiplier,
        )
        result = self._calculator.calculate(method=strategy_method, inputs=inputs)
        logger.info("safety_stock_recommended", extra={
            "organization_id": str(organization_id),
            "product_id": str(product_id),
            "method": strategy_method.value,
            "suggested_quantity": str(result.suggested_quantity),
            "fallback_from": result.fallback_from.value if result.fallback_from else None,
        })
        return result

    def calculate_all_methods(
        self,
        organization_id: UUID,
        product_id: UUID,
        warehouse_id: UUID | None = None,
        service_level: Decimal | None = None,
        lead_time_days: Decimal | None = None,
        regional_risk_multiplier: Decimal = ONE,
    ) -> list[SafetyStockResult]:
        """Every strategy over the same gathered history, for comparison."""
        inputs = self.build_inputs(
            organization_id, product_id, warehouse_id,
            service_level, lead_time_days, regional_risk_multiplier,
        )
        return self._calculator.calculate_all(inputs)

    def available_methods(self) -> list[MethodDescription]:
        return [
            MethodDescription(method=method, description=description)
            for method, description in self._calculator.available_methods()
        ]

    def build_inputs(
        self,
        organization_id: UUID,
        product_id: UUID,
        warehouse_id: UUID | None = None,
        service_level: Decimal | None = None,
        lead_time_days: Decimal | None = None,
        regional_risk_multiplier: Decimal = ONE,
    ) -> SafetyStockInputs:
        """Assemble engine inputs from the organization's history."""
        product = get_product(self._session, organization_id, product_id)
        today = self._clock.today()
        current = self.current_record(organization_id, product_id, warehouse_id, today)

        return SafetyStockInputs(
            demand=self._demand_history(organization_id, product_id, warehouse_id, today),
            lead_times=self._lead_times(organization_id, product_id, today),
            service_level=Decimal(
                service_level if service_level is not None
                else self._settings.default_service_level
            ),
            lead_time_override_days=(
                Decimal(lead_time_days) if lead_time_days is not None else None
            ),
            regional_risk_multiplier=Decimal(regional_risk_multiplier),
            current_quantity=current.safety_stock_qty if current is not None else ZERO,
            unit_cost=product.purchase_price or ZERO,
        )

    def _demand_history(
        self,
        organization_id: UUID,
        product_id: UUID,
        warehouse_id: UUID | None,
        today: date,
    ) -> DemandHistory:
        window = self._settings.demand_window_days
        query = (
            select(SalesInvoiceModel.invoice_date, SalesInvoiceLineModel.quantity)
            .join(SalesInvoiceModel, SalesInvoiceLineModel.invoice_id == SalesInvoiceModel.id)
            .where(
                SalesInvoiceModel.organization_id == organization_id,
                SalesInvoiceModel.status == SalesInvoiceStatus.PAID.value,
                SalesInvoiceModel.invoice_date >= today - timedelta(days=window),
                SalesInvoiceModel.invoice_date <= today,
                SalesInvoiceLineModel.product_id == product_id,
            )
        )
        if warehouse_id is not None:
            query = query.where(SalesInvoiceLineModel.warehouse_id == warehouse_id)

        rows = self._session.execute(query).all()
        return DemandHistory.from_sales(
            ((row.invoice_date, row.quantity) for row in rows),
            window_days=window,
        )

    def _lead_times(
        self, organization_id: UUID, product_id: UUID, today: date,
    ) -> LeadTimeStats:
        window = self._settings.lead_time_window_days
        rows = self._session.execute(
            select(PurchaseOrderModel.po_date, PurchaseOrderModel.expected_date)
            .join(
                PurchaseOrderLineModel,
                PurchaseOrderLineModel.purchase_order_id == PurchaseOrderModel.id,
            )
            .where(
                PurchaseOrderModel.organization_id == organization_id,
                PurchaseOrderModel.status == PurchaseOrderStatus.RECEIVED.value,
                PurchaseOrderModel.po_date >= today - timedelta(days=window),
                PurchaseOrderModel.expected_date.is_not(None),
                PurchaseOrderLineModel.product_id == product_id,
            )
            .order_by(PurchaseOrderModel.po_date.desc())
            .limit(self._settings.max_purchase_orders)
        ).all()
        return LeadTimeStats.from_lead_times(
            [(row.expected_date - row.po_date).days for row in rows]
        )

    # =========================================================================
    # Stored levels
    # =========================================================================

    def current_record(
        self,
        organization_id: UUID,
        product_id: UUID,
        warehouse_id: UUID | None = None,
        as_of: date | None = None,
    ) -> SafetyStockModel | None:
        """The safety-stock record effective on ``as_of`` (default today)."""
        day = as_of or self._clock.today()
        query = select(SafetyStockModel).where(
            SafetyStockModel.organization_id == organization_id,
            SafetyStockModel.product_id == product_id,
            SafetyStockModel.is_active.is_(True),
            SafetyStockModel.effective_from <= day,
            (SafetyStockModel.effective_to.is_(None)) | (SafetyStockModel.effective_to >= day),
        )
        query = query.where(self._warehouse_clause(warehouse_id))
        return self._session.scalars(
            query.order_by(SafetyStockModel.effective_from.desc())
        ).first()

    def save_recommendation(
        self,
        organization_id: UUID,
        product_id: UUID,
        warehouse_id: UUID | None,
        quantity: Decimal,
        method: SafetyStockMethod | str,
        effective_from: date,
        actor_id: UUID,
        result: SafetyStockResult | None = None,
        service_level: Decimal | None = None,
    ) -> SafetyStockModel:
        """
        Store an accepted level, effective from ``effective_from``.

        Earlier records for the same product and warehouse stay active but
        end the day before ``effective_from``; records starting on or after
        that day are superseded (deactivated).  Today's level is untouched
        by a future-dated save.
        """
        try:
            get_product(self._session, organization_id, product_id)
            if Decimal(quantity) < 0:
                raise ValidationError("Safety stock quantity must be non-negative", field="quantity")
            strategy_method = SafetyStockMethod(method)

            previous = self._session.scalars(
                select(SafetyStockModel).where(
                    SafetyStockModel.organization_id == organization_id,
                    SafetyStockModel.product_id == product_id,
                    SafetyStockModel.is_active.is_(True),
                    self._warehouse_clause(warehouse_id),
                )
            ).all()
            closed = superseded = 0
            for record in previous:
                if record.effective_from >= effective_from:
                    # Starts on or after the new level: replaced outright.
                    record.is_active = False
                    superseded += 1
                elif record.effective_to is None or record.effective_to >= effective_from:
                    record.effective_to = effective_from - timedelta(days=1)
                    closed += 1
                else:
                    continue
                record.updated_by_id = actor_id

            record = SafetyStockModel(
                organization_id=organization_id,
                product_id=product_id,
                warehouse_id=warehouse_id,
                safety_stock_qty=Decimal(quantity),
                method=strategy_method.value,
                service_level=service_level,
                effective_from=effective_from,
                is_active=True,
                calculation=_calculation_json(result) if result is not None else None,
                created_by_id=actor_id,
            )
            self._session.add(record)
            self._session.commit()

            logger.info("safety_stock_saved", extra={
                "organization_id": str(organization_id),
                "product_id": str(product_id),
                "quantity": str(quantity),
                "method": strategy_method.value,
                "effective_from": effective_from.isoformat(),
                "closed_records": closed,
                "superseded_records": superseded,
            })
            return record
        except Exception:
            self._session.rollback()
            raise

    @staticmethod
    def _warehouse_clause(warehouse_id: UUID | None):
        if warehouse_id is None:
            return SafetyStockModel.warehouse_id.is_(None)
        return SafetyStockModel.warehouse_id == warehouse_id


def _calculation_json(result: SafetyStockResult) -> dict[str, str | None]:
    details = {
        key: (str(value) if value is not None else None)
        for key, value in asdict(result.calculation).items()
    }
    details["method"] = result.method.value
    details["risk_reduction"] = str(result.risk_reduction)
    details["financial_impact"] = str(result.financial_impact)
    if result.fallback_from is not None:
        details["fallback_from"] = result.fallback_from.value
    return details
