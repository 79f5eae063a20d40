"""
Standard Cost Service (``books_modules.costing.standard_costs``).

Responsibility
--------------
Versioned standard costs per product, bill-of-materials roll-up, purchase
price variance analysis, and mass updates.  The arithmetic lives in
``books_engines.standard_cost``; this service loads records and builds
the BOM tree.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  Never writes to the ledger.

Invariants enforced
-------------------
* ``total_cost`` is always the sum of the three components.
* Effective date ranges of one product's active standard costs never
  overlap; a new version must start after the previous one is closed.
* Versions count ``1.0``, ``1.1``, ``1.2`` ... per product unless the
  caller names one.
* BOM traversal fails with ``BomCycleError`` instead of recursing forever.

Failure modes
-------------
* ``ProductNotFoundError``, ``StandardCostNotFoundError``.
* ``OverlappingStandardCostError`` (a ``ConflictError``).
* ``ValidationError`` for negative components, an inverted date range, a
  product without an active BOM, or a mass update without a reason.

Audit relevance
---------------
Creation, closing, and mass updates are logged; mass updates also append
a dated note to every changed record.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from books_config import BooksSettings, get_active_config
from books_engines.standard_cost import (
    BomNode,
    CostComponents,
    CostSource,
    VarianceAnalysis,
    adjust_components,
    classify_variance,
    compare_to_standard,
    roll_up,
)
from books_kernel.db.types import round_money
from books_kernel.domain.clock import Clock, SystemClock
from books_kernel.exceptions import (
    BomCycleError,
    OverlappingStandardCostError,
    StandardCostNotFoundError,
    ValidationError,
)
from books_kernel.logging_config import get_logger
from books_modules.costing.models import (
    AdjustmentType,
    MassUpdateResult,
    ProductBomRollup,
    RollupSource,
)
from books_modules.costing.orm import StandardCostModel
from books_modules.inventory.helpers import get_product, last_purchase_price
from books_modules.inventory.models import BomStatus
from books_modules.inventory.orm import BillOfMaterialModel, ProductModel

logger = get_logger("modules.costing.standard_costs")

ZERO = Decimal("0")
FIRST_VERSION = "1.0"


def next_version(previous: str | None) -> str:
    """``None`` -> ``1.0``; ``1.4`` -> ``1.5``; unparseable -> ``1.0``."""
    if not previous:
        return FIRST_VERSION
    major, _, minor = previous.partition(".")
    if not major.isdigit() or not minor.isdigit():
        return FIRST_VERSION
    return f"{int(major)}.{int(minor) + 1}"


class StandardCostService:
    """
    Standard costs, BOM roll-up and variances for one organization.

    Contract
    --------
    * Write methods commit on success and roll back on any exception.
    * ``current_standard_cost``, ``bom_roll_up`` and ``variance_analysis``
      are read-only.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: BooksSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = (settings or get_active_config()).costing

    # =========================================================================
    # Versions
    # =========================================================================

    def create_standard_cost(
        self,
        organization_id: UUID,
        product_id: UUID,
        material_cost: Decimal,
        labor_cost: Decimal,
        overhead_cost: Decimal,
        effective_from: date,
        actor_id: UUID,
        effective_to: date | None = None,
        costing_method: str = "STANDARD",
        costing_version: str | None = None,
        notes: str | None = None,
        rollup_source: RollupSource | str = RollupSource.MANUAL,
    ) -> StandardCostModel:
        """
        Create a standard cost version.

        Raises:
            OverlappingStandardCostError: an active version of the product
                already covers part of ``[effective_from, effective_to]``.
        """
        try:
            product = get_product(self._session, organization_id, product_id)
            components = CostComponents(
                material=Decimal(material_cost),
                labor=Decimal(labor_cost),
                overhead=Decimal(overhead_cost),
            )
            if min(components.material, components.labor, components.overhead) < 0:
                raise ValidationError("Cost components must be non-negative", field="material_cost")
            if effective_to is not None and effective_to < effective_from:
                raise ValidationError(
                    "effective_to must not precede effective_from", field="effective_to",
                )

            overlapping = self._overlapping(organization_id, product.id, effective_from, effective_to)
            if overlapping is not None:
                raise OverlappingStandardCostError(str(product.id), str(overlapping.id))

            version = costing_version or next_version(self._latest_version(organization_id, product.id))
            purchase_price = last_purchase_price(self._session, organization_id, product.id)
            total = components.total

            record = StandardCostModel(
                organization_id=organization_id,
                product_id=product.id,
                costing_method=costing_method,
                costing_version=version,
                material_cost=components.material,
                labor_cost=components.labor,
                overhead_cost=components.overhead,
                total_cost=total,
                effective_from=effective_from,
                effective_to=effective_to,
                is_active=True,
                rollup_source=RollupSource(rollup_source).value,
                last_purchase_price=purchase_price,
                price_variance=(purchase_price - total) if purchase_price is not None else None,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(record)
            self._session.commit()

            logger.info("standard_cost_created", extra={
                "organization_id": str(organization_id),
                "product_id": str(product.id),
                "standard_cost_id": str(record.id),
                "version": version,
                "total_cost": str(total),
                "effective_from": effective_from.isoformat(),
            })
            return record
        except Exception:
            self._session.rollback()
            raise

    def close_standard_cost(
        self,
        organization_id: UUID,
        standard_cost_id: UUID,
        effective_to: date,
        actor_id: UUID | None = None,
    ) -> StandardCostModel:
        """End a version's effective range on ``effective_to`` (inclusive)."""
        try:
            record = self._get(organization_id, standard_cost_id)
            if effective_to < record.effective_from:
                raise ValidationError(
                    "effective_to must not precede effective_from", field="effective_to",
                )
            record.effective_to = effective_to
            record.updated_by_id = actor_id
            self._session.commit()
            logger.info("standard_cost_closed", extra={
                "standard_cost_id": str(record.id),
                "effective_to": effective_to.isoformat(),
            })
            return record
        except Exception:
            self._session.rollback()
            raise

    def current_standard_cost(
        self,
        organization_id: UUID,
        product_id: UUID,
        as_of: date | None = None,
    ) -> StandardCostModel | None:
        """The active version effective on ``as_of`` (default today)."""
        day = as_of or self._clock.today()
        return self._session.scalars(
            select(StandardCostModel)
            .where(
                StandardCostModel.organization_id == organization_id,
                StandardCostModel.product_id == product_id,
                StandardCostModel.is_active.is_(True),
                StandardCostModel.effective_from <= day,
                (StandardCostModel.effective_to.is_(None)) | (StandardCostModel.effective_to >= day),
            )
            .order_by(StandardCostModel.effective_from.desc(), StandardCostModel.created_at.desc())
        ).first()

    def _overlapping(
        self,
        organization_id: UUID,
        product_id: UUID,
        start: date,
        end: date | None,
    ) -> StandardCostModel | None:
        query = select(StandardCostModel).where(
            StandardCostModel.organization_id == organization_id,
            StandardCostModel.product_id == product_id,
            StandardCostModel.is_active.is_(True),
            (StandardCostModel.effective_to.is_(None)) | (StandardCostModel.effective_to >= start),
        )
        if end is not None:
            query = query.where(StandardCostModel.effective_from <= end)
        return self._session.scalars(query.limit(1)).first()

    def _latest_version(self, organization_id: UUID, product_id: UUID) -> str | None:
        return self._session.scalars(
            select(StandardCostModel.costing_version)
            .where(
                StandardCostModel.organization_id == organization_id,
                StandardCostModel.product_id == product_id,
            )
            .order_by(StandardCostModel.created_at.desc(), StandardCostModel.effective_from.desc())
            .limit(1)
        ).first()

    def _get(self, organization_id: UUID, standard_cost_id: UUID) -> StandardCostModel:
        record = self._session.scalars(
            select(StandardCostModel).where(
                StandardCostModel.id == standard_cost_id,
                StandardCostModel.organization_id == organization_id,
            )
        ).first()
        if record is None:
            raise StandardCostNotFoundError(str(standard_cost_id))
        return record

    # =========================================================================
    # BOM roll-up
    # =========================================================================

    def bom_roll_up(self, organization_id: UUID, product_id: UUID) -> ProductBomRollup:
        """
        Roll the product's active default BOM up and compare the result
        with its current standard cost.

        Each component is costed by its current standard cost, else its own
        BOM, else its last purchase price (as material), else zero.
        """
        product = get_product(self._session, organization_id, product_id)
        if self._default_bom(organization_id, product.id) is None:
            raise ValidationError(
                f"Product {product.sku} has no active bill of materials", field="product_id",
            )

        root = self._node(organization_id, product, [product.id])
        rollup = roll_up(root=root)

        current = self.current_standard_cost(organization_id, product.id)
        comparison = None
        if current is not None:
            comparison = compare_to_standard(
                calculated_cost=rollup.total,
                current_standard_cost=current.total_cost,
                threshold=self._settings.rollup_threshold,
            )

        logger.info("bom_rollup_completed", extra={
            "organization_id": str(organization_id),
            "product_id": str(product.id),
            "line_count": len(rollup.lines),
            "calculated_cost": str(rollup.total),
            "exceeds_threshold": comparison.exceeds_threshold if comparison else None,
        })
        return ProductBomRollup(product_id=product.id, rollup=rollup, comparison=comparison)

    def _node(
        self,
        organization_id: UUID,
        product: ProductModel,
        path: list[UUID],
        quantity_per: Decimal = Decimal("1"),
        scrap_percent: Decimal = ZERO,
    ) -> BomNode:
        bom = self._default_bom(organization_id, product.id)
        children = []
        for line in bom.lines if bom is not None else ():
            component = line.component
            if component.id in path:
                raise BomCycleError(
                    str(component.id), [str(p) for p in path] + [str(component.id)],
                )
            children.append(self._component_node(organization_id, line, component, path))

        return BomNode(
            product_id=str(product.id),
            name=product.name,
            sku=product.sku,
            quantity_per=quantity_per,
            scrap_percent=scrap_percent,
            children=tuple(children),
        )

    def _component_node(self, organization_id, line, component, path) -> BomNode:
        standard = self.current_standard_cost(organization_id, component.id)
        if standard is not None:
            return BomNode(
                product_id=str(component.id),
                name=component.name,
                sku=component.sku,
                quantity_per=line.quantity_per,
                scrap_percent=line.scrap_percent,
                unit_cost=CostComponents(
                    material=standard.material_cost,
                    labor=standard.labor_cost,
                    overhead=standard.overhead_cost,
                ),
                source=CostSource.STANDARD_COST,
            )

        if self._default_bom(organization_id, component.id) is not None:
            return self._node(
                organization_id, component, path + [component.id],
                quantity_per=line.quantity_per,
                scrap_percent=line.scrap_percent,
            )

        price = last_purchase_price(self._session, organization_id, component.id)
        if price is not None:
            unit_cost, source = CostComponents(material=price), CostSource.LAST_PURCHASE
        else:
            unit_cost, source = None, CostSource.DEFAULT
        return BomNode(
            product_id=str(component.id),
            name=component.name,
            sku=component.sku,
            quantity_per=line.quantity_per,
            scrap_percent=line.scrap_percent,
            unit_cost=unit_cost,
            source=source,
        )

    def _default_bom(self, organization_id: UUID, product_id: UUID) -> BillOfMaterialModel | None:
        return self._session.scalars(
            select(BillOfMaterialModel)
            .where(
                BillOfMaterialModel.organization_id == organization_id,
                BillOfMaterialModel.product_id == product_id,
                BillOfMaterialModel.status == BomStatus.ACTIVE.value,
                BillOfMaterialModel.is_default.is_(True),
            )
            .order_by(BillOfMaterialModel.created_at.desc())
            .limit(1)
        ).first()

    # =========================================================================
    # Variance analysis
    # =========================================================================

    def variance_analysis(
        self,
        organization_id: UUID,
        threshold: Decimal | None = None,
    ) -> list[VarianceAnalysis]:
        """
        Current standard cost against last purchase price for every active
        product having both, largest absolute variance first.
        """
        limit = Decimal(threshold) if threshold is not None else self._settings.variance_threshold
        products = self._session.scalars(
            select(ProductModel).where(
                ProductModel.organization_id == organization_id,
                ProductModel.is_active.is_(True),
            )
        ).all()

        results = []
        for product in products:
            standard = self.current_standard_cost(organization_id, product.id)
            if standard is None:
                continue
            price = last_purchase_price(self._session, organization_id, product.id)
            if price is None:
                continue
            results.append(classify_variance(
                standard_cost=standard.total_cost,
                last_purchase_price=price,
                threshold=limit,
                critical_threshold=self._settings.critical_threshold,
                product_id=str(product.id),
            ))

        results.sort(key=lambda a: abs(a.variance_percent), reverse=True)
        logger.info("variance_analysis_completed", extra={
            "organization_id": str(organization_id),
            "threshold": str(limit),
            "products_analyzed": len(results),
            "flagged": sum(1 for a in results if a.flagged),
        })
        return results

    # =========================================================================
    # Mass update
    # =========================================================================

    def mass_update(
        self,
        organization_id: UUID,
        adjustment_type: AdjustmentType | str,
        reason: str,
        actor_id: UUID,
        material: Decimal | None = None,
        labor: Decimal | None = None,
        overhead: Decimal | None = None,
        product_ids: Sequence[UUID] | None = None,
    ) -> MassUpdateResult:
        """
        Adjust current standard costs in place by percentage or amount.

        Products without a current standard cost are skipped.  A component
        that would turn negative fails the whole update.
        """
        try:
            kind = AdjustmentType(adjustment_type)
            if not reason or not reason.strip():
                raise ValidationError("A reason is required for a mass update", field="reason")

            if product_ids is None:
                product_ids = self._session.scalars(
                    select(ProductModel.id).where(
                        ProductModel.organization_id == organization_id,
                        ProductModel.is_active.is_(True),
                    )
                ).all()

            today = self._clock.today()
            updated: list[UUID] = []
            skipped: list[UUID] = []
            for product_id in product_ids:
                record = self.current_standard_cost(organization_id, product_id, as_of=today)
                if record is None:
                    skipped.append(product_id)
                    continue

                adjusted = adjust_components(
                    CostComponents(record.material_cost, record.labor_cost, record.overhead_cost),
                    kind.value, material=material, labor=labor, overhead=overhead,
                )
                if min(adjusted.material, adjusted.labor, adjusted.overhead) < 0:
                    raise ValidationError(
                        f"Adjustment makes a cost component of product {product_id} negative",
                        field="adjustment",
                    )
                record.material_cost = round_money(adjusted.material)
                record.labor_cost = round_money(adjusted.labor)
                record.overhead_cost = round_money(adjusted.overhead)
                record.total_cost = record.material_cost + record.labor_cost + record.overhead_cost
                note = f"[{today.isoformat()}] Mass update ({kind.value}): {reason}"
                record.notes = f"{record.notes}\n{note}" if record.notes else note
                record.updated_by_id = actor_id
                updated.append(product_id)

            self._session.commit()
            logger.info("standard_cost_mass_update", extra={
                "organization_id": str(organization_id),
                "adjustment_type": kind.value,
                "updated_count": len(updated),
                "skipped_count": len(skipped),
                "reason": reason,
            })
            return MassUpdateResult(
                updated=tuple(updated),
                skipped=tuple(skipped),
                reason=reason,
                details={
                    "adjustment_type": kind.value,
                    "material": str(material) if material is not None else None,
                    "labor": str(labor) if labor is not None else None,
                    "overhead": str(overhead) if overhead is not None else None,
                },
            )
        except Exception:
            self._session.rollback()
            raise
