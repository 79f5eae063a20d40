"""
Tests for RevaluationService: preview, lifecycle, GL posting, and the
market price suggestion.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from books_kernel.exceptions import (
    InvalidReasonCodeError,
    InvalidTransitionError,
    RevaluationNotFoundError,
    ValidationError,
)
from books_kernel.models.transaction import TransactionType
from books_kernel.selectors.ledger_selector import LedgerSelector
from books_modules.costing import RevaluationService, RevaluationStatus
from books_modules.costing.models import REVALUATION_REFERENCE_TYPE
from books_modules.inventory.orm import InventoryItemModel

POSTING_DATE = date(2025, 6, 30)


@pytest.fixture
def service(session, deterministic_clock, settings):
    return RevaluationService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def stocked(make_product, accounts):
    """200 units on hand at 100.00."""
    return make_product(
        name="Copper wire", quantity_on_hand=Decimal("200"), average_cost=Decimal("100"),
    )


@pytest.fixture
def revalue(service, org_id, test_actor_id):
    def _revalue(product, new_cost, reason="MARKET_INCREASE", **kwargs):
        return service.create_revaluation(
            organization_id=org_id,
            product_id=product.id,
            reason_code=reason,
            new_unit_cost=Decimal(new_cost),
            posting_date=POSTING_DATE,
            actor_id=test_actor_id,
            **kwargs,
        )

    return _revalue


class TestPreview:

    def test_increase(self, service, org_id, stocked):
        preview = service.preview_revaluation(org_id, stocked.id, Decimal("125"))

        assert preview.quantity == Decimal("200")
        assert preview.old_unit_cost == Decimal("100")
        assert preview.value_difference == Decimal("5000")
        assert preview.percentage_change == Decimal("25")
        assert preview.is_increase
        assert preview.debit_account_code == "1300"
        assert preview.credit_account_code == "4900"
        assert preview.warnings == (
            "Large cost change of 25.0% may require additional approval",
        )

    def test_decrease_with_quantity_override(self, service, org_id, stocked):
        preview = service.preview_revaluation(
            org_id, stocked.id, Decimal("95"), quantity=Decimal("50"),
        )

        assert preview.value_difference == Decimal("-250")
        assert not preview.is_increase
        assert preview.debit_account_code == "6900"
        assert preview.credit_account_code == "1300"
        assert preview.warnings == ()

    def test_country_threshold(self, session, service, organization, org_id, stocked):
        organization.home_country = "UG"
        session.commit()

        preview = service.preview_revaluation(org_id, stocked.id, Decimal("116"))

        # 16% is under the UG large-change threshold of 20%.
        assert preview.warnings == (
            "High cost increase detected - consider currency impact analysis",
        )

    def test_nothing_persisted(self, session, service, org_id, stocked):
        service.preview_revaluation(org_id, stocked.id, Decimal("125"))

        item = session.scalars(select(InventoryItemModel)).one()
        assert item.average_cost == Decimal("100")


class TestCreate:

    def test_submitted_by_default(self, revalue, stocked):
        result = revalue(stocked, "125")

        revaluation = result.revaluation
        assert result.transaction is None
        assert revaluation.status == RevaluationStatus.SUBMITTED
        assert revaluation.revaluation_number == "REV-2025-0001"
        assert revaluation.value_difference == Decimal("5000")

    def test_auto_approve_posts(self, session, revalue, org_id, stocked, accounts, test_actor_id):
        result = revalue(stocked, "125", auto_approve=True, notes="LME spike")

        txn = result.transaction
        assert txn.is_posted
        assert txn.transaction_type == TransactionType.INVENTORY_ADJUSTMENT
        assert txn.transaction_date == POSTING_DATE
        assert txn.reference_type == REVALUATION_REFERENCE_TYPE
        assert txn.description == "Inventory revaluation REV-2025-0001 - Copper wire"
        assert result.revaluation.status == RevaluationStatus.POSTED
        assert result.revaluation.transaction_id == txn.id
        assert result.revaluation.approved_by_id == test_actor_id

        selector = LedgerSelector(session)
        assert selector.account_balance(org_id, accounts["1300"].id) == Decimal("5000")
        assert selector.account_balance(org_id, accounts["4900"].id) == Decimal("5000")

        item = session.scalars(select(InventoryItemModel)).one()
        assert item.average_cost == Decimal("125")

    def test_decrease_posts_to_loss(self, session, revalue, org_id, stocked, accounts):
        revalue(stocked, "90", reason="MARKET_DECLINE", auto_approve=True)

        selector = LedgerSelector(session)
        assert selector.account_balance(org_id, accounts["6900"].id) == Decimal("2000")
        assert selector.account_balance(org_id, accounts["1300"].id) == Decimal("-2000")

    def test_country_reason_codes(self, session, revalue, organization, stocked):
        with pytest.raises(InvalidReasonCodeError):
            revalue(stocked, "125", reason="CURRENCY_FLUCTUATION")

        organization.home_country = "UG"
        session.commit()

        result = revalue(stocked, "125", reason="CURRENCY_FLUCTUATION")
        assert result.revaluation.reason_code == "CURRENCY_FLUCTUATION"

    def test_no_change_rejected(self, revalue, stocked):
        with pytest.raises(ValidationError):
            revalue(stocked, "100")

    def test_sub_cent_difference_rejected(self, revalue, stocked):
        # 200 * 0.00002 = 0.004, which posts as 0.00
        with pytest.raises(ValidationError, match="rounds to zero"):
            revalue(stocked, "100.00002")

    def test_no_stock_rejected(self, revalue, make_product, accounts):
        with pytest.raises(ValidationError):
            revalue(make_product(), "10")

    def test_negative_cost_rejected(self, revalue, stocked):
        with pytest.raises(ValidationError):
            revalue(stocked, "-1")

    def test_warehouse_scope(self, session, revalue, make_product, accounts, test_actor_id):
        north, south = uuid4(), uuid4()
        product = make_product(
            quantity_on_hand=Decimal("10"), average_cost=Decimal("5"), warehouse_id=north,
        )
        session.add(InventoryItemModel(
            product_id=product.id,
            warehouse_id=south,
            quantity_on_hand=Decimal("10"),
            average_cost=Decimal("5"),
            created_by_id=test_actor_id,
        ))
        session.commit()

        result = revalue(product, "6", warehouse_id=north, auto_approve=True)

        assert result.revaluation.quantity == Decimal("10")
        costs = {
            item.warehouse_id: item.average_cost
            for item in session.scalars(select(InventoryItemModel)).all()
        }
        assert costs[north] == Decimal("6")
        assert costs[south] == Decimal("5")


class TestLifecycle:

    def test_approve_then_post(self, service, revalue, org_id, stocked, test_actor_id):
        revaluation = revalue(stocked, "125").revaluation
        approver = uuid4()

        approved = service.approve_revaluation(org_id, revaluation.id, approver)
        assert approved.status == RevaluationStatus.APPROVED
        assert approved.approved_by_id == approver

        result = service.post_revaluation(org_id, revaluation.id, test_actor_id)
        assert result.revaluation.status == RevaluationStatus.POSTED
        assert result.transaction.is_posted

    def test_post_requires_approval(self, service, revalue, org_id, stocked, test_actor_id):
        revaluation = revalue(stocked, "125").revaluation

        with pytest.raises(InvalidTransitionError):
            service.post_revaluation(org_id, revaluation.id, test_actor_id)

        assert service.get_revaluation(org_id, revaluation.id).status == RevaluationStatus.SUBMITTED

    def test_reject(self, service, revalue, org_id, stocked, test_actor_id):
        revaluation = revalue(stocked, "125").revaluation

        rejected = service.reject_revaluation(org_id, revaluation.id, "Quote expired", test_actor_id)

        assert rejected.status == RevaluationStatus.REJECTED
        assert rejected.rejection_reason == "Quote expired"
        with pytest.raises(InvalidTransitionError):
            service.approve_revaluation(org_id, revaluation.id, test_actor_id)

    def test_posted_is_terminal(self, service, revalue, org_id, stocked, test_actor_id):
        revaluation = revalue(stocked, "125", auto_approve=True).revaluation

        with pytest.raises(InvalidTransitionError):
            service.reject_revaluation(org_id, revaluation.id, "Too late", test_actor_id)

    def test_unknown_revaluation(self, service, org_id):
        with pytest.raises(RevaluationNotFoundError):
            service.get_revaluation(org_id, uuid4())

    def test_numbers_increment(self, revalue, stocked):
        revalue(stocked, "125")

        second = revalue(stocked, "130").revaluation

        assert second.revaluation_number == "REV-2025-0002"


class TestMarketPrice:

    def test_last_receipt_suggested(self, service, org_id, stocked, receive_purchase):
        receive_purchase(stocked, Decimal("104"), date(2025, 4, 1))
        receive_purchase(stocked, Decimal("110"), date(2025, 6, 1))

        suggestion = service.suggest_market_price(org_id, stocked.id)

        assert suggestion.current_unit_cost == Decimal("100")
        assert suggestion.suggested_unit_cost == Decimal("110")
        assert suggestion.source == "LAST_PURCHASE_PRICE"
        assert suggestion.percentage_change == Decimal("10")

    def test_no_history(self, service, org_id, stocked):
        suggestion = service.suggest_market_price(org_id, stocked.id)

        assert suggestion.suggested_unit_cost is None
        assert suggestion.source == "NO_PURCHASE_HISTORY"
