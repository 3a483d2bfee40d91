"""
Tests for MovementSelector: history, replay verification, last issue cost
and the low-stock listing.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update

from stock_kernel.db.engine import is_postgres
from stock_kernel.domain.values import LedgerState, StockReference
from stock_kernel.exceptions import ProductNotFoundError
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import StockMovement


class TestReplay:
    """The fold of a product's movements reproduces its cached state."""

    def test_empty_history(self, movement_selector, product):
        report = movement_selector.verify_product(product.id)

        assert report.movement_count == 0
        assert report.replayed == LedgerState(stock=0, average_cost=Decimal("0"))
        assert report.matches

    def test_mixed_history_matches_cache(
        self, session, costing, movement_selector, product, receipt_ref, issue_ref, return_ref
    ):
        costing.purchase_receipt(product.id, 3, "33.33", receipt_ref)
        costing.purchase_receipt(product.id, 7, "41.17", receipt_ref)
        costing.consumption(product.id, 4, issue_ref)
        costing.simple_return(product.id, 1, return_ref)
        costing.blended_return(product.id, 2, "39.99", return_ref)
        costing.purchase_receipt(product.id, 11, "40.01", receipt_ref)
        costing.consumption(product.id, 20, issue_ref)
        session.commit()

        report = movement_selector.verify_product(product.id)

        assert report.movement_count == 7
        assert report.cached == LedgerState(stock=product.stock, average_cost=product.average_cost)
        assert report.replayed.stock == 0
        assert report.matches

    def test_replay_through_negative_stock(
        self, costing, movement_selector, product, receipt_ref, issue_ref
    ):
        costing.purchase_receipt(product.id, 2, "10", receipt_ref)
        costing.consumption(product.id, 5, issue_ref, allow_negative=True)
        costing.purchase_receipt(product.id, 6, "12.50", receipt_ref)

        assert movement_selector.replay(product.id) == LedgerState(
            stock=3, average_cost=Decimal("12.50")
        )
        assert movement_selector.verify_product(product.id).matches

    def test_cache_tamper_detected(
        self, session, costing, movement_selector, product, receipt_ref
    ):
        costing.purchase_receipt(product.id, 10, "100", receipt_ref)
        session.commit()

        session.execute(
            update(Product).where(Product.id == product.id).values(average_cost=Decimal("99.00"))
        )
        session.expire_all()

        report = movement_selector.verify_product(product.id)
        assert not report.matches
        assert report.cached.average_cost == Decimal("99.00")
        assert report.replayed.average_cost == Decimal("100.00")

    def test_trail_discontinuity_detected(
        self, session, costing, movement_selector, product, receipt_ref
    ):
        if is_postgres():
            pytest.skip("immutability triggers block direct movement updates")
        costing.purchase_receipt(product.id, 10, "100", receipt_ref)
        costing.purchase_receipt(product.id, 5, "100", receipt_ref)
        session.commit()

        # Core UPDATE bypasses the ORM listeners; SQLite has no triggers
        session.execute(
            update(StockMovement)
            .where(StockMovement.product_id == product.id, StockMovement.seq == 2)
            .values(stock_before=7)
        )

        report = movement_selector.verify_product(product.id)
        assert report.discontinuities == (2,)
        assert not report.matches

    def test_unknown_product(self, movement_selector):
        with pytest.raises(ProductNotFoundError):
            movement_selector.verify_product(uuid4())


class TestLastIssueCost:
    def test_none_without_issues(self, movement_selector, product):
        assert movement_selector.last_issue_cost(product.id) is None

    def test_falls_back_to_cost_after(
        self, costing, movement_selector, product, receipt_ref, issue_ref
    ):
        costing.purchase_receipt(product.id, 10, "25.50", receipt_ref)
        costing.consumption(product.id, 2, issue_ref)

        assert movement_selector.last_issue_cost(product.id) == Decimal("25.50")

    def test_most_recent_issue_wins(
        self, session, deterministic_clock, costing, movement_selector, product, receipt_ref
    ):
        first = StockReference(kind="PROJECT_ISSUE", id=uuid4())
        second = StockReference(kind="PROJECT_ISSUE", id=uuid4())

        costing.purchase_receipt(product.id, 10, "10", receipt_ref)
        costing.consumption(product.id, 2, first)
        costing.purchase_receipt(product.id, 8, "20", receipt_ref)
        costing.consumption(product.id, 2, second)

        assert movement_selector.last_issue_cost(product.id) == Decimal("15.00")
        assert movement_selector.last_issue_cost(product.id, [first.id]) == Decimal("10.00")
        assert movement_selector.last_issue_cost(product.id, []) is None

    def test_supplier_returns_ignored(self, costing, movement_selector, product, receipt_ref):
        supplier_return = StockReference(kind="SUPPLIER_RETURN", id=uuid4())
        costing.purchase_receipt(product.id, 10, "10", receipt_ref)
        costing.consumption(product.id, 2, supplier_return)

        assert movement_selector.last_issue_cost(product.id) is None


class TestLowStock:
    def test_lists_products_below_minimum(
        self, costing, movement_selector, create_product, receipt_ref
    ):
        low = create_product("LOW-1", min_stock=5)
        ok = create_product("OK-1", min_stock=5)
        create_product("NOMIN-1")
        costing.purchase_receipt(low.id, 2, "1", receipt_ref)
        costing.purchase_receipt(ok.id, 5, "1", receipt_ref)

        rows = movement_selector.low_stock()

        assert [r.sku for r in rows] == ["LOW-1"]
        assert rows[0].shortfall == 3
        assert low.is_below_minimum
        assert not ok.is_below_minimum


class TestCount:
    def test_counts_all_and_per_product(
        self, costing, movement_selector, create_product, receipt_ref
    ):
        a = create_product("A")
        b = create_product("B")
        costing.purchase_receipt(a.id, 1, "1", receipt_ref)
        costing.purchase_receipt(a.id, 1, "1", receipt_ref)
        costing.purchase_receipt(b.id, 1, "1", receipt_ref)

        assert movement_selector.count() == 3
        assert movement_selector.count(a.id) == 2
