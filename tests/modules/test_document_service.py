"""
Tests for DocumentService -- multi-line stock documents as atomic units.

Covers:
- Receipts, project issues, project returns (simple and blended) and
  supplier returns routed through the costing kernel
- All-or-nothing behaviour when any line fails
- Reprocessing the same document applies it twice
- Header resolution: warehouse, supplier upsert, project, defaults
- Auto-creation of unknown SKUs on receipts
- Stock-count adjustments
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from stock_kernel.domain.values import MovementKind, ReferenceKind
from stock_kernel.exceptions import (
    DocumentError,
    InsufficientStockError,
    PersistenceError,
    ProductNotFoundError,
    ProjectNotFoundError,
    SupplierRequiredError,
    ValidationError,
    WarehouseNotFoundError,
)
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import StockMovement
from stock_modules.catalog.orm import SupplierModel
from stock_modules.documents.models import DocumentHeader, DocumentMode, LineItem
from stock_modules.documents.orm import StockDocumentLineModel, StockDocumentModel

SUPPLIER = {"supplier_name": "Ferreteria Sur", "supplier_tax_id": "76.123.456-7"}


def _count(session, model) -> int:
    return len(session.execute(select(model)).scalars().all())


def _reload(session, product) -> Product:
    session.expire_all()
    return session.get(Product, product.id)


@pytest.fixture
def stocked(document_service, warehouse, product):
    """Product with 15 units at an average of 110.00."""
    document_service.receive(
        [
            {"product_id": str(product.id), "quantity": 10, "unit_cost": "100.00"},
            {"product_id": str(product.id), "quantity": 5, "unit_cost": "130.00"},
        ],
        SUPPLIER,
    )
    return product


class TestReceipt:
    def test_receipt_updates_ledger(self, session, document_service, warehouse, product):
        result = document_service.receive(
            [{"sku": "CEM-25", "quantity": "10", "unit_cost": "100"}],
            SUPPLIER,
        )

        stored = _reload(session, product)
        assert stored.stock == 10
        assert stored.average_cost == Decimal("100.00")
        assert result.mode is DocumentMode.RECEIPT
        assert len(result.line_results) == 1
        assert result.line_results[0].movement.kind == MovementKind.IN

    def test_movements_reference_document(
        self, session, document_service, movement_selector, warehouse, product
    ):
        result = document_service.receive(
            [
                {"sku": "CEM-25", "quantity": 1, "unit_cost": "10"},
                {"sku": "CEM-25", "quantity": 2, "unit_cost": "20"},
            ],
            SUPPLIER,
        )

        lines = movement_selector.for_reference(ReferenceKind.RECEIPT, result.document_id)
        assert sorted(m.movement_id for m in lines) == sorted(result.movement_ids)

    def test_document_and_lines_stored(self, session, document_service, warehouse, product):
        result = document_service.receive(
            [{"sku": "CEM-25", "quantity": 4, "unit_cost": "12.5", "lot": "L-9", "expiry_date": "2027-03-01"}],
            {**SUPPLIER, "document_type": "factura", "document_number": "F-1001", "actor_id": "bodega1"},
        )

        document = session.get(StockDocumentModel, result.document_id)
        assert document.kind == "RECEIPT"
        assert document.document_type == "FACTURA"
        assert document.document_number == "F-1001"
        assert document.warehouse_id == warehouse.id
        assert document.actor_id == "bodega1"
        assert document.line_count == 1

        line = session.execute(select(StockDocumentLineModel)).scalar_one()
        assert line.line_no == 1
        assert line.lot == "L-9"
        assert line.expiry_date.isoformat() == "2027-03-01"
        assert line.unit_cost == Decimal("12.50")
        assert line.movement_id == result.movement_ids[0]

    def test_header_defaults(self, session, document_service, warehouse, product):
        result = document_service.receive(
            [{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}], SUPPLIER
        )

        document = session.get(StockDocumentModel, result.document_id)
        assert document.document_type == "GUIA_DESPACHO"
        assert document.document_number == "SIN_NUMERO"

    def test_configured_defaults(self, session, document_service_factory, warehouse, product):
        service = document_service_factory(
            default_document_type="FACTURA", default_document_number="S/N"
        )
        result = service.receive([{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}], SUPPLIER)

        document = session.get(StockDocumentModel, result.document_id)
        assert document.document_type == "FACTURA"
        assert document.document_number == "S/N"

    def test_unit_cost_required(self, session, document_service, warehouse, product):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive([{"sku": "CEM-25", "quantity": 1}], SUPPLIER)

        assert exc_info.value.line_no == 1
        assert isinstance(exc_info.value.cause, ValidationError)

    def test_typed_lines_and_header(self, session, document_service, warehouse, product):
        document_service.receive(
            [LineItem(line_no=7, quantity=3, product_id=product.id, unit_cost=Decimal("9"))],
            DocumentHeader(supplier_name="Acme"),
        )

        assert _reload(session, product).stock == 3


class TestAtomicity:
    """A failing line leaves no trace of the whole document."""

    def test_unknown_product_on_line_two(self, session, document_service, warehouse, product):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [
                    {"product_id": str(product.id), "quantity": 10, "unit_cost": "100"},
                    {"product_id": str(uuid4()), "quantity": 1, "unit_cost": "5"},
                ],
                SUPPLIER,
            )

        error = exc_info.value
        assert error.line_no == 2
        assert error.cause_code == ProductNotFoundError.code
        assert error.http_status == 404

        stored = _reload(session, product)
        assert stored.stock == 0
        assert stored.average_cost == Decimal("0")
        assert _count(session, StockMovement) == 0
        assert _count(session, StockDocumentModel) == 0
        assert _count(session, StockDocumentLineModel) == 0
        assert _count(session, SupplierModel) == 0

    def test_insufficient_stock_on_last_line(
        self, session, document_service, project, stocked, create_product
    ):
        other = create_product("ARENA-1")

        with pytest.raises(DocumentError) as exc_info:
            document_service.issue_to_project(
                "PRJ-100",
                [
                    {"sku": "CEM-25", "quantity": 3},
                    {"sku": "ARENA-1", "quantity": 1},
                ],
            )

        error = exc_info.value
        assert error.line_no == 2
        assert isinstance(error.cause, InsufficientStockError)
        assert "Current stock: 0" in str(error)
        assert _reload(session, stocked).stock == 15
        assert _reload(session, other).stock == 0
        assert _count(session, StockMovement) == 2

    def test_bad_quantity_rejected_before_anything_runs(
        self, session, document_service, warehouse, product
    ):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [
                    {"sku": "CEM-25", "quantity": 1, "unit_cost": "1"},
                    {"sku": "CEM-25", "quantity": 1, "unit_cost": "1"},
                    {"sku": "CEM-25", "quantity": "NaN", "unit_cost": "1"},
                ],
                SUPPLIER,
            )

        assert exc_info.value.line_no == 3
        assert _count(session, StockMovement) == 0

    @pytest.mark.parametrize("quantity", [0, -2, "1.5", "abc", None, "1e30", 2**31])
    def test_invalid_quantities(self, session, document_service, warehouse, product, quantity):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [{"sku": "CEM-25", "quantity": quantity, "unit_cost": "1"}], SUPPLIER
            )
        assert exc_info.value.cause_code == ValidationError.code
        assert exc_info.value.line_no == 1

    @pytest.mark.parametrize("unit_cost", ["1e30", "100000000000000", "-1e30"])
    def test_oversized_unit_cost(self, session, document_service, warehouse, product, unit_cost):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [
                    {"sku": "CEM-25", "quantity": 1, "unit_cost": "10"},
                    {"sku": "CEM-25", "quantity": 1, "unit_cost": unit_cost},
                ],
                SUPPLIER,
            )

        error = exc_info.value
        assert error.line_no == 2
        assert error.cause_code == ValidationError.code
        assert error.cause.field == "unit_cost"
        assert _reload(session, product).stock == 0
        assert _count(session, StockMovement) == 0

    def test_largest_unit_cost_is_stored_exactly(self, session, document_service, warehouse, product):
        document_service.receive(
            [{"sku": "CEM-25", "quantity": 1, "unit_cost": "99999999999999.99"}], SUPPLIER
        )

        assert _reload(session, product).average_cost == Decimal("99999999999999.99")

    def test_stock_past_integer_range(self, session, document_service, warehouse, product):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [
                    {"sku": "CEM-25", "quantity": 2**31 - 1, "unit_cost": "1"},
                    {"sku": "CEM-25", "quantity": 1, "unit_cost": "1"},
                ],
                SUPPLIER,
            )

        assert exc_info.value.line_no == 2
        assert exc_info.value.cause_code == ValidationError.code
        assert _reload(session, product).stock == 0

    def test_commit_failure_is_persistence_error(
        self, session, document_service, warehouse, product, monkeypatch
    ):
        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", failing_commit)

        with pytest.raises(PersistenceError) as exc_info:
            document_service.receive(
                [{"sku": "CEM-25", "quantity": 5, "unit_cost": "10"}], SUPPLIER
            )
        monkeypatch.undo()

        assert exc_info.value.http_status == 500
        assert _reload(session, product).stock == 0
        assert _count(session, StockMovement) == 0

    def test_rejection_logged(self, captured_logs, document_service, warehouse, product):
        with pytest.raises(DocumentError):
            document_service.receive(
                [{"product_id": str(uuid4()), "quantity": 1, "unit_cost": "1"}], SUPPLIER
            )

        rejected = [r for r in captured_logs() if r["message"] == "document_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["line_no"] == 1
        assert rejected[0]["error_code"] == "PRODUCT_NOT_FOUND"


class TestReprocessing:
    def test_same_document_twice_doubles_stock(
        self, session, document_service, warehouse, product
    ):
        lines = [{"sku": "CEM-25", "quantity": 10, "unit_cost": "100"}]

        first = document_service.receive(lines, SUPPLIER)
        second = document_service.receive(lines, SUPPLIER)

        assert first.document_id != second.document_id
        assert _reload(session, product).stock == 20
        assert _count(session, StockMovement) == 2
        assert _count(session, StockDocumentModel) == 2
        # Same supplier tax id: one supplier row
        assert _count(session, SupplierModel) == 1


class TestHeaderResolution:
    def test_no_primary_warehouse(self, document_service, product):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}], SUPPLIER
            )
        assert exc_info.value.line_no is None
        assert isinstance(exc_info.value.cause, WarehouseNotFoundError)

    def test_explicit_warehouse(self, session, catalog, document_service, warehouse, product):
        catalog.create_warehouse("BOD-02", "Bodega obra")
        session.commit()

        result = document_service.receive(
            [{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}],
            {**SUPPLIER, "warehouse_code": "BOD-02"},
        )

        document = session.get(StockDocumentModel, result.document_id)
        assert document.warehouse_id != warehouse.id

    def test_unknown_warehouse(self, document_service, warehouse, product):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}],
                {**SUPPLIER, "warehouse_code": "NOPE"},
            )
        assert exc_info.value.cause.warehouse_code == "NOPE"

    def test_supplier_required(self, document_service, warehouse, product):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive([{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}])
        assert isinstance(exc_info.value.cause, SupplierRequiredError)

    def test_supplier_upserted_by_tax_id(self, session, document_service, warehouse, product):
        lines = [{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}]
        document_service.receive(lines, {"supplier_tax_id": "99.999.999-9"})
        document_service.receive(
            lines,
            {
                "supplier_tax_id": "99.999.999-9",
                "supplier_name": "Distribuidora Norte",
                "supplier_email": "ventas@norte.cl",
            },
        )

        supplier = session.execute(select(SupplierModel)).scalar_one()
        assert supplier.name == "Distribuidora Norte"
        assert supplier.email == "ventas@norte.cl"

    def test_unknown_header_field(self, document_service, warehouse, product):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}],
                {**SUPPLIER, "proveedor": "x"},
            )
        assert exc_info.value.line_no is None

    def test_unknown_project(self, document_service, warehouse, stocked):
        with pytest.raises(DocumentError) as exc_info:
            document_service.issue_to_project("PRJ-404", [{"sku": "CEM-25", "quantity": 1}])
        assert isinstance(exc_info.value.cause, ProjectNotFoundError)

    def test_empty_document(self, document_service, warehouse):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive([], SUPPLIER)
        assert exc_info.value.line_no is None

    def test_unknown_mode(self, document_service):
        with pytest.raises(DocumentError):
            document_service.process_document([{"sku": "X", "quantity": 1}], "TRANSFER")


class TestAutoCreate:
    def test_unknown_sku_created_on_receipt(self, session, document_service, warehouse):
        result = document_service.receive(
            [
                {
                    "sku": "FIE-8",
                    "name": "Fierro 8mm",
                    "category_code": "ACERO",
                    "brand": "Cap",
                    "min_stock": "20",
                    "quantity": 50,
                    "unit_cost": "3200",
                }
            ],
            SUPPLIER,
        )

        assert len(result.created_product_ids) == 1
        created = session.get(Product, result.created_product_ids[0])
        assert created.sku == "FIE-8"
        assert created.stock == 50
        assert created.average_cost == Decimal("3200.00")
        assert created.min_stock == 20

    def test_created_product_rolled_back_with_document(
        self, session, catalog, document_service, warehouse
    ):
        with pytest.raises(DocumentError):
            document_service.receive(
                [
                    {"sku": "NEW-1", "name": "Nuevo", "category_code": "GEN", "quantity": 1, "unit_cost": "1"},
                    {"product_id": str(uuid4()), "quantity": 1, "unit_cost": "1"},
                ],
                SUPPLIER,
            )
        session.expire_all()
        assert catalog.find_product_by_sku("NEW-1") is None

    def test_name_and_category_required(self, document_service, warehouse):
        with pytest.raises(DocumentError) as exc_info:
            document_service.receive(
                [{"sku": "FIE-8", "quantity": 1, "unit_cost": "1"}], SUPPLIER
            )
        assert exc_info.value.cause_code == ValidationError.code

    def test_disabled(self, document_service_factory, warehouse):
        service = document_service_factory(auto_create_products=False)
        with pytest.raises(DocumentError) as exc_info:
            service.receive(
                [{"sku": "FIE-8", "name": "Fierro", "category_code": "ACERO", "quantity": 1, "unit_cost": "1"}],
                SUPPLIER,
            )
        assert exc_info.value.cause_code == ProductNotFoundError.code

    def test_never_on_issue(self, document_service, project, warehouse):
        with pytest.raises(DocumentError) as exc_info:
            document_service.issue_to_project(
                "PRJ-100",
                [{"sku": "FIE-8", "name": "Fierro", "category_code": "ACERO", "quantity": 1}],
            )
        assert exc_info.value.cause_code == ProductNotFoundError.code


class TestProjectMovements:
    def test_issue_keeps_average(self, session, document_service, project, stocked):
        result = document_service.issue_to_project("PRJ-100", [{"sku": "CEM-25", "quantity": 3}])

        stored = _reload(session, stocked)
        assert stored.stock == 12
        assert stored.average_cost == Decimal("110.00")
        movement = result.line_results[0].movement
        assert movement.kind == MovementKind.OUT
        assert movement.reference.kind == ReferenceKind.PROJECT_ISSUE
        assert movement.unit_cost is None

    def test_issue_records_average_when_configured(
        self, session, document_service_factory, project, stocked
    ):
        service = document_service_factory(outbound_cost="average_cost")
        result = service.issue_to_project("PRJ-100", [{"sku": "CEM-25", "quantity": 1}])

        assert result.line_results[0].movement.unit_cost == Decimal("110.00")
        line = session.execute(select(StockDocumentLineModel).where(
            StockDocumentLineModel.document_id == result.document_id
        )).scalar_one()
        assert line.unit_cost == Decimal("110.00")

    def test_negative_stock_setting(self, session, document_service_factory, project, stocked):
        service = document_service_factory(allow_negative_stock=True)
        service.issue_to_project("PRJ-100", [{"sku": "CEM-25", "quantity": 20}])

        assert _reload(session, stocked).stock == -5

    def test_simple_return(self, session, document_service, project, stocked):
        document_service.issue_to_project("PRJ-100", [{"sku": "CEM-25", "quantity": 3}])
        result = document_service.return_from_project("PRJ-100", [{"sku": "CEM-25", "quantity": 3}])

        stored = _reload(session, stocked)
        assert stored.stock == 15
        assert stored.average_cost == Decimal("110.00")
        assert result.line_results[0].movement.reference.kind == ReferenceKind.PROJECT_RETURN

    def test_blended_return_at_last_issue_cost(
        self, session, document_service_factory, warehouse, project, product
    ):
        service = document_service_factory(project_return_policy="blended")
        service.receive([{"sku": "CEM-25", "quantity": 10, "unit_cost": "100"}], SUPPLIER)
        service.issue_to_project("PRJ-100", [{"sku": "CEM-25", "quantity": 4}])
        service.receive([{"sku": "CEM-25", "quantity": 10, "unit_cost": "200"}], SUPPLIER)
        assert _reload(session, product).average_cost == Decimal("162.50")

        result = service.return_from_project("PRJ-100", [{"sku": "CEM-25", "quantity": 2}])

        stored = _reload(session, product)
        assert stored.stock == 18
        # (162.50 * 16 + 100.00 * 2) / 18
        assert stored.average_cost == Decimal("155.56")
        assert result.line_results[0].movement.unit_cost == Decimal("100.00")

    def test_blended_return_explicit_cost(
        self, session, document_service_factory, project, stocked
    ):
        service = document_service_factory(project_return_policy="blended")
        service.return_from_project(
            "PRJ-100", [{"sku": "CEM-25", "quantity": 5, "unit_cost": "50"}]
        )

        # (110 * 15 + 50 * 5) / 20
        assert _reload(session, stocked).average_cost == Decimal("95.00")

    def test_blended_return_without_issue_uses_average(
        self, session, catalog, document_service_factory, project, stocked
    ):
        catalog.create_project("PRJ-200", "Otra obra")
        session.commit()
        service = document_service_factory(project_return_policy="blended")
        service.issue_to_project("PRJ-100", [{"sku": "CEM-25", "quantity": 1}])

        service.return_from_project("PRJ-200", [{"sku": "CEM-25", "quantity": 1}])

        assert _reload(session, stocked).average_cost == Decimal("110.00")

    def test_supplier_return(self, session, document_service, stocked):
        result = document_service.return_to_supplier(
            [{"sku": "CEM-25", "quantity": 5}], SUPPLIER
        )

        stored = _reload(session, stocked)
        assert stored.stock == 10
        assert stored.average_cost == Decimal("110.00")
        assert result.line_results[0].movement.reference.kind == ReferenceKind.SUPPLIER_RETURN

    def test_supplier_return_cannot_overdraw(self, session, document_service, stocked):
        with pytest.raises(DocumentError) as exc_info:
            document_service.return_to_supplier([{"sku": "CEM-25", "quantity": 16}], SUPPLIER)

        assert exc_info.value.cause_code == InsufficientStockError.code
        assert _reload(session, stocked).stock == 15

    def test_replay_matches_after_documents(
        self, document_service_factory, movement_selector, project, stocked
    ):
        service = document_service_factory(project_return_policy="blended")
        service.issue_to_project("PRJ-100", [{"sku": "CEM-25", "quantity": 7}])
        service.return_from_project("PRJ-100", [{"sku": "CEM-25", "quantity": 2}])
        service.receive([{"sku": "CEM-25", "quantity": 3, "unit_cost": "121.13"}], SUPPLIER)

        assert movement_selector.verify_product(stocked.id).matches


class TestAdjustStock:
    def test_count_above_stock(self, session, document_service, movement_selector, stocked):
        result = document_service.adjust_stock("CEM-25", 18, note="conteo anual")

        stored = _reload(session, stocked)
        assert stored.stock == 18
        assert stored.average_cost == Decimal("110.00")
        movement = result.line_results[0].movement
        assert movement.kind == MovementKind.IN
        assert movement.quantity == 3
        assert result.mode is ReferenceKind.ADJUSTMENT
        assert movement.reference.kind == ReferenceKind.ADJUSTMENT
        assert movement_selector.verify_product(stocked.id).matches

    def test_count_below_stock(self, session, document_service, stocked):
        result = document_service.adjust_stock(stocked.id, 11)

        assert _reload(session, stocked).stock == 11
        assert result.line_results[0].movement.kind == MovementKind.OUT
        assert result.line_results[0].movement.quantity == 4
        document = session.get(StockDocumentModel, result.document_id)
        assert document.kind == "ADJUSTMENT"
        assert document.document_type == "OTRO"

    def test_count_to_zero(self, session, document_service, stocked):
        document_service.adjust_stock("CEM-25", 0)
        assert _reload(session, stocked).stock == 0

    def test_matching_count_records_nothing(self, session, document_service, stocked):
        assert document_service.adjust_stock("CEM-25", 15) is None
        assert _count(session, StockMovement) == 2

    def test_no_warehouse_needed(self, session, document_service, product):
        document_service.adjust_stock("CEM-25", 4)
        assert _reload(session, product).stock == 4

    @pytest.mark.parametrize("count", [-1, 2.5, "7", True, 2**31])
    def test_invalid_count(self, document_service, stocked, count):
        with pytest.raises(DocumentError) as exc_info:
            document_service.adjust_stock("CEM-25", count)
        assert exc_info.value.line_no == 1
        assert exc_info.value.cause_code == ValidationError.code

    def test_unknown_product(self, document_service):
        with pytest.raises(DocumentError) as exc_info:
            document_service.adjust_stock("NOPE", 1)
        assert exc_info.value.cause_code == ProductNotFoundError.code


class TestLogging:
    def test_document_context_on_records(self, captured_logs, document_service, warehouse, product):
        result = document_service.receive(
            [{"sku": "CEM-25", "quantity": 1, "unit_cost": "1"}],
            {**SUPPLIER, "actor_id": "u-17"},
        )

        records = captured_logs()
        processed = [r for r in records if r["message"] == "document_processed"]
        assert processed[0]["document_id"] == str(result.document_id)
        assert processed[0]["actor_id"] == "u-17"
        receipts = [r for r in records if r["message"] == "purchase_receipt_recorded"]
        assert receipts[0]["document_id"] == str(result.document_id)
