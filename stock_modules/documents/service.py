"""
Document Service (``stock_modules.documents.service``).

Responsibility
--------------
Runs multi-line stock documents -- receipts, project issues, project
returns, supplier returns -- and stock-count adjustments as single atomic
units of work.  This is a **thin glue layer**: it resolves headers and
products through ``CatalogService`` and sends every line through exactly
one ``CostingService`` operation.  It contains no costing arithmetic.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. ``parse_header`` / ``parse_lines`` turn untyped input into typed values.
2. ``CatalogService`` resolves warehouse, supplier, project and products
   (auto-creating unknown SKUs on receipts when enabled).
3. ``CostingService`` applies each line and records its movement.
4. Header and lines are stored as ``StockDocumentModel`` /
   ``StockDocumentLineModel``; every movement's reference_id is the
   document id.

Invariants
----------
- All or nothing: with ``auto_commit=True`` (the default) the service
  commits on success and rolls back on any failure.  With
  ``auto_commit=False`` the caller's ``session_scope`` owns the boundary.
- One costing operation per line, in line order.
- No retries and no idempotency: running the same document twice applies
  it twice.

Failure Modes
-------------
- ``DocumentError`` wraps every domain failure.  ``line_no`` is the 1-based
  line that failed, or None for header / whole-document problems.
- ``PersistenceError`` when the final commit fails.

Usage::

    service = DocumentService(session, clock=clock)
    result = service.process_document(
        [{"sku": "CEM-25", "quantity": 10, "unit_cost": "4500"}],
        DocumentMode.RECEIPT,
        header={"supplier_tax_id": "76.123.456-7", "supplier_name": "Acme"},
    )
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import ReferenceKind, StockReference
from stock_kernel.exceptions import (
    DocumentError,
    PersistenceError,
    ProductNotFoundError,
    StockKernelError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.product import Product
from stock_kernel.selectors.movement_selector import MovementSelector
from stock_kernel.services.costing_service import CostingService
from stock_kernel.services.product_ledger import ProductLedger
from stock_modules.catalog.service import CatalogService
from stock_modules.documents.config import DocumentSettings
from stock_modules.documents.lines import parse_header, parse_lines, parse_quantity
from stock_modules.documents.models import (
    DocumentHeader,
    DocumentMode,
    DocumentResult,
    DocumentType,
    LineItem,
    LineResult,
    ProjectReturnPolicy,
)
from stock_modules.documents.orm import StockDocumentLineModel, StockDocumentModel

logger = get_logger("modules.documents.service")

T = TypeVar("T")


class DocumentService:
    """
    Orchestrates stock documents through the catalog and the costing kernel.

    Contract
    --------
    Every public method either applies the whole document and returns its
    result, or applies nothing and raises ``DocumentError``.

    Non-goals
    ---------
    - Does NOT compute costs -- ``CostingService`` does.
    - Does NOT deduplicate documents.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: DocumentSettings | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or DocumentSettings()
        self._auto_commit = auto_commit

        self._catalog = CatalogService(session)
        self._costing = CostingService(
            session,
            self._clock,
            audit_cost_basis=self._settings.audit_cost_basis,
            outbound_cost=self._settings.outbound_cost,
        )
        self._movements = MovementSelector(session)

    # =========================================================================
    # Public API
    # =========================================================================

    def process_document(
        self,
        lines: Sequence[Mapping[str, Any] | LineItem],
        mode: DocumentMode | str,
        header: Mapping[str, Any] | DocumentHeader | None = None,
    ) -> DocumentResult:
        """
        Apply a multi-line document atomically.

        Args:
            lines: Raw line mappings (or LineItems).  Keys: product_id or sku,
                quantity, unit_cost (receipts), and for auto-created products
                name / category_code / brand / barcode / min_stock; lot and
                expiry_date are stored on the document line.
            mode: RECEIPT, PROJECT_ISSUE, PROJECT_RETURN or SUPPLIER_RETURN.
            header: Warehouse, supplier, project and paperwork details.

        Returns:
            DocumentResult with one LineResult per line, in order.

        Raises:
            DocumentError: Nothing was applied; see ``line_no`` and ``cause``.
            PersistenceError: The commit itself failed.
        """
        try:
            mode = DocumentMode(mode)
        except ValueError:
            raise DocumentError(ValidationError("mode", mode, "unknown document mode")) from None

        return self._atomically(lambda: self._process(lines, mode, header))

    def receive(self, lines, header=None) -> DocumentResult:
        """Purchase receipt ("ingreso") from a supplier."""
        return self.process_document(lines, DocumentMode.RECEIPT, header)

    def issue_to_project(self, project_code: str, lines, header=None) -> DocumentResult:
        return self.process_document(
            lines, DocumentMode.PROJECT_ISSUE, self._with_project(header, project_code)
        )

    def return_from_project(self, project_code: str, lines, header=None) -> DocumentResult:
        return self.process_document(
            lines, DocumentMode.PROJECT_RETURN, self._with_project(header, project_code)
        )

    def return_to_supplier(self, lines, header=None) -> DocumentResult:
        return self.process_document(lines, DocumentMode.SUPPLIER_RETURN, header)

    def adjust_stock(
        self,
        product: UUID | str,
        counted_quantity: int,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> DocumentResult | None:
        """
        Bring a product's stock to a physical count.

        The difference is recorded as one ADJUSTMENT movement: IN without
        touching the average cost when the count is higher, OUT at the
        average cost when it is lower.

        Args:
            product: Product id or SKU.
            counted_quantity: Units physically on hand (>= 0).

        Returns:
            The adjustment document, or None when the count already matches
            (nothing is recorded).

        Raises:
            DocumentError: line_no 1, wrapping the validation or lookup error.
        """
        return self._atomically(
            lambda: self._adjust(product, counted_quantity, note, actor_id)
        )

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    def _atomically(self, work: Callable[[], T]) -> T:
        try:
            result = work()
            if self._auto_commit:
                self._session.commit()
            return result
        except SQLAlchemyError as exc:
            if self._auto_commit:
                self._session.rollback()
            logger.error("document_commit_failed", exc_info=True)
            raise PersistenceError("commit", str(exc)) from exc
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

    # =========================================================================
    # Documents
    # =========================================================================

    def _process(
        self,
        raw_lines: Sequence[Mapping[str, Any] | LineItem],
        mode: DocumentMode,
        raw_header: Mapping[str, Any] | DocumentHeader | None,
    ) -> DocumentResult:
        try:
            header = parse_header(
                raw_header,
                self._settings.default_document_type.value,
                self._settings.default_document_number,
            )
            items = parse_lines(raw_lines, require_unit_cost=mode.requires_unit_cost)
            document = self._open_document(mode, header, len(items))
        except StockKernelError as exc:
            self._reject(mode, exc, getattr(exc, "line_no", None))

        with LogContext.bind(
            document_id=str(document.id),
            reference_kind=mode.value,
            actor_id=header.actor_id,
        ):
            logger.info(
                "document_started",
                extra={"mode": mode.value, "line_count": len(items)},
            )
            reference = StockReference(kind=mode.reference_kind, id=document.id)
            issue_documents = self._project_issue_documents(document) if mode is DocumentMode.PROJECT_RETURN else None

            results: list[LineResult] = []
            for item in items:
                try:
                    results.append(
                        self._apply_line(document, item, mode, reference, issue_documents)
                    )
                except StockKernelError as exc:
                    self._reject(mode, exc, item.line_no)
                except SQLAlchemyError as exc:
                    self._reject(mode, PersistenceError("flush", str(exc)), item.line_no, exc)

            logger.info(
                "document_processed",
                extra={"mode": mode.value, "line_count": len(results)},
            )

        return DocumentResult(document_id=document.id, mode=mode, line_results=tuple(results))

    def _reject(
        self,
        mode: DocumentMode | ReferenceKind,
        cause: StockKernelError,
        line_no: int | None,
        origin: BaseException | None = None,
    ) -> None:
        logger.warning(
            "document_rejected",
            extra={
                "mode": mode.value,
                "line_no": line_no,
                "error_code": cause.code,
                "error": str(cause),
            },
        )
        raise DocumentError(cause, line_no) from (origin or cause)

    def _open_document(
        self,
        mode: DocumentMode | ReferenceKind,
        header: DocumentHeader,
        line_count: int,
    ) -> StockDocumentModel:
        """
        Resolve the header against the catalog and store it.

        Adjustments (``ReferenceKind.ADJUSTMENT``) need neither a warehouse
        nor a counterparty, but keep an explicit warehouse when given.
        """
        is_document = isinstance(mode, DocumentMode)
        warehouse_id = None
        if is_document or header.warehouse_code is not None:
            warehouse_id = self._catalog.resolve_warehouse(header.warehouse_code).id

        supplier_id = None
        project_id = None
        if is_document and mode.requires_supplier:
            supplier = self._catalog.upsert_supplier(
                name=header.supplier_name,
                tax_id=header.supplier_tax_id,
                contact_name=header.supplier_contact_name,
                email=header.supplier_email,
                phone=header.supplier_phone,
            )
            supplier_id = supplier.id
        if is_document and mode.requires_project:
            project_id = self._catalog.resolve_project(header.project_code).id

        document = StockDocumentModel(
            id=uuid4(),
            kind=mode.value,
            document_type=DocumentType(header.document_type).value,
            document_number=header.document_number,
            note=header.note,
            warehouse_id=warehouse_id,
            supplier_id=supplier_id,
            project_id=project_id,
            actor_id=header.actor_id,
            line_count=line_count,
        )
        self._session.add(document)
        self._session.flush()
        return document

    def _project_issue_documents(self, document: StockDocumentModel) -> list[UUID]:
        stmt = select(StockDocumentModel.id).where(
            StockDocumentModel.kind == DocumentMode.PROJECT_ISSUE.value,
            StockDocumentModel.project_id == document.project_id,
        )
        return list(self._session.execute(stmt).scalars())

    def _resolve_line_product(self, item: LineItem, mode: DocumentMode) -> tuple[Product, bool]:
        try:
            return self._catalog.resolve_product(item.product_id, item.sku), False
        except ProductNotFoundError:
            can_create = (
                mode is DocumentMode.RECEIPT
                and self._settings.auto_create_products
                and item.product_id is None
            )
            if not can_create:
                raise

        if item.name is None or item.category_code is None:
            raise ValidationError(
                "product",
                item.sku,
                "unknown SKU; name and category_code are required to create it",
                item.line_no,
            )
        product = self._catalog.create_product(
            sku=item.sku,
            name=item.name,
            category_code=item.category_code,
            barcode=item.barcode,
            brand=item.brand,
            min_stock=item.min_stock,
        )
        return product, True

    def _apply_line(
        self,
        document: StockDocumentModel,
        item: LineItem,
        mode: DocumentMode,
        reference: StockReference,
        issue_documents: list[UUID] | None,
    ) -> LineResult:
        product, created = self._resolve_line_product(item, mode)

        if mode is DocumentMode.RECEIPT:
            movement = self._costing.purchase_receipt(
                product.id, item.quantity, item.unit_cost, reference
            )
        elif mode in (DocumentMode.PROJECT_ISSUE, DocumentMode.SUPPLIER_RETURN):
            movement = self._costing.consumption(
                product.id,
                item.quantity,
                reference,
                allow_negative=self._settings.allow_negative_stock,
            )
        elif self._settings.project_return_policy is ProjectReturnPolicy.BLENDED:
            movement = self._costing.blended_return(
                product.id,
                item.quantity,
                self._return_cost(product, item, issue_documents),
                reference,
            )
        else:
            movement = self._costing.simple_return(product.id, item.quantity, reference)

        self._session.add(
            StockDocumentLineModel(
                document_id=document.id,
                line_no=item.line_no,
                product_id=product.id,
                quantity=item.quantity,
                unit_cost=movement.unit_cost,
                lot=item.lot,
                expiry_date=item.expiry_date,
                movement_id=movement.movement_id,
            )
        )
        self._session.flush()

        return LineResult(
            line_no=item.line_no,
            product_id=product.id,
            sku=product.sku,
            movement=movement,
            created_product=created,
        )

    def _return_cost(
        self,
        product: Product,
        item: LineItem,
        issue_documents: list[UUID] | None,
    ) -> Decimal:
        """Cost a blended project return re-enters the average at."""
        if item.unit_cost is not None:
            return item.unit_cost
        cost = self._movements.last_issue_cost(product.id, issue_documents or [])
        if cost is None:
            cost = ProductLedger(self._session).read(product.id).average_cost
        return cost

    @staticmethod
    def _with_project(
        header: Mapping[str, Any] | DocumentHeader | None,
        project_code: str,
    ) -> Mapping[str, Any] | DocumentHeader:
        if header is None:
            return {"project_code": project_code}
        if isinstance(header, DocumentHeader):
            return replace(header, project_code=project_code)
        return {**header, "project_code": project_code}

    # =========================================================================
    # Adjustments
    # =========================================================================

    def _adjust(
        self,
        product_ref: UUID | str,
        counted_quantity: int,
        note: str | None,
        actor_id: str | None,
    ) -> DocumentResult | None:
        try:
            if isinstance(counted_quantity, bool) or not isinstance(counted_quantity, int):
                raise ValidationError("counted_quantity", counted_quantity, "must be an integer", 1)
            if counted_quantity < 0:
                raise ValidationError("counted_quantity", counted_quantity, "must not be negative", 1)

            if isinstance(product_ref, UUID):
                product = self._catalog.resolve_product(product_id=product_ref)
            else:
                product = self._catalog.resolve_product(sku=product_ref)
            state = ProductLedger(self._session).read(product.id)
        except StockKernelError as exc:
            self._reject(ReferenceKind.ADJUSTMENT, exc, 1)

        difference = counted_quantity - state.stock
        if difference == 0:
            logger.info(
                "stock_adjustment_skipped",
                extra={"product_id": str(product.id), "stock": state.stock},
            )
            return None

        header = DocumentHeader(
            document_type=DocumentType.OTRO,
            document_number=self._settings.default_document_number,
            note=note,
            actor_id=actor_id,
        )
        try:
            document = self._open_document(ReferenceKind.ADJUSTMENT, header, 1)
        except StockKernelError as exc:
            self._reject(ReferenceKind.ADJUSTMENT, exc, None)

        reference = StockReference(kind=ReferenceKind.ADJUSTMENT, id=document.id)
        with LogContext.bind(
            document_id=str(document.id),
            reference_kind=ReferenceKind.ADJUSTMENT.value,
            actor_id=actor_id,
        ):
            try:
                if difference > 0:
                    movement = self._costing.simple_return(product.id, difference, reference)
                else:
                    movement = self._costing.consumption(
                        product.id, parse_quantity(-difference), reference
                    )
            except StockKernelError as exc:
                self._reject(ReferenceKind.ADJUSTMENT, exc, 1)

            self._session.add(
                StockDocumentLineModel(
                    document_id=document.id,
                    line_no=1,
                    product_id=product.id,
                    quantity=abs(difference),
                    unit_cost=movement.unit_cost,
                    movement_id=movement.movement_id,
                )
            )
            self._session.flush()

            logger.info(
                "stock_adjusted",
                extra={
                    "product_id": str(product.id),
                    "stock_before": state.stock,
                    "counted_quantity": counted_quantity,
                },
            )

        line = LineResult(line_no=1, product_id=product.id, sku=product.sku, movement=movement)
        return DocumentResult(
            document_id=document.id,
            mode=ReferenceKind.ADJUSTMENT,
            line_results=(line,),
        )
