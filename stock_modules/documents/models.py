"""
Document Domain Models (``stock_modules.documents.models``).

Responsibility
--------------
Frozen value objects exchanged with callers of the document orchestrator:
the document mode, header, typed line items, and per-line / per-document
results.

Architecture
------------
Layer: **Modules** -- pure data structures, no I/O.  Raw request bodies
are turned into these types by ``stock_modules.documents.lines`` before
anything touches the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.domain.values import MovementResult, ReferenceKind


class DocumentMode(str, Enum):
    """What a multi-line document does to stock."""

    RECEIPT = "RECEIPT"
    PROJECT_ISSUE = "PROJECT_ISSUE"
    PROJECT_RETURN = "PROJECT_RETURN"
    SUPPLIER_RETURN = "SUPPLIER_RETURN"

    @property
    def reference_kind(self) -> ReferenceKind:
        return ReferenceKind(self.value)

    @property
    def requires_unit_cost(self) -> bool:
        return self is DocumentMode.RECEIPT

    @property
    def requires_supplier(self) -> bool:
        return self in (DocumentMode.RECEIPT, DocumentMode.SUPPLIER_RETURN)

    @property
    def requires_project(self) -> bool:
        return self in (DocumentMode.PROJECT_ISSUE, DocumentMode.PROJECT_RETURN)


class DocumentType(str, Enum):
    """Paper the document was booked from."""

    FACTURA = "FACTURA"
    GUIA_DESPACHO = "GUIA_DESPACHO"
    NOTA_CREDITO = "NOTA_CREDITO"
    OTRO = "OTRO"


class ProjectReturnPolicy(str, Enum):
    """How project returns are costed."""

    SIMPLE = "simple"
    BLENDED = "blended"


@dataclass(frozen=True)
class DocumentHeader:
    """Header data of a document; every field is optional at this level."""

    warehouse_code: str | None = None
    supplier_name: str | None = None
    supplier_tax_id: str | None = None
    supplier_contact_name: str | None = None
    supplier_email: str | None = None
    supplier_phone: str | None = None
    project_code: str | None = None
    document_type: DocumentType | None = None
    document_number: str | None = None
    note: str | None = None
    actor_id: str | None = None


@dataclass(frozen=True)
class LineItem:
    """
    One typed document line.

    Guarantees:
        - quantity is an int > 0.
        - unit_cost, when present, is a finite Decimal >= 0.
        - product_id or sku is set.
    """

    line_no: int
    quantity: int
    product_id: UUID | None = None
    sku: str | None = None
    unit_cost: Decimal | None = None
    # Used only when a receipt auto-creates an unknown SKU
    name: str | None = None
    category_code: str | None = None
    brand: str | None = None
    barcode: str | None = None
    min_stock: int = 0
    lot: str | None = None
    expiry_date: date | None = None

    @property
    def product_ref(self) -> str:
        return str(self.product_id) if self.product_id is not None else str(self.sku)


@dataclass(frozen=True)
class LineResult:
    line_no: int
    product_id: UUID
    sku: str
    movement: MovementResult
    created_product: bool = False


@dataclass(frozen=True)
class DocumentResult:
    """Outcome of a committed document."""

    document_id: UUID
    mode: DocumentMode | ReferenceKind
    line_results: tuple[LineResult, ...] = field(default_factory=tuple)

    @property
    def movement_ids(self) -> list[UUID]:
        return [r.movement.movement_id for r in self.line_results]

    @property
    def created_product_ids(self) -> list[UUID]:
        return [r.product_id for r in self.line_results if r.created_product]
