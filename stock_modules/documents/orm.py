"""
Module: stock_modules.documents.orm
Responsibility: SQLAlchemy ORM persistence for document headers and lines.
    A document is the reference_id every stock movement it produced points
    back to.
Architecture position: Modules > Documents > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).

Invariants enforced:
    - (document_id, line_no) is unique; line_no is 1-based.
    - Header and lines are written in the same unit of work as the
      movements, so a rolled-back document leaves no header behind.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import ExactNumeric, TrackedBase, UUIDString


class StockDocumentModel(TrackedBase):
    """
    Header of a receipt, project issue/return, supplier return or adjustment.

    Guarantees:
        - kind is a ReferenceKind value; movements of this document carry
          reference_kind == kind and reference_id == id.
    """

    __tablename__ = "stock_documents"

    __table_args__ = (
        Index("idx_stock_document_kind", "kind"),
        Index("idx_stock_document_project", "project_id"),
        Index("idx_stock_document_supplier", "supplier_id"),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=True,
    )
    supplier_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=True,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=True,
    )

    actor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    line_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<StockDocument {self.id}: {self.kind} {self.document_type} {self.document_number}>"


class StockDocumentLineModel(TrackedBase):
    """One line of a document and the movement it produced."""

    __tablename__ = "stock_document_lines"

    __table_args__ = (
        UniqueConstraint("document_id", "line_no", name="uq_stock_document_line_no"),
        Index("idx_stock_document_line_product", "product_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_documents.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(ExactNumeric(18, 2), nullable=True)

    # Lot tracking
    lot: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    movement_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_movements.id"), nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StockDocumentLine {self.document_id}#{self.line_no}: {self.quantity}>"
