"""
Module: stock_kernel.models.stock_movement
Responsibility: ORM persistence for the append-only stock movement ledger.
    One row per change of a product's stock, carrying the before/after
    snapshot of the average cost.
Architecture position: Kernel > Models.  May import from db/base.py and the movement
    enums in domain/values.py.  MUST NOT import from services/, selectors/,
    or outer layers.

Invariants enforced:
    - Append-only: no UPDATE, no DELETE (db/immutability.py ORM listeners,
      db/triggers.py on PostgreSQL).
    - quantity > 0 (ck_stock_movement_quantity_positive); direction is
      carried by kind.
    - (product_id, seq) is unique; seq is the 1-based position of the
      movement in its product's history, assigned under the product row lock.
    - product_id references products.id with ON DELETE RESTRICT.

Audit relevance:
    Replaying a product's movements in seq order reproduces its cached
    (stock, average_cost).  unit_cost is stored at 2 decimals; cost_before
    and cost_after at 4.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, ExactNumeric, UUIDString
from stock_kernel.domain.values import MovementKind, ReferenceKind


class StockMovement(Base):
    """
    One immutable entry in the stock audit trail.

    Contract:
        Created only by MovementRecorder, inside the same unit of work as the
        product state write it documents.  Never modified afterwards.

    Guarantees:
        - stock_after = stock_before + quantity for IN,
          stock_before - quantity for OUT.
        - cost_before == cost_after unless affects_average_cost is set.
        - unit_cost is NULL for OUT movements unless the caller asked for the
          average cost to be recorded.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("product_id", "seq", name="uq_stock_movement_product_seq"),
        CheckConstraint("quantity > 0", name="ck_stock_movement_quantity_positive"),
        CheckConstraint("kind IN ('IN', 'OUT')", name="ck_stock_movement_kind"),
        # Query: a document's movements
        Index("idx_stock_movement_reference", "reference_kind", "reference_id"),
        # Query: movements in a time range
        Index("idx_stock_movement_created_at", "created_at"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Position within the product's history
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    kind: Mapped[MovementKind] = mapped_column(String(3), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_cost: Mapped[Decimal | None] = mapped_column(ExactNumeric(18, 2), nullable=True)

    cost_before: Mapped[Decimal] = mapped_column(ExactNumeric(18, 4), nullable=False)

    cost_after: Mapped[Decimal] = mapped_column(ExactNumeric(18, 4), nullable=False)

    # True only for purchase receipts and blended returns
    affects_average_cost: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    stock_before: Mapped[int] = mapped_column(Integer, nullable=False)

    stock_after: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_kind: Mapped[ReferenceKind] = mapped_column(String(20), nullable=False)

    reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # From the injected Clock, never a server default
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.id}: product={self.product_id} #{self.seq} "
            f"{self.kind} {self.quantity} ({self.reference_kind})>"
        )
