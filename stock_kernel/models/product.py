"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for catalog products and their costing cache
    (stock on hand, moving weighted-average cost).
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - sku is unique and non-null (uq_product_sku); barcode is unique when set.
    - stock >= 0 unless a consumption explicitly allowed negative stock
      (enforced by ProductLedger.write, not by a CHECK constraint).
    - average_cost is stored at 2 decimal places.
    - A product referenced by stock movements is never deleted (FK RESTRICT
      on stock_movements.product_id plus the before_flush guard in
      db/immutability.py).

Audit relevance:
    stock and average_cost are a derived cache.  They are written only by
    the costing services and must equal the replay of the product's
    StockMovement rows (MovementSelector.verify_product).
"""

from decimal import Decimal

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import ExactNumeric, TrackedBase


class Product(TrackedBase):
    """
    A stock-keeping unit with its running costing state.

    Contract:
        Descriptive fields (name, brand, category_code, location, min_stock)
        belong to the catalog CRUD layer.  stock and average_cost belong to
        the costing engine and MUST only be changed through CostingService.

    Guarantees:
        - New products start at stock = 0, average_cost = 0.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        UniqueConstraint("barcode", name="uq_product_barcode"),
        Index("idx_product_category", "category_code"),
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False)

    barcode: Mapped[str | None] = mapped_column(String(64), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)

    category_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Shelf / bin location inside the warehouse
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)

    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Costing cache - written only by the costing services
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    average_cost: Mapped[Decimal] = mapped_column(
        ExactNumeric(18, 2),
        nullable=False,
        default=Decimal("0"),
    )

    @property
    def is_below_minimum(self) -> bool:
        return self.stock < self.min_stock

    def __repr__(self) -> str:
        return f"<Product {self.sku}: stock={self.stock} avg={self.average_cost}>"
