"""SQLAlchemy ORM models for the stock kernel."""

from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import MovementKind, ReferenceKind, StockMovement

__all__ = [
    "Product",
    "StockMovement",
    "MovementKind",
    "ReferenceKind",
]
