"""
ProductLedger -- locked read and guarded write of a product's costing cache.

Responsibility:
    The storage side of (stock, average_cost): read it under a row lock at
    the start of a costing step, write the new pair at the end.

Architecture position:
    Kernel > Services.  Used only by CostingService.

Invariants enforced:
    - Reads take SELECT ... FOR UPDATE so two concurrent units of work on
      the same product cannot both see the same stock_before.
    - Writes refuse stock < 0 unless the caller passed allow_negative.

Failure modes:
    - ProductNotFoundError when the product id does not exist.
    - InsufficientStockError when the write would leave stock negative.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.values import LedgerState
from stock_kernel.exceptions import InsufficientStockError, ProductNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService

logger = get_logger("services.product_ledger")


class ProductLedger(BaseService[Product]):
    """Row-locked access to Product.stock / Product.average_cost."""

    def lock(self, product_id: UUID) -> Product:
        """
        Load the product with a row lock, refreshing any cached copy.

        Raises:
            ProductNotFoundError: If the product doesn't exist.
        """
        stmt = (
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        product = self.session.execute(stmt).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def read(self, product_id: UUID) -> LedgerState:
        """Current (stock, average_cost) of a product, read under a row lock."""
        product = self.lock(product_id)
        return LedgerState(
            stock=product.stock,
            average_cost=Decimal(product.average_cost),
        )

    def write(
        self,
        product_id: UUID,
        stock: int,
        average_cost: Decimal,
        allow_negative: bool = False,
    ) -> None:
        """
        Store the new (stock, average_cost) pair.

        Preconditions:
            - The product was read in this unit of work (it is in the
              session's identity map and locked).

        Raises:
            InsufficientStockError: stock < 0 and allow_negative is False.
        """
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))

        if stock < 0 and not allow_negative:
            requested = product.stock - stock
            logger.warning(
                "insufficient_stock_rejected",
                extra={
                    "product_id": str(product_id),
                    "sku": product.sku,
                    "current_stock": product.stock,
                    "requested": requested,
                },
            )
            raise InsufficientStockError(
                product_id=str(product_id),
                current_stock=product.stock,
                requested=requested,
                sku=product.sku,
            )

        product.stock = stock
        product.average_cost = average_cost
        self.session.flush()
