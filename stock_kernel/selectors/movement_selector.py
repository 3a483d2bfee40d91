"""
Module: stock_kernel.selectors.movement_selector
Responsibility: Read-only queries over the stock movement ledger: a product's
    history, a document's movements, the cost of the last project issue,
    the replay fold that rebuilds (stock, average_cost), verification of the
    product cache against that fold, and the low-stock listing.
Architecture position: Kernel > Selectors.  May import from models/,
    selectors/base.py and domain/ (pure costing functions for replay).

Invariants enforced:
    - Cache equals fold: verify_product() recomputes a product's
      (stock, average_cost) from its movements in seq order and compares it
      with the cached values on the product row.

Audit relevance:
    The movement table is the source of truth.  A mismatch reported by
    verify_product() means the cache or the trail was changed outside the
    costing services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.costing import (
    compute_consumption,
    compute_receipt,
    compute_simple_return,
)
from stock_kernel.domain.decimals import round_cost
from stock_kernel.domain.values import LedgerState, MovementKind, ReferenceKind
from stock_kernel.exceptions import ProductNotFoundError
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class MovementLine:
    """One movement as reported to readers."""

    movement_id: UUID
    product_id: UUID
    seq: int
    kind: MovementKind
    quantity: int
    unit_cost: Decimal | None
    cost_before: Decimal
    cost_after: Decimal
    stock_before: int
    stock_after: int
    affects_average_cost: bool
    reference_kind: ReferenceKind
    reference_id: UUID
    created_at: datetime


@dataclass(frozen=True)
class ReplayReport:
    """Result of comparing a product's cache with the replay of its movements."""

    product_id: UUID
    cached: LedgerState
    replayed: LedgerState
    movement_count: int
    # seq numbers whose stock_before does not continue the previous movement
    discontinuities: tuple[int, ...] = field(default_factory=tuple)

    @property
    def matches(self) -> bool:
        return (
            self.cached.stock == self.replayed.stock
            and self.cached.average_cost == self.replayed.average_cost
            and not self.discontinuities
        )


@dataclass(frozen=True)
class LowStockRow:
    product_id: UUID
    sku: str
    name: str
    stock: int
    min_stock: int

    @property
    def shortfall(self) -> int:
        return self.min_stock - self.stock


class MovementSelector(BaseSelector[StockMovement]):
    """
    Selector for the stock movement ledger.

    Movements of a product are always returned in seq order, which is the
    order they were applied in.
    """

    def _to_dto(self, movement: StockMovement) -> MovementLine:
        return MovementLine(
            movement_id=movement.id,
            product_id=movement.product_id,
            seq=movement.seq,
            kind=MovementKind(movement.kind),
            quantity=movement.quantity,
            unit_cost=movement.unit_cost,
            cost_before=movement.cost_before,
            cost_after=movement.cost_after,
            stock_before=movement.stock_before,
            stock_after=movement.stock_after,
            affects_average_cost=movement.affects_average_cost,
            reference_kind=ReferenceKind(movement.reference_kind),
            reference_id=movement.reference_id,
            created_at=movement.created_at,
        )

    def history(self, product_id: UUID) -> list[MovementLine]:
        """All movements of a product, oldest first."""
        stmt = (
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.seq)
        )
        return [self._to_dto(m) for m in self.session.execute(stmt).scalars()]

    def for_reference(
        self,
        reference_kind: ReferenceKind,
        reference_id: UUID,
    ) -> list[MovementLine]:
        """Movements produced by one document."""
        stmt = (
            select(StockMovement)
            .where(
                StockMovement.reference_kind == ReferenceKind(reference_kind).value,
                StockMovement.reference_id == reference_id,
            )
            .order_by(StockMovement.created_at, StockMovement.product_id, StockMovement.seq)
        )
        return [self._to_dto(m) for m in self.session.execute(stmt).scalars()]

    def count(self, product_id: UUID | None = None) -> int:
        stmt = select(func.count(StockMovement.id))
        if product_id is not None:
            stmt = stmt.where(StockMovement.product_id == product_id)
        return self.session.execute(stmt).scalar_one()

    def last_issue_cost(
        self,
        product_id: UUID,
        reference_ids: list[UUID] | None = None,
    ) -> Decimal | None:
        """
        Unit cost of the most recent project issue of a product.

        Args:
            product_id: The product.
            reference_ids: Restrict to issues made by these documents
                (e.g. the issue documents of one project).  None means any.

        Returns:
            The recorded unit_cost of that OUT movement, or the average cost
            it left at when no unit cost was recorded.  None if the product
            was never issued (within the given documents).
        """
        stmt = select(StockMovement).where(
            StockMovement.product_id == product_id,
            StockMovement.kind == MovementKind.OUT.value,
            StockMovement.reference_kind == ReferenceKind.PROJECT_ISSUE.value,
        )
        if reference_ids is not None:
            if not reference_ids:
                return None
            stmt = stmt.where(StockMovement.reference_id.in_(reference_ids))
        stmt = stmt.order_by(StockMovement.seq.desc()).limit(1)

        movement = self.session.execute(stmt).scalar_one_or_none()
        if movement is None:
            return None
        if movement.unit_cost is not None:
            return round_cost(Decimal(movement.unit_cost))
        return round_cost(Decimal(movement.cost_after))

    def replay(self, product_id: UUID) -> LedgerState:
        """Fold a product's movements left to right into (stock, average_cost)."""
        state, _, _ = self._fold(product_id)
        return state

    def verify_product(self, product_id: UUID) -> ReplayReport:
        """
        Compare a product's cached (stock, average_cost) with the replay.

        Raises:
            ProductNotFoundError: If the product doesn't exist.
        """
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))

        replayed, count, breaks = self._fold(product_id)
        return ReplayReport(
            product_id=product_id,
            cached=LedgerState(
                stock=product.stock,
                average_cost=Decimal(product.average_cost),
            ),
            replayed=replayed,
            movement_count=count,
            discontinuities=tuple(breaks),
        )

    def low_stock(self) -> list[LowStockRow]:
        """Products whose stock is below their configured minimum."""
        stmt = (
            select(Product)
            .where(Product.stock < Product.min_stock)
            .order_by(Product.sku)
        )
        return [
            LowStockRow(
                product_id=p.id,
                sku=p.sku,
                name=p.name,
                stock=p.stock,
                min_stock=p.min_stock,
            )
            for p in self.session.execute(stmt).scalars()
        ]

    def _fold(self, product_id: UUID) -> tuple[LedgerState, int, list[int]]:
        state = LedgerState(stock=0, average_cost=Decimal("0"))
        count = 0
        breaks: list[int] = []

        for movement in self.history(product_id):
            count += 1
            if movement.stock_before != state.stock:
                breaks.append(movement.seq)

            if movement.kind == MovementKind.OUT:
                outcome = compute_consumption(state, movement.quantity)
            elif movement.affects_average_cost and movement.unit_cost is not None:
                outcome = compute_receipt(
                    state, movement.quantity, Decimal(movement.unit_cost)
                )
            else:
                outcome = compute_simple_return(state, movement.quantity)
            state = outcome.state_after

        return state, count, breaks
