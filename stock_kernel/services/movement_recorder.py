"""
MovementRecorder -- appends rows to the stock movement ledger.

Responsibility:
    Turn a MovementSpec into one persisted StockMovement: assign its
    per-product sequence number, stamp it with the injected clock, and apply
    the at-rest rounding (unit_cost to 2 places, cost snapshots to 4).

Architecture position:
    Kernel > Services.  Called by CostingService inside the same unit of
    work as the ProductLedger write the movement documents.

Invariants enforced:
    - Append-only: the recorder only ever INSERTs.
    - seq is max(seq) + 1 for the product.  The caller holds the product
      row lock, so the number cannot be handed out twice.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.decimals import round_audit, round_cost
from stock_kernel.domain.values import MovementKind, MovementSpec
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.services.base import BaseService

logger = get_logger("services.movement_recorder")


class MovementRecorder(BaseService[StockMovement]):
    """Writes immutable StockMovement rows."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _next_seq(self, spec: MovementSpec) -> int:
        current = self.session.execute(
            select(func.coalesce(func.max(StockMovement.seq), 0)).where(
                StockMovement.product_id == spec.product_id
            )
        ).scalar_one()
        return int(current) + 1

    def record(self, spec: MovementSpec) -> StockMovement:
        """
        Persist one movement and flush.

        Returns:
            The flushed StockMovement (id and seq populated).
        """
        movement = StockMovement(
            product_id=spec.product_id,
            seq=self._next_seq(spec),
            kind=MovementKind(spec.kind).value,
            quantity=spec.quantity,
            unit_cost=round_cost(spec.unit_cost) if spec.unit_cost is not None else None,
            cost_before=round_audit(spec.cost_before),
            cost_after=round_audit(spec.cost_after),
            affects_average_cost=spec.affects_average_cost,
            stock_before=spec.stock_before,
            stock_after=spec.stock_after,
            reference_kind=spec.reference.kind.value,
            reference_id=spec.reference.id,
            created_at=self._clock.now(),
        )
        self.session.add(movement)
        self.session.flush()

        logger.debug(
            "stock_movement_recorded",
            extra={
                "movement_id": str(movement.id),
                "product_id": str(spec.product_id),
                "seq": movement.seq,
                "kind": movement.kind,
                "quantity": spec.quantity,
                "stock_before": spec.stock_before,
                "stock_after": spec.stock_after,
                "reference_kind": spec.reference.kind.value,
                "reference_id": str(spec.reference.id),
            },
        )
        return movement
