"""
CostingService -- the four costing operations of the stock ledger.

Responsibility:
    Every change of a product's stock goes through exactly one method here.
    Each method reads the product's (stock, average_cost) under a row lock,
    computes the next state with the pure functions in domain/costing.py,
    writes it back through ProductLedger and appends one StockMovement
    through MovementRecorder -- all inside the caller's unit of work.

Architecture position:
    Kernel > Services.  Called by stock_modules.documents; never commits.

Invariants enforced:
    - Only purchase_receipt / blended_return change average_cost.
    - Exactly one movement per successful call.
    - Non-negative stock unless consumption(allow_negative=True).

Policy variants (configurable, never structural):
    audit_cost_basis    whether a receipt's 4-place cost_after snapshot is
                        taken from the unrounded average or the persisted one.
    outbound_cost       whether OUT (and simple-return IN) movements record
                        unit_cost = NULL or the current average cost.

Failure modes:
    - ValidationError: quantity not a positive int or above MAX_QUANTITY,
      unit cost negative, not finite or not below COST_LIMIT, reference
      not a StockReference.
    - ProductNotFoundError, InsufficientStockError (from ProductLedger).
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.costing import (
    CostingOutcome,
    compute_consumption,
    compute_receipt,
    compute_simple_return,
    require_positive_quantity,
)
from stock_kernel.domain.decimals import check_cost, round_cost, to_decimal
from stock_kernel.domain.values import (
    AuditCostBasis,
    MovementKind,
    MovementResult,
    MovementSpec,
    OutboundCostPolicy,
    StockReference,
)
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService
from stock_kernel.services.movement_recorder import MovementRecorder
from stock_kernel.services.product_ledger import ProductLedger

logger = get_logger("services.costing")


class CostingService(BaseService[Product]):
    """
    Moving weighted-average costing over the product ledger.

    Usage:
        with session_scope() as session:
            costing = CostingService(session, clock)
            costing.purchase_receipt(product_id, 10, Decimal("100.00"), ref)
            costing.consumption(product_id, 3, ref)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_cost_basis: AuditCostBasis = AuditCostBasis.UNROUNDED,
        outbound_cost: OutboundCostPolicy = OutboundCostPolicy.NONE,
    ):
        super().__init__(session)
        self._ledger = ProductLedger(session)
        self._recorder = MovementRecorder(session, clock)
        self._audit_cost_basis = AuditCostBasis(audit_cost_basis)
        self._outbound_cost = OutboundCostPolicy(outbound_cost)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def purchase_receipt(
        self,
        product_id: UUID,
        quantity: int,
        unit_cost: Decimal | int | str,
        reference: StockReference,
    ) -> MovementResult:
        """
        Receive purchased stock and re-weight the average cost.

        cost_after = unit_cost when there was no stock on hand, otherwise
        (cost_before*stock_before + unit_cost*quantity) / stock_after.
        The product keeps the average rounded to 2 places.
        """
        return self._weighted_receipt(
            product_id, quantity, unit_cost, reference, "purchase_receipt_recorded"
        )

    def blended_return(
        self,
        product_id: UUID,
        quantity: int,
        unit_cost: Decimal | int | str,
        reference: StockReference,
    ) -> MovementResult:
        """
        Take returned stock back into the weighted average at ``unit_cost``.

        Same arithmetic as purchase_receipt; a separate operation so that
        call sites say which one they mean.
        """
        return self._weighted_receipt(
            product_id, quantity, unit_cost, reference, "blended_return_recorded"
        )

    def consumption(
        self,
        product_id: UUID,
        quantity: int,
        reference: StockReference,
        allow_negative: bool = False,
        outbound_cost: OutboundCostPolicy | None = None,
    ) -> MovementResult:
        """
        Issue stock out at the current average cost (which does not change).

        Raises:
            InsufficientStockError: stock_before < quantity and
                allow_negative is False.
        """
        self._check_request(quantity, reference)
        state = self._ledger.read(product_id)
        outcome = compute_consumption(state, quantity)
        self._ledger.write(
            product_id, outcome.stock_after, outcome.persisted_cost, allow_negative
        )

        policy = OutboundCostPolicy(outbound_cost) if outbound_cost is not None else self._outbound_cost
        movement_cost = state.average_cost if policy == OutboundCostPolicy.AVERAGE_COST else None

        return self._record(
            product_id,
            MovementKind.OUT,
            quantity,
            outcome,
            outcome.cost_after,
            reference,
            movement_cost,
            affects_average_cost=False,
            event="consumption_recorded",
        )

    def simple_return(
        self,
        product_id: UUID,
        quantity: int,
        reference: StockReference,
    ) -> MovementResult:
        """Put stock back without touching the average cost."""
        self._check_request(quantity, reference)
        state = self._ledger.read(product_id)
        outcome = compute_simple_return(state, quantity)
        self._ledger.write(product_id, outcome.stock_after, outcome.persisted_cost)

        movement_cost = (
            state.average_cost
            if self._outbound_cost == OutboundCostPolicy.AVERAGE_COST
            else None
        )

        return self._record(
            product_id,
            MovementKind.IN,
            quantity,
            outcome,
            outcome.cost_after,
            reference,
            movement_cost,
            affects_average_cost=False,
            event="simple_return_recorded",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_request(quantity: int, reference: StockReference) -> None:
        require_positive_quantity(quantity)
        if not isinstance(reference, StockReference):
            raise ValidationError("reference", reference, "must be a StockReference")

    def _weighted_receipt(
        self,
        product_id: UUID,
        quantity: int,
        unit_cost: Decimal | int | str,
        reference: StockReference,
        event: str,
    ) -> MovementResult:
        self._check_request(quantity, reference)
        cost = check_cost(to_decimal(unit_cost, "unit_cost"))
        if cost < 0:
            raise ValidationError("unit_cost", unit_cost, "must not be negative")
        # Costs enter the ledger at at-rest precision so replay reproduces them
        cost = check_cost(round_cost(cost))

        state = self._ledger.read(product_id)
        outcome = compute_receipt(state, quantity, cost)
        self._ledger.write(product_id, outcome.stock_after, outcome.persisted_cost)

        if self._audit_cost_basis == AuditCostBasis.PERSISTED:
            audit_after = outcome.persisted_cost
        else:
            audit_after = outcome.cost_after

        return self._record(
            product_id,
            MovementKind.IN,
            quantity,
            outcome,
            audit_after,
            reference,
            cost,
            affects_average_cost=True,
            event=event,
        )

    def _record(
        self,
        product_id: UUID,
        kind: MovementKind,
        quantity: int,
        outcome: CostingOutcome,
        audit_after: Decimal,
        reference: StockReference,
        unit_cost: Decimal | None,
        affects_average_cost: bool,
        event: str,
    ) -> MovementResult:
        movement = self._recorder.record(
            MovementSpec(
                product_id=product_id,
                kind=kind,
                quantity=quantity,
                stock_before=outcome.stock_before,
                stock_after=outcome.stock_after,
                cost_before=outcome.cost_before,
                cost_after=audit_after,
                reference=reference,
                unit_cost=unit_cost,
                affects_average_cost=affects_average_cost,
            )
        )

        logger.info(
            event,
            extra={
                "product_id": str(product_id),
                "movement_id": str(movement.id),
                "quantity": quantity,
                "stock_before": outcome.stock_before,
                "stock_after": outcome.stock_after,
                "cost_before": str(movement.cost_before),
                "cost_after": str(movement.cost_after),
                "reference_kind": reference.kind.value,
                "reference_id": str(reference.id),
            },
        )

        return MovementResult(
            product_id=product_id,
            movement_id=movement.id,
            kind=kind,
            quantity=quantity,
            stock_before=outcome.stock_before,
            stock_after=outcome.stock_after,
            cost_before=movement.cost_before,
            cost_after=movement.cost_after,
            unit_cost=movement.unit_cost,
            reference=reference,
            average_cost=outcome.persisted_cost,
            created_at=movement.created_at,
        )
