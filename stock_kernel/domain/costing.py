"""
Costing -- Pure moving weighted-average arithmetic.

Responsibility:
    Compute the next LedgerState for each costing operation, without I/O.
    CostingService reads state, calls one of these functions, writes the
    resulting state and records the movement.  MovementSelector.replay uses
    the same functions to fold a product's history.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Only compute_receipt changes the average cost.
    - compute_consumption / compute_simple_return return the average cost
      object they were given, untouched.

Receipt formula:
    cost_after = unit_cost                                   if stock_before <= 0
               = (cost_before*stock_before + unit_cost*quantity) / stock_after
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from stock_kernel.domain.decimals import round_cost
from stock_kernel.domain.values import MAX_QUANTITY, LedgerState
from stock_kernel.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class CostingOutcome:
    """
    Before/after of one costing step.

    ``cost_after`` is the unrounded weighted average; ``persisted_cost`` is
    what gets written to the product (2 places).  For non-receipt steps both
    equal ``cost_before``.
    """

    stock_before: int
    stock_after: int
    cost_before: Decimal
    cost_after: Decimal
    persisted_cost: Decimal

    @property
    def state_after(self) -> LedgerState:
        return LedgerState(stock=self.stock_after, average_cost=self.persisted_cost)


def require_positive_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity", quantity, "must be an integer")
    if quantity <= 0:
        raise ValidationError("quantity", quantity, "must be greater than zero")
    if quantity > MAX_QUANTITY:
        raise ValidationError("quantity", quantity, f"must not exceed {MAX_QUANTITY}")


def _check_stock_after(stock_after: int, quantity: int) -> int:
    if abs(stock_after) > MAX_QUANTITY:
        raise ValidationError(
            "quantity", quantity, f"would take stock to {stock_after}, past {MAX_QUANTITY}"
        )
    return stock_after


def compute_receipt(state: LedgerState, quantity: int, unit_cost: Decimal) -> CostingOutcome:
    """Weighted-average step for a purchase receipt (or blended return)."""
    require_positive_quantity(quantity)
    if unit_cost < 0:
        raise ValidationError("unit_cost", unit_cost, "must not be negative")

    stock_before = state.stock
    cost_before = state.average_cost
    stock_after = _check_stock_after(stock_before + quantity, quantity)

    if stock_before <= 0:
        # No units on hand to weight against
        cost_after = unit_cost
    else:
        total_before = cost_before * stock_before
        total_new = unit_cost * quantity
        cost_after = (total_before + total_new) / stock_after

    return CostingOutcome(
        stock_before=stock_before,
        stock_after=stock_after,
        cost_before=cost_before,
        cost_after=cost_after,
        persisted_cost=round_cost(cost_after),
    )


def compute_consumption(state: LedgerState, quantity: int) -> CostingOutcome:
    """
    Stock leaves at the current average cost.

    Does not check for negative stock; that is ProductLedger.write's job so
    the allow_negative decision stays with the caller.
    """
    require_positive_quantity(quantity)
    return CostingOutcome(
        stock_before=state.stock,
        stock_after=_check_stock_after(state.stock - quantity, quantity),
        cost_before=state.average_cost,
        cost_after=state.average_cost,
        persisted_cost=state.average_cost,
    )


def compute_simple_return(state: LedgerState, quantity: int) -> CostingOutcome:
    """Stock comes back without touching the average cost."""
    require_positive_quantity(quantity)
    return CostingOutcome(
        stock_before=state.stock,
        stock_after=_check_stock_after(state.stock + quantity, quantity),
        cost_before=state.average_cost,
        cost_after=state.average_cost,
        persisted_cost=state.average_cost,
    )
