"""
Pure domain layer: decimal helper, value objects, costing arithmetic, clock.

Nothing in here touches the database.
"""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.costing import (
    CostingOutcome,
    compute_consumption,
    compute_receipt,
    compute_simple_return,
)
from stock_kernel.domain.decimals import (
    AUDIT_PLACES,
    COST_LIMIT,
    COST_PLACES,
    check_cost,
    round_audit,
    round_cost,
    round_half_up,
    to_decimal,
)
from stock_kernel.domain.values import (
    MAX_QUANTITY,
    AuditCostBasis,
    LedgerState,
    MovementKind,
    MovementResult,
    MovementSpec,
    OutboundCostPolicy,
    ReferenceKind,
    StockReference,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "CostingOutcome",
    "compute_receipt",
    "compute_consumption",
    "compute_simple_return",
    "COST_PLACES",
    "AUDIT_PLACES",
    "COST_LIMIT",
    "check_cost",
    "round_half_up",
    "round_cost",
    "round_audit",
    "to_decimal",
    "MAX_QUANTITY",
    "AuditCostBasis",
    "OutboundCostPolicy",
    "LedgerState",
    "MovementKind",
    "MovementResult",
    "MovementSpec",
    "ReferenceKind",
    "StockReference",
]
