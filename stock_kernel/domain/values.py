"""
Values -- Immutable value objects shared by the costing services.

Responsibility:
    The typed vocabulary of the ledger: movement direction and origin,
    policy switches for the two documented variants, the (stock,
    average_cost) pair, and the request/result records exchanged between
    CostingService, MovementRecorder and the document orchestrators.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by models/stock_movement.py for the enum types.

Invariants enforced:
    - StockReference always carries a ReferenceKind and a UUID.
    - MovementSpec.quantity > 0; direction lives in kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

# Largest quantity or stock level the INTEGER columns hold
MAX_QUANTITY = 2**31 - 1


class MovementKind(str, Enum):
    """Direction of a stock movement."""

    IN = "IN"
    OUT = "OUT"


class ReferenceKind(str, Enum):
    """Kind of document a movement originates from."""

    RECEIPT = "RECEIPT"
    PROJECT_ISSUE = "PROJECT_ISSUE"
    PROJECT_RETURN = "PROJECT_RETURN"
    SUPPLIER_RETURN = "SUPPLIER_RETURN"
    ADJUSTMENT = "ADJUSTMENT"


class AuditCostBasis(str, Enum):
    """
    Which value the 4-decimal cost_after snapshot of a receipt is taken from.

    UNROUNDED: the in-memory weighted average before the 2-decimal rounding.
    PERSISTED: the 2-decimal value actually written to the product.
    """

    UNROUNDED = "unrounded"
    PERSISTED = "persisted"


class OutboundCostPolicy(str, Enum):
    """What an OUT movement records as its unit_cost."""

    NONE = "none"
    AVERAGE_COST = "average_cost"


@dataclass(frozen=True, slots=True)
class LedgerState:
    """A product's costing cache: units on hand and moving average unit cost."""

    stock: int
    average_cost: Decimal


@dataclass(frozen=True, slots=True)
class StockReference:
    """The document a movement belongs to."""

    kind: ReferenceKind
    id: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ReferenceKind):
            object.__setattr__(self, "kind", ReferenceKind(self.kind))


@dataclass(frozen=True, slots=True)
class MovementSpec:
    """
    Everything MovementRecorder needs to append one movement.

    Costs are given at full precision; the recorder applies the at-rest
    rounding (unit_cost to 2 places, cost_before/cost_after to 4).
    """

    product_id: UUID
    kind: MovementKind
    quantity: int
    stock_before: int
    stock_after: int
    cost_before: Decimal
    cost_after: Decimal
    reference: StockReference
    unit_cost: Decimal | None = None
    affects_average_cost: bool = False

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Movement quantity must be positive, got {self.quantity}")


@dataclass(frozen=True, slots=True)
class MovementResult:
    """Outcome of one costing operation, as reported to callers."""

    product_id: UUID
    movement_id: UUID
    kind: MovementKind
    quantity: int
    stock_before: int
    stock_after: int
    cost_before: Decimal
    cost_after: Decimal
    unit_cost: Decimal | None
    reference: StockReference
    average_cost: Decimal
    created_at: datetime | None = None

    @property
    def changed_average_cost(self) -> bool:
        return self.cost_before != self.cost_after
