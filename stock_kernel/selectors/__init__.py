"""Read-only selectors over the stock ledger."""

from stock_kernel.selectors.movement_selector import (
    LowStockRow,
    MovementLine,
    MovementSelector,
    ReplayReport,
)

__all__ = [
    "MovementSelector",
    "MovementLine",
    "ReplayReport",
    "LowStockRow",
]
