"""Kernel services: flush-only writers, the caller owns the transaction."""

from stock_kernel.services.costing_service import CostingService
from stock_kernel.services.movement_recorder import MovementRecorder
from stock_kernel.services.product_ledger import ProductLedger

__all__ = [
    "CostingService",
    "MovementRecorder",
    "ProductLedger",
]
