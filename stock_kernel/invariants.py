"""
Kernel Invariants Contract.

These invariants are structural law for the stock ledger.  No configuration
flag may switch them off; configuration only chooses *which* policy variant
applies (audit snapshot basis, outbound unit cost, return blending).

This module exists solely to declare the invariants explicitly.  Enforcement
is distributed across ProductLedger, MovementRecorder, CostingService, the
immutability listeners/triggers and the document orchestrator.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """Product stock never drops below zero unless the consumption call
    explicitly passed allow_negative=True. Enforced by ProductLedger.write."""

    AVERAGE_COST_ON_RECEIPT_ONLY = "average_cost_on_receipt_only"
    """Only purchase receipts (and their blended-return alias) change
    average_cost. Consumption and simple returns leave it bit-identical."""

    ONE_MOVEMENT_PER_CHANGE = "one_movement_per_change"
    """Every product state write is accompanied by exactly one
    StockMovement in the same unit of work. Enforced by CostingService."""

    MOVEMENT_IMMUTABILITY = "movement_immutability"
    """Stock movements are append-only. No UPDATE or DELETE. Enforced by
    ORM listeners (stock_kernel.db.immutability) and PostgreSQL triggers
    (stock_kernel.db.triggers)."""

    CACHE_EQUALS_FOLD = "cache_equals_fold"
    """Product (stock, average_cost) equals the left-to-right replay of the
    product's movements. Verifiable via MovementSelector.verify_product."""

    DOCUMENT_ATOMICITY = "document_atomicity"
    """A multi-line document commits all of its lines or none of them.
    Enforced by the unit of work DocumentService wraps around each document."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_config",
    "stock_modules",
)
