"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock movement table is the sole source of historical truth: a product's
(stock, average_cost) is only a cache of the fold over its movements.  If a
movement could be edited or deleted, the cache could no longer be verified
and the weighted-average history would be lost.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications made through SQLAlchemy
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (PostgreSQL triggers)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule                                   | Why
----------------|----------------------------------------|----------------------------
StockMovement   | ALWAYS immutable (no UPDATE/DELETE)    | Audit trail of every change
Product         | No DELETE while movements reference it | Movements need their product

===============================================================================
USAGE
===============================================================================

Called once at startup (and by the test suite):

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event, func, select
from sqlalchemy.orm import Session

from stock_kernel.exceptions import ImmutabilityViolationError, ProductReferencedError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_product_deletion_before_flush(session, flush_context, instances):
    """
    Block deletion of products that stock movements reference.

    Runs in SessionEvents.before_flush, before the flush plan is finalized;
    mapper-level before_delete fires too late to stop the DELETE cleanly.
    """
    from stock_kernel.models.product import Product
    from stock_kernel.models.stock_movement import StockMovement

    for obj in list(session.deleted):
        if not isinstance(obj, Product):
            continue

        with session.no_autoflush:
            referenced = session.execute(
                select(func.count(StockMovement.id)).where(
                    StockMovement.product_id == obj.id
                )
            ).scalar_one()

        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Product",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "product_has_movements",
                },
            )
            raise ProductReferencedError(product_id=str(obj.id))


def _check_stock_movement_immutability(mapper, connection, target):
    """Prevent any update to StockMovement records."""
    from stock_kernel.models.stock_movement import StockMovement

    if not isinstance(target, StockMovement):
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements are append-only and cannot be modified",
    )


def _check_stock_movement_delete(mapper, connection, target):
    """Prevent deletion of StockMovement records."""
    from stock_kernel.models.stock_movement import StockMovement

    if not isinstance(target, StockMovement):
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after the models are importable but before any database
    operations begin.  Repeated calls are harmless.
    """
    from stock_kernel.models.stock_movement import StockMovement

    if not event.contains(Session, "before_flush", _check_product_deletion_before_flush):
        event.listen(Session, "before_flush", _check_product_deletion_before_flush)
    if not event.contains(StockMovement, "before_update", _check_stock_movement_immutability):
        event.listen(StockMovement, "before_update", _check_stock_movement_immutability)
    if not event.contains(StockMovement, "before_delete", _check_stock_movement_delete):
        event.listen(StockMovement, "before_delete", _check_stock_movement_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally tamper with movements
    to verify detection (e.g. replay verification).
    """
    from stock_kernel.models.stock_movement import StockMovement

    _safe_remove_listener(Session, "before_flush", _check_product_deletion_before_flush)
    _safe_remove_listener(StockMovement, "before_update", _check_stock_movement_immutability)
    _safe_remove_listener(StockMovement, "before_delete", _check_stock_movement_delete)
