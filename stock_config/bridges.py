"""
Bridges from parsed configuration to kernel inputs.

The kernel never sees StockLedgerConfig; these helpers turn it into the
plain arguments kernel functions and services take.
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from stock_config.schema import StockLedgerConfig
from stock_kernel.db.engine import init_engine_from_url
from stock_kernel.domain.values import AuditCostBasis, OutboundCostPolicy
from stock_kernel.logging_config import configure_logging


def audit_cost_basis(config: StockLedgerConfig) -> AuditCostBasis:
    return AuditCostBasis(config.costing.audit_cost_basis)


def outbound_cost_policy(config: StockLedgerConfig) -> OutboundCostPolicy:
    return OutboundCostPolicy(config.costing.outbound_unit_cost)


def init_engine(config: StockLedgerConfig) -> Engine:
    """Configure logging at the configured level and build the engine."""
    configure_logging(level=config.logging.level)
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
