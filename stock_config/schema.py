"""
StockLedgerConfig schema.

Frozen dataclasses the YAML configuration is parsed into by the loader.
Policy switches are stored as their plain string values and validated at
parse time; bridges.py turns them into kernel enums.
"""

from __future__ import annotations

from dataclasses import dataclass, field

AUDIT_COST_BASES = ("unrounded", "persisted")
OUTBOUND_UNIT_COSTS = ("none", "average_cost")
PROJECT_RETURN_POLICIES = ("simple", "blended")
DOCUMENT_TYPES = ("FACTURA", "GUIA_DESPACHO", "NOTA_CREDITO", "OTRO")


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to init_engine_from_url()."""

    url: str = "sqlite+pysqlite:///:memory:"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class CostingConfig:
    """
    Costing policy variants.

    audit_cost_basis: source of a receipt's 4-place cost_after snapshot.
    outbound_unit_cost: unit_cost recorded on OUT / simple-return movements.
    """

    audit_cost_basis: str = "unrounded"
    outbound_unit_cost: str = "none"


@dataclass(frozen=True)
class DocumentsConfig:
    """Behaviour of the document orchestrators."""

    project_return_policy: str = "simple"
    auto_create_products: bool = True
    allow_negative_stock: bool = False
    default_document_type: str = "GUIA_DESPACHO"
    default_document_number: str = "SIN_NUMERO"


@dataclass(frozen=True)
class StockLedgerConfig:
    """The complete runtime configuration returned by get_active_config()."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    costing: CostingConfig = field(default_factory=CostingConfig)
    documents: DocumentsConfig = field(default_factory=DocumentsConfig)
    source: str | None = None
    checksum: str | None = None
