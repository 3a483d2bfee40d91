"""
stock_config -- single public entrypoint for stock ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and below
    ``stock_modules``.  The kernel MUST NEVER import from ``stock_config``;
    ``stock_config.bridges`` translates the parsed settings into kernel
    inputs (engine URL, costing policy enums).

Resolution order:
    1. the ``path`` argument
    2. the file named by ``STOCK_LEDGER_CONFIG``
    3. the packaged ``defaults.yaml``
    ``DATABASE_URL`` then overrides ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the named configuration file does not exist.
    - ``ValueError`` -- unknown section or policy value.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``stock_config_loaded`` log entry with the source file and checksum.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_config
from stock_config.schema import (
    CostingConfig,
    DatabaseConfig,
    DocumentsConfig,
    LoggingConfig,
    StockLedgerConfig,
)
from stock_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "STOCK_LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_config(path: str | Path | None = None) -> StockLedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Explicit YAML file.  Defaults to ``$STOCK_LEDGER_CONFIG`` or
            the packaged defaults.

    Returns:
        A frozen ``StockLedgerConfig``.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    path = Path(path)

    config = parse_config(load_yaml_file(path), source=str(path))

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    _logger.info(
        "stock_config_loaded",
        extra={
            "source": config.source,
            "checksum": config.checksum,
            "audit_cost_basis": config.costing.audit_cost_basis,
            "outbound_unit_cost": config.costing.outbound_unit_cost,
            "project_return_policy": config.documents.project_return_policy,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "StockLedgerConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "CostingConfig",
    "DocumentsConfig",
]
