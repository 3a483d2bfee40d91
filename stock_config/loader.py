"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``stock_config.schema`` dataclasses.  The single public entry point for
runtime config is ``stock_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown policy values raise ``ValueError`` naming the key and the
  allowed values; nothing falls back silently.
* Unknown top-level sections raise ``ValueError``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed configuration.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types / unknown choices -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    AUDIT_COST_BASES,
    DOCUMENT_TYPES,
    OUTBOUND_UNIT_COSTS,
    PROJECT_RETURN_POLICIES,
    CostingConfig,
    DatabaseConfig,
    DocumentsConfig,
    LoggingConfig,
    StockLedgerConfig,
)

_SECTIONS = ("database", "logging", "costing", "documents")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def _choice(section: str, key: str, value: Any, allowed: tuple[str, ...]) -> str:
    if not isinstance(value, str) or value not in allowed:
        raise ValueError(
            f"{section}.{key} must be one of {', '.join(allowed)}; got {value!r}"
        )
    return value


def _flag(section: str, key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{section}.{key} must be true or false; got {value!r}")
    return value


def _int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{section}.{key} must be a non-negative integer; got {value!r}")
    return value


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration section {name!r} must be a mapping")
    return raw


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    default = DatabaseConfig()
    return DatabaseConfig(
        url=str(data.get("url", default.url)),
        echo=_flag("database", "echo", data.get("echo", default.echo)),
        pool_size=_int("database", "pool_size", data.get("pool_size", default.pool_size)),
        max_overflow=_int("database", "max_overflow", data.get("max_overflow", default.max_overflow)),
        pool_timeout=_int("database", "pool_timeout", data.get("pool_timeout", default.pool_timeout)),
        pool_recycle=_int("database", "pool_recycle", data.get("pool_recycle", default.pool_recycle)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", LoggingConfig.level)).upper()
    return LoggingConfig(level=_choice("logging", "level", level, _LOG_LEVELS))


def parse_costing(data: dict[str, Any]) -> CostingConfig:
    default = CostingConfig()
    return CostingConfig(
        audit_cost_basis=_choice(
            "costing", "audit_cost_basis",
            data.get("audit_cost_basis", default.audit_cost_basis),
            AUDIT_COST_BASES,
        ),
        outbound_unit_cost=_choice(
            "costing", "outbound_unit_cost",
            data.get("outbound_unit_cost", default.outbound_unit_cost),
            OUTBOUND_UNIT_COSTS,
        ),
    )


def parse_documents(data: dict[str, Any]) -> DocumentsConfig:
    default = DocumentsConfig()
    number = data.get("default_document_number", default.default_document_number)
    if not isinstance(number, str) or not number.strip():
        raise ValueError(
            f"documents.default_document_number must be a non-empty string; got {number!r}"
        )
    return DocumentsConfig(
        project_return_policy=_choice(
            "documents", "project_return_policy",
            data.get("project_return_policy", default.project_return_policy),
            PROJECT_RETURN_POLICIES,
        ),
        auto_create_products=_flag(
            "documents", "auto_create_products",
            data.get("auto_create_products", default.auto_create_products),
        ),
        allow_negative_stock=_flag(
            "documents", "allow_negative_stock",
            data.get("allow_negative_stock", default.allow_negative_stock),
        ),
        default_document_type=_choice(
            "documents", "default_document_type",
            data.get("default_document_type", default.default_document_type),
            DOCUMENT_TYPES,
        ),
        default_document_number=number,
    )


def parse_config(data: dict[str, Any], source: str | None = None) -> StockLedgerConfig:
    """
    Parse a configuration mapping into a StockLedgerConfig.

    Missing sections and keys take their schema defaults.
    """
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration sections: {', '.join(unknown)}")

    config = StockLedgerConfig(
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
        costing=parse_costing(_section(data, "costing")),
        documents=parse_documents(_section(data, "documents")),
        source=source,
    )
    return replace(config, checksum=compute_checksum(config))


def compute_checksum(config: StockLedgerConfig) -> str:
    """Deterministic SHA-256 over the parsed settings (source excluded)."""
    payload = asdict(config)
    payload.pop("source", None)
    payload.pop("checksum", None)
    # The database URL may carry credentials; identity covers the policies
    payload["database"].pop("url", None)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
