"""
Documents Module (``stock_modules.documents``).

Responsibility
--------------
Multi-line stock documents -- receipts, project issues, project returns,
supplier returns -- and stock-count adjustments, each applied as one
atomic unit of work over the costing kernel.

Architecture
------------
Layer: **Modules** -- typed line parsing, header resolution and a thin
orchestration service.  Imports from ``stock_kernel``, ``stock_config``
and ``stock_modules.catalog``; never the reverse.
"""

from stock_modules.documents.config import DocumentSettings
from stock_modules.documents.lines import parse_header, parse_lines
from stock_modules.documents.models import (
    DocumentHeader,
    DocumentMode,
    DocumentResult,
    DocumentType,
    LineItem,
    LineResult,
    ProjectReturnPolicy,
)
from stock_modules.documents.orm import StockDocumentLineModel, StockDocumentModel
from stock_modules.documents.service import DocumentService

__all__ = [
    "DocumentService",
    "DocumentSettings",
    "DocumentHeader",
    "DocumentMode",
    "DocumentResult",
    "DocumentType",
    "LineItem",
    "LineResult",
    "ProjectReturnPolicy",
    "StockDocumentModel",
    "StockDocumentLineModel",
    "parse_header",
    "parse_lines",
]
