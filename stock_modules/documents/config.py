"""
Document Settings.

Runtime knobs of the document orchestrator, with the same defaults as
``stock_config/defaults.yaml``.  Build one from the active configuration
with ``DocumentSettings.from_config(get_active_config())``.
"""

from __future__ import annotations

from dataclasses import dataclass

from stock_config.bridges import audit_cost_basis, outbound_cost_policy
from stock_config.schema import StockLedgerConfig
from stock_kernel.domain.values import AuditCostBasis, OutboundCostPolicy
from stock_modules.documents.models import DocumentType, ProjectReturnPolicy


@dataclass(frozen=True)
class DocumentSettings:
    """Settings consumed by DocumentService."""

    project_return_policy: ProjectReturnPolicy = ProjectReturnPolicy.SIMPLE
    auto_create_products: bool = True
    allow_negative_stock: bool = False
    default_document_type: DocumentType = DocumentType.GUIA_DESPACHO
    default_document_number: str = "SIN_NUMERO"
    audit_cost_basis: AuditCostBasis = AuditCostBasis.UNROUNDED
    outbound_cost: OutboundCostPolicy = OutboundCostPolicy.NONE

    def __post_init__(self):
        # Accept plain strings from callers building settings by hand
        object.__setattr__(self, "project_return_policy", ProjectReturnPolicy(self.project_return_policy))
        object.__setattr__(self, "default_document_type", DocumentType(self.default_document_type))
        object.__setattr__(self, "audit_cost_basis", AuditCostBasis(self.audit_cost_basis))
        object.__setattr__(self, "outbound_cost", OutboundCostPolicy(self.outbound_cost))

    @classmethod
    def from_config(cls, config: StockLedgerConfig) -> DocumentSettings:
        docs = config.documents
        return cls(
            project_return_policy=ProjectReturnPolicy(docs.project_return_policy),
            auto_create_products=docs.auto_create_products,
            allow_negative_stock=docs.allow_negative_stock,
            default_document_type=DocumentType(docs.default_document_type),
            default_document_number=docs.default_document_number,
            audit_cost_basis=audit_cost_basis(config),
            outbound_cost=outbound_cost_policy(config),
        )
