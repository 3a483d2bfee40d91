"""
Catalog Module (``stock_modules.catalog``).

Warehouses, suppliers and projects, plus product lookup and creation.
Everything a document needs resolved before the costing kernel runs.
"""

from stock_modules.catalog.orm import ProjectModel, SupplierModel, WarehouseModel
from stock_modules.catalog.service import CatalogService

__all__ = [
    "CatalogService",
    "ProjectModel",
    "SupplierModel",
    "WarehouseModel",
]
