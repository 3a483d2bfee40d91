"""
Catalog Service (``stock_modules.catalog.service``).

Responsibility
--------------
Resolution and maintenance of the rows documents refer to: products (by id
or SKU), warehouses (explicit code or the primary one), suppliers (upsert by
tax id, else by name) and projects.  The document orchestrator calls this
*before* any costing operation runs, so the kernel never looks anything up
by convention.

Architecture
------------
Layer: **Modules** -- flush-only glue.  Never commits; the document
orchestrator owns the transaction.

Failure Modes
-------------
- ``ProductNotFoundError`` / ``DuplicateProductError`` for products.
- ``WarehouseNotFoundError`` when the code is unknown or no warehouse is
  marked primary.
- ``SupplierRequiredError`` when neither name nor tax id is given.
- ``ProjectNotFoundError`` for unknown project codes.
- ``ProductReferencedError`` from the kernel guard when deleting a product
  that has movements.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.values import MAX_QUANTITY
from stock_kernel.exceptions import (
    DuplicateProductError,
    ProductNotFoundError,
    ProjectNotFoundError,
    SupplierRequiredError,
    ValidationError,
    WarehouseNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_modules.catalog.orm import ProjectModel, SupplierModel, WarehouseModel

logger = get_logger("modules.catalog.service")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class CatalogService:
    """
    Lookups and upserts for products, warehouses, suppliers and projects.

    All methods flush so generated ids are available to the caller; none
    commit.
    """

    def __init__(self, session: Session):
        self._session = session

    # =========================================================================
    # Products
    # =========================================================================

    def find_product_by_sku(self, sku: str) -> Product | None:
        stmt = select(Product).where(Product.sku == sku.strip())
        return self._session.execute(stmt).scalar_one_or_none()

    def resolve_product(
        self,
        product_id: UUID | None = None,
        sku: str | None = None,
    ) -> Product:
        """
        Find a product by id, or by SKU when no id is given.

        Raises:
            ValidationError: If neither reference is given.
            ProductNotFoundError: If nothing matches.
        """
        if product_id is not None:
            product = self._session.get(Product, product_id)
            if product is None:
                raise ProductNotFoundError(str(product_id))
            return product

        sku = _clean(sku)
        if sku is None:
            raise ValidationError("product", None, "a product id or SKU is required")
        product = self.find_product_by_sku(sku)
        if product is None:
            raise ProductNotFoundError(sku)
        return product

    def create_product(
        self,
        sku: str,
        name: str,
        category_code: str | None = None,
        barcode: str | None = None,
        brand: str | None = None,
        location: str | None = None,
        min_stock: int = 0,
    ) -> Product:
        """
        Create a product with stock 0 and average cost 0.

        Raises:
            ValidationError: Empty SKU or name, negative min_stock.
            DuplicateProductError: SKU or barcode already in use.
        """
        sku = _clean(sku)
        name = _clean(name)
        barcode = _clean(barcode)
        if sku is None:
            raise ValidationError("sku", sku, "must not be empty")
        if name is None:
            raise ValidationError("name", name, "must not be empty")
        if (
            isinstance(min_stock, bool)
            or not isinstance(min_stock, int)
            or not 0 <= min_stock <= MAX_QUANTITY
        ):
            raise ValidationError("min_stock", min_stock, f"must be an integer from 0 to {MAX_QUANTITY}")

        if self.find_product_by_sku(sku) is not None:
            raise DuplicateProductError("sku", sku)
        if barcode is not None:
            existing = self._session.execute(
                select(Product.id).where(Product.barcode == barcode)
            ).first()
            if existing is not None:
                raise DuplicateProductError("barcode", barcode)

        product = Product(
            sku=sku,
            name=name,
            category_code=_clean(category_code),
            barcode=barcode,
            brand=_clean(brand),
            location=_clean(location),
            min_stock=min_stock,
            stock=0,
            average_cost=Decimal("0"),
        )
        self._session.add(product)
        self._session.flush()

        logger.info(
            "product_created",
            extra={"product_id": str(product.id), "sku": sku},
        )
        return product

    def delete_product(self, product_id: UUID) -> None:
        """
        Delete a product that has never moved.

        Raises:
            ProductNotFoundError: If the product doesn't exist.
            ProductReferencedError: If stock movements reference it.
        """
        product = self.resolve_product(product_id=product_id)
        self._session.delete(product)
        self._session.flush()
        logger.info("product_deleted", extra={"product_id": str(product_id)})

    # =========================================================================
    # Warehouses
    # =========================================================================

    def create_warehouse(self, code: str, name: str, is_primary: bool = False) -> WarehouseModel:
        """Create a warehouse; marking it primary clears the flag elsewhere."""
        if is_primary:
            self._clear_primary()
        warehouse = WarehouseModel(code=code.strip(), name=name.strip(), is_primary=is_primary)
        self._session.add(warehouse)
        self._session.flush()
        return warehouse

    def set_primary_warehouse(self, code: str) -> WarehouseModel:
        warehouse = self.resolve_warehouse(code)
        self._clear_primary()
        warehouse.is_primary = True
        self._session.flush()
        return warehouse

    def _clear_primary(self) -> None:
        stmt = select(WarehouseModel).where(WarehouseModel.is_primary.is_(True))
        for warehouse in self._session.execute(stmt).scalars():
            warehouse.is_primary = False

    def resolve_warehouse(self, code: str | None = None) -> WarehouseModel:
        """
        The warehouse named by ``code``, or the primary warehouse.

        Raises:
            WarehouseNotFoundError: Unknown code, or no primary warehouse.
        """
        code = _clean(code)
        if code is not None:
            stmt = select(WarehouseModel).where(WarehouseModel.code == code)
        else:
            stmt = (
                select(WarehouseModel)
                .where(WarehouseModel.is_primary.is_(True))
                .order_by(WarehouseModel.code)
                .limit(1)
            )
        warehouse = self._session.execute(stmt).scalar_one_or_none()
        if warehouse is None:
            raise WarehouseNotFoundError(code)
        return warehouse

    # =========================================================================
    # Suppliers
    # =========================================================================

    def upsert_supplier(
        self,
        name: str | None = None,
        tax_id: str | None = None,
        contact_name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> SupplierModel:
        """
        Find or create the supplier for a document.

        With a tax id: match on it, refreshing the name and contact fields
        that were given; create it if missing.  Without one: match on the
        name (case-insensitive), create it if missing.

        Raises:
            SupplierRequiredError: Neither name nor tax id given.
        """
        name = _clean(name)
        tax_id = _clean(tax_id)
        if name is None and tax_id is None:
            raise SupplierRequiredError()

        contact = {
            "contact_name": _clean(contact_name),
            "email": _clean(email),
            "phone": _clean(phone),
        }

        if tax_id is not None:
            supplier = self._session.execute(
                select(SupplierModel).where(SupplierModel.tax_id == tax_id)
            ).scalar_one_or_none()
            if supplier is not None:
                if name is not None:
                    supplier.name = name
                for key, value in contact.items():
                    if value is not None:
                        setattr(supplier, key, value)
                self._session.flush()
                return supplier
            return self._create_supplier(name or tax_id, tax_id, contact)

        supplier = self._session.execute(
            select(SupplierModel)
            .where(func.lower(SupplierModel.name) == name.lower())
            .order_by(SupplierModel.created_at)
            .limit(1)
        ).scalar_one_or_none()
        if supplier is not None:
            return supplier
        return self._create_supplier(name, None, contact)

    def _create_supplier(self, name: str, tax_id: str | None, contact: dict) -> SupplierModel:
        supplier = SupplierModel(name=name, tax_id=tax_id, **contact)
        self._session.add(supplier)
        self._session.flush()
        logger.info(
            "supplier_created",
            extra={"supplier_id": str(supplier.id), "tax_id": tax_id},
        )
        return supplier

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(self, code: str, name: str) -> ProjectModel:
        project = ProjectModel(code=code.strip(), name=name.strip(), is_active=True)
        self._session.add(project)
        self._session.flush()
        return project

    def resolve_project(self, code: str | None) -> ProjectModel:
        """
        Raises:
            ValidationError: No project code given.
            ProjectNotFoundError: Unknown code.
        """
        code = _clean(code)
        if code is None:
            raise ValidationError("project_code", code, "a project is required")
        project = self._session.execute(
            select(ProjectModel).where(ProjectModel.code == code)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(code)
        return project
