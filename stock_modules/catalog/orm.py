"""
Module: stock_modules.catalog.orm
Responsibility: SQLAlchemy ORM persistence for the catalog rows documents
    point at: warehouses, suppliers and projects.
Architecture position: Modules > Catalog > ORM.  Inherits from TrackedBase
    (stock_kernel.db.base).

Invariants enforced:
    - warehouses.code, projects.code and suppliers.tax_id are unique.
    - At most one warehouse should carry is_primary; CatalogService keeps it
      that way when a new primary is set.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class WarehouseModel(TrackedBase):
    """A storage location documents can be booked against."""

    __tablename__ = "warehouses"

    __table_args__ = (
        UniqueConstraint("code", name="uq_warehouse_code"),
        Index("idx_warehouse_primary", "is_primary"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # The fallback when a document names no warehouse
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        flag = " (primary)" if self.is_primary else ""
        return f"<Warehouse {self.code}{flag}>"


class SupplierModel(TrackedBase):
    """A supplier, identified by tax id when it has one, else by name."""

    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("tax_id", name="uq_supplier_tax_id"),
        Index("idx_supplier_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Supplier {self.name} ({self.tax_id or 'no tax id'})>"


class ProjectModel(TrackedBase):
    """A project / cost center stock is issued to and returned from."""

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("code", name="uq_project_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Project {self.code}>"
