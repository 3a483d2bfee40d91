"""
Module ORM Registry (``stock_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created, and provide ``create_all_tables()`` -- the entry point that
registers every model and then creates every table.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``stock_modules``
packages and from ``stock_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``stock_kernel``.

Usage
-----
Entrypoints and ``tests/conftest.py`` call ``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``stock_modules.*.orm`` module.

    Kernel tables first: document lines reference products and
    stock_movements.  Idempotent.
    """
    import stock_kernel.models  # noqa: F401
    import stock_modules.catalog.orm  # noqa: F401
    import stock_modules.documents.orm  # noqa: F401


def create_all_tables(install_triggers: bool = True) -> None:
    """Register every ORM model and create all tables (plus PostgreSQL triggers)."""
    from stock_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(install_triggers=install_triggers)
