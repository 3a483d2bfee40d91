"""
Module: stock_kernel.db.triggers
Responsibility: Installing and removing the PostgreSQL immutability triggers
    for stock_movements (Layer 2 of 2).  This is the database-level
    complement to the ORM listeners in db/immutability.py.
Architecture position: Kernel > DB.  MUST NOT import from models/,
    services/, selectors/, domain/, or outer layers.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on UPDATE/DELETE of a movement (surfaces as
      a DBAPIError, translated to PersistenceError by session_scope()).
    - Only PostgreSQL is supported; callers check is_postgres() first.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

ALL_TRIGGER_NAMES = [
    "trg_stock_movement_immutability_update",
    "trg_stock_movement_immutability_delete",
]

_INSTALL_SQL = """
CREATE OR REPLACE FUNCTION prevent_stock_movement_mutation()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION USING MESSAGE =
        'IMMUTABILITY_VIOLATION: stock_movements row ' || OLD.id || ' cannot be ' || lower(TG_OP);
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_stock_movement_immutability_update ON stock_movements;
CREATE TRIGGER trg_stock_movement_immutability_update
    BEFORE UPDATE ON stock_movements
    FOR EACH ROW EXECUTE FUNCTION prevent_stock_movement_mutation();

DROP TRIGGER IF EXISTS trg_stock_movement_immutability_delete ON stock_movements;
CREATE TRIGGER trg_stock_movement_immutability_delete
    BEFORE DELETE ON stock_movements
    FOR EACH ROW EXECUTE FUNCTION prevent_stock_movement_mutation();
"""

_DROP_SQL = """
DROP TRIGGER IF EXISTS trg_stock_movement_immutability_update ON stock_movements;
DROP TRIGGER IF EXISTS trg_stock_movement_immutability_delete ON stock_movements;
DROP FUNCTION IF EXISTS prevent_stock_movement_mutation();
"""


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers (idempotent).

    Preconditions: the stock_movements table exists.
    """
    with engine.connect() as conn:
        conn.execute(text(_INSTALL_SQL))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only for migrations and test teardown.  Re-install immediately.
    """
    with engine.connect() as conn:
        conn.execute(text(_DROP_SQL))
        conn.commit()


def triggers_installed(engine: Engine) -> bool:
    """Check that every expected trigger exists."""
    with engine.connect() as conn:
        rows = conn.execute(
            text(
                "SELECT tgname FROM pg_trigger WHERE tgname = ANY(:names)"
            ),
            {"names": ALL_TRIGGER_NAMES},
        ).scalars().all()
    return set(rows) == set(ALL_TRIGGER_NAMES)
