"""
Decimals -- The single rounding rule for persisted costs.

Responsibility:
    Coerce untyped numeric input into Decimal and round costs the one way
    the ledger rounds them: half-up (ties away from zero) at a fixed number
    of places.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Costs are NEVER floats.  Floats are accepted at the boundary only and
      go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.
    - NaN, infinities and booleans are rejected (ValidationError).
    - Costs are below COST_LIMIT, so every cost fits the Numeric(18, 4)
      audit columns at 4 places (14 integer digits).

Precision:
    COST_PLACES  = 2  unit_cost and average_cost at rest
    AUDIT_PLACES = 4  cost_before / cost_after in the movement trail
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from stock_kernel.exceptions import ValidationError

COST_PLACES = 2
AUDIT_PLACES = 4

# Exclusive upper bound on the magnitude of any cost
COST_LIMIT = Decimal(10) ** 14

ZERO = Decimal("0")


def round_half_up(value: Decimal, places: int) -> Decimal:
    """
    Round ``value`` to ``places`` decimals, ties away from zero.

    round_half_up(Decimal("2.345"), 2)  -> Decimal("2.35")
    round_half_up(Decimal("-2.345"), 2) -> Decimal("-2.35")

    Raises:
        ValidationError: the result has more digits than the decimal
            context can hold.
    """
    quantum = Decimal(1).scaleb(-places)
    try:
        return value.quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(
            "value", value, f"too large to round to {places} places"
        ) from None


def check_cost(value: Decimal, field: str = "unit_cost", line_no: int | None = None) -> Decimal:
    """
    Reject costs whose magnitude is not below COST_LIMIT.

    Returns ``value`` unchanged so it can wrap a coercion.
    """
    if abs(value) >= COST_LIMIT:
        raise ValidationError(field, value, f"must be below {COST_LIMIT:,.0f}", line_no)
    return value


def round_cost(value: Decimal) -> Decimal:
    """Round to the at-rest cost precision (2 places)."""
    return round_half_up(value, COST_PLACES)


def round_audit(value: Decimal) -> Decimal:
    """Round to the movement-trail cost precision (4 places)."""
    return round_half_up(value, AUDIT_PLACES)


def to_decimal(value: object, field: str = "value") -> Decimal:
    """
    Coerce int / str / Decimal / float into a finite Decimal.

    Raises:
        ValidationError: for booleans, None, unparseable strings, NaN and
            infinities.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(field, value, "must be a number")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(field, value, "must be a number") from None
    else:
        raise ValidationError(field, value, "must be a number")

    if not result.is_finite():
        raise ValidationError(field, value, "must be finite")
    return result
