"""
Line and header coercion (``stock_modules.documents.lines``).

Request bodies arrive as untyped mappings.  Every numeric field is parsed
explicitly with a finiteness check, and anything that does not coerce
cleanly is rejected with a ``ValidationError`` carrying the 1-based line
number -- never silently treated as zero.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from stock_kernel.domain.decimals import check_cost, to_decimal
from stock_kernel.domain.values import MAX_QUANTITY
from stock_kernel.exceptions import ValidationError
from stock_modules.documents.models import DocumentHeader, DocumentType, LineItem

_LINE_FIELDS = frozenset(
    {
        "product_id",
        "sku",
        "quantity",
        "unit_cost",
        "name",
        "category_code",
        "brand",
        "barcode",
        "min_stock",
        "lot",
        "expiry_date",
    }
)

_HEADER_FIELDS = frozenset(DocumentHeader.__dataclass_fields__)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(getattr(value, "value", value)).strip()
    return text or None


def parse_quantity(value: Any, line_no: int | None = None, field: str = "quantity") -> int:
    """A positive integer up to MAX_QUANTITY; "5", 5 and Decimal("5") are all accepted."""
    try:
        number = to_decimal(value, field)
    except ValidationError:
        raise ValidationError(field, value, "must be a whole number", line_no) from None
    if number != number.to_integral_value():
        raise ValidationError(field, value, "must be a whole number", line_no)
    if number <= 0:
        raise ValidationError(field, value, "must be greater than zero", line_no)
    if number > MAX_QUANTITY:
        raise ValidationError(field, value, f"must not exceed {MAX_QUANTITY}", line_no)
    return int(number)


def parse_unit_cost(value: Any, line_no: int | None = None) -> Decimal:
    """A finite, non-negative Decimal below COST_LIMIT."""
    try:
        cost = to_decimal(value, "unit_cost")
    except ValidationError as exc:
        raise ValidationError("unit_cost", value, exc.reason, line_no) from None
    if cost < 0:
        raise ValidationError("unit_cost", value, "must not be negative", line_no)
    return check_cost(cost, "unit_cost", line_no)


def _parse_product_id(value: Any, line_no: int) -> UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError("product_id", value, "must be a UUID", line_no) from None


def _parse_date(value: Any, line_no: int) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError("expiry_date", value, "must be an ISO date", line_no) from None


def _parse_min_stock(value: Any, line_no: int) -> int:
    if value is None or value == "":
        return 0
    try:
        number = to_decimal(value, "min_stock")
    except ValidationError:
        raise ValidationError("min_stock", value, "must be a whole number", line_no) from None
    if number != number.to_integral_value() or number < 0 or number > MAX_QUANTITY:
        raise ValidationError("min_stock", value, f"must be a whole number from 0 to {MAX_QUANTITY}", line_no)
    return int(number)


def parse_line(raw: Mapping[str, Any] | LineItem, line_no: int, require_unit_cost: bool) -> LineItem:
    """Coerce one raw line into a LineItem numbered ``line_no``."""
    if isinstance(raw, LineItem):
        raw = {k: getattr(raw, k) for k in _LINE_FIELDS}
    if not isinstance(raw, Mapping):
        raise ValidationError("line", raw, "must be a mapping", line_no)

    unknown = sorted(set(raw) - _LINE_FIELDS)
    if unknown:
        raise ValidationError("line", unknown, "unknown fields", line_no)

    product_id = _parse_product_id(raw.get("product_id"), line_no)
    sku = _text(raw.get("sku"))
    if product_id is None and sku is None:
        raise ValidationError("product", None, "a product id or SKU is required", line_no)

    if "quantity" not in raw:
        raise ValidationError("quantity", None, "is required", line_no)
    quantity = parse_quantity(raw["quantity"], line_no)

    raw_cost = raw.get("unit_cost")
    if raw_cost is None or raw_cost == "":
        if require_unit_cost:
            raise ValidationError("unit_cost", raw_cost, "is required", line_no)
        unit_cost = None
    else:
        unit_cost = parse_unit_cost(raw_cost, line_no)

    return LineItem(
        line_no=line_no,
        quantity=quantity,
        product_id=product_id,
        sku=sku,
        unit_cost=unit_cost,
        name=_text(raw.get("name")),
        category_code=_text(raw.get("category_code")),
        brand=_text(raw.get("brand")),
        barcode=_text(raw.get("barcode")),
        min_stock=_parse_min_stock(raw.get("min_stock"), line_no),
        lot=_text(raw.get("lot")),
        expiry_date=_parse_date(raw.get("expiry_date"), line_no),
    )


def parse_lines(
    raw_lines: Sequence[Mapping[str, Any] | LineItem],
    require_unit_cost: bool = False,
) -> list[LineItem]:
    """
    Coerce every raw line, numbering them from 1.

    Raises:
        ValidationError: On the first line that does not coerce; its
            ``line_no`` says which.  An empty document is rejected with
            ``line_no`` None.
    """
    if isinstance(raw_lines, (str, bytes, Mapping)) or not isinstance(raw_lines, Sequence):
        raise ValidationError("lines", raw_lines, "must be a list of lines")
    if not raw_lines:
        raise ValidationError("lines", [], "a document needs at least one line")
    return [
        parse_line(raw, line_no, require_unit_cost)
        for line_no, raw in enumerate(raw_lines, start=1)
    ]


def parse_header(
    raw: Mapping[str, Any] | DocumentHeader | None,
    default_document_type: str,
    default_document_number: str,
) -> DocumentHeader:
    """
    Coerce a header mapping, filling the document type and number defaults.

    Raises:
        ValidationError: Unknown header fields or document type.
    """
    if raw is None:
        header = DocumentHeader()
    elif isinstance(raw, DocumentHeader):
        header = raw
    elif isinstance(raw, Mapping):
        unknown = sorted(set(raw) - _HEADER_FIELDS)
        if unknown:
            raise ValidationError("header", unknown, "unknown fields")
        header = DocumentHeader(**{k: _text(v) for k, v in raw.items()})
    else:
        raise ValidationError("header", raw, "must be a mapping")

    doc_type = header.document_type or default_document_type
    try:
        doc_type = DocumentType(str(getattr(doc_type, "value", doc_type)).upper())
    except ValueError:
        raise ValidationError("document_type", header.document_type, "unknown document type") from None

    return replace(
        header,
        document_type=doc_type,
        document_number=_text(header.document_number) or default_document_number,
    )
