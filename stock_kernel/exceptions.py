"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the document orchestrators, and the HTTP layer above them) must be
able to tell "bad input" from "not enough stock" from "the database failed"
without parsing message strings.  Every exception here therefore:

  1. Has its own class (catch by type, not by message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (product, quantities, line number)

Example - WRONG way to handle errors:
    try:
        service.process_document(lines, DocumentMode.PROJECT_ISSUE)
    except Exception as e:
        if "insufficient" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        service.process_document(lines, DocumentMode.PROJECT_ISSUE)
    except DocumentError as e:
        if e.cause_code == InsufficientStockError.code:
            notify(f"line {e.line_no}: {e.cause}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- ValidationError
    |
    +-- ProductError
    |   +-- ProductNotFoundError
    |   +-- ProductReferencedError
    |   +-- DuplicateProductError
    |
    +-- InsufficientStockError
    |
    +-- PersistenceError
    |
    +-- ImmutabilityViolationError
    |
    +-- DocumentError
    |
    +-- CatalogError
        +-- WarehouseNotFoundError
        +-- ProjectNotFoundError
        +-- SupplierRequiredError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | HTTP | When Raised
------------------------|------|-----------------------------------------------
VALIDATION_ERROR        | 400  | quantity <= 0, negative cost, bad number, no product ref
PRODUCT_NOT_FOUND       | 404  | product id / SKU does not exist
PRODUCT_REFERENCED      | 409  | deleting a product that has movements
DUPLICATE_PRODUCT       | 409  | creating a product with an existing SKU/barcode
INSUFFICIENT_STOCK      | 409  | consumption would drive stock negative
PERSISTENCE_ERROR       | 500  | the unit of work failed to flush/commit
IMMUTABILITY_VIOLATION  | 409  | UPDATE/DELETE of a stock movement
DOCUMENT_ERROR          | (*)  | a document line failed; wraps the line's error
WAREHOUSE_NOT_FOUND     | 404  | explicit warehouse code unknown / no primary warehouse
PROJECT_NOT_FOUND       | 404  | project code unknown
SUPPLIER_REQUIRED       | 400  | receipt without supplier name or tax id

(*) DocumentError takes the HTTP status of the error it wraps.

===============================================================================
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification, and an `http_status` hint for the outer layer.
    """

    code: str = "STOCK_KERNEL_ERROR"
    http_status: int = 400


class ValidationError(StockKernelError):
    """Malformed input to a costing operation or a document line."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, value: object, reason: str, line_no: int | None = None):
        self.field = field
        self.value = value
        self.reason = reason
        self.line_no = line_no
        prefix = f"Line {line_no}: " if line_no is not None else ""
        super().__init__(f"{prefix}invalid {field} {value!r}: {reason}")


# Product-related exceptions


class ProductError(StockKernelError):
    """Base exception for product-related errors."""

    code: str = "PRODUCT_ERROR"


class ProductNotFoundError(ProductError):
    """Product with given id or SKU was not found."""

    code: str = "PRODUCT_NOT_FOUND"
    http_status: int = 404

    def __init__(self, product_ref: str):
        self.product_ref = product_ref
        super().__init__(f"Product not found: {product_ref}")


class ProductReferencedError(ProductError):
    """Product cannot be deleted because stock movements reference it."""

    code: str = "PRODUCT_REFERENCED"
    http_status: int = 409

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} is referenced by stock movements and cannot be deleted"
        )


class DuplicateProductError(ProductError):
    """A product with the same SKU or barcode already exists."""

    code: str = "DUPLICATE_PRODUCT"
    http_status: int = 409

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Product with {field} {value!r} already exists")


class InsufficientStockError(StockKernelError):
    """
    Consumption would leave stock below zero and negative stock was not allowed.

    The message names the product, its current stock and the requested
    quantity; the same values are available as attributes.
    """

    code: str = "INSUFFICIENT_STOCK"
    http_status: int = 409

    def __init__(
        self,
        product_id: str,
        current_stock: int,
        requested: int,
        sku: str | None = None,
    ):
        self.product_id = product_id
        self.sku = sku
        self.current_stock = current_stock
        self.requested = requested
        label = f"{sku} (id {product_id})" if sku else product_id
        super().__init__(
            f"Insufficient stock for product {label}. "
            f"Current stock: {current_stock}, requested: {requested}"
        )


class PersistenceError(StockKernelError):
    """The atomic unit of work failed to flush or commit."""

    code: str = "PERSISTENCE_ERROR"
    http_status: int = 500

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class ImmutabilityViolationError(StockKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"
    http_status: int = 409

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class DocumentError(StockKernelError):
    """
    A multi-line document failed; nothing from it was applied.

    Wraps the error raised by the offending line.  ``line_no`` is 1-based,
    or None when the failure is not attributable to a single line
    (e.g. an empty document or a header problem).
    """

    code: str = "DOCUMENT_ERROR"

    def __init__(self, cause: StockKernelError, line_no: int | None = None):
        self.cause = cause
        self.cause_code = cause.code
        self.line_no = line_no
        self.http_status = cause.http_status
        where = f"line {line_no}" if line_no is not None else "document header"
        super().__init__(f"Document rejected at {where}: {cause}")


# Catalog-related exceptions (raised by document glue, not by costing)


class CatalogError(StockKernelError):
    """Base exception for warehouse / supplier / project resolution errors."""

    code: str = "CATALOG_ERROR"


class WarehouseNotFoundError(CatalogError):
    """Requested warehouse does not exist, or no primary warehouse is marked."""

    code: str = "WAREHOUSE_NOT_FOUND"
    http_status: int = 404

    def __init__(self, warehouse_code: str | None):
        self.warehouse_code = warehouse_code
        if warehouse_code is None:
            msg = "No primary warehouse found; mark one warehouse as primary"
        else:
            msg = f"Warehouse not found: {warehouse_code}"
        super().__init__(msg)


class ProjectNotFoundError(CatalogError):
    """Project with given code does not exist."""

    code: str = "PROJECT_NOT_FOUND"
    http_status: int = 404

    def __init__(self, project_code: str):
        self.project_code = project_code
        super().__init__(f"Project not found: {project_code}")


class SupplierRequiredError(CatalogError):
    """A receipt needs at least a supplier name or tax id."""

    code: str = "SUPPLIER_REQUIRED"

    def __init__(self):
        super().__init__("A supplier name or tax id is required for a receipt")
