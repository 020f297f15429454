"""
Typed Exception Hierarchy for the Warehouse Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock operations fail in a handful of well-understood ways, and batch
screens have to aggregate many of them at once. Callers must be able to:
  1. Catch by TYPE, never by message text
  2. Read a machine-readable CODE (class attribute)
  3. Read structured DATA (item id, SKU, tier, location, shortfall)

Example - WRONG way to handle errors:
    try:
        mutator.deduct(item_id, requested)
    except Exception as e:
        if "insufficient" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        mutator.deduct(item_id, requested)
    except InsufficientStockError as e:
        notify(f"{e.sku}: requested {e.requested} {e.tier_name}, "
               f"only {e.available} available")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from WarehouseKernelError:

    WarehouseKernelError (base)
    |
    +-- LocationError
    |   +-- LocationFormatError
    |
    +-- ConversionRateError
    |   +-- ConversionRateValidationError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InventoryItemNotFoundError
    |
    +-- TransferError
    |   +-- TransferConflictError
    |
    +-- StoreRejectionError
    |   +-- RecordReferencedError
    |
    +-- ConcurrencyError
    |   +-- StaleStockError
    |
    +-- PersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised / Returned
-------------|----------------------------|--------------------------------------
Location     | INVALID_LOCATION_FORMAT    | Text matches no location grammar
-------------|----------------------------|--------------------------------------
Rates        | INVALID_CONVERSION_RATE    | Rate record fails positivity/completeness
-------------|----------------------------|--------------------------------------
Stock        | INSUFFICIENT_STOCK         | Requested tier qty > available tier qty
             | INVENTORY_ITEM_NOT_FOUND   | Record id does not exist (any more)
-------------|----------------------------|--------------------------------------
Transfer     | TRANSFER_CONFLICT          | Same-location move / unconfirmed occupancy
-------------|----------------------------|--------------------------------------
Store        | RECORD_REFERENCED          | Delete blocked by a referencing row
             | STALE_STOCK                | Conditional update matched no row
             | PERSISTENCE_FAILED         | Every write path failed

===============================================================================
PROPAGATION
===============================================================================

Codec, calculator, guard and rate-validation problems are RETURNED as values
(an exception instance or a result object) so batch callers can aggregate
them.  PersistenceError and StoreRejectionError subclasses are RAISED and
never swallowed: a silently lost deduction corrupts stock counts.

===============================================================================
"""

from __future__ import annotations

from typing import Any


class WarehouseKernelError(Exception):
    """
    Base exception for all warehouse kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WAREHOUSE_KERNEL_ERROR"


# Location-related exceptions


class LocationError(WarehouseKernelError):
    """Base exception for location code errors."""

    code: str = "LOCATION_ERROR"


class LocationFormatError(LocationError):
    """Location text does not match any recognized grammar."""

    code: str = "INVALID_LOCATION_FORMAT"

    def __init__(self, raw: str | None, reason: str | None = None):
        self.raw = raw
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Invalid location format {raw!r}{detail}")


# Conversion-rate exceptions


class ConversionRateError(WarehouseKernelError):
    """Base exception for conversion rate errors."""

    code: str = "CONVERSION_RATE_ERROR"


class ConversionRateValidationError(ConversionRateError):
    """Conversion rate record violates positivity/completeness rules."""

    code: str = "INVALID_CONVERSION_RATE"

    def __init__(self, sku: str | None, errors: list[str] | tuple[str, ...]):
        self.sku = sku
        self.errors = tuple(errors)
        super().__init__(
            f"Invalid conversion rate for SKU {sku!r}: {'; '.join(self.errors)}"
        )


# Stock-related exceptions


class StockError(WarehouseKernelError):
    """Base exception for stock errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    Requested tier quantity exceeds the available tier quantity.

    ``tier`` / ``requested`` / ``available`` describe the first failing tier;
    ``shortfalls`` lists every failing tier as ``(tier, requested, available)``.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        tier: int,
        requested: int,
        available: int,
        item_id: Any = None,
        sku: str | None = None,
        tier_name: str | None = None,
        shortfalls: tuple[tuple[int, int, int], ...] = (),
    ):
        self.tier = tier
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        self.item_id = item_id
        self.sku = sku
        self.tier_name = tier_name or f"level{tier}"
        self.shortfalls = shortfalls or ((tier, requested, available),)
        subject = " ".join(
            part for part in (
                sku,
                f"(item {item_id})" if item_id is not None else None,
            ) if part
        )
        prefix = f"Insufficient stock for {subject}" if subject else "Insufficient stock"
        super().__init__(
            f"{prefix}: requested {requested} {self.tier_name}, "
            f"only {available} available (short by {self.shortfall})"
        )


class InventoryItemNotFoundError(StockError):
    """Inventory record with the given id does not exist."""

    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, item_id: Any):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


# Transfer-related exceptions


class TransferError(WarehouseKernelError):
    """Base exception for transfer errors."""

    code: str = "TRANSFER_ERROR"


class TransferConflictError(TransferError):
    """
    Transfer precondition failed.

    ``kind`` is ``"same_location"`` (always rejected) or ``"occupied"``
    (recoverable by operator confirmation or a different destination).
    """

    code: str = "TRANSFER_CONFLICT"

    def __init__(
        self,
        kind: str,
        item_id: Any,
        source: str | None,
        destination: str,
        sku: str | None = None,
        occupant_count: int = 0,
    ):
        self.kind = kind
        self.item_id = item_id
        self.source = source
        self.destination = destination
        self.sku = sku
        self.occupant_count = occupant_count
        label = sku or str(item_id)
        if kind == "same_location":
            message = (
                f"Cannot transfer {label}: destination {destination} is the "
                f"same as source {source}"
            )
        else:
            message = (
                f"Cannot transfer {label} from {source} to {destination}: "
                f"destination holds {occupant_count} other record(s); "
                f"confirmation required"
            )
        super().__init__(message)


# Store-level rejections (definitive answers, not path failures)


class StoreRejectionError(WarehouseKernelError):
    """Base exception for writes the store refused on integrity grounds."""

    code: str = "STORE_REJECTION"


class RecordReferencedError(StoreRejectionError):
    """Record cannot be deleted, it is still referenced by another row."""

    code: str = "RECORD_REFERENCED"

    def __init__(self, item_id: Any, detail: str | None = None):
        self.item_id = item_id
        self.detail = detail
        super().__init__(
            f"Inventory item {item_id} is still referenced and cannot be deleted"
        )


# Concurrency-related exceptions


class ConcurrencyError(WarehouseKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleStockError(ConcurrencyError):
    """Conditional quantity update found the record changed since it was read."""

    code: str = "STALE_STOCK"

    def __init__(self, item_id: Any, expected: Any):
        self.item_id = item_id
        self.expected = expected
        super().__init__(
            f"Stock for inventory item {item_id} changed concurrently "
            f"(expected {expected}); re-read and retry"
        )


# Persistence


class PersistenceError(WarehouseKernelError):
    """
    Every configured write path failed.

    ``failures`` holds ``(path_name, error_message)`` pairs in the order the
    paths were tried.  The last underlying exception is chained as
    ``__cause__``.
    """

    code: str = "PERSISTENCE_FAILED"

    def __init__(
        self,
        operation: str,
        item_id: Any,
        failures: tuple[tuple[str, str], ...],
    ):
        self.operation = operation
        self.item_id = item_id
        self.failures = failures
        tried = ", ".join(f"{name}: {msg}" for name, msg in failures) or "no write paths"
        super().__init__(
            f"{operation} failed for inventory item {item_id} on every write path ({tried})"
        )
