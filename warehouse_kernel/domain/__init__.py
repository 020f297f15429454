"""Pure domain layer: values, DTOs and the clock. Zero I/O."""

from warehouse_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from warehouse_kernel.domain.dtos import (
    DeductionResult,
    InventoryItem,
    StockEvent,
    StockEventType,
)
from warehouse_kernel.domain.values import (
    ConversionRate,
    RateValidationResult,
    Tier,
    TierQuantity,
    effective_rate,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "InventoryItem",
    "DeductionResult",
    "StockEvent",
    "StockEventType",
    "ConversionRate",
    "RateValidationResult",
    "Tier",
    "TierQuantity",
    "effective_rate",
]
