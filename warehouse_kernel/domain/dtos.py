"""
DTOs -- Frozen snapshots passed between kernel services, engines and callers.

Responsibility:
    Decouples ORM rows from the code that reasons about them.  Engines never
    see a Session-bound object; they see an ``InventoryItem`` snapshot taken
    at a known moment.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from warehouse_kernel.domain.values import ConversionRate, TierQuantity


class StockEventType(str, Enum):
    """Kind of change recorded in the stock event log."""

    DEDUCTION = "deduction"
    TRANSFER = "transfer"
    MERGE = "merge"


@dataclass(frozen=True)
class InventoryItem:
    """Snapshot of one inventory record (one SKU-lot at one location)."""

    id: UUID
    sku: str
    location: str
    level1_quantity: int = 0
    level2_quantity: int = 0
    level3_quantity: int = 0
    level1_rate: int = 0
    level2_rate: int = 0
    level1_name: str | None = None
    level2_name: str | None = None
    level3_name: str | None = None
    product_name: str | None = None
    lot: str | None = None
    mfd: date | None = None
    warehouse_code: str = "MAIN"

    @property
    def quantities(self) -> TierQuantity:
        return TierQuantity(
            self.level1_quantity, self.level2_quantity, self.level3_quantity
        )

    @property
    def is_empty(self) -> bool:
        return self.quantities.is_empty

    @property
    def stamped_rate(self) -> ConversionRate:
        """The packaging rate carried on the record itself."""
        return ConversionRate(
            sku=self.sku,
            level1_rate=self.level1_rate,
            level2_rate=self.level2_rate,
            level1_name=self.level1_name,
            level2_name=self.level2_name,
            level3_name=self.level3_name,
        )

    @property
    def label(self) -> str:
        """Human identifier used in messages."""
        return self.sku or str(self.id)


@dataclass(frozen=True)
class DeductionResult:
    """
    Outcome of a successful ``StockMutator.deduct``.

    ``is_empty`` is true when every tier reached zero.  ``deleted`` is true
    only when the record was actually removed; an empty record the store
    refused to delete (still referenced) is reported with
    ``is_empty=True, deleted=False`` and persisted with zero quantities.
    """

    item_id: UUID
    sku: str
    location: str
    before: TierQuantity
    requested: TierQuantity
    after: TierQuantity
    is_empty: bool
    deleted: bool
    write_path: str | None = None


@dataclass(frozen=True)
class StockEvent:
    """Append-only record of a stock change."""

    event_type: StockEventType
    item_id: UUID
    sku: str
    before: TierQuantity
    after: TierQuantity
    occurred_at: datetime
    from_location: str | None = None
    to_location: str | None = None
    actor_id: UUID | None = None
    reference: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: UUID | None = None
