"""
Module: warehouse_kernel.models.inventory_item
Responsibility: ORM persistence for inventory records -- one SKU (and lot)
    held at one storage location, with its three tier quantities and the
    packaging rates stamped on the record when it was received.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Quantities are non-negative integers (enforced by TierQuantity at the
      service boundary, NOT by a CHECK constraint; legacy rows may violate it).
    - A record whose three quantities are all zero is "empty".  Empty records
      are normally deleted, but may survive when a reservation still
      references them (see StockReservationModel).

Failure modes:
    - IntegrityError on DELETE while referenced by stock_reservations.

Notes:
    ``location`` is stored as written.  Rows written through the kernel carry
    the canonical ``Row+Position/Level`` form; older rows may carry legacy
    text, so location lookups must go through the location codec rather than
    plain string equality.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from warehouse_kernel.db.base import TrackedBase, UUID
from warehouse_kernel.db.types import LocationText, Sku, TierName, TierQty, TierRate
from warehouse_kernel.domain.dtos import InventoryItem


class InventoryItemModel(TrackedBase):
    """
    Persistent inventory record.

    Contract:
        Each row is one (SKU, lot) at one location.  The same SKU may appear
        at many locations and at one location many times (different lots).

    Non-goals:
        - Does NOT enforce that an empty record is deleted; the stock mutator
          owns that decision.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        Index("idx_inventory_sku_location", "sku", "location"),
        Index("idx_inventory_warehouse", "warehouse_code"),
    )

    sku: Mapped[Sku]
    location: Mapped[LocationText]

    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lot: Mapped[str | None] = mapped_column(String(100), nullable=True)
    mfd: Mapped[date | None] = mapped_column(Date, nullable=True)

    warehouse_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="MAIN",
    )

    level1_quantity: Mapped[TierQty]
    level2_quantity: Mapped[TierQty]
    level3_quantity: Mapped[TierQty]

    # Rates stamped at receipt; 0 means "use the SKU's conversion rate"
    level1_rate: Mapped[TierRate]
    level2_rate: Mapped[TierRate]

    level1_name: Mapped[TierName]
    level2_name: Mapped[TierName]
    level3_name: Mapped[TierName]

    @property
    def is_empty(self) -> bool:
        return (
            (self.level1_quantity or 0) == 0
            and (self.level2_quantity or 0) == 0
            and (self.level3_quantity or 0) == 0
        )

    def to_dto(self) -> InventoryItem:
        return InventoryItem(
            id=self.id,
            sku=self.sku,
            location=self.location,
            level1_quantity=self.level1_quantity or 0,
            level2_quantity=self.level2_quantity or 0,
            level3_quantity=self.level3_quantity or 0,
            level1_rate=self.level1_rate or 0,
            level2_rate=self.level2_rate or 0,
            level1_name=self.level1_name,
            level2_name=self.level2_name,
            level3_name=self.level3_name,
            product_name=self.product_name,
            lot=self.lot,
            mfd=self.mfd,
            warehouse_code=self.warehouse_code or "MAIN",
        )

    @classmethod
    def from_dto(cls, dto: InventoryItem, created_by_id: UUID) -> InventoryItemModel:
        return cls(
            id=dto.id,
            sku=dto.sku,
            location=dto.location,
            product_name=dto.product_name,
            lot=dto.lot,
            mfd=dto.mfd,
            warehouse_code=dto.warehouse_code,
            level1_quantity=dto.level1_quantity,
            level2_quantity=dto.level2_quantity,
            level3_quantity=dto.level3_quantity,
            level1_rate=dto.level1_rate,
            level2_rate=dto.level2_rate,
            level1_name=dto.level1_name,
            level2_name=dto.level2_name,
            level3_name=dto.level3_name,
            created_by_id=created_by_id,
            updated_by_id=None,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.sku} @ {self.location}: "
            f"{self.level1_quantity}/{self.level2_quantity}/{self.level3_quantity}>"
        )
