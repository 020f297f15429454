"""
Module: warehouse_kernel.models.stock_reservation
Responsibility: Reservations (pick lists, outbound orders) held against an
    inventory record.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - inventory_item_id references inventory_items ON DELETE RESTRICT.  While
      a reservation exists the record cannot be deleted, even when empty;
      the stock mutator then persists zero quantities instead.

Notes:
    InventoryItemModel deliberately declares no relationship back to this
    table, so the ORM never tries to null the foreign key on delete.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from warehouse_kernel.db.base import TrackedBase, UUID, UUIDString
from warehouse_kernel.db.types import TierQty


class StockReservationModel(TrackedBase):
    """Quantity reserved on one inventory record for an external reference."""

    __tablename__ = "stock_reservations"

    __table_args__ = (
        Index("idx_reservation_item", "inventory_item_id"),
    )

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
    )

    reference: Mapped[str] = mapped_column(String(200), nullable=False)

    level1_quantity: Mapped[TierQty]
    level2_quantity: Mapped[TierQty]
    level3_quantity: Mapped[TierQty]

    def __repr__(self) -> str:
        return f"<StockReservation {self.reference} item={self.inventory_item_id}>"
