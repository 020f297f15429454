"""
Module: warehouse_kernel.models.stock_event
Responsibility: Append-only log of stock changes (deductions, transfers,
    merges) with before/after tier quantities.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - Append-only: rows are written by StockEventRecorder and never updated.
    - item_id is NOT a foreign key.  Events must outlive the record they
      describe, including records deleted by the deduction that emptied them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from warehouse_kernel.db.base import Base, UUID, UUIDString
from warehouse_kernel.domain.dtos import StockEvent, StockEventType
from warehouse_kernel.domain.values import TierQuantity


class StockEventModel(Base):
    """One recorded stock change."""

    __tablename__ = "stock_events"

    __table_args__ = (
        Index("idx_stock_event_item", "item_id"),
        Index("idx_stock_event_sku_time", "sku", "occurred_at"),
    )

    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    from_location: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_location: Mapped[str | None] = mapped_column(String(32), nullable=True)

    before_level1: Mapped[int] = mapped_column(Integer, nullable=False)
    before_level2: Mapped[int] = mapped_column(Integer, nullable=False)
    before_level3: Mapped[int] = mapped_column(Integer, nullable=False)
    after_level1: Mapped[int] = mapped_column(Integer, nullable=False)
    after_level2: Mapped[int] = mapped_column(Integer, nullable=False)
    after_level3: Mapped[int] = mapped_column(Integer, nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def to_dto(self) -> StockEvent:
        return StockEvent(
            event_id=self.id,
            event_type=StockEventType(self.event_type),
            item_id=self.item_id,
            sku=self.sku,
            before=TierQuantity(
                self.before_level1, self.before_level2, self.before_level3
            ),
            after=TierQuantity(
                self.after_level1, self.after_level2, self.after_level3
            ),
            occurred_at=self.occurred_at,
            from_location=self.from_location,
            to_location=self.to_location,
            actor_id=self.actor_id,
            reference=self.reference,
            payload=self.payload or {},
        )

    @classmethod
    def from_dto(cls, dto: StockEvent) -> StockEventModel:
        return cls(
            event_type=dto.event_type.value,
            item_id=dto.item_id,
            sku=dto.sku,
            from_location=dto.from_location,
            to_location=dto.to_location,
            before_level1=dto.before.level1,
            before_level2=dto.before.level2,
            before_level3=dto.before.level3,
            after_level1=dto.after.level1,
            after_level2=dto.after.level2,
            after_level3=dto.after.level3,
            occurred_at=dto.occurred_at,
            actor_id=dto.actor_id,
            reference=dto.reference,
            payload=dto.payload or None,
        )

    def __repr__(self) -> str:
        return f"<StockEvent {self.event_type} {self.sku} item={self.item_id}>"
