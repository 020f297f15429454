"""
Module: warehouse_kernel.models.conversion_rate
Responsibility: ORM persistence for per-SKU packaging configuration.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - At most one configuration per SKU (uq_conversion_rate_sku).

Failure modes:
    - IntegrityError on duplicate SKU.

Notes:
    Rows are not validated by the ORM.  ConversionRateService.save validates
    before writing; rows written by other tools may hold 0 or negative rates,
    which the calculator treats as 1.
"""

from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from warehouse_kernel.db.base import TrackedBase, UUID
from warehouse_kernel.db.types import TierName, TierRate
from warehouse_kernel.domain.values import ConversionRate


class ConversionRateModel(TrackedBase):
    """Packaging rates and tier names for one SKU."""

    __tablename__ = "conversion_rates"

    __table_args__ = (UniqueConstraint("sku", name="uq_conversion_rate_sku"),)

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    level1_rate: Mapped[TierRate]
    level2_rate: Mapped[TierRate]

    level1_name: Mapped[TierName]
    level2_name: Mapped[TierName]
    level3_name: Mapped[TierName]

    def to_dto(self) -> ConversionRate:
        return ConversionRate(
            sku=self.sku,
            level1_rate=self.level1_rate,
            level2_rate=self.level2_rate,
            level1_name=self.level1_name,
            level2_name=self.level2_name,
            level3_name=self.level3_name,
            is_default=False,
        )

    @classmethod
    def from_dto(cls, dto: ConversionRate, created_by_id: UUID) -> ConversionRateModel:
        return cls(
            sku=dto.sku,
            level1_rate=dto.level1_rate,
            level2_rate=dto.level2_rate,
            level1_name=dto.level1_name,
            level2_name=dto.level2_name,
            level3_name=dto.level3_name,
            created_by_id=created_by_id,
            updated_by_id=None,
        )

    def apply(self, dto: ConversionRate, actor_id: UUID) -> None:
        """Overwrite rates and names from ``dto`` (SKU is immutable)."""
        self.level1_rate = dto.level1_rate
        self.level2_rate = dto.level2_rate
        self.level1_name = dto.level1_name
        self.level2_name = dto.level2_name
        self.level3_name = dto.level3_name
        self.updated_by_id = actor_id

    def __repr__(self) -> str:
        return f"<ConversionRate {self.sku}: {self.level1_rate}/{self.level2_rate}>"
