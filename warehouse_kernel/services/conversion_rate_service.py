"""
ConversionRateService -- per-SKU packaging rates, never absent.

Responsibility:
    Resolve the ConversionRate for a SKU (falling back to an injected default
    marked ``is_default=True``), validate candidate rates before they are
    stored, and persist accepted ones.

Architecture position:
    Kernel > Services -- imperative shell.  Reads and writes
    ``conversion_rates`` through the caller's Session; flushes, never
    commits.

Invariants enforced:
    - ``get_rate`` always returns a rate.  A missing row, or a store read
      error, yields the default.  Resolution never fails.
    - Nothing is written unless ``validate`` accepted it.  A rate of 0 is
      rejected here even though the calculator would treat it as 1.

Failure modes:
    - ``save`` raises ConversionRateValidationError carrying every error.
    - Store errors on WRITE propagate (SQLAlchemyError).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from warehouse_kernel.domain.dtos import InventoryItem
from warehouse_kernel.domain.values import ConversionRate, RateValidationResult
from warehouse_kernel.exceptions import ConversionRateValidationError
from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.conversion_rate import ConversionRateModel
from warehouse_kernel.services.base import BaseService

logger = get_logger("services.conversion_rate")

DEFAULT_LEVEL1_RATE = 144
DEFAULT_LEVEL2_RATE = 12

_SKU_PATTERN = re.compile(r"^[A-Z0-9-]+$", re.IGNORECASE)
_LEVEL1_RATE_UNUSUAL = 10_000
_LEVEL2_RATE_UNUSUAL = 1_000


class DefaultRateSource(Protocol):
    """Anything carrying fallback rates and tier names (e.g. DefaultRateConfig)."""

    level1_rate: int
    level2_rate: int
    level1_name: str
    level2_name: str
    level3_name: str


@dataclass(frozen=True)
class BuiltinDefaultRate:
    level1_rate: int = DEFAULT_LEVEL1_RATE
    level2_rate: int = DEFAULT_LEVEL2_RATE
    level1_name: str = "carton"
    level2_name: str = "box"
    level3_name: str = "piece"


@dataclass(frozen=True)
class RateBatchReport:
    """Outcome of ``save_many``: what was stored and what was rejected."""

    saved: tuple[str, ...]
    rejected: tuple[tuple[str, tuple[str, ...]], ...]

    @property
    def all_saved(self) -> bool:
        return not self.rejected


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ConversionRateService(BaseService):
    """
    Resolves, validates and stores per-SKU conversion rates.

    Args:
        session: SQLAlchemy session (caller owns the transaction).
        default_rate: Fallback rates and names for unconfigured SKUs.
        use_cache: Keep resolved rates for the life of this instance.
    """

    def __init__(
        self,
        session: Session,
        default_rate: DefaultRateSource | None = None,
        use_cache: bool = True,
    ):
        super().__init__(session)
        self._default = default_rate or BuiltinDefaultRate()
        self._use_cache = use_cache
        self._cache: dict[str, ConversionRate] = {}

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def default_for(self, sku: str) -> ConversionRate:
        d = self._default
        return ConversionRate(
            sku=sku,
            level1_rate=d.level1_rate,
            level2_rate=d.level2_rate,
            level1_name=d.level1_name,
            level2_name=d.level2_name,
            level3_name=d.level3_name,
            is_default=True,
        )

    def get_rate(self, sku: str) -> ConversionRate:
        """Configured rate for ``sku``, or the default with ``is_default=True``."""
        if self._use_cache and sku in self._cache:
            return self._cache[sku]

        try:
            row = self.session.execute(
                select(ConversionRateModel).where(ConversionRateModel.sku == sku)
            ).scalar_one_or_none()
        except SQLAlchemyError:
            logger.warning(
                "conversion_rate_lookup_failed",
                extra={"sku": sku},
                exc_info=True,
            )
            # Not cached: the store may recover on the next call
            return self.default_for(sku)

        if row is None:
            rate = self.default_for(sku)
            logger.debug("conversion_rate_defaulted", extra={"sku": sku})
        else:
            rate = row.to_dto()

        if self._use_cache:
            self._cache[sku] = rate
        return rate

    def get_rates(self, skus: Iterable[str]) -> dict[str, ConversionRate]:
        """Resolve several SKUs with one query for the uncached ones."""
        wanted = list(dict.fromkeys(skus))
        result: dict[str, ConversionRate] = {}
        missing: list[str] = []
        for sku in wanted:
            if self._use_cache and sku in self._cache:
                result[sku] = self._cache[sku]
            else:
                missing.append(sku)

        if missing:
            try:
                rows = self.session.execute(
                    select(ConversionRateModel).where(ConversionRateModel.sku.in_(missing))
                ).scalars().all()
            except SQLAlchemyError:
                logger.warning(
                    "conversion_rate_lookup_failed",
                    extra={"sku_count": len(missing)},
                    exc_info=True,
                )
                for sku in missing:
                    result[sku] = self.default_for(sku)
                return result

            found = {row.sku: row.to_dto() for row in rows}
            for sku in missing:
                rate = found.get(sku) or self.default_for(sku)
                result[sku] = rate
                if self._use_cache:
                    self._cache[sku] = rate

        return result

    def rate_for_item(self, item: InventoryItem) -> ConversionRate:
        """
        Rate to use for one inventory record.

        Rates stamped on the record win; when both are unconfigured (<= 0)
        the SKU's rate is used.  Tier names missing on the record are taken
        from the SKU's rate.
        """
        if (item.level1_rate or 0) > 0 or (item.level2_rate or 0) > 0:
            sku_rate = None
            if not (item.level1_name and item.level2_name and item.level3_name):
                sku_rate = self.get_rate(item.sku)
            return ConversionRate(
                sku=item.sku,
                level1_rate=item.level1_rate,
                level2_rate=item.level2_rate,
                level1_name=item.level1_name or (sku_rate.level1_name if sku_rate else None),
                level2_name=item.level2_name or (sku_rate.level2_name if sku_rate else None),
                level3_name=item.level3_name or (sku_rate.level3_name if sku_rate else None),
            )
        return self.get_rate(item.sku)

    def invalidate(self, sku: str | None = None) -> None:
        """Drop one SKU from the cache, or everything when ``sku`` is None."""
        if sku is None:
            self._cache.clear()
        else:
            self._cache.pop(sku, None)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, candidate: ConversionRate) -> RateValidationResult:
        """Check a candidate before storage. Never raises."""
        errors: list[str] = []
        warnings: list[str] = []

        sku = (candidate.sku or "").strip()
        if not sku:
            errors.append("SKU is required")
        elif not _SKU_PATTERN.match(sku):
            warnings.append("SKU should contain only letters, digits and '-'")

        for name, unusual in (
            ("level1_rate", _LEVEL1_RATE_UNUSUAL),
            ("level2_rate", _LEVEL2_RATE_UNUSUAL),
        ):
            value = getattr(candidate, name)
            if value is None:
                errors.append(f"{name} is required")
            elif not _is_positive_int(value):
                errors.append(f"{name} must be a positive integer, got {value!r}")
            elif value > unusual:
                warnings.append(f"{name} is unusually high (>{unusual:,})")

        if (
            _is_positive_int(candidate.level1_rate)
            and _is_positive_int(candidate.level2_rate)
            and candidate.level1_rate < candidate.level2_rate
        ):
            warnings.append("level1_rate is smaller than level2_rate")

        for name in ("level1_name", "level2_name", "level3_name"):
            if not (getattr(candidate, name) or "").strip():
                errors.append(f"{name} is required")

        return RateValidationResult(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, candidate: ConversionRate, actor_id: UUID) -> ConversionRate:
        """
        Validate and upsert ``candidate``.

        Raises:
            ConversionRateValidationError: candidate rejected; nothing written.
        """
        result = self.validate(candidate)
        if not result.is_valid:
            logger.info(
                "conversion_rate_rejected",
                extra={"sku": candidate.sku, "errors": list(result.errors)},
            )
            raise ConversionRateValidationError(candidate.sku, result.errors)

        sku = candidate.sku.strip()
        row = self.session.execute(
            select(ConversionRateModel).where(ConversionRateModel.sku == sku)
        ).scalar_one_or_none()

        normalized = ConversionRate(
            sku=sku,
            level1_rate=candidate.level1_rate,
            level2_rate=candidate.level2_rate,
            level1_name=candidate.level1_name.strip(),
            level2_name=candidate.level2_name.strip(),
            level3_name=candidate.level3_name.strip(),
        )
        if row is None:
            row = ConversionRateModel.from_dto(normalized, created_by_id=actor_id)
            self.session.add(row)
        else:
            row.apply(normalized, actor_id)
        self.session.flush()
        self.invalidate(sku)

        logger.info(
            "conversion_rate_saved",
            extra={
                "sku": sku,
                "level1_rate": normalized.level1_rate,
                "level2_rate": normalized.level2_rate,
                "warnings": list(result.warnings),
            },
        )
        return row.to_dto()

    def save_many(
        self,
        candidates: Iterable[ConversionRate],
        actor_id: UUID,
    ) -> RateBatchReport:
        """Save every valid candidate; report every rejected one."""
        saved: list[str] = []
        rejected: list[tuple[str, tuple[str, ...]]] = []
        for candidate in candidates:
            try:
                saved.append(self.save(candidate, actor_id).sku)
            except ConversionRateValidationError as exc:
                rejected.append((candidate.sku or "", exc.errors))
        logger.info(
            "conversion_rates_batch_saved",
            extra={"saved": len(saved), "rejected": len(rejected)},
        )
        return RateBatchReport(saved=tuple(saved), rejected=tuple(rejected))

    def delete(self, sku: str) -> bool:
        """Remove the configuration for ``sku``. True if a row was deleted."""
        result = self.session.execute(
            delete(ConversionRateModel).where(ConversionRateModel.sku == sku)
        )
        self.invalidate(sku)
        deleted = (result.rowcount or 0) > 0
        logger.info("conversion_rate_deleted", extra={"sku": sku, "deleted": deleted})
        return deleted
