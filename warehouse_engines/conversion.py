"""
Module: warehouse_engines.conversion
Responsibility:
    Integer arithmetic between packaging tiers: tier triple -> base units,
    base units -> greedy tier triple, one tier -> another, plus the
    display strings and unit-data checks built on those formulas.

Architecture position:
    Engines -- pure, zero I/O.  The single source of the "total pieces"
    formula for item cards, transfer previews, picking and stock alerts.

Invariants enforced:
    - Integer-only arithmetic.  Division floors, never rounds.
    - An unconfigured rate (missing or <= 0) multiplies as 0 and divides
      as 1.  ``from_base_units`` never places units in an unconfigured
      tier, so ``to_base_units(from_base_units(t, r), r) == t`` holds for
      every rate the store can hold.
    - ``from_base_units`` is greedy: largest tier first.

Failure modes:
    - ValueError for a negative base-unit total or an unknown tier.
    - ``validate_unit_data`` never raises; problems are returned as values.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from warehouse_engines.tracer import traced_engine
from warehouse_kernel.domain.values import ConversionRate, Tier, TierQuantity

DEFAULT_BASE_UNIT_NAME = "piece"


def to_base_units(quantities: TierQuantity, rate: ConversionRate) -> int:
    """``level1 * level1_rate + level2 * level2_rate + level3``."""
    return quantities.total_units(rate)


@traced_engine("tier_decomposition", "1.0", fingerprint_fields=("total", "rate"))
def from_base_units(total: int, rate: ConversionRate) -> TierQuantity:
    """Greedy decomposition of ``total`` base units into configured tiers."""
    if total < 0:
        raise ValueError(f"Base-unit total cannot be negative: {total}")
    level1 = level2 = 0
    remainder = total
    if rate.is_configured(Tier.LEVEL1):
        level1, remainder = divmod(remainder, rate.level1_rate)
    if rate.is_configured(Tier.LEVEL2):
        level2, remainder = divmod(remainder, rate.level2_rate)
    return TierQuantity(level1, level2, remainder)


@traced_engine(
    "tier_conversion", "1.0",
    fingerprint_fields=("quantity", "from_level", "to_level", "rate"),
)
def convert_between_tiers(
    quantity: int,
    from_level: Tier | int,
    to_level: Tier | int,
    rate: ConversionRate,
) -> int:
    """
    Express ``quantity`` packs of ``from_level`` in packs of ``to_level``.

    Routes through base units and truncates: 1 carton (144) is 12 boxes
    (12), 13 pieces is 1 box.  Packs of an unconfigured tier hold nothing.
    """
    from_tier, to_tier = Tier(from_level), Tier(to_level)
    if quantity < 0:
        raise ValueError(f"Quantity cannot be negative: {quantity}")
    base = quantity * rate.multiplier_for(from_tier)
    return base // rate.rate_for(to_tier)


def format_breakdown(quantities: TierQuantity, rate: ConversionRate) -> str:
    """
    ``"10 carton + 2 box + 5 piece"``; ``"0"`` when nothing to show.

    Tier 1 and 2 appear only when non-zero and named; tier 3 appears when
    non-zero, falling back to the generic base unit name.
    """
    parts: list[str] = []
    if quantities.level1 > 0 and rate.level1_name:
        parts.append(f"{quantities.level1} {rate.level1_name}")
    if quantities.level2 > 0 and rate.level2_name:
        parts.append(f"{quantities.level2} {rate.level2_name}")
    if quantities.level3 > 0:
        parts.append(f"{quantities.level3} {rate.level3_name or DEFAULT_BASE_UNIT_NAME}")
    return " + ".join(parts) if parts else "0"


def format_total(quantities: TierQuantity, rate: ConversionRate) -> str:
    """``"5,057 piece"``."""
    total = to_base_units(quantities, rate)
    return f"{total:,} {rate.level3_name or DEFAULT_BASE_UNIT_NAME}"


@dataclass(frozen=True)
class UnitValidationResult:
    is_valid: bool
    errors: tuple[str, ...] = ()


def validate_unit_data(
    quantities: TierQuantity | Sequence[int],
    rate: ConversionRate,
) -> UnitValidationResult:
    """
    Check raw tier data before it becomes a TierQuantity.

    Accepts a plain (level1, level2, level3) sequence so that negative input
    can be reported instead of raising.
    """
    if isinstance(quantities, TierQuantity):
        level1, level2, level3 = quantities.as_tuple()
    else:
        level1, level2, level3 = (int(q or 0) for q in quantities)

    errors: list[str] = []
    for tier, qty in ((1, level1), (2, level2), (3, level3)):
        if qty < 0:
            errors.append(f"level{tier} quantity cannot be negative")

    if level1 > 0 and (rate.level1_rate or 0) <= 0:
        errors.append("level1 rate must be greater than 0 when level1 quantity is set")
    if level2 > 0 and (rate.level2_rate or 0) <= 0:
        errors.append("level2 rate must be greater than 0 when level2 quantity is set")

    if level1 > 0 and not (rate.level1_name or "").strip():
        errors.append("level1 name is required when level1 quantity is set")
    if level2 > 0 and not (rate.level2_name or "").strip():
        errors.append("level2 name is required when level2 quantity is set")

    return UnitValidationResult(is_valid=not errors, errors=tuple(errors))
