"""
Values -- Immutable domain value objects for packaged stock.

Responsibility:
    Provides the value types every stock computation is expressed in:
    Tier, TierQuantity, ConversionRate and RateValidationResult.  These
    replace loose (int, int, int) tuples and ad-hoc dicts wherever tier
    quantities or packaging rates appear in engine or service code.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines, services and models.  No outward dependencies.

Invariants enforced:
    - TierQuantity components are non-negative integers (ValueError otherwise).
    - A rate that is missing or <= 0 is "unconfigured".  It multiplies as 0
      (the tier adds nothing to a base-unit total) and divides as 1
      (``effective_rate``), so no computation divides by zero.

Failure modes:
    - ValueError on TierQuantity construction with negative or non-int parts.
    - ValueError when subtraction would drive a tier negative.

Notes:
    ConversionRate deliberately does NOT validate itself.  Candidates coming
    from users or stores may be invalid and must survive long enough to be
    reported by ``ConversionRateService.validate``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Tier(IntEnum):
    """Packaging tier. 1 = largest pack, 3 = base unit."""

    LEVEL1 = 1
    LEVEL2 = 2
    LEVEL3 = 3


def effective_rate(rate: int | None) -> int:
    """A rate that is missing or <= 0 counts as 1."""
    if rate is None or rate <= 0:
        return 1
    return rate


@dataclass(frozen=True, slots=True)
class TierQuantity:
    """
    Quantity held in each packaging tier.

    Contract:
        Three independent non-negative integer counts.  Tiers are never
        fungible: 1 carton is not interchangeable with 12 boxes here, the
        conversion calculator is the only place tiers are related.

    Guarantees:
        - Immutable and hashable.
        - ``a + b`` and ``a - b`` are component-wise; subtraction raises
          ValueError rather than producing a negative tier.
    """

    level1: int = 0
    level2: int = 0
    level3: int = 0

    def __post_init__(self) -> None:
        for name in ("level1", "level2", "level3"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} cannot be negative: {value}")

    @classmethod
    def zero(cls) -> TierQuantity:
        return cls(0, 0, 0)

    @classmethod
    def from_mapping(cls, data: dict) -> TierQuantity:
        """Build from ``{"level1": .., "level2": .., "level3": ..}``; missing keys are 0."""
        return cls(
            int(data.get("level1", 0) or 0),
            int(data.get("level2", 0) or 0),
            int(data.get("level3", 0) or 0),
        )

    def get(self, tier: Tier | int) -> int:
        return (self.level1, self.level2, self.level3)[int(tier) - 1]

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.level1, self.level2, self.level3)

    def as_dict(self) -> dict[str, int]:
        return {"level1": self.level1, "level2": self.level2, "level3": self.level3}

    @property
    def is_empty(self) -> bool:
        return self.level1 == 0 and self.level2 == 0 and self.level3 == 0

    def total_units(self, rate: ConversionRate) -> int:
        """Base-unit (piece) count under ``rate``."""
        return (
            self.level1 * rate.multiplier_for(Tier.LEVEL1)
            + self.level2 * rate.multiplier_for(Tier.LEVEL2)
            + self.level3
        )

    def __add__(self, other: TierQuantity) -> TierQuantity:
        if not isinstance(other, TierQuantity):
            return NotImplemented
        return TierQuantity(
            self.level1 + other.level1,
            self.level2 + other.level2,
            self.level3 + other.level3,
        )

    def __sub__(self, other: TierQuantity) -> TierQuantity:
        if not isinstance(other, TierQuantity):
            return NotImplemented
        return TierQuantity(
            self.level1 - other.level1,
            self.level2 - other.level2,
            self.level3 - other.level3,
        )

    def __str__(self) -> str:
        return f"{self.level1}/{self.level2}/{self.level3}"


@dataclass(frozen=True, slots=True)
class ConversionRate:
    """
    Per-SKU packaging configuration.

    ``level1_rate`` is the number of base units in one tier-1 pack;
    ``level2_rate`` the number of base units in one tier-2 pack.
    ``is_default`` marks a rate synthesised because the SKU has no
    configuration of its own.
    """

    sku: str
    level1_rate: int | None
    level2_rate: int | None
    level1_name: str | None = None
    level2_name: str | None = None
    level3_name: str | None = None
    is_default: bool = False

    @property
    def effective_level1_rate(self) -> int:
        return effective_rate(self.level1_rate)

    @property
    def effective_level2_rate(self) -> int:
        return effective_rate(self.level2_rate)

    def is_configured(self, tier: Tier | int) -> bool:
        """True when ``tier`` has a positive rate; the base tier always does."""
        tier = Tier(tier)
        if tier is Tier.LEVEL3:
            return True
        value = self.level1_rate if tier is Tier.LEVEL1 else self.level2_rate
        return value is not None and value > 0

    def multiplier_for(self, tier: Tier | int) -> int:
        """Base units one pack of ``tier`` adds to a total; 0 when unconfigured."""
        tier = Tier(tier)
        if not self.is_configured(tier):
            return 0
        if tier is Tier.LEVEL1:
            return self.level1_rate
        if tier is Tier.LEVEL2:
            return self.level2_rate
        return 1

    def rate_for(self, tier: Tier | int) -> int:
        """Divisor for one pack of ``tier``; never 0."""
        tier = Tier(tier)
        if tier is Tier.LEVEL1:
            return self.effective_level1_rate
        if tier is Tier.LEVEL2:
            return self.effective_level2_rate
        return 1

    def name_for(self, tier: Tier | int) -> str:
        """Display name of ``tier``, falling back to ``level<N>``."""
        tier = Tier(tier)
        name = (self.level1_name, self.level2_name, self.level3_name)[tier - 1]
        return name or f"level{int(tier)}"


@dataclass(frozen=True, slots=True)
class RateValidationResult:
    """Outcome of validating a ConversionRate candidate. Never raised."""

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
