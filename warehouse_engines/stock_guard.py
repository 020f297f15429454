"""
Module: warehouse_engines.stock_guard
Responsibility:
    Advisory per-tier feasibility check: can ``requested`` be taken out of
    ``available`` without any tier going negative?

Architecture position:
    Engines -- pure, zero I/O.  Called by UIs before submitting and by the
    stock mutator against a freshly re-read record.  A pass here is NOT a
    reservation; the mutator's own re-check is authoritative.

Invariants enforced:
    - Tiers are not fungible.  A shortfall in level1 is never covered by a
      surplus in level3; callers wanting substitution convert first
      (warehouse_engines.conversion).

Failure modes:
    - None raised.  ``validate`` returns an InsufficientStockError as a value
      so batch callers can aggregate many per-item problems.
"""

from __future__ import annotations

from uuid import UUID

from warehouse_engines.tracer import traced_engine
from warehouse_kernel.domain.values import ConversionRate, Tier, TierQuantity
from warehouse_kernel.exceptions import InsufficientStockError


def find_shortfalls(
    available: TierQuantity,
    requested: TierQuantity,
) -> tuple[tuple[int, int, int], ...]:
    """Every failing tier as ``(tier, requested, available)``, in tier order."""
    return tuple(
        (int(tier), requested.get(tier), available.get(tier))
        for tier in Tier
        if requested.get(tier) > available.get(tier)
    )


@traced_engine("stock_guard", "1.0", fingerprint_fields=("available", "requested"))
def validate(
    available: TierQuantity,
    requested: TierQuantity,
    item_id: UUID | None = None,
    sku: str | None = None,
    rate: ConversionRate | None = None,
) -> InsufficientStockError | None:
    """
    None if every tier suffices, else an error citing the first failing tier.

    With ``rate`` the message names the tier (``"requested 10 carton"``).
    """
    shortfalls = find_shortfalls(available, requested)
    if not shortfalls:
        return None
    tier, req, avail = shortfalls[0]
    return InsufficientStockError(
        tier=tier,
        requested=req,
        available=avail,
        item_id=item_id,
        sku=sku,
        tier_name=rate.name_for(tier) if rate is not None else None,
        shortfalls=shortfalls,
    )


def can_fulfil(available: TierQuantity, requested: TierQuantity) -> bool:
    return not find_shortfalls(available, requested)
