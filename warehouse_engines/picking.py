"""
Module: warehouse_engines.picking
Responsibility:
    Turn "N pieces of SKU X" into a concrete pick list: which inventory
    records to take from, how much from each (in tiers), and the order to
    walk the warehouse.

Architecture position:
    Engines -- pure, zero I/O.  Callers pass inventory snapshots
    (InventoryItem) and a rate lookup; nothing is reserved or deducted here.

Algorithm:
    1. Match records by SKU (case-insensitive), ignoring empty records.
    2. Order FEFO: manufacture date ascending (undated last), then lot, then
       location walk order (row, position, level; unrecognised text last).
    3. Allocate greedily in that order until the need is met.
    4. Break each allocation into tier quantities the record actually holds
       (``split_pick``), opening the smallest pack needed when the loose
       pieces run out.

Invariants enforced:
    - ``sum(line.to_pick) == min(need, total_available)``.
    - ``line.take`` never exceeds what the record holds in any tier.
    - ``to_base_units(line.take) - line.to_pick == line.overshoot >= 0``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from warehouse_engines import location_codec
from warehouse_engines.conversion import to_base_units
from warehouse_engines.tracer import traced_engine
from warehouse_kernel.domain.dtos import InventoryItem
from warehouse_kernel.domain.values import ConversionRate, Tier, TierQuantity

RateLookup = Callable[[InventoryItem], ConversionRate]


class PickingStatus(str, Enum):
    SUFFICIENT = "sufficient"
    INSUFFICIENT = "insufficient"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ProductNeed:
    """Requested quantity of one SKU, in base units."""

    sku: str
    quantity: int
    product_name: str | None = None


@dataclass(frozen=True)
class PickLine:
    """Allocation from one inventory record."""

    item_id: UUID
    sku: str
    location: str
    available: int
    to_pick: int
    take: TierQuantity
    overshoot: int = 0
    lot: str | None = None
    mfd: date | None = None

    @property
    def remaining(self) -> int:
        return self.available - self.to_pick


@dataclass(frozen=True)
class PickingPlan:
    sku: str
    product_name: str | None
    total_needed: int
    total_available: int
    status: PickingStatus
    lines: tuple[PickLine, ...] = ()

    @property
    def total_allocated(self) -> int:
        return sum(line.to_pick for line in self.lines)

    @property
    def shortfall(self) -> int:
        return max(self.total_needed - self.total_available, 0)

    @property
    def percentage(self) -> float:
        if self.total_needed <= 0:
            return 100.0
        return min(self.total_available / self.total_needed * 100, 100.0)


@dataclass(frozen=True)
class RouteStop:
    sequence: int
    location: str
    sku: str
    product_name: str | None
    item_id: UUID
    quantity: int
    take: TierQuantity


@dataclass(frozen=True)
class PickingSummary:
    total_products: int
    sufficient: int
    insufficient: int
    not_found: int
    total_stops: int


@dataclass(frozen=True)
class BulkPickingResult:
    plans: tuple[PickingPlan, ...]
    route: tuple[RouteStop, ...]
    summary: PickingSummary


def _stamped_rate(item: InventoryItem) -> ConversionRate:
    return item.stamped_rate


def fefo_key(item: InventoryItem) -> tuple:
    """FEFO sort key: dated before undated, oldest first, then lot, then walk order."""
    return (
        item.mfd is None,
        item.mfd or date.min,
        item.lot is None,
        item.lot or "",
        location_codec.walk_order(item.location),
    )


def split_pick(item: InventoryItem, rate: ConversionRate, pieces: int) -> TierQuantity:
    """
    Tier quantities to take from ``item`` to cover ``pieces`` base units.

    Largest packs first, each tier capped at what the record holds.  When
    loose pieces cannot cover the remainder, whole packs are opened
    (boxes before cartons), so the result may exceed ``pieces``.

    Raises:
        ValueError: ``pieces`` exceeds the record's base-unit total.
    """
    held = item.quantities
    if pieces < 0 or pieces > to_base_units(held, rate):
        raise ValueError(
            f"Cannot pick {pieces} from {item.label} at {item.location}: "
            f"holds {to_base_units(held, rate)}"
        )
    r1 = rate.multiplier_for(Tier.LEVEL1)
    r2 = rate.multiplier_for(Tier.LEVEL2)
    # Packs of an unconfigured tier hold no pieces and are never taken.
    usable1 = held.level1 if r1 else 0
    usable2 = held.level2 if r2 else 0
    remaining = pieces

    level1 = min(usable1, remaining // r1) if r1 else 0
    remaining -= level1 * r1
    level2 = min(usable2, remaining // r2) if r2 else 0
    remaining -= level2 * r2
    level3 = min(held.level3, remaining)
    remaining -= level3

    while remaining > 0:
        if level2 < usable2:
            level2 += 1
            remaining -= r2
        else:
            level1 += 1
            remaining -= r1

    return TierQuantity(level1, level2, level3)


@traced_engine("picking", "1.0", fingerprint_fields=("need",))
def plan_picking(
    need: ProductNeed,
    items: Iterable[InventoryItem],
    rate_lookup: RateLookup | None = None,
) -> PickingPlan:
    """FEFO pick plan for one SKU."""
    lookup = rate_lookup or _stamped_rate
    wanted = need.sku.strip().lower()
    matching = [
        item for item in items
        if item.sku and item.sku.strip().lower() == wanted and not item.is_empty
    ]

    if not matching:
        return PickingPlan(
            sku=need.sku,
            product_name=need.product_name,
            total_needed=need.quantity,
            total_available=0,
            status=PickingStatus.NOT_FOUND,
        )

    remaining_need = need.quantity
    total_available = 0
    lines: list[PickLine] = []

    for item in sorted(matching, key=fefo_key):
        rate = lookup(item)
        available = to_base_units(item.quantities, rate)
        total_available += available
        if remaining_need <= 0 or available == 0:
            continue
        to_pick = min(available, remaining_need)
        take = split_pick(item, rate, to_pick)
        lines.append(
            PickLine(
                item_id=item.id,
                sku=item.sku,
                location=location_codec.display(item.location),
                available=available,
                to_pick=to_pick,
                take=take,
                overshoot=to_base_units(take, rate) - to_pick,
                lot=item.lot,
                mfd=item.mfd,
            )
        )
        remaining_need -= to_pick

    status = (
        PickingStatus.SUFFICIENT
        if total_available >= need.quantity
        else PickingStatus.INSUFFICIENT
    )
    return PickingPlan(
        sku=need.sku,
        product_name=need.product_name or matching[0].product_name,
        total_needed=need.quantity,
        total_available=total_available,
        status=status,
        lines=tuple(lines),
    )


def build_route(plans: Sequence[PickingPlan]) -> tuple[RouteStop, ...]:
    """Every pick line across ``plans`` in walk order, numbered from 1."""
    stops = [(plan, line) for plan in plans for line in plan.lines]
    stops.sort(key=lambda pair: location_codec.walk_order(pair[1].location))
    return tuple(
        RouteStop(
            sequence=index,
            location=line.location,
            sku=plan.sku,
            product_name=plan.product_name,
            item_id=line.item_id,
            quantity=line.to_pick,
            take=line.take,
        )
        for index, (plan, line) in enumerate(stops, start=1)
    )


@traced_engine("picking_bulk", "1.0")
def plan_bulk(
    needs: Sequence[ProductNeed],
    items: Sequence[InventoryItem],
    rate_lookup: RateLookup | None = None,
) -> BulkPickingResult:
    """Plans for several SKUs plus one combined route."""
    plans = tuple(plan_picking(need, items, rate_lookup) for need in needs)
    route = build_route(plans)
    summary = PickingSummary(
        total_products=len(plans),
        sufficient=sum(1 for p in plans if p.status is PickingStatus.SUFFICIENT),
        insufficient=sum(1 for p in plans if p.status is PickingStatus.INSUFFICIENT),
        not_found=sum(1 for p in plans if p.status is PickingStatus.NOT_FOUND),
        total_stops=len(route),
    )
    return BulkPickingResult(plans=plans, route=route, summary=summary)
