"""
Module: warehouse_engines
Responsibility:
    Re-exports the pure calculation engines.  Canonical import surface for
    warehouse_services and for callers that only need arithmetic.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import warehouse_kernel.domain, warehouse_kernel.exceptions and
    sibling engine modules.  MUST NOT import warehouse_services.

Invariants enforced:
    - Integer-only tier arithmetic; division floors.
    - Determinism: identical inputs always produce identical outputs.
    - Codec, calculator and guard problems are returned as values, never raised.

Usage:
    from warehouse_engines import location_codec
    from warehouse_engines.conversion import to_base_units, from_base_units
    from warehouse_engines.stock_guard import validate
    from warehouse_engines.picking import plan_bulk, ProductNeed
"""

from warehouse_engines import location_codec, stock_guard
from warehouse_engines.conversion import (
    UnitValidationResult,
    convert_between_tiers,
    format_breakdown,
    format_total,
    from_base_units,
    to_base_units,
    validate_unit_data,
)
from warehouse_engines.location_codec import LocationCode
from warehouse_engines.picking import (
    BulkPickingResult,
    PickingPlan,
    PickingStatus,
    PickLine,
    ProductNeed,
    RouteStop,
    build_route,
    plan_bulk,
    plan_picking,
    split_pick,
)
from warehouse_engines.tracer import traced_engine

__all__ = [
    "location_codec",
    "stock_guard",
    "LocationCode",
    "to_base_units",
    "from_base_units",
    "convert_between_tiers",
    "format_breakdown",
    "format_total",
    "validate_unit_data",
    "UnitValidationResult",
    "ProductNeed",
    "PickLine",
    "PickingPlan",
    "PickingStatus",
    "RouteStop",
    "BulkPickingResult",
    "plan_picking",
    "plan_bulk",
    "build_route",
    "split_pick",
    "traced_engine",
]
