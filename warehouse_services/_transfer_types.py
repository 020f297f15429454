"""
warehouse_services._transfer_types -- DTOs for the transfer orchestrator.

Responsibility:
    Frozen request/plan/result types for moving inventory records between
    locations, the per-item state machine, and the batch report.

Architecture position:
    Services.  These types live here because the orchestrator that produces
    and consumes them lives here.  No I/O.

State machine (per item):
    PENDING -> VALIDATED -> {CONFLICT | READY} -> {SUCCESS | FAILED}

    A destination that does not normalise goes straight to FAILED.
    CONFLICT(same_location) always ends FAILED.  CONFLICT(occupied) ends
    in execution only when the caller confirmed co-location.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from warehouse_kernel.domain.dtos import InventoryItem


class TransferState(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    CONFLICT = "conflict"
    READY = "ready"
    SUCCESS = "success"
    FAILED = "failed"


class ConflictKind(str, Enum):
    SAME_LOCATION = "same_location"  # Always rejected
    OCCUPIED = "occupied"  # Needs operator confirmation


class BatchPolicy(str, Enum):
    """What a batch does when some items cannot move."""

    BEST_EFFORT = "best_effort"  # Move what can move; success iff any moved
    ALL_OR_NOTHING = "all_or_nothing"  # Move nothing unless every item can move


@dataclass(frozen=True)
class TransferRequest:
    item_id: UUID
    destination: str


@dataclass(frozen=True)
class DestinationPreview:
    """
    What the operator confirms before co-locating stock.

    ``occupants`` are active records already at the destination in
    ``warehouse_code``, leaving out records that are about to move away from
    it.  A record already at the destination and staying there is an
    occupant even when it appears in the batch.  Totals are canonical
    base-unit counts.
    """

    raw_destination: str
    destination: str | None
    warehouse_code: str | None = None
    occupants: tuple[InventoryItem, ...] = ()
    incoming: tuple[InventoryItem, ...] = ()
    occupant_units: int = 0
    incoming_units: int = 0

    @property
    def is_valid(self) -> bool:
        return self.destination is not None

    @property
    def is_occupied(self) -> bool:
        return bool(self.occupants)

    @property
    def occupant_count(self) -> int:
        return len(self.occupants)

    @property
    def incoming_count(self) -> int:
        return len(self.incoming)

    @property
    def combined_count(self) -> int:
        return self.occupant_count + self.incoming_count

    @property
    def combined_units(self) -> int:
        return self.occupant_units + self.incoming_units


@dataclass(frozen=True)
class PlannedTransfer:
    """One item after validation and conflict detection."""

    request: TransferRequest
    state: TransferState
    item: InventoryItem | None = None
    source: str | None = None
    destination: str | None = None
    conflict: ConflictKind | None = None
    merge_target_id: UUID | None = None
    error: Exception | None = None
    message: str = ""

    @property
    def label(self) -> str:
        if self.item is not None:
            return self.item.label
        return str(self.request.item_id)


@dataclass(frozen=True)
class TransferPlan:
    items: tuple[PlannedTransfer, ...]
    previews: tuple[DestinationPreview, ...] = ()

    @property
    def is_batch(self) -> bool:
        return len(self.items) > 1

    def _count(self, state: TransferState) -> int:
        return sum(1 for p in self.items if p.state is state)

    @property
    def ready_count(self) -> int:
        return self._count(TransferState.READY)

    @property
    def conflict_count(self) -> int:
        return self._count(TransferState.CONFLICT)

    @property
    def failed_count(self) -> int:
        return self._count(TransferState.FAILED)

    @property
    def requires_confirmation(self) -> bool:
        """True when some item can only move once co-location is confirmed."""
        return any(p.conflict is ConflictKind.OCCUPIED for p in self.items)


@dataclass(frozen=True)
class TransferResult:
    item_id: UUID
    success: bool
    message: str
    state: TransferState
    sku: str | None = None
    source: str | None = None
    destination: str | None = None
    error: Exception | None = None
    merged_into: UUID | None = None
    write_path: str | None = None


@dataclass(frozen=True)
class TransferReport:
    """Aggregated outcome of a batch, in request order."""

    results: tuple[TransferResult, ...]
    policy: BatchPolicy = BatchPolicy.BEST_EFFORT
    batch_id: UUID | None = None
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        if self.policy is BatchPolicy.ALL_OR_NOTHING:
            return bool(self.results) and self.failure_count == 0
        return self.success_count > 0

    @property
    def failures(self) -> tuple[TransferResult, ...]:
        return tuple(r for r in self.results if not r.success)

    def summary(self) -> str:
        """One-paragraph outcome naming every failed record."""
        total = len(self.results)
        head = f"Transferred {self.success_count} of {total} item(s)"
        if not self.failure_count:
            return head
        details = "; ".join(
            f"{r.sku or r.item_id}"
            f"{f' at {r.source}' if r.source else ''}: {r.message}"
            for r in self.failures
        )
        return f"{head}; {self.failure_count} failed: {details}"
