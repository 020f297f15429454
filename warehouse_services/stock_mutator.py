"""
StockMutator -- authoritative stock deduction against the store.

Responsibility:
    Take tier quantities out of one inventory record: re-read it, re-check
    feasibility against what was just read, then either persist the new
    quantities or remove the record when it reaches zero.

Architecture position:
    Services -- stateful orchestration over engines (stock guard) and
    kernel services (write chain, rate resolver, event recorder).

Algorithm (``deduct``):
    1. Re-read the record bypassing the identity map (``populate_existing``).
    2. Authoritative stock guard check against the re-read quantities.
    3. new = before - requested.
    4. All tiers zero -> delete, conditional on ``before`` like the update
       below, so stock added concurrently is never deleted.  If the store refuses the delete because
       the record is still referenced, persist the zeros instead and report
       ``is_empty=True, deleted=False``.
       Otherwise -> persist new quantities (conditional on ``before`` when
       the write chain is configured for it).
    5. Record a deduction event (best-effort).

Invariants enforced:
    - A deduction never drives a tier negative in the store.
    - A UI-side guard pass is never trusted; step 2 always runs.

Failure modes (raised, never returned):
    - InsufficientStockError: authoritative check failed; nothing written.
    - InventoryItemNotFoundError: record gone.
    - StaleStockError: record changed between read and conditional write
      or delete.
    - PersistenceError: every write path failed.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from warehouse_engines import stock_guard
from warehouse_kernel.domain.dtos import DeductionResult, InventoryItem, StockEventType
from warehouse_kernel.domain.values import ConversionRate, TierQuantity
from warehouse_kernel.exceptions import (
    InsufficientStockError,
    InventoryItemNotFoundError,
    RecordReferencedError,
)
from warehouse_kernel.logging_config import LogContext, get_logger
from warehouse_kernel.models.inventory_item import InventoryItemModel
from warehouse_kernel.services.conversion_rate_service import ConversionRateService
from warehouse_kernel.services.stock_event_recorder import StockEventRecorder
from warehouse_kernel.services.write_paths import DirectStoreWriteStrategy, WriteChain

logger = get_logger("services.stock_mutator")


class StockMutator:
    """
    Deducts stock from inventory records.

    Args:
        session: Caller-owned session; flushed, never committed.
        writer: Write chain; defaults to the direct store path.
        rates: Rate resolver used for tier names in messages.
        events: Event recorder; None disables event recording.
    """

    def __init__(
        self,
        session: Session,
        writer: WriteChain | None = None,
        rates: ConversionRateService | None = None,
        events: StockEventRecorder | None = None,
    ):
        self._session = session
        self._writer = writer or WriteChain([DirectStoreWriteStrategy(session)])
        self._rates = rates
        self._events = events

    def load(self, item_id: UUID) -> InventoryItem:
        """Fresh snapshot of a record, bypassing any cached ORM state."""
        model = self._session.get(InventoryItemModel, item_id, populate_existing=True)
        if model is None:
            raise InventoryItemNotFoundError(item_id)
        return model.to_dto()

    def _rate(self, item: InventoryItem) -> ConversionRate:
        if self._rates is not None:
            return self._rates.rate_for_item(item)
        return item.stamped_rate

    def check(self, item_id: UUID, requested: TierQuantity) -> InsufficientStockError | None:
        """Store-backed advisory check; returns the problem, never raises it."""
        item = self.load(item_id)
        return stock_guard.validate(
            item.quantities, requested, item.id, item.sku, self._rate(item)
        )

    def deduct(
        self,
        item_id: UUID,
        requested: TierQuantity,
        actor_id: UUID | None = None,
        reference: str | None = None,
    ) -> DeductionResult:
        with LogContext.bind(item_id=item_id, actor_id=actor_id):
            item = self.load(item_id)
            before = item.quantities

            error = stock_guard.validate(
                before, requested, item.id, item.sku, self._rate(item)
            )
            if error is not None:
                logger.info(
                    "stock_deduction_rejected",
                    extra={
                        "sku": item.sku,
                        "tier": error.tier,
                        "requested": error.requested,
                        "available": error.available,
                    },
                )
                raise error

            after = before - requested
            deleted = False

            if after.is_empty:
                try:
                    write_path = self._writer.delete_item(item.id, expected=before)
                    deleted = True
                except RecordReferencedError:
                    logger.info(
                        "stock_empty_record_retained",
                        extra={"sku": item.sku, "location": item.location},
                    )
                    write_path = self._writer.update_quantities(
                        item.id, after, expected=before, actor_id=actor_id
                    )
            else:
                write_path = self._writer.update_quantities(
                    item.id, after, expected=before, actor_id=actor_id
                )

            if self._events is not None:
                self._events.record(
                    StockEventType.DEDUCTION,
                    item_id=item.id,
                    sku=item.sku,
                    before=before,
                    after=after,
                    from_location=item.location,
                    actor_id=actor_id,
                    reference=reference,
                    payload={"requested": requested.as_dict(), "deleted": deleted},
                )

            logger.info(
                "stock_deducted",
                extra={
                    "sku": item.sku,
                    "location": item.location,
                    "before": str(before),
                    "after": str(after),
                    "deleted": deleted,
                    "write_path": write_path,
                },
            )

            return DeductionResult(
                item_id=item.id,
                sku=item.sku,
                location=item.location,
                before=before,
                requested=requested,
                after=after,
                is_empty=after.is_empty,
                deleted=deleted,
                write_path=write_path,
            )
