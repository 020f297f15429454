"""
TransferOrchestrator -- moves inventory records between locations.

Responsibility:
    Validate destinations, detect same-location and occupied-slot conflicts,
    and execute single or batch moves with per-item isolation.

Architecture position:
    Services -- stateful orchestration over the location codec (engines),
    the write chain, rate resolver and event recorder (kernel services).

Flow:
    ``plan()``     PENDING -> VALIDATED -> {CONFLICT | READY}, or FAILED when
                   the record is missing or the destination does not parse.
    ``execute()``  READY (and, with ``confirm_occupied``, CONFLICT(occupied))
                   items are moved one at a time, each in its own SAVEPOINT,
                   ending SUCCESS or FAILED, in list order.

Invariants enforced:
    - Destinations are written in canonical form only.
    - A record is never "moved" to the slot it already occupies.
    - Co-locating with other active stock needs explicit confirmation.
      Only batch records that are leaving their slot stop counting as its
      occupants, and an unconfirmed move re-checks its destination when it
      runs, so a departure that failed still blocks the arrival.
    - Under BEST_EFFORT one item's failure never rolls back another's move;
      the batch succeeds iff at least one item moved.
    - Under ALL_OR_NOTHING nothing is written unless every item can move,
      and a late failure rolls back the whole batch.

Merge (``merge_same_sku``):
    When the destination already holds an active record of the same SKU,
    lot and packaging, the moving quantities are added to that record and
    the source record is removed (or zeroed in place if it is still
    referenced) instead of creating a second record at one slot.  The
    removal is conditional on the quantities read, like a deduction.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import replace
from uuid import UUID, uuid4

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from warehouse_engines import location_codec
from warehouse_engines.conversion import to_base_units
from warehouse_kernel.domain.dtos import InventoryItem, StockEventType
from warehouse_kernel.domain.values import ConversionRate, TierQuantity
from warehouse_kernel.exceptions import (
    InventoryItemNotFoundError,
    LocationFormatError,
    RecordReferencedError,
    TransferConflictError,
    WarehouseKernelError,
)
from warehouse_kernel.logging_config import LogContext, get_logger
from warehouse_kernel.models.inventory_item import InventoryItemModel
from warehouse_kernel.services.conversion_rate_service import ConversionRateService
from warehouse_kernel.services.stock_event_recorder import StockEventRecorder
from warehouse_kernel.services.write_paths import DirectStoreWriteStrategy, WriteChain
from warehouse_services._transfer_types import (
    BatchPolicy,
    ConflictKind,
    DestinationPreview,
    PlannedTransfer,
    TransferPlan,
    TransferReport,
    TransferRequest,
    TransferResult,
    TransferState,
)

logger = get_logger("services.transfer")


class TransferOrchestrator:
    """
    Plans and executes location transfers.

    Args:
        session: Caller-owned session; flushed, never committed.
        writer: Write chain; defaults to the direct store path.
        rates: Rate resolver for preview totals; stamped rates otherwise.
        events: Event recorder; None disables event recording.
        policy: Batch policy applied by ``execute``.
        merge_same_sku: Fold moving stock into a matching record at the
            destination instead of co-locating two records.
    """

    def __init__(
        self,
        session: Session,
        writer: WriteChain | None = None,
        rates: ConversionRateService | None = None,
        events: StockEventRecorder | None = None,
        policy: BatchPolicy = BatchPolicy.BEST_EFFORT,
        merge_same_sku: bool = False,
    ):
        self._session = session
        self._writer = writer or WriteChain([DirectStoreWriteStrategy(session)])
        self._rates = rates
        self._events = events
        self._policy = BatchPolicy(policy)
        self._merge_same_sku = merge_same_sku

    @property
    def policy(self) -> BatchPolicy:
        return self._policy

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _load(self, item_id: UUID) -> InventoryItem | None:
        model = self._session.get(InventoryItemModel, item_id, populate_existing=True)
        return model.to_dto() if model is not None else None

    def _rate(self, item: InventoryItem) -> ConversionRate:
        if self._rates is not None:
            return self._rates.rate_for_item(item)
        return item.stamped_rate

    def occupants(
        self,
        destination: str,
        exclude_ids: Iterable[UUID] = (),
        warehouse_code: str | None = None,
    ) -> list[InventoryItem]:
        """
        Active records at ``destination``, however their location is spelled.

        Empty records do not occupy a slot.  Records in ``exclude_ids`` (the
        ones leaving it) are left out.
        """
        forms = location_codec.spellings(destination)
        if not forms:
            return []
        stmt = select(InventoryItemModel).where(
            InventoryItemModel.location.in_(forms),
            or_(
                InventoryItemModel.level1_quantity > 0,
                InventoryItemModel.level2_quantity > 0,
                InventoryItemModel.level3_quantity > 0,
            ),
        )
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(InventoryItemModel.id.not_in(excluded))
        if warehouse_code is not None:
            stmt = stmt.where(InventoryItemModel.warehouse_code == warehouse_code)
        stmt = stmt.order_by(InventoryItemModel.sku, InventoryItemModel.id)

        rows = self._session.execute(stmt).scalars().all()
        return [
            row.to_dto() for row in rows
            if location_codec.equals(row.location, destination)
        ]

    def preview_destination(
        self,
        destination: str,
        incoming_ids: Sequence[UUID] = (),
        warehouse_code: str | None = None,
        leaving_ids: Iterable[UUID] | None = None,
    ) -> DestinationPreview:
        """
        What is already at ``destination`` and what would arrive there.

        Occupancy is judged as ``plan()`` judges it.  ``warehouse_code``
        defaults to the first incoming record's warehouse; incoming records
        from other warehouses are dropped.  ``leaving_ids`` defaults to the
        incoming records, so an incoming record already sitting at the
        destination stays an occupant rather than arriving.

        An unrecognised destination yields a preview with
        ``destination=None``; nothing is raised.
        """
        canonical = location_codec.normalize(destination)
        if canonical is None:
            return DestinationPreview(raw_destination=destination, destination=None)

        loaded = [
            item for item in (self._load(item_id) for item_id in incoming_ids)
            if item is not None
        ]
        if warehouse_code is None and loaded:
            warehouse_code = loaded[0].warehouse_code
        incoming = tuple(
            item for item in loaded
            if item.warehouse_code == warehouse_code
            and not location_codec.equals(item.location, canonical)
        )
        if leaving_ids is None:
            leaving_ids = [item.id for item in incoming]

        occupants = tuple(self.occupants(
            canonical, exclude_ids=leaving_ids, warehouse_code=warehouse_code
        ))
        return DestinationPreview(
            raw_destination=destination,
            destination=canonical,
            warehouse_code=warehouse_code,
            occupants=occupants,
            incoming=incoming,
            occupant_units=sum(
                to_base_units(i.quantities, self._rate(i)) for i in occupants
            ),
            incoming_units=sum(
                to_base_units(i.quantities, self._rate(i)) for i in incoming
            ),
        )

    def _merge_target(
        self, item: InventoryItem, occupants: Iterable[InventoryItem]
    ) -> InventoryItem | None:
        if not self._merge_same_sku:
            return None
        for other in occupants:
            if (
                other.id != item.id
                and other.sku == item.sku
                and other.lot == item.lot
                and (other.level1_rate, other.level2_rate)
                == (item.level1_rate, item.level2_rate)
            ):
                return other
        return None

    def _conflict(
        self,
        kind: ConflictKind,
        item: InventoryItem,
        destination: str,
        occupant_count: int = 0,
    ) -> TransferConflictError:
        return TransferConflictError(
            kind.value,
            item.id,
            location_codec.display(item.location),
            destination,
            sku=item.sku,
            occupant_count=occupant_count,
        )

    # -------------------------------------------------------------------------
    # Plan
    # -------------------------------------------------------------------------

    def _validate(self, request: TransferRequest) -> PlannedTransfer:
        """FAILED, CONFLICT(same_location) or VALIDATED; occupancy comes later."""
        item = self._load(request.item_id)
        if item is None:
            return PlannedTransfer(
                request=request,
                state=TransferState.FAILED,
                error=InventoryItemNotFoundError(request.item_id),
                message="Inventory record no longer exists",
            )

        destination = location_codec.normalize(request.destination)
        if destination is None:
            error = LocationFormatError(
                request.destination,
                reason=f"destination for {item.label}",
            )
            return PlannedTransfer(
                request=request,
                state=TransferState.FAILED,
                item=item,
                source=item.location,
                error=error,
                message=str(error),
            )

        if location_codec.equals(item.location, destination):
            error = self._conflict(ConflictKind.SAME_LOCATION, item, destination)
            return PlannedTransfer(
                request=request,
                state=TransferState.CONFLICT,
                item=item,
                source=item.location,
                destination=destination,
                conflict=ConflictKind.SAME_LOCATION,
                error=error,
                message=str(error),
            )

        return PlannedTransfer(
            request=request,
            state=TransferState.VALIDATED,
            item=item,
            source=item.location,
            destination=destination,
        )

    def plan(self, requests: Sequence[TransferRequest]) -> TransferPlan:
        """Validate every request and classify it; writes nothing."""
        validated = [self._validate(request) for request in requests]
        # Only records leaving their slot stop occupying it.
        leaving = [p.item.id for p in validated if p.state is TransferState.VALIDATED]

        planned: list[PlannedTransfer] = []
        previews: dict[tuple[str, str], DestinationPreview] = {}

        for entry in validated:
            if entry.state is not TransferState.VALIDATED:
                planned.append(entry)
                continue

            item, destination = entry.item, entry.destination
            occupants = self.occupants(
                destination,
                exclude_ids=leaving,
                warehouse_code=item.warehouse_code,
            )
            if not occupants:
                planned.append(replace(entry, state=TransferState.READY))
                continue

            key = (item.warehouse_code, destination)
            if key not in previews:
                previews[key] = self.preview_destination(
                    destination,
                    [
                        p.item.id for p in validated
                        if p.state is TransferState.VALIDATED
                        and p.destination == destination
                    ],
                    warehouse_code=item.warehouse_code,
                    leaving_ids=leaving,
                )
            target = self._merge_target(item, occupants)
            error = self._conflict(
                ConflictKind.OCCUPIED, item, destination, len(occupants)
            )
            planned.append(replace(
                entry,
                state=TransferState.CONFLICT,
                conflict=ConflictKind.OCCUPIED,
                merge_target_id=target.id if target else None,
                error=error,
                message=str(error),
            ))

        plan = TransferPlan(items=tuple(planned), previews=tuple(previews.values()))
        logger.debug(
            "transfer_planned",
            extra={
                "items": len(plan.items),
                "ready": plan.ready_count,
                "conflicts": plan.conflict_count,
                "failed": plan.failed_count,
            },
        )
        return plan

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    @staticmethod
    def _blocked(planned: PlannedTransfer, confirm_occupied: bool) -> bool:
        if planned.state is TransferState.FAILED:
            return True
        if planned.conflict is ConflictKind.SAME_LOCATION:
            return True
        if planned.conflict is ConflictKind.OCCUPIED:
            return not confirm_occupied
        return planned.state is not TransferState.READY

    @staticmethod
    def _failed(
        planned: PlannedTransfer,
        message: str,
        error: Exception | None = None,
    ) -> TransferResult:
        return TransferResult(
            item_id=planned.request.item_id,
            success=False,
            message=message,
            state=TransferState.FAILED,
            sku=planned.item.sku if planned.item else None,
            source=planned.source,
            destination=planned.destination,
            error=error,
        )

    def execute(
        self,
        plan: TransferPlan,
        confirm_occupied: bool = False,
        actor_id: UUID | None = None,
    ) -> TransferReport:
        """
        Carry out a plan.

        Args:
            plan: Result of ``plan()``.
            confirm_occupied: Operator accepted co-locating with existing stock.
            actor_id: Recorded as ``updated_by_id`` and on stock events.

        Returns:
            TransferReport with one result per planned item, in order.
        """
        batch_id = uuid4()
        with LogContext.bind(batch_id=batch_id, actor_id=actor_id):
            if self._policy is BatchPolicy.ALL_OR_NOTHING:
                blocked = [
                    p for p in plan.items if self._blocked(p, confirm_occupied)
                ]
                if blocked:
                    return self._reject_all(plan, blocked, batch_id)
                return self._execute_atomic(plan, confirm_occupied, actor_id, batch_id)

            results = self._run(plan, confirm_occupied, actor_id)
            return self._report(results, batch_id)

    def _run(
        self,
        plan: TransferPlan,
        confirm_occupied: bool,
        actor_id: UUID | None,
    ) -> list[TransferResult]:
        """Execute in list order; a pending mover still counts as leaving."""
        pending = {
            p.request.item_id for p in plan.items
            if not self._blocked(p, confirm_occupied)
        }
        arrived: set[UUID] = set()
        results = []
        for planned in plan.items:
            pending.discard(planned.request.item_id)
            result = self._execute_one(
                planned, confirm_occupied, actor_id, arrived | pending
            )
            if result.success:
                arrived.add(result.item_id)
            results.append(result)
        return results

    def _reject_all(
        self,
        plan: TransferPlan,
        blocked: list[PlannedTransfer],
        batch_id: UUID,
    ) -> TransferReport:
        blocked_ids = {p.request.item_id for p in blocked}
        results = []
        for planned in plan.items:
            if planned.request.item_id in blocked_ids:
                results.append(self._failed(
                    planned, planned.message or "Transfer blocked", planned.error
                ))
            else:
                results.append(self._failed(
                    planned,
                    f"Not moved: {len(blocked)} item(s) in the batch cannot move",
                ))
        logger.info(
            "transfer_batch_rejected",
            extra={"items": len(plan.items), "blocked": len(blocked)},
        )
        return self._report(results, batch_id)

    def _execute_atomic(
        self,
        plan: TransferPlan,
        confirm_occupied: bool,
        actor_id: UUID | None,
        batch_id: UUID,
    ) -> TransferReport:
        outer = self._session.begin_nested()
        results = self._run(plan, confirm_occupied, actor_id)
        if all(r.success for r in results):
            outer.commit()
            return self._report(results, batch_id)

        outer.rollback()
        failed = sum(1 for r in results if not r.success)
        rolled_back = [
            r if not r.success else TransferResult(
                item_id=r.item_id,
                success=False,
                message=f"Rolled back: {failed} item(s) in the batch failed",
                state=TransferState.FAILED,
                sku=r.sku,
                source=r.source,
                destination=r.destination,
            )
            for r in results
        ]
        logger.warning(
            "transfer_batch_rolled_back",
            extra={"items": len(results), "failed": failed},
        )
        return self._report(rolled_back, batch_id)

    def _execute_one(
        self,
        planned: PlannedTransfer,
        confirm_occupied: bool,
        actor_id: UUID | None,
        not_occupying: Collection[UUID] = (),
    ) -> TransferResult:
        if self._blocked(planned, confirm_occupied):
            return self._failed(
                planned, planned.message or "Transfer blocked", planned.error
            )

        with LogContext.bind(item_id=planned.request.item_id):
            savepoint = self._session.begin_nested()
            try:
                result = self._move(planned, confirm_occupied, actor_id, not_occupying)
                savepoint.commit()
            except (WarehouseKernelError, SQLAlchemyError) as exc:
                savepoint.rollback()
                logger.warning(
                    "transfer_item_failed",
                    extra={
                        "sku": planned.item.sku if planned.item else None,
                        "source": planned.source,
                        "destination": planned.destination,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                    },
                )
                return self._failed(planned, str(exc), exc)

        logger.info(
            "transfer_item_succeeded",
            extra={
                "sku": result.sku,
                "source": result.source,
                "destination": result.destination,
                "merged_into": str(result.merged_into) if result.merged_into else None,
                "write_path": result.write_path,
            },
        )
        return result

    def _move(
        self,
        planned: PlannedTransfer,
        confirm_occupied: bool,
        actor_id: UUID | None,
        not_occupying: Collection[UUID],
    ) -> TransferResult:
        destination = planned.destination
        item = self._load(planned.request.item_id)
        if item is None:
            raise InventoryItemNotFoundError(planned.request.item_id)
        if location_codec.equals(item.location, destination):
            raise self._conflict(ConflictKind.SAME_LOCATION, item, destination)

        if not confirm_occupied:
            # Batch records that arrived or are yet to leave do not count;
            # ones that failed to leave still do.
            occupants = self.occupants(
                destination,
                exclude_ids=[item.id, *not_occupying],
                warehouse_code=item.warehouse_code,
            )
            if occupants:
                raise self._conflict(
                    ConflictKind.OCCUPIED, item, destination, len(occupants)
                )

        target = None
        if self._merge_same_sku:
            target = self._merge_target(
                item,
                self.occupants(
                    destination,
                    exclude_ids=[item.id],
                    warehouse_code=item.warehouse_code,
                ),
            )
        if target is not None:
            return self._merge(item, target, destination, actor_id)

        write_path = self._writer.update_location(item.id, destination, actor_id)
        if self._events is not None:
            self._events.record(
                StockEventType.TRANSFER,
                item_id=item.id,
                sku=item.sku,
                before=item.quantities,
                after=item.quantities,
                from_location=item.location,
                to_location=destination,
                actor_id=actor_id,
            )
        return TransferResult(
            item_id=item.id,
            success=True,
            message=(
                f"Moved {item.label} from "
                f"{location_codec.display(item.location)} to {destination}"
            ),
            state=TransferState.SUCCESS,
            sku=item.sku,
            source=item.location,
            destination=destination,
            write_path=write_path,
        )

    def _merge(
        self,
        item: InventoryItem,
        target: InventoryItem,
        destination: str,
        actor_id: UUID | None,
    ) -> TransferResult:
        combined = target.quantities + item.quantities
        write_path = self._writer.update_quantities(
            target.id, combined, expected=target.quantities, actor_id=actor_id
        )
        source_deleted = True
        try:
            self._writer.delete_item(item.id, expected=item.quantities)
        except RecordReferencedError:
            source_deleted = False
            self._writer.update_quantities(
                item.id, TierQuantity.zero(), expected=item.quantities,
                actor_id=actor_id,
            )

        if self._events is not None:
            self._events.record(
                StockEventType.MERGE,
                item_id=item.id,
                sku=item.sku,
                before=item.quantities,
                after=TierQuantity.zero(),
                from_location=item.location,
                to_location=destination,
                actor_id=actor_id,
                payload={
                    "merged_into": str(target.id),
                    "target_before": target.quantities.as_dict(),
                    "target_after": combined.as_dict(),
                    "source_deleted": source_deleted,
                },
            )
        return TransferResult(
            item_id=item.id,
            success=True,
            message=(
                f"Merged {item.label} from {location_codec.display(item.location)} "
                f"into existing record at {destination}"
            ),
            state=TransferState.SUCCESS,
            sku=item.sku,
            source=item.location,
            destination=destination,
            merged_into=target.id,
            write_path=write_path,
        )

    def _report(self, results: list[TransferResult], batch_id: UUID) -> TransferReport:
        report = TransferReport(
            results=tuple(results), policy=self._policy, batch_id=batch_id
        )
        logger.info(
            "transfer_batch_completed",
            extra={
                "items": len(results),
                "succeeded": report.success_count,
                "failed": report.failure_count,
                "policy": self._policy.value,
            },
        )
        return report

    # -------------------------------------------------------------------------
    # Convenience
    # -------------------------------------------------------------------------

    def transfer(
        self,
        item_id: UUID,
        destination: str,
        confirm_occupied: bool = False,
        actor_id: UUID | None = None,
    ) -> TransferResult:
        """Move one record; same-location moves are always rejected."""
        plan = self.plan([TransferRequest(item_id, destination)])
        return self.execute(plan, confirm_occupied, actor_id).results[0]

    def transfer_many(
        self,
        requests: Sequence[TransferRequest],
        confirm_occupied: bool = False,
        actor_id: UUID | None = None,
    ) -> TransferReport:
        return self.execute(self.plan(requests), confirm_occupied, actor_id)
