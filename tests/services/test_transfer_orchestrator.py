"""
Tests for TransferOrchestrator.

Covers:
- Single moves: canonical destination, same-location rejection, bad input
- Occupied destinations: preview, confirmation, legacy spellings, warehouses
- Best-effort and all-or-nothing batches, slots vacated or kept within a batch
- Same-SKU merge, including referenced and concurrently restocked sources
- Per-item isolation when a write fails
"""

from uuid import uuid4

import pytest

from warehouse_kernel.domain.dtos import StockEventType
from warehouse_kernel.domain.values import TierQuantity
from warehouse_kernel.exceptions import (
    InventoryItemNotFoundError,
    LocationFormatError,
    PersistenceError,
    StaleStockError,
    TransferConflictError,
)
from warehouse_kernel.models import InventoryItemModel
from warehouse_kernel.services.conversion_rate_service import ConversionRateService
from warehouse_kernel.services.stock_event_recorder import StockEventRecorder
from warehouse_kernel.services.write_paths import DirectStoreWriteStrategy, WriteChain
from warehouse_services import (
    BatchPolicy,
    ConflictKind,
    TransferOrchestrator,
    TransferRequest,
    TransferState,
)


@pytest.fixture
def events(session, deterministic_clock):
    return StockEventRecorder(session, clock=deterministic_clock)


@pytest.fixture
def orchestrator(session, events):
    return TransferOrchestrator(session, rates=ConversionRateService(session), events=events)


@pytest.fixture
def stored_location(session):
    def _read(item_id):
        model = session.get(InventoryItemModel, item_id, populate_existing=True)
        return model.location if model is not None else None
    return _read


class TestSingleTransfer:
    def test_moves_to_canonical_destination(self, orchestrator, create_item, stored_location):
        item = create_item(location="A1/1", quantities=(0, 0, 5))

        result = orchestrator.transfer(item.id, "h1/9")

        assert result.success is True
        assert result.state is TransferState.SUCCESS
        assert result.destination == "H9/1"
        assert result.write_path == "direct"
        assert stored_location(item.id) == "H9/1"

    def test_same_location_always_rejected(self, orchestrator, create_item, stored_location):
        item = create_item(location="H9/1", quantities=(0, 0, 5))

        result = orchestrator.transfer(item.id, "h1/9", confirm_occupied=True)

        assert result.success is False
        assert isinstance(result.error, TransferConflictError)
        assert result.error.kind == "same_location"
        assert stored_location(item.id) == "H9/1"

    def test_invalid_destination_fails_without_write(self, orchestrator, create_item, stored_location):
        item = create_item(location="A1/1")

        result = orchestrator.transfer(item.id, "Q99/9")

        assert result.success is False
        assert isinstance(result.error, LocationFormatError)
        assert stored_location(item.id) == "A1/1"

    def test_missing_record(self, orchestrator):
        result = orchestrator.transfer(uuid4(), "A1/1")
        assert result.success is False
        assert isinstance(result.error, InventoryItemNotFoundError)

    def test_transfer_event_recorded(self, orchestrator, events, create_item):
        item = create_item(location="A1/1", quantities=(1, 0, 0))
        actor = uuid4()

        orchestrator.transfer(item.id, "B2/2", actor_id=actor)

        [event] = events.for_item(item.id)
        assert event.event_type is StockEventType.TRANSFER
        assert (event.from_location, event.to_location) == ("A1/1", "B2/2")
        assert event.before == event.after == TierQuantity(1, 0, 0)
        assert event.actor_id == actor


class TestOccupiedDestination:
    def test_requires_confirmation(self, orchestrator, create_item, stored_location):
        create_item(sku="OTHER", location="B2/2", quantities=(0, 0, 1))
        item = create_item(location="A1/1", quantities=(0, 0, 5))

        result = orchestrator.transfer(item.id, "B2/2")

        assert result.success is False
        assert result.error.kind == "occupied"
        assert result.error.occupant_count == 1
        assert stored_location(item.id) == "A1/1"

    def test_confirmed_colocation(self, orchestrator, create_item, stored_location):
        create_item(sku="OTHER", location="B2/2", quantities=(0, 0, 1))
        item = create_item(location="A1/1", quantities=(0, 0, 5))

        result = orchestrator.transfer(item.id, "B2/2", confirm_occupied=True)

        assert result.success is True
        assert stored_location(item.id) == "B2/2"

    def test_legacy_spelling_counts_as_occupant(self, orchestrator, create_item):
        create_item(sku="OTHER", location="h1/9", quantities=(0, 0, 1))
        item = create_item(location="A1/1", quantities=(0, 0, 5))

        plan = orchestrator.plan([TransferRequest(item.id, "H9/1")])

        assert plan.items[0].conflict is ConflictKind.OCCUPIED
        assert plan.requires_confirmation

    def test_empty_records_do_not_occupy(self, orchestrator, create_item):
        create_item(sku="OTHER", location="B2/2", quantities=(0, 0, 0))
        item = create_item(location="A1/1", quantities=(0, 0, 5))

        assert orchestrator.transfer(item.id, "B2/2").success is True

    def test_other_warehouse_does_not_occupy(self, orchestrator, create_item):
        create_item(sku="OTHER", location="B2/2", quantities=(0, 0, 1), warehouse_code="WH2")
        item = create_item(location="A1/1", quantities=(0, 0, 5))

        assert orchestrator.transfer(item.id, "B2/2").success is True

    def test_preview_totals_in_base_units(self, orchestrator, create_item):
        create_item(sku="OTHER", location="B2/2", quantities=(1, 1, 1))
        moving = create_item(location="A1/1", quantities=(0, 2, 3))

        preview = orchestrator.preview_destination("b2/2", [moving.id])

        assert preview.destination == "B2/2"
        assert preview.occupant_count == 1
        assert preview.incoming_count == 1
        assert preview.occupant_units == 144 + 12 + 1
        assert preview.incoming_units == 27
        assert preview.combined_units == 184

    def test_preview_invalid_destination(self, orchestrator):
        preview = orchestrator.preview_destination("nowhere")
        assert preview.is_valid is False
        assert preview.occupants == ()

    def test_preview_scoped_to_incoming_warehouse(self, orchestrator, create_item):
        create_item(sku="OTHER", location="B2/2", quantities=(0, 0, 1), warehouse_code="WH2")
        moving = create_item(location="A1/1", quantities=(0, 0, 5))

        preview = orchestrator.preview_destination("B2/2", [moving.id])

        assert preview.warehouse_code == "MAIN"
        assert preview.occupant_count == 0
        assert preview.incoming_count == 1

    def test_plan_preview_lists_only_same_warehouse_occupants(self, orchestrator, create_item):
        local = create_item(sku="LOCAL", location="B2/2", quantities=(0, 0, 1))
        create_item(sku="FAR", location="B2/2", quantities=(0, 0, 9), warehouse_code="WH2")
        moving = create_item(location="A1/1", quantities=(0, 0, 5))

        plan = orchestrator.plan([TransferRequest(moving.id, "B2/2")])

        [preview] = plan.previews
        assert [o.id for o in preview.occupants] == [local.id]
        assert preview.occupant_units == 1
        assert plan.items[0].error.occupant_count == 1

    def test_preview_keeps_incoming_record_already_there(self, orchestrator, create_item):
        stays = create_item(sku="STAYS", location="C5/2", quantities=(0, 0, 2))

        preview = orchestrator.preview_destination("c5/2", [stays.id])

        assert [o.id for o in preview.occupants] == [stays.id]
        assert preview.incoming == ()


class TestBatch:
    def test_best_effort_isolates_failures(self, orchestrator, create_item, stored_location):
        first = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 1))
        second = create_item(sku="SKU-2", location="A1/3", quantities=(0, 0, 1))
        third = create_item(sku="SKU-3", location="A2/1", quantities=(0, 0, 1))

        report = orchestrator.transfer_many([
            TransferRequest(first.id, "C5/2"),
            TransferRequest(second.id, "a1/3"),
            TransferRequest(third.id, "D1/1"),
        ])

        assert report.success_count == 2
        assert report.failure_count == 1
        assert report.success is True
        [failed] = report.failures
        assert failed.item_id == second.id
        assert failed.error.kind == "same_location"
        assert "SKU-2" in report.summary()
        assert stored_location(first.id) == "C5/2"
        assert stored_location(third.id) == "D1/1"

    def test_record_staying_put_still_occupies_its_slot(
        self, orchestrator, create_item, stored_location,
    ):
        mover = create_item(sku="MOVER", location="A1/1", quantities=(0, 0, 1))
        stays = create_item(sku="STAYS", location="C5/2", quantities=(0, 0, 1))
        requests = [
            TransferRequest(mover.id, "C5/2"),
            TransferRequest(stays.id, "C5/2"),
        ]

        plan = orchestrator.plan(requests)
        report = orchestrator.execute(plan)

        assert plan.items[0].conflict is ConflictKind.OCCUPIED
        assert [o.id for o in plan.previews[0].occupants] == [stays.id]
        assert [r.success for r in report.results] == [False, False]
        assert report.results[0].error.kind == "occupied"
        assert stored_location(mover.id) == "A1/1"

    def test_slot_vacated_in_the_same_batch_is_free(
        self, orchestrator, create_item, stored_location,
    ):
        arriving = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 1))
        leaving = create_item(sku="SKU-2", location="C5/2", quantities=(0, 0, 1))

        report = orchestrator.transfer_many([
            TransferRequest(arriving.id, "C5/2"),
            TransferRequest(leaving.id, "D1/1"),
        ])

        assert [r.success for r in report.results] == [True, True]
        assert stored_location(arriving.id) == "C5/2"
        assert stored_location(leaving.id) == "D1/1"

    def test_failed_departure_blocks_the_arrival(self, session, create_item, stored_location):
        class FailFor(DirectStoreWriteStrategy):
            doomed = None

            def update_location(self, item_id, location, actor_id=None):
                if item_id == FailFor.doomed:
                    raise ConnectionError("store went away")
                super().update_location(item_id, location, actor_id)

        orchestrator = TransferOrchestrator(session, writer=WriteChain([FailFor(session)]))
        arriving = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 1))
        leaving = create_item(sku="SKU-2", location="C5/2", quantities=(0, 0, 1))
        FailFor.doomed = leaving.id

        report = orchestrator.transfer_many([
            TransferRequest(leaving.id, "D1/1"),
            TransferRequest(arriving.id, "C5/2"),
        ])

        assert [r.success for r in report.results] == [False, False]
        assert report.results[0].error.code == "PERSISTENCE_FAILED"
        assert report.results[1].error.kind == "occupied"
        assert stored_location(arriving.id) == "A1/1"
        assert stored_location(leaving.id) == "C5/2"

    def test_batch_items_do_not_block_each_other(self, orchestrator, create_item):
        """Records moving together into an empty slot are not occupants."""
        a = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 1))
        b = create_item(sku="SKU-2", location="A1/2", quantities=(0, 0, 1))

        report = orchestrator.transfer_many([
            TransferRequest(a.id, "D4/4"),
            TransferRequest(b.id, "D4/4"),
        ])

        assert report.success_count == 2

    def test_nothing_moved_means_failure(self, orchestrator, create_item):
        a = create_item(location="A1/1", quantities=(0, 0, 1))
        report = orchestrator.transfer_many([
            TransferRequest(a.id, "A1/1"),
            TransferRequest(uuid4(), "B1/1"),
        ])
        assert report.success_count == 0
        assert report.success is False

    def test_all_or_nothing_blocks_whole_batch(self, session, events, create_item, stored_location):
        orchestrator = TransferOrchestrator(
            session, events=events, policy=BatchPolicy.ALL_OR_NOTHING
        )
        good = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 1))
        bad = create_item(sku="SKU-2", location="B1/1", quantities=(0, 0, 1))

        report = orchestrator.transfer_many([
            TransferRequest(good.id, "E1/1"),
            TransferRequest(bad.id, "garbage"),
        ])

        assert report.success_count == 0
        assert report.success is False
        assert stored_location(good.id) == "A1/1"

    def test_all_or_nothing_rolls_back_late_failure(self, session, create_item, stored_location):
        class FailSecond(DirectStoreWriteStrategy):
            calls = 0

            def update_location(self, item_id, location, actor_id=None):
                FailSecond.calls += 1
                if FailSecond.calls == 2:
                    raise ConnectionError("store went away")
                super().update_location(item_id, location, actor_id)

        orchestrator = TransferOrchestrator(
            session,
            writer=WriteChain([FailSecond(session)]),
            policy=BatchPolicy.ALL_OR_NOTHING,
        )
        a = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 1))
        b = create_item(sku="SKU-2", location="A1/2", quantities=(0, 0, 1))

        report = orchestrator.transfer_many([
            TransferRequest(a.id, "F1/1"),
            TransferRequest(b.id, "F1/2"),
        ])

        assert report.success_count == 0
        assert isinstance(report.results[1].error, PersistenceError)
        assert "Rolled back" in report.results[0].message
        assert stored_location(a.id) == "A1/1"
        assert stored_location(b.id) == "A1/2"

    def test_write_failure_isolated_to_its_item(self, session, create_item, stored_location):
        class FailFor(DirectStoreWriteStrategy):
            doomed = None

            def update_location(self, item_id, location, actor_id=None):
                if item_id == FailFor.doomed:
                    raise ConnectionError("store went away")
                super().update_location(item_id, location, actor_id)

        orchestrator = TransferOrchestrator(session, writer=WriteChain([FailFor(session)]))
        a = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 1))
        b = create_item(sku="SKU-2", location="A1/2", quantities=(0, 0, 1))
        FailFor.doomed = a.id

        report = orchestrator.transfer_many([
            TransferRequest(a.id, "G1/1"),
            TransferRequest(b.id, "G1/2"),
        ])

        assert [r.success for r in report.results] == [False, True]
        assert report.results[0].error.code == "PERSISTENCE_FAILED"
        assert stored_location(b.id) == "G1/2"

    def test_batch_logging(self, orchestrator, create_item, captured_logs):
        a = create_item(location="A1/1", quantities=(0, 0, 1))
        orchestrator.transfer_many([TransferRequest(a.id, "B1/1")])

        [summary] = [r for r in captured_logs() if r["message"] == "transfer_batch_completed"]
        assert summary["succeeded"] == 1
        assert summary["policy"] == "best_effort"
        assert "batch_id" in summary


class TestMerge:
    @pytest.fixture
    def merging(self, session, events):
        return TransferOrchestrator(
            session,
            rates=ConversionRateService(session),
            events=events,
            merge_same_sku=True,
        )

    def test_same_sku_and_lot_merged(self, merging, events, create_item, stored_quantities):
        target = create_item(sku="SKU-1", location="B2/2", quantities=(1, 0, 2), lot="L1")
        source = create_item(sku="SKU-1", location="A1/1", quantities=(0, 3, 4), lot="L1")

        result = merging.transfer(source.id, "B2/2", confirm_occupied=True)

        assert result.success is True
        assert result.merged_into == target.id
        assert stored_quantities(target.id) == TierQuantity(1, 3, 6)
        assert stored_quantities(source.id) is None
        [event] = events.for_item(source.id)
        assert event.event_type is StockEventType.MERGE
        assert event.payload["source_deleted"] is True

    def test_different_lot_colocated_not_merged(self, merging, create_item, stored_quantities):
        target = create_item(sku="SKU-1", location="B2/2", quantities=(1, 0, 0), lot="L1")
        source = create_item(sku="SKU-1", location="A1/1", quantities=(0, 1, 0), lot="L2")

        result = merging.transfer(source.id, "B2/2", confirm_occupied=True)

        assert result.success is True
        assert result.merged_into is None
        assert stored_quantities(target.id) == TierQuantity(1, 0, 0)
        assert stored_quantities(source.id) == TierQuantity(0, 1, 0)

    def test_referenced_source_zeroed(self, merging, create_item, reserve, stored_quantities):
        target = create_item(sku="SKU-1", location="B2/2", quantities=(0, 0, 1))
        source = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 4))
        reserve(source.id)

        result = merging.transfer(source.id, "B2/2", confirm_occupied=True)

        assert result.success is True
        assert stored_quantities(target.id) == TierQuantity(0, 0, 5)
        assert stored_quantities(source.id) == TierQuantity.zero()

    def test_merge_still_needs_confirmation(self, merging, create_item):
        create_item(sku="SKU-1", location="B2/2", quantities=(0, 0, 1))
        source = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 4))

        plan = merging.plan([TransferRequest(source.id, "B2/2")])

        assert plan.items[0].state is TransferState.CONFLICT
        assert plan.items[0].merge_target_id is not None

    def test_restocked_source_not_deleted_by_merge(self, session, events, create_item, stored_quantities):
        class RestockingStrategy(DirectStoreWriteStrategy):
            def delete_item(self, item_id, expected=None):
                # A receipt lands on the source between the re-read and the delete
                super().update_quantities(item_id, TierQuantity(0, 0, 50))
                super().delete_item(item_id, expected)

        merging = TransferOrchestrator(
            session,
            writer=WriteChain([RestockingStrategy(session)]),
            events=events,
            merge_same_sku=True,
        )
        target = create_item(sku="SKU-1", location="B2/2", quantities=(0, 0, 1))
        source = create_item(sku="SKU-1", location="A1/1", quantities=(0, 0, 4))

        result = merging.transfer(source.id, "B2/2", confirm_occupied=True)

        assert result.success is False
        assert isinstance(result.error, StaleStockError)
        assert stored_quantities(source.id) == TierQuantity(0, 0, 4)
        assert stored_quantities(target.id) == TierQuantity(0, 0, 1)
        assert events.for_item(source.id) == []
