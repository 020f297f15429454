"""
Tests for stock write paths.

Covers:
- Direct store writes (conditional updates and deletes, missing rows,
  referenced deletes)
- Ordered fallback across paths
- Definitive store answers short-circuiting the chain
"""

from uuid import uuid4

import pytest

from warehouse_kernel.domain.values import TierQuantity
from warehouse_kernel.exceptions import (
    InventoryItemNotFoundError,
    PersistenceError,
    RecordReferencedError,
    StaleStockError,
)
from warehouse_kernel.models import InventoryItemModel
from warehouse_kernel.services.write_paths import (
    DirectStoreWriteStrategy,
    GatewayWriteStrategy,
    WriteChain,
)


class RecordingGateway:
    """StockGateway double that records calls and optionally fails."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[tuple] = []

    def update_quantities(self, item_id, quantities, expected=None):
        self.calls.append(("update_quantities", item_id, quantities, expected))
        if self.error:
            raise self.error

    def update_location(self, item_id, location):
        self.calls.append(("update_location", item_id, location))
        if self.error:
            raise self.error

    def delete_item(self, item_id, expected=None):
        self.calls.append(("delete_item", item_id, expected))
        if self.error:
            raise self.error


class TestDirectStore:
    def test_update_quantities(self, session, create_item, stored_quantities):
        item = create_item(quantities=(1, 2, 3))
        direct = DirectStoreWriteStrategy(session)

        direct.update_quantities(item.id, TierQuantity(0, 1, 3), expected=TierQuantity(1, 2, 3))

        assert stored_quantities(item.id) == TierQuantity(0, 1, 3)

    def test_conditional_update_detects_concurrent_change(self, session, create_item, stored_quantities):
        item = create_item(quantities=(1, 2, 3))
        direct = DirectStoreWriteStrategy(session)

        with pytest.raises(StaleStockError):
            direct.update_quantities(
                item.id, TierQuantity(0, 0, 0), expected=TierQuantity(9, 9, 9)
            )

        assert stored_quantities(item.id) == TierQuantity(1, 2, 3)

    def test_unconditional_mode_ignores_expected(self, session, create_item, stored_quantities):
        item = create_item(quantities=(1, 2, 3))
        direct = DirectStoreWriteStrategy(session, conditional=False)

        direct.update_quantities(item.id, TierQuantity(0, 0, 1), expected=TierQuantity(9, 9, 9))

        assert stored_quantities(item.id) == TierQuantity(0, 0, 1)

    def test_missing_record(self, session):
        direct = DirectStoreWriteStrategy(session)
        with pytest.raises(InventoryItemNotFoundError):
            direct.update_quantities(uuid4(), TierQuantity.zero())
        with pytest.raises(InventoryItemNotFoundError):
            direct.update_location(uuid4(), "A1/1")
        with pytest.raises(InventoryItemNotFoundError):
            direct.delete_item(uuid4())

    def test_update_location_records_actor(self, session, create_item, test_actor_id):
        item = create_item(location="A1/1")
        actor = uuid4()
        DirectStoreWriteStrategy(session).update_location(item.id, "B2/3", actor_id=actor)

        model = session.get(InventoryItemModel, item.id, populate_existing=True)
        assert model.location == "B2/3"
        assert model.updated_by_id == actor
        assert model.created_by_id == test_actor_id

    def test_delete(self, session, create_item, stored_quantities):
        item = create_item()
        DirectStoreWriteStrategy(session).delete_item(item.id)
        assert stored_quantities(item.id) is None

    def test_conditional_delete_keeps_restocked_record(
        self, session, create_item, stored_quantities,
    ):
        item = create_item(quantities=(0, 0, 50))
        direct = DirectStoreWriteStrategy(session)

        with pytest.raises(StaleStockError):
            direct.delete_item(item.id, expected=TierQuantity.zero())

        assert stored_quantities(item.id) == TierQuantity(0, 0, 50)

    def test_conditional_delete_matching_quantities(self, session, create_item, stored_quantities):
        item = create_item(quantities=(0, 0, 0))
        DirectStoreWriteStrategy(session).delete_item(item.id, expected=TierQuantity.zero())
        assert stored_quantities(item.id) is None

    def test_referenced_delete_refused_and_session_still_usable(
        self, session, create_item, reserve, stored_quantities,
    ):
        item = create_item(quantities=(0, 0, 1))
        reserve(item.id)

        with pytest.raises(RecordReferencedError) as exc_info:
            DirectStoreWriteStrategy(session).delete_item(item.id)

        assert exc_info.value.code == "RECORD_REFERENCED"
        assert stored_quantities(item.id) == TierQuantity(0, 0, 1)


class TestWriteChain:
    def test_requires_a_strategy(self):
        with pytest.raises(ValueError):
            WriteChain([])

    def test_first_path_wins(self, session, create_item):
        gateway = RecordingGateway()
        chain = WriteChain([GatewayWriteStrategy(gateway), DirectStoreWriteStrategy(session)])
        item = create_item(location="A1/1")

        assert chain.update_location(item.id, "C3/1") == "gateway"
        assert gateway.calls == [("update_location", item.id, "C3/1")]
        assert chain.path_names == ("gateway", "direct")

    def test_falls_back_on_path_failure(self, session, create_item, stored_quantities, captured_logs):
        gateway = RecordingGateway(error=ConnectionError("gateway unreachable"))
        chain = WriteChain([GatewayWriteStrategy(gateway), DirectStoreWriteStrategy(session)])
        item = create_item(quantities=(0, 0, 5))

        path = chain.update_quantities(item.id, TierQuantity(0, 0, 2), expected=TierQuantity(0, 0, 5))

        assert path == "direct"
        assert stored_quantities(item.id) == TierQuantity(0, 0, 2)
        messages = [r["message"] for r in captured_logs()]
        assert "write_path_failed" in messages
        assert "write_path_fallback_succeeded" in messages

    def test_definitive_error_not_retried(self, session, create_item, reserve):
        gateway = RecordingGateway()
        chain = WriteChain([DirectStoreWriteStrategy(session), GatewayWriteStrategy(gateway)])
        item = create_item(quantities=(0, 0, 1))
        reserve(item.id)

        with pytest.raises(RecordReferencedError):
            chain.delete_item(item.id)
        assert gateway.calls == []

    def test_delete_forwards_expected_quantities(self):
        gateway = RecordingGateway()
        item_id = uuid4()

        WriteChain([GatewayWriteStrategy(gateway)]).delete_item(item_id, expected=TierQuantity.zero())

        assert gateway.calls == [("delete_item", item_id, TierQuantity.zero())]

    def test_all_paths_failing_raises_persistence_error(self):
        chain = WriteChain([
            GatewayWriteStrategy(RecordingGateway(error=ConnectionError("a"))),
            GatewayWriteStrategy(RecordingGateway(error=TimeoutError("b"))),
        ])
        item_id = uuid4()

        with pytest.raises(PersistenceError) as exc_info:
            chain.delete_item(item_id)

        error = exc_info.value
        assert error.code == "PERSISTENCE_FAILED"
        assert error.operation == "delete_item"
        assert [name for name, _ in error.failures] == ["gateway", "gateway"]
        assert isinstance(error.__cause__, TimeoutError)
