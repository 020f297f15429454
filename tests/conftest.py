"""
Pytest fixtures for the warehouse engine test suite.

Provides:
- In-memory SQLite sessions (foreign keys enforced, SAVEPOINT-capable)
- Inventory / conversion-rate / reservation factories
- Structured log capture

Every test gets a fresh in-memory database, so nothing leaks between tests.
"""

import json
import logging
from datetime import date, datetime, UTC
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from warehouse_kernel.db.base import Base
from warehouse_kernel.db.engine import create_sqlite_engine
from warehouse_kernel.domain.clock import DeterministicClock
from warehouse_kernel.domain.dtos import InventoryItem
from warehouse_kernel.domain.values import TierQuantity
from warehouse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from warehouse_kernel.models import (
    ConversionRateModel,
    InventoryItemModel,
    StockReservationModel,
)

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture warehouse_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, mutator):
            mutator.deduct(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_deducted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("warehouse_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite engine with every kernel table created."""
    import warehouse_kernel.models  # noqa: F401  (registers tables)

    eng = create_sqlite_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session over the test engine; rolled back and closed after the test."""
    sess = Session(bind=engine, expire_on_commit=False)
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 6, 1, 9, 0, tzinfo=UTC))


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_item(session, test_actor_id):
    """
    Insert an inventory record and return its snapshot.

    Defaults: 144/12 packaging stamped on the record, MAIN warehouse.
    """

    def _create(
        sku: str = "SKU-001",
        location: str = "A1/1",
        quantities: TierQuantity | tuple[int, int, int] = (0, 0, 0),
        level1_rate: int = 144,
        level2_rate: int = 12,
        lot: str | None = None,
        mfd: date | None = None,
        warehouse_code: str = "MAIN",
        product_name: str | None = None,
    ) -> InventoryItem:
        if isinstance(quantities, tuple):
            quantities = TierQuantity(*quantities)
        dto = InventoryItem(
            id=uuid4(),
            sku=sku,
            location=location,
            level1_quantity=quantities.level1,
            level2_quantity=quantities.level2,
            level3_quantity=quantities.level3,
            level1_rate=level1_rate,
            level2_rate=level2_rate,
            level1_name="carton",
            level2_name="box",
            level3_name="piece",
            product_name=product_name,
            lot=lot,
            mfd=mfd,
            warehouse_code=warehouse_code,
        )
        session.add(InventoryItemModel.from_dto(dto, created_by_id=test_actor_id))
        session.flush()
        return dto

    return _create


@pytest.fixture
def create_rate(session, test_actor_id):
    """Insert a conversion-rate row without validation (legacy rows included)."""

    def _create(
        sku: str,
        level1_rate: int = 144,
        level2_rate: int = 12,
        names: tuple[str | None, str | None, str | None] = ("carton", "box", "piece"),
    ) -> ConversionRateModel:
        model = ConversionRateModel(
            sku=sku,
            level1_rate=level1_rate,
            level2_rate=level2_rate,
            level1_name=names[0],
            level2_name=names[1],
            level3_name=names[2],
            created_by_id=test_actor_id,
        )
        session.add(model)
        session.flush()
        return model

    return _create


@pytest.fixture
def reserve(session, test_actor_id):
    """Attach a reservation to an inventory record (blocks its deletion)."""

    def _reserve(item_id, reference: str = "ORDER-1") -> StockReservationModel:
        model = StockReservationModel(
            inventory_item_id=item_id,
            reference=reference,
            created_by_id=test_actor_id,
        )
        session.add(model)
        session.flush()
        return model

    return _reserve


@pytest.fixture
def stored_quantities(session):
    """Quantities as persisted, bypassing the identity map."""

    def _read(item_id) -> TierQuantity | None:
        model = session.get(InventoryItemModel, item_id, populate_existing=True)
        if model is None:
            return None
        return TierQuantity(
            model.level1_quantity, model.level2_quantity, model.level3_quantity
        )

    return _read
