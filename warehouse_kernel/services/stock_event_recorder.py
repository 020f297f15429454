"""
StockEventRecorder -- append-only log of stock changes.

Responsibility:
    Write one ``stock_events`` row per deduction, transfer or merge, with
    before/after tier quantities, and read them back for an item.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the stock mutator and
    the transfer orchestrator AFTER their write succeeded.

Invariants enforced:
    - Recording is best-effort.  The stock change it describes has already
      been written; a failed INSERT is rolled back to its own SAVEPOINT,
      logged, and ``record`` returns None.  It never undoes or fails the
      change itself.
    - Timestamps come from the injected Clock.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from warehouse_kernel.domain.clock import Clock, SystemClock
from warehouse_kernel.domain.dtos import StockEvent, StockEventType
from warehouse_kernel.domain.values import TierQuantity
from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.stock_event import StockEventModel
from warehouse_kernel.services.base import BaseService

logger = get_logger("services.stock_events")


class StockEventRecorder(BaseService):
    """Writes and reads stock events."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        event_type: StockEventType,
        item_id: UUID,
        sku: str,
        before: TierQuantity,
        after: TierQuantity,
        from_location: str | None = None,
        to_location: str | None = None,
        actor_id: UUID | None = None,
        reference: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> StockEvent | None:
        event = StockEvent(
            event_type=event_type,
            item_id=item_id,
            sku=sku,
            before=before,
            after=after,
            occurred_at=self._clock.now(),
            from_location=from_location,
            to_location=to_location,
            actor_id=actor_id,
            reference=reference,
            payload=payload or {},
        )
        model = StockEventModel.from_dto(event)
        try:
            with self.session.begin_nested():
                self.session.add(model)
                self.session.flush()
        except SQLAlchemyError:
            logger.warning(
                "stock_event_record_failed",
                extra={
                    "event_type": event_type.value,
                    "item_id": str(item_id),
                    "sku": sku,
                },
                exc_info=True,
            )
            return None

        logger.debug(
            "stock_event_recorded",
            extra={"event_type": event_type.value, "item_id": str(item_id)},
        )
        return model.to_dto()

    def for_item(self, item_id: UUID) -> list[StockEvent]:
        """Events for one record, oldest first."""
        rows = self.session.execute(
            select(StockEventModel)
            .where(StockEventModel.item_id == item_id)
            .order_by(StockEventModel.occurred_at, StockEventModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]
