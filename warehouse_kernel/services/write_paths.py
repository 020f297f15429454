"""
Write paths -- how quantity/location changes and deletions reach the store.

Responsibility:
    Give the stock mutator and the transfer orchestrator one interface
    (``StockWriteStrategy``) for the three writes they make, with two
    implementations and an ordered fallback chain:

    ``GatewayWriteStrategy``      an intermediary service client (injected
                                  ``StockGateway``) that may hold privileges
                                  the caller lacks.
    ``DirectStoreWriteStrategy``  SQLAlchemy Core UPDATE/DELETE through the
                                  caller's Session.
    ``WriteChain``                tries strategies in order; first success wins.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Each direct write runs inside a SAVEPOINT, so a rejected statement
      never leaves the caller's transaction unusable.
    - Conditional writes (``expected`` given): the UPDATE or DELETE matches
      only when the stored quantities still equal what the caller read.
      Zero rows on an existing record means someone else wrote first.
    - Definitive answers are not path failures.  RecordReferencedError,
      StaleStockError and InventoryItemNotFoundError propagate from the
      chain immediately; trying another path would not change them.

Failure modes:
    - RecordReferencedError: delete blocked by a foreign key.
    - StaleStockError: conditional write matched nothing on an existing row.
    - InventoryItemNotFoundError: the record does not exist.
    - PersistenceError: every path failed; chained to the last error.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warehouse_kernel.domain.values import TierQuantity
from warehouse_kernel.exceptions import (
    InventoryItemNotFoundError,
    PersistenceError,
    RecordReferencedError,
    StaleStockError,
)
from warehouse_kernel.logging_config import get_logger
from warehouse_kernel.models.inventory_item import InventoryItemModel

logger = get_logger("services.write_paths")

DEFINITIVE_ERRORS = (
    RecordReferencedError,
    StaleStockError,
    InventoryItemNotFoundError,
)


class StockWriteStrategy(Protocol):
    """One way of writing stock changes to the store."""

    name: str

    def update_quantities(
        self,
        item_id: UUID,
        quantities: TierQuantity,
        expected: TierQuantity | None = None,
        actor_id: UUID | None = None,
    ) -> None: ...

    def update_location(
        self,
        item_id: UUID,
        location: str,
        actor_id: UUID | None = None,
    ) -> None: ...

    def delete_item(
        self,
        item_id: UUID,
        expected: TierQuantity | None = None,
    ) -> None: ...


class StockGateway(Protocol):
    """
    Client for an intermediary stock service.

    Implementations raise the kernel's definitive errors when the service
    reports them (record referenced, stale, not found); anything else they
    raise is treated as a path failure.
    """

    def update_quantities(
        self,
        item_id: UUID,
        quantities: TierQuantity,
        expected: TierQuantity | None = None,
    ) -> None: ...

    def update_location(self, item_id: UUID, location: str) -> None: ...

    def delete_item(
        self,
        item_id: UUID,
        expected: TierQuantity | None = None,
    ) -> None: ...


class GatewayWriteStrategy:
    """Writes through an injected StockGateway."""

    name = "gateway"

    def __init__(self, gateway: StockGateway):
        self._gateway = gateway

    def update_quantities(self, item_id, quantities, expected=None, actor_id=None):
        self._gateway.update_quantities(item_id, quantities, expected)

    def update_location(self, item_id, location, actor_id=None):
        self._gateway.update_location(item_id, location)

    def delete_item(self, item_id, expected=None):
        self._gateway.delete_item(item_id, expected)


class DirectStoreWriteStrategy:
    """
    Writes straight to ``inventory_items`` through the caller's Session.

    Args:
        session: Caller-owned session; never committed here.
        conditional: Guard quantity updates and deletes with the previously
            read values.
    """

    name = "direct"

    def __init__(self, session: Session, conditional: bool = True):
        self._session = session
        self._conditional = conditional

    def _exists(self, item_id: UUID) -> bool:
        return self._session.execute(
            select(InventoryItemModel.id).where(InventoryItemModel.id == item_id)
        ).first() is not None

    def _guard(self, stmt, expected: TierQuantity | None):
        if not (self._conditional and expected is not None):
            return stmt, False
        return stmt.where(
            InventoryItemModel.level1_quantity == expected.level1,
            InventoryItemModel.level2_quantity == expected.level2,
            InventoryItemModel.level3_quantity == expected.level3,
        ), True

    def _raise_unmatched(self, item_id: UUID, expected: TierQuantity | None, guarded: bool):
        if not self._exists(item_id):
            raise InventoryItemNotFoundError(item_id)
        if guarded:
            raise StaleStockError(item_id, expected)

    def update_quantities(
        self,
        item_id: UUID,
        quantities: TierQuantity,
        expected: TierQuantity | None = None,
        actor_id: UUID | None = None,
    ) -> None:
        stmt, guarded = self._guard(
            update(InventoryItemModel).where(InventoryItemModel.id == item_id),
            expected,
        )
        values = {
            "level1_quantity": quantities.level1,
            "level2_quantity": quantities.level2,
            "level3_quantity": quantities.level3,
            **InventoryItemModel.audit_values(actor_id),
        }

        with self._session.begin_nested():
            result = self._session.execute(stmt.values(**values))

        if (result.rowcount or 0) == 0:
            self._raise_unmatched(item_id, expected, guarded)

    def update_location(
        self,
        item_id: UUID,
        location: str,
        actor_id: UUID | None = None,
    ) -> None:
        values = {"location": location, **InventoryItemModel.audit_values(actor_id)}
        with self._session.begin_nested():
            result = self._session.execute(
                update(InventoryItemModel)
                .where(InventoryItemModel.id == item_id)
                .values(**values)
            )
        if (result.rowcount or 0) == 0:
            raise InventoryItemNotFoundError(item_id)

    def delete_item(self, item_id: UUID, expected: TierQuantity | None = None) -> None:
        stmt, guarded = self._guard(
            delete(InventoryItemModel).where(InventoryItemModel.id == item_id),
            expected,
        )
        try:
            with self._session.begin_nested():
                result = self._session.execute(stmt)
        except IntegrityError as exc:
            raise RecordReferencedError(item_id, detail=str(exc.orig)) from exc
        if (result.rowcount or 0) == 0:
            self._raise_unmatched(item_id, expected, guarded)


class WriteChain:
    """
    Ordered fallback over write strategies.

    Each operation returns the ``name`` of the strategy that succeeded.
    """

    def __init__(self, strategies: Sequence[StockWriteStrategy]):
        if not strategies:
            raise ValueError("WriteChain needs at least one strategy")
        self._strategies = tuple(strategies)

    @property
    def path_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self._strategies)

    def _run(
        self,
        operation: str,
        item_id: UUID,
        call: Callable[[StockWriteStrategy], None],
    ) -> str:
        failures: list[tuple[str, str]] = []
        last_error: Exception | None = None

        for strategy in self._strategies:
            try:
                call(strategy)
            except DEFINITIVE_ERRORS:
                raise
            except Exception as exc:
                failures.append((strategy.name, str(exc)))
                last_error = exc
                logger.warning(
                    "write_path_failed",
                    extra={
                        "operation": operation,
                        "item_id": str(item_id),
                        "write_path": strategy.name,
                    },
                    exc_info=True,
                )
                continue

            if failures:
                logger.info(
                    "write_path_fallback_succeeded",
                    extra={
                        "operation": operation,
                        "item_id": str(item_id),
                        "write_path": strategy.name,
                        "failed_paths": [name for name, _ in failures],
                    },
                )
            return strategy.name

        logger.error(
            "write_paths_exhausted",
            extra={
                "operation": operation,
                "item_id": str(item_id),
                "failed_paths": [name for name, _ in failures],
            },
        )
        raise PersistenceError(operation, item_id, tuple(failures)) from last_error

    def update_quantities(
        self,
        item_id: UUID,
        quantities: TierQuantity,
        expected: TierQuantity | None = None,
        actor_id: UUID | None = None,
    ) -> str:
        return self._run(
            "update_quantities",
            item_id,
            lambda s: s.update_quantities(item_id, quantities, expected, actor_id),
        )

    def update_location(
        self,
        item_id: UUID,
        location: str,
        actor_id: UUID | None = None,
    ) -> str:
        return self._run(
            "update_location",
            item_id,
            lambda s: s.update_location(item_id, location, actor_id),
        )

    def delete_item(self, item_id: UUID, expected: TierQuantity | None = None) -> str:
        return self._run(
            "delete_item", item_id, lambda s: s.delete_item(item_id, expected)
        )
