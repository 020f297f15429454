"""
Config -> service wiring.

Builds the kernel services, the stock mutator and the transfer orchestrator
from a ``WarehouseConfig``.  Lives in the services layer because the kernel
must never import ``warehouse_config``; everything is handed to kernel
constructors as plain values.

Usage:
    from warehouse_config import get_active_config
    from warehouse_kernel.db import session_scope
    from warehouse_services.wiring import bootstrap, build_services

    config = get_active_config()
    bootstrap(config)
    with session_scope() as session:
        services = build_services(session, config)
        services.mutator.deduct(item_id, TierQuantity(level3=5))
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from warehouse_config.schema import WarehouseConfig
from warehouse_kernel.db.engine import create_tables, init_engine_from_url
from warehouse_kernel.domain.clock import Clock
from warehouse_kernel.logging_config import configure_logging
from warehouse_kernel.services.conversion_rate_service import ConversionRateService
from warehouse_kernel.services.stock_event_recorder import StockEventRecorder
from warehouse_kernel.services.write_paths import (
    DirectStoreWriteStrategy,
    GatewayWriteStrategy,
    StockGateway,
    StockWriteStrategy,
    WriteChain,
)
from warehouse_services._transfer_types import BatchPolicy
from warehouse_services.stock_mutator import StockMutator
from warehouse_services.transfer_orchestrator import TransferOrchestrator


@dataclass(frozen=True)
class WarehouseServices:
    rates: ConversionRateService
    writer: WriteChain
    events: StockEventRecorder | None
    mutator: StockMutator
    transfers: TransferOrchestrator


def build_write_chain(
    session: Session,
    config: WarehouseConfig,
    gateway: StockGateway | None = None,
) -> WriteChain:
    """
    Write chain in the order ``store.write_paths`` names.

    Raises:
        ValueError: ``gateway`` is configured but no client was supplied.
    """
    strategies: list[StockWriteStrategy] = []
    for name in config.store.write_paths:
        if name == "gateway":
            if gateway is None:
                raise ValueError(
                    "store.write_paths includes 'gateway' but no StockGateway was supplied"
                )
            strategies.append(GatewayWriteStrategy(gateway))
        elif name == "direct":
            strategies.append(
                DirectStoreWriteStrategy(
                    session, conditional=config.store.conditional_updates
                )
            )
    return WriteChain(strategies)


def build_services(
    session: Session,
    config: WarehouseConfig,
    gateway: StockGateway | None = None,
    clock: Clock | None = None,
) -> WarehouseServices:
    rates = ConversionRateService(
        session,
        default_rate=config.default_rate,
        use_cache=config.cache_rates,
    )
    writer = build_write_chain(session, config, gateway)
    events = (
        StockEventRecorder(session, clock=clock)
        if config.transfer.record_events else None
    )
    return WarehouseServices(
        rates=rates,
        writer=writer,
        events=events,
        mutator=StockMutator(session, writer=writer, rates=rates, events=events),
        transfers=TransferOrchestrator(
            session,
            writer=writer,
            rates=rates,
            events=events,
            policy=BatchPolicy(config.transfer.batch_policy),
            merge_same_sku=config.transfer.merge_same_sku,
        ),
    )


def bootstrap(config: WarehouseConfig, create_schema: bool = False) -> Engine:
    """
    Process start-up: logging at ``config.log_level`` and the engine for
    ``config.store``.  Sessions then come from ``get_session()`` /
    ``session_scope()`` and are handed to ``build_services``.
    """
    configure_logging(level=config.log_level)
    engine = init_engine_from_url(config.store.database_url, echo=config.store.echo)
    if create_schema:
        create_tables(engine)
    return engine
