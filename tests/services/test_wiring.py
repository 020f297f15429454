"""Tests for building services from configuration."""

import pytest

from warehouse_config.schema import (
    DefaultRateConfig,
    StoreConfig,
    TransferConfig,
    WarehouseConfig,
)
from warehouse_kernel.domain.values import TierQuantity
from warehouse_services import (
    BatchPolicy,
    TransferRequest,
    bootstrap,
    build_services,
    build_write_chain,
)


class NullGateway:
    def update_quantities(self, item_id, quantities, expected=None):
        pass

    def update_location(self, item_id, location):
        pass

    def delete_item(self, item_id, expected=None):
        pass


def test_defaults(session):
    services = build_services(session, WarehouseConfig())

    assert services.writer.path_names == ("direct",)
    assert services.events is not None
    assert services.transfers.policy is BatchPolicy.BEST_EFFORT
    assert services.rates.get_rate("ANY").level1_rate == 144


def test_config_values_reach_services(session):
    config = WarehouseConfig(
        default_rate=DefaultRateConfig(level1_rate=60, level2_rate=10),
        transfer=TransferConfig(batch_policy="all_or_nothing", record_events=False),
    )
    services = build_services(session, config)

    assert services.events is None
    assert services.transfers.policy is BatchPolicy.ALL_OR_NOTHING
    assert services.rates.get_rate("ANY").level1_rate == 60


def test_gateway_path_needs_client(session):
    config = WarehouseConfig(store=StoreConfig(write_paths=("gateway", "direct")))

    with pytest.raises(ValueError, match="StockGateway"):
        build_write_chain(session, config)

    chain = build_write_chain(session, config, gateway=NullGateway())
    assert chain.path_names == ("gateway", "direct")


def test_wired_services_share_the_write_chain(session, create_item, stored_quantities):
    services = build_services(session, WarehouseConfig())
    item = create_item(location="A1/1", quantities=(0, 0, 4))

    services.mutator.deduct(item.id, TierQuantity(0, 0, 1))
    report = services.transfers.transfer_many([TransferRequest(item.id, "B1/1")])

    assert report.success is True
    assert stored_quantities(item.id) == TierQuantity(0, 0, 3)
    assert len(services.events.for_item(item.id)) == 2


def test_bootstrap_builds_engine_and_schema():
    from sqlalchemy import inspect

    from warehouse_kernel.db import engine as db_engine

    config = WarehouseConfig(store=StoreConfig(database_url="sqlite://"))
    try:
        engine = bootstrap(config, create_schema=True)
        assert db_engine.get_engine() is engine
        assert "inventory_items" in inspect(engine).get_table_names()
    finally:
        db_engine.reset_engine()
