"""Kernel services: rate resolution, stock write paths, stock event log."""

from warehouse_kernel.services.base import BaseService
from warehouse_kernel.services.conversion_rate_service import (
    ConversionRateService,
    RateBatchReport,
)
from warehouse_kernel.services.stock_event_recorder import StockEventRecorder
from warehouse_kernel.services.write_paths import (
    DirectStoreWriteStrategy,
    GatewayWriteStrategy,
    StockGateway,
    StockWriteStrategy,
    WriteChain,
)

__all__ = [
    "BaseService",
    "ConversionRateService",
    "RateBatchReport",
    "StockEventRecorder",
    "StockWriteStrategy",
    "StockGateway",
    "GatewayWriteStrategy",
    "DirectStoreWriteStrategy",
    "WriteChain",
]
