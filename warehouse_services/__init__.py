"""
warehouse_services -- stateful orchestration over engines and kernel services.

Architecture position:
    Top layer.  May import warehouse_engines, warehouse_kernel and
    warehouse_config.  Nothing below imports from here.
"""

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
from warehouse_services.stock_mutator import StockMutator
from warehouse_services.transfer_orchestrator import TransferOrchestrator
from warehouse_services.wiring import (
    WarehouseServices,
    bootstrap,
    build_services,
    build_write_chain,
)

__all__ = [
    "StockMutator",
    "TransferOrchestrator",
    "BatchPolicy",
    "ConflictKind",
    "DestinationPreview",
    "PlannedTransfer",
    "TransferPlan",
    "TransferReport",
    "TransferRequest",
    "TransferResult",
    "TransferState",
    "WarehouseServices",
    "bootstrap",
    "build_services",
    "build_write_chain",
]
