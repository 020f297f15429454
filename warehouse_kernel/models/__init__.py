"""ORM models for the warehouse kernel."""

from warehouse_kernel.models.conversion_rate import ConversionRateModel
from warehouse_kernel.models.inventory_item import InventoryItemModel
from warehouse_kernel.models.stock_event import StockEventModel
from warehouse_kernel.models.stock_reservation import StockReservationModel

__all__ = [
    "InventoryItemModel",
    "ConversionRateModel",
    "StockEventModel",
    "StockReservationModel",
]
