"""
Supplyman Models.

Core models for reservation and production orchestration:
- Material: What is stocked
- StockBalance: On-hand per material (the per-material lock)
- StockMove: Immutable ledger of on-hand changes
- StockReservation / ProductionReservation: Claims on stock
- Order / OrderItem: Demand
- ProductionTask: Shortage turned into production
- InventoryReceipt: Inbound stock to be posted
- Notification: Deduplicated inbox events
"""

from supplyman.models.balance import StockBalance
from supplyman.models.enums import (
    NotificationType,
    OrderSource,
    OrderStatus,
    ProductionTaskStatus,
    Readiness,
    ReceiptStatus,
    ReceiptType,
    Role,
    ShortageAction,
)
from supplyman.models.material import Material
from supplyman.models.move import StockMove
from supplyman.models.notification import Notification
from supplyman.models.order import Order, OrderAuditEvent, OrderItem, OrderNumberCounter
from supplyman.models.production import ProductionTask
from supplyman.models.receipt import InventoryReceipt, InventoryReceiptItem
from supplyman.models.reservation import ProductionReservation, StockReservation

__all__ = [
    'NotificationType',
    'OrderSource',
    'OrderStatus',
    'ProductionTaskStatus',
    'Readiness',
    'ReceiptStatus',
    'ReceiptType',
    'Role',
    'ShortageAction',
    'Material',
    'StockBalance',
    'StockMove',
    'StockReservation',
    'ProductionReservation',
    'Order',
    'OrderItem',
    'OrderAuditEvent',
    'OrderNumberCounter',
    'ProductionTask',
    'InventoryReceipt',
    'InventoryReceiptItem',
    'Notification',
]
