"""
Supply services: modular organization of supply operations.

    from supplyman.services import Reservations, ProductionTasks, Receipts
"""

from supplyman.services.allocation import Allocator
from supplyman.services.ledger import StockLedger
from supplyman.services.notifications import Notifications
from supplyman.services.orders import Orders
from supplyman.services.production import ProductionTasks
from supplyman.services.queries import SupplyQueries
from supplyman.services.receipts import Receipts
from supplyman.services.reservations import Reservations

__all__ = [
    'Allocator',
    'Notifications',
    'Orders',
    'ProductionTasks',
    'Receipts',
    'Reservations',
    'StockLedger',
    'SupplyQueries',
]
