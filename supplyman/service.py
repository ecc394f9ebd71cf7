"""
Supply Service: the single public interface for supply operations.

Usage:
    from supplyman import supply, SupplyError

    pedido = supply.create_order(user=vendedor, client_name='ACME')
    item = supply.add_item(pedido, fibra, Decimal('80'), user=vendedor)
    supply.submit(pedido, user=vendedor)
    supply.available(fibra)  # 20
"""

from decimal import Decimal

from supplyman.db import retry_on_transient
from supplyman.models.enums import OrderSource, ReceiptType
from supplyman.services.allocation import Allocator
from supplyman.services.ledger import StockLedger
from supplyman.services.notifications import Notifications
from supplyman.services.orders import Orders
from supplyman.services.production import ProductionTasks
from supplyman.services.queries import SupplyQueries
from supplyman.services.receipts import Receipts
from supplyman.services.reservations import Reservations


class Supply:
    """
    Single interface for all supply operations.

    IMPORTANT: Every state-changing method runs in one atomic transaction
    holding the per-material balance lock. Outside an outer transaction,
    a dropped connection is retried once with a fresh one.

    Success returns a result object (supplyman.results) or the touched
    model; failure raises SupplyError.
    """

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def available(cls, material) -> Decimal:
        return SupplyQueries.available(material)

    @classmethod
    def on_hand(cls, material) -> Decimal:
        return SupplyQueries.on_hand(material)

    @classmethod
    def reserved_total(cls, material) -> Decimal:
        return SupplyQueries.reserved_total(material)

    @classmethod
    def reservation_state(cls, order) -> list[dict]:
        return SupplyQueries.reservation_state(order)

    @classmethod
    def production_tasks(cls, status=None, material=None):
        return SupplyQueries.production_tasks(status=status, material=material)

    @classmethod
    def open_demand(cls, material) -> Decimal:
        return SupplyQueries.open_demand(material)

    @classmethod
    def variant_report(cls, material=None) -> list[dict]:
        return SupplyQueries.variant_report(material)

    @classmethod
    def inventory_snapshot(cls, refresh=False) -> list[dict]:
        return SupplyQueries.inventory_snapshot(refresh=refresh)

    # ══════════════════════════════════════════════════════════════
    # RESERVATIONS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    @retry_on_transient
    def reserve(cls, order, material, requested_qty, user=None):
        return Reservations.reserve(order, material, requested_qty, user=user)

    @classmethod
    @retry_on_transient
    def heartbeat(cls, order) -> int:
        return Reservations.heartbeat(order)

    @classmethod
    @retry_on_transient
    def sweep_expired(cls) -> int:
        return Reservations.sweep_expired()

    # ══════════════════════════════════════════════════════════════
    # ORDERS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    @retry_on_transient
    def create_order(cls, user=None, client_name='', due_date=None,
                     source=OrderSource.MANUAL, items=None):
        return Orders.create(user=user, client_name=client_name, due_date=due_date,
                             source=source, items=items)

    @classmethod
    @retry_on_transient
    def add_item(cls, order, material, quantity, shortage_action=None, unit_price=0,
                 description='', conditions=None, user=None):
        return Orders.add_item(order, material, quantity, shortage_action=shortage_action,
                               unit_price=unit_price, description=description,
                               conditions=conditions, user=user)

    @classmethod
    @retry_on_transient
    def update_item_quantity(cls, item, quantity, user=None):
        return Orders.update_item_quantity(item, quantity, user=user)

    @classmethod
    @retry_on_transient
    def set_shortage_action(cls, item, shortage_action, user=None):
        return Orders.set_shortage_action(item, shortage_action, user=user)

    @classmethod
    @retry_on_transient
    def remove_item(cls, item, user=None):
        return Orders.remove_item(item, user=user)

    @classmethod
    @retry_on_transient
    def recalculate(cls, order):
        return Orders.recalculate(order)

    @classmethod
    @retry_on_transient
    def submit(cls, order, user=None):
        return Orders.submit(order, user=user)

    @classmethod
    @retry_on_transient
    def start_picking(cls, order, user=None):
        return Orders.start_picking(order, user=user)

    @classmethod
    @retry_on_transient
    def update_picking_quantity(cls, item, quantity, user=None):
        return Orders.update_picking_quantity(item, quantity, user=user)

    @classmethod
    @retry_on_transient
    def complete_picking(cls, order, user=None):
        return Orders.complete_picking(order, user=user)

    @classmethod
    @retry_on_transient
    def cancel(cls, order, user=None, reason=''):
        return Orders.cancel(order, user=user, reason=reason)

    @classmethod
    @retry_on_transient
    def trash(cls, order, user=None):
        return Orders.trash(order, user=user)

    @classmethod
    @retry_on_transient
    def restore(cls, order, user=None):
        return Orders.restore(order, user=user)

    @classmethod
    @retry_on_transient
    def purge(cls, order, user=None):
        return Orders.purge(order, user=user)

    # ══════════════════════════════════════════════════════════════
    # PRODUCTION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    @retry_on_transient
    def upsert_task(cls, order, material, qty):
        return ProductionTasks.upsert(order, material, qty)

    @classmethod
    @retry_on_transient
    def start_task(cls, task):
        return ProductionTasks.start(task)

    @classmethod
    @retry_on_transient
    def complete_task(cls, task, user=None):
        return ProductionTasks.complete(task, user=user)

    # ══════════════════════════════════════════════════════════════
    # RECEIPTS & ALLOCATION
    # ══════════════════════════════════════════════════════════════

    @classmethod
    @retry_on_transient
    def create_receipt(cls, lines, type=ReceiptType.PURCHASE, source_ref='', user=None):
        return Receipts.create(lines, type=type, source_ref=source_ref, user=user)

    @classmethod
    @retry_on_transient
    def post_receipt(cls, receipt, auto_allocate=False, user=None):
        return Receipts.post(receipt, auto_allocate=auto_allocate, user=user)

    @classmethod
    @retry_on_transient
    def allocate(cls, material, qty, user=None):
        return Allocator.allocate(material, qty, user=user)

    @classmethod
    @retry_on_transient
    def recalculate_on_hand(cls, material) -> Decimal:
        return StockLedger.recalculate(material)

    # ══════════════════════════════════════════════════════════════
    # NOTIFICATIONS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def list_notifications(cls, role=None, user=None, unread_only=False):
        return Notifications.inbox(role=role, user=user, unread_only=unread_only)

    @classmethod
    @retry_on_transient
    def mark_read(cls, notification_id):
        return Notifications.mark_read(notification_id)

    @classmethod
    @retry_on_transient
    def mark_unread(cls, notification_id):
        return Notifications.mark_unread(notification_id)

    @classmethod
    @retry_on_transient
    def check_stock_levels(cls, material=None):
        return Notifications.check_stock_levels(material)
