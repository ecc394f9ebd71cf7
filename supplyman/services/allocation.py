"""
Allocation: hand freshly received stock to waiting orders, oldest first.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from supplyman.models.order import Order, OrderItem
from supplyman.models.reservation import StockReservation
from supplyman.quantities import ZERO, parse_quantity
from supplyman.results import AllocationLine, AllocationResult
from supplyman.services.ledger import lock_balance, sync_balance
from supplyman.services.shortage import (
    ITEM_FIELDS,
    apply_reserved,
    produce_need,
    refresh_readiness,
    reserved_sum,
)

logger = logging.getLogger('supplyman')


class Allocator:
    """FIFO allocation of received quantity."""

    @classmethod
    def candidates(cls, material, priority_order=None) -> list[OrderItem]:
        """
        Lines of competing orders still missing the material.

        Order: priority_order first, then by order creation time, then
        line order. This order is the fairness rule.
        """
        items = (
            OrderItem.objects.filter(material=material, order__in=Order.objects.competing())
            .select_related('order', 'material')
            .order_by('order__created_at', 'order__pk', 'pk')
        )
        items = [i for i in items if i.needed > 0]
        if priority_order is not None:
            # sorted() is stable: FIFO is kept inside each group
            items = sorted(items, key=lambda i: i.order_id != priority_order.pk)
        return items

    @classmethod
    def allocate(cls, material, qty, user=None, priority_order=None) -> AllocationResult:
        """
        Distribute qty over orders with unmet demand for the material.

        Each line gets min(remaining, needed). Touched orders get their
        reservation renewed (fresh TTL) and their production task resized
        to what is still missing. What nobody needs stays in the pool.

        Never hands out more than the free stock (on_hand minus active
        reservations). Candidate orders are locked with SKIP LOCKED after
        the balance lock: an order busy in another transaction is passed
        over, never waited on.
        """
        from supplyman.services.notifications import Notifications
        from supplyman.services.production import ProductionTasks
        from supplyman.services.reservations import Reservations, try_lock_orders

        offered = parse_quantity(qty)

        with transaction.atomic():
            balance = lock_balance(material)
            now = timezone.now()
            Reservations.sweep_material(material, now)

            held = StockReservation.objects.for_material(material).active(now).aggregate(
                t=Coalesce(Sum('qty'), Decimal('0')),
            )['t']
            budget = min(offered, max(ZERO, balance.on_hand - held))
            remaining = budget
            lines = []
            touched = {}

            candidates = cls.candidates(material, priority_order)
            locked = try_lock_orders({i.order_id for i in candidates})
            for item in candidates:
                if item.order_id not in locked:
                    continue
                if remaining <= 0:
                    break
                alloc = min(remaining, item.needed)
                apply_reserved(item, item.qty_reserved_from_stock + alloc)
                item.save(update_fields=ITEM_FIELDS)
                remaining -= alloc

                full = item.needed == 0
                lines.append(AllocationLine(
                    order_id=item.order_id,
                    item_id=item.pk,
                    qty=alloc,
                    full=full,
                ))
                touched[item.order_id] = item.order
                Notifications.allocation_available(item.order, material, alloc, full)

            for order in touched.values():
                items = list(order.items.filter(material=material))
                Reservations.set_reservation(order, material, reserved_sum(items), user=user, now=now)
                ProductionTasks.upsert(order, material, produce_need(items))
                refresh_readiness(order)

            sync_balance(material)

            allocated = budget - remaining
            logger.info(
                "supply.allocation.done",
                extra={
                    "material": str(material),
                    "offered": str(offered),
                    "allocated": str(allocated),
                    "orders": len(touched),
                    "skipped": len({i.order_id for i in candidates} - locked),
                },
            )
            return AllocationResult(
                material_id=material.pk,
                offered=offered,
                allocated=allocated if allocated > 0 else ZERO,
                lines=lines,
            )
