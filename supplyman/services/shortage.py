"""
Shortage resolution: how much of each order line comes from stock and
how much must be produced.

Pure bookkeeping on OrderItem rows plus the competing-demand read used at
submission. Callers hold the material's balance lock.
"""

from decimal import Decimal

from django.db.models import F, Sum
from django.db.models.functions import Coalesce

from supplyman.models.enums import ShortageAction
from supplyman.models.order import Order, OrderItem
from supplyman.models.production import ProductionTask
from supplyman.quantities import ZERO, clamp

ITEM_FIELDS = ['qty_reserved_from_stock', 'qty_to_produce']


def apply_reserved(item: OrderItem, reserved: Decimal) -> OrderItem:
    """
    Set the reserved quantity and re-derive qty_to_produce.

    Only the open part of the line (requested - shipped) is resolved:
    PRODUCE: reserved + to_produce == open
    BUY: to_produce == 0 (the gap is bought)
    """
    item.qty_reserved_from_stock = clamp(reserved, ZERO, item.open_qty)
    if item.shortage_action == ShortageAction.BUY:
        item.qty_to_produce = ZERO
    else:
        item.qty_to_produce = item.open_qty - item.qty_reserved_from_stock
    return item


def distribute(items, total: Decimal) -> Decimal:
    """
    Spread a reserved total over items in line order and save them.

    Returns:
        What did not fit in any line
    """
    remaining = max(ZERO, total)
    for item in items:
        share = min(remaining, item.open_qty)
        apply_reserved(item, share)
        item.save(update_fields=ITEM_FIELDS)
        remaining -= share
    return remaining


def reset(items) -> None:
    """Back to nothing reserved (expired or released claims)."""
    distribute(items, ZERO)


def open_total(items) -> Decimal:
    """What the lines can still hold: requested minus shipped."""
    return sum((i.open_qty for i in items), ZERO)


def produce_need(items) -> Decimal:
    return sum(
        (i.qty_to_produce for i in items if i.shortage_action == ShortageAction.PRODUCE),
        ZERO,
    )


def reserved_sum(items) -> Decimal:
    return sum((i.qty_reserved_from_stock for i in items), ZERO)


def competing_available(material, on_hand: Decimal, order) -> Decimal:
    """
    Stock left for `order` once the other competing orders are served.

    others_demand = still open (requested - shipped) in other competing orders
                    - their outstanding production
    available = max(0, on_hand - max(0, others_demand))

    Drafts and terminal orders do not compete.
    """
    competing = Order.objects.competing().exclude(pk=order.pk)

    others_requested = OrderItem.objects.filter(
        material=material,
        order__in=competing,
    ).aggregate(t=Coalesce(Sum(F('qty_requested') - F('qty_shipped')), Decimal('0')))['t']

    others_producing = ProductionTask.objects.open().filter(
        material=material,
        order__in=competing,
    ).aggregate(t=Coalesce(Sum('qty_to_produce'), Decimal('0')))['t']

    others_demand = max(ZERO, others_requested - others_producing)
    return max(ZERO, on_hand - others_demand)


def refresh_readiness(order) -> str:
    """Recompute and store readiness. Terminal orders are left alone."""
    if order.is_terminal:
        return order.readiness
    readiness = Order.compute_readiness(list(order.items.all()))
    if readiness != order.readiness:
        Order.objects.filter(pk=order.pk).update(readiness=readiness)
        order.readiness = readiness
    return readiness
