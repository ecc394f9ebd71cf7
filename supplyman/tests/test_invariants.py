"""
Cross-cutting stock invariants checked after mixed operation sequences.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.db.models import Sum
from django.utils import timezone

from supplyman import supply
from supplyman.models import (
    Order,
    OrderItem,
    ProductionReservation,
    ProductionTask,
    StockBalance,
    StockMove,
    StockReservation,
)
from supplyman.models.enums import TERMINAL_STATUSES, ShortageAction


pytestmark = pytest.mark.django_db


def assert_consistent(material):
    """Every derived number agrees with the rows it comes from."""
    balance = StockBalance.objects.get(material=material)

    moved = StockMove.objects.filter(material=material).aggregate(t=Sum('delta'))['t'] or Decimal('0')
    assert balance.on_hand == moved

    active = StockReservation.objects.for_material(material).active()
    assert balance.reserved_total == sum((r.qty for r in active), Decimal('0'))
    assert balance.production_reserved == sum(
        (r.qty for r in ProductionReservation.objects.filter(material=material)),
        Decimal('0'),
    )
    assert balance.reserved_total <= balance.on_hand
    assert not StockReservation.objects.filter(qty__lte=0).exists()

    for item in OrderItem.objects.filter(material=material):
        assert Decimal('0') <= item.qty_shipped <= item.qty_requested
        assert Decimal('0') <= item.qty_reserved_from_stock <= item.qty_requested - item.qty_shipped
        if item.shortage_action == ShortageAction.BUY:
            assert item.qty_to_produce == 0
        elif not item.order.is_terminal:
            assert item.qty_shipped + item.qty_reserved_from_stock + item.qty_to_produce == item.qty_requested

    for order in Order.objects.alive().exclude(status__in=TERMINAL_STATUSES):
        row = StockReservation.objects.filter(order=order, material=material).first()
        held = sum((i.qty_reserved_from_stock for i in order.items.filter(material=material)), Decimal('0'))
        assert (row.qty if row is not None else Decimal('0')) == held

    for order in Order.objects.competing():
        open_tasks = ProductionTask.objects.open().filter(order=order, material=material)
        assert open_tasks.count() <= 1


class TestInvariants:

    def test_over_demand(self, fibra, stock_in, make_order):
        stock_in(fibra, 50)
        for qty in (30, 30, 30):
            make_order((fibra, qty))

        assert supply.reserved_total(fibra) == Decimal('50')
        assert_consistent(fibra)

    def test_mixed_sequence(self, fibra, resina, stock_in, make_order, operator):
        stock_in(fibra, 40)
        stock_in(resina, 10)

        a = make_order((fibra, 25), (resina, 4))
        b = make_order((fibra, 25, 'BUY'), (resina, 12))
        c = make_order((fibra, 5), submit=False)

        supply.update_item_quantity(a.items.get(material=fibra), Decimal('10'))
        supply.complete_task(ProductionTask.objects.open().get(order=b, material=resina), user=operator)
        supply.post_receipt(supply.create_receipt([(fibra, Decimal('20'))]), auto_allocate=True)
        supply.cancel(c)

        supply.start_picking(a)
        supply.update_picking_quantity(a.items.get(material=fibra), '10')
        supply.complete_picking(a)

        assert_consistent(fibra)
        assert_consistent(resina)

    def test_conservation(self, fibra, stock_in, make_order):
        """on_hand = receipts - consumption, whatever the reservations did."""
        stock_in(fibra, 30)
        stock_in(fibra, 12)
        order = make_order((fibra, 20))
        supply.start_picking(order)
        supply.update_picking_quantity(order.items.get(), '15')
        supply.complete_picking(order)

        assert supply.on_hand(fibra) == Decimal('27')
        assert_consistent(fibra)

    def test_available_never_negative_after_expiry(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 10))
        StockReservation.objects.filter(order=order).update(expires_at=timezone.now() - timedelta(days=1))

        supply.sweep_expired()

        assert supply.available(fibra) >= 0
        assert_consistent(fibra)


class TestAfterPartialShipment:
    """Lines that already shipped part of their quantity."""

    def ship(self, order, qty):
        supply.start_picking(order)
        supply.update_picking_quantity(order.items.get(), qty)
        return supply.complete_picking(order)

    def test_allocation_after_partial_picking(self, fibra, stock_in, make_order):
        stock_in(fibra, 5)
        order = make_order((fibra, 10))
        self.ship(order, '5')

        stock_in(fibra, 3, auto_allocate=True)

        item = order.items.get()
        balance = StockBalance.objects.get(material=fibra)
        assert balance.on_hand == Decimal('3')
        assert balance.reserved_total == Decimal('3')
        assert item.qty_shipped == Decimal('5')
        assert item.qty_reserved_from_stock == Decimal('3')
        assert item.qty_to_produce == Decimal('2')
        assert StockReservation.objects.get(order=order).qty == Decimal('3')
        assert_consistent(fibra)

    def test_expiry_after_partial_picking(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 10))
        self.ship(order, '4')
        StockReservation.objects.filter(order=order).update(expires_at=timezone.now() - timedelta(seconds=1))

        supply.sweep_expired()

        item = order.items.get()
        task = ProductionTask.objects.open().get(order=order, material=fibra)
        assert item.qty_reserved_from_stock == Decimal('0')
        assert item.qty_to_produce == Decimal('6')
        assert task.qty_to_produce == Decimal('6')
        assert_consistent(fibra)

    def test_re_reserve_after_partial_picking(self, fibra, stock_in, make_order):
        stock_in(fibra, 4)
        order = make_order((fibra, 10))
        self.ship(order, '4')
        stock_in(fibra, 20)

        result = supply.reserve(order, fibra, Decimal('10'))

        assert result.reserved_qty == Decimal('6')
        assert result.produce_qty == Decimal('0')
        assert supply.reserved_total(fibra) == Decimal('6')
        assert_consistent(fibra)

    def test_second_picking_finalizes(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 10))
        self.ship(order, '4')

        order = self.ship(order, '6')

        balance = StockBalance.objects.get(material=fibra)
        assert order.status == 'FINALIZADO'
        assert order.items.get().qty_shipped == Decimal('10')
        assert balance.on_hand == Decimal('0')
        assert balance.reserved_total == Decimal('0')
        assert_consistent(fibra)
