"""
Tests for reservations: reserve, heartbeat and expiry.
"""

from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from supplyman import supply, SupplyError
from supplyman.models import (
    OrderStatus,
    ProductionTask,
    StockBalance,
    StockReservation,
)


pytestmark = pytest.mark.django_db


def expire(order, material=None):
    qs = StockReservation.objects.filter(order=order)
    if material is not None:
        qs = qs.filter(material=material)
    qs.update(expires_at=timezone.now() - timedelta(seconds=1))


class TestReserve:
    """Tests for supply.reserve()."""

    def test_reserve_within_stock(self, fibra, stock_in, make_order):
        """Everything requested is reserved when stock covers it."""
        stock_in(fibra, 100)
        order = make_order((fibra, 30), submit=False)

        result = supply.reserve(order, fibra, Decimal('30'))

        assert result.reserved_qty == Decimal('30')
        assert result.produce_qty == Decimal('0')
        assert supply.reserved_total(fibra) == Decimal('30')
        assert supply.available(fibra) == Decimal('70')

    def test_reserve_is_capped_by_available(self, fibra, stock_in, make_order):
        stock_in(fibra, 20)
        order = make_order((fibra, 50), submit=False)

        result = supply.reserve(order, fibra, Decimal('50'))

        item = order.items.get()
        assert result.reserved_qty == Decimal('20')
        assert item.qty_reserved_from_stock == Decimal('20')
        assert item.qty_to_produce == Decimal('30')

    def test_reserve_is_capped_by_the_lines(self, fibra, stock_in, make_order):
        """The claim never holds more than the order's lines ask for."""
        stock_in(fibra, 100)
        order = make_order((fibra, 10), submit=False)

        result = supply.reserve(order, fibra, Decimal('50'))

        assert result.reserved_qty == Decimal('10')
        assert StockReservation.objects.get(order=order).qty == Decimal('10')
        assert order.items.get().qty_reserved_from_stock == Decimal('10')
        assert supply.available(fibra) == Decimal('90')

    def test_re_reserving_does_not_self_block(self, fibra, stock_in, make_order):
        """The order's own claim is not counted against it."""
        stock_in(fibra, 40)
        order = make_order((fibra, 40), submit=False)

        supply.reserve(order, fibra, Decimal('40'))
        result = supply.reserve(order, fibra, Decimal('40'))

        assert result.reserved_qty == Decimal('40')
        assert StockReservation.objects.filter(order=order).count() == 1

    def test_reserve_zero_deletes_row(self, fibra, stock_in, make_order):
        """A reservation is never stored with qty <= 0."""
        stock_in(fibra, 10)
        order = make_order((fibra, 5), submit=False)
        assert StockReservation.objects.filter(order=order).exists()

        supply.reserve(order, fibra, Decimal('0'))

        assert not StockReservation.objects.filter(order=order).exists()
        assert StockBalance.objects.get(material=fibra).reserved_total == Decimal('0')

    def test_reserve_without_stock(self, fibra, make_order):
        order = make_order((fibra, 5), submit=False)

        result = supply.reserve(order, fibra, Decimal('5'))

        assert result.reserved_qty == Decimal('0')
        assert result.expires_at is None
        assert not StockReservation.objects.filter(order=order).exists()

    def test_reserve_rejects_negative(self, fibra, make_order):
        order = make_order((fibra, 5), submit=False)

        with pytest.raises(SupplyError) as exc:
            supply.reserve(order, fibra, Decimal('-1'))

        assert exc.value.code == 'INVALID_QUANTITY'
        assert exc.value.kind == 'validation'

    def test_reserve_requires_material(self, fibra, make_order):
        order = make_order((fibra, 5), submit=False)

        with pytest.raises(SupplyError) as exc:
            supply.reserve(order, None, Decimal('1'))

        assert exc.value.code == 'MATERIAL_REQUIRED'

    def test_reserve_on_cancelled_order(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 5))
        supply.cancel(order)

        with pytest.raises(SupplyError) as exc:
            supply.reserve(order, fibra, Decimal('5'))

        assert exc.value.code == 'ORDER_TERMINAL'
        assert exc.value.kind == 'conflict'

    def test_draft_shortage_has_no_task(self, fibra, stock_in, make_order):
        """Drafts do not compete: no production until submitted."""
        stock_in(fibra, 10)
        order = make_order((fibra, 25), submit=False)

        supply.reserve(order, fibra, Decimal('25'))

        assert order.items.get().qty_to_produce == Decimal('15')
        assert not ProductionTask.objects.filter(order=order).exists()

    def test_reserve_on_open_order_keeps_one_task(self, fibra, stock_in, make_order):
        """Shortage of a submitted order becomes one production task."""
        stock_in(fibra, 10)
        order = make_order((fibra, 25))

        supply.reserve(order, fibra, Decimal('25'))

        task = ProductionTask.objects.open().get(order=order, material=fibra)
        assert task.qty_to_produce == Decimal('15')

    def test_reserve_recomputes_readiness(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 20), submit=False)

        supply.reserve(order, fibra, Decimal('20'))

        order.refresh_from_db()
        assert order.readiness == 'READY_PARTIAL'


class TestHeartbeat:
    """Tests for supply.heartbeat()."""

    def test_heartbeat_extends_expiry(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 5), submit=False)
        soon = timezone.now() + timedelta(seconds=30)
        StockReservation.objects.filter(order=order).update(expires_at=soon)

        count = supply.heartbeat(order)

        reservation = StockReservation.objects.get(order=order)
        assert count == 1
        assert reservation.expires_at > soon + timedelta(minutes=4)
        assert reservation.qty == Decimal('5')

    def test_heartbeat_does_not_revive_expired(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 5), submit=False)
        expire(order)

        count = supply.heartbeat(order)

        assert count == 0
        assert not StockReservation.objects.filter(order=order).exists()
        assert order.items.get().qty_reserved_from_stock == Decimal('0')

    def test_heartbeat_on_terminal_order_is_noop(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 5))
        supply.cancel(order)

        assert supply.heartbeat(order) == 0


class TestExpiry:
    """Expired reservations go back through the shortage resolver."""

    def test_expired_reservation_ignored_before_sweep(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 4), submit=False)
        expire(order)

        assert supply.reserved_total(fibra) == Decimal('0')
        assert supply.available(fibra) == Decimal('10')

    def test_expiry_round_trip(self, fibra, stock_in, make_order):
        """reserve Q, expire, sweep: item back to zero, reserved_total - Q."""
        stock_in(fibra, 100)
        order = make_order((fibra, 30))
        before = StockBalance.objects.get(material=fibra).reserved_total
        assert before == Decimal('30')

        expire(order)
        released = supply.sweep_expired()

        item = order.items.get()
        balance = StockBalance.objects.get(material=fibra)
        assert released == 1
        assert item.qty_reserved_from_stock == Decimal('0')
        assert item.qty_to_produce == item.qty_requested
        assert balance.reserved_total == before - Decimal('30')

    def test_expiry_reopens_production_for_open_order(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 10))
        assert not ProductionTask.objects.filter(order=order).exists()

        expire(order)
        supply.sweep_expired()

        task = ProductionTask.objects.open().get(order=order)
        assert task.qty_to_produce == Decimal('10')
        order.refresh_from_db()
        assert order.readiness == 'NOT_READY'

    def test_expiry_of_buy_line_keeps_zero_production(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 10, 'BUY'))

        expire(order)
        supply.sweep_expired()

        item = order.items.get()
        assert item.qty_reserved_from_stock == Decimal('0')
        assert item.qty_to_produce == Decimal('0')
        assert not ProductionTask.objects.filter(order=order).exists()

    def test_sweep_runs_in_batches(self, fibra, stock_in, make_order):
        """EXPIRED_BATCH_SIZE is 2 in the test settings."""
        stock_in(fibra, 30)
        orders = [make_order((fibra, 5), submit=False) for _ in range(3)]
        for order in orders:
            expire(order)

        assert supply.sweep_expired() == 3
        assert StockReservation.objects.count() == 0

    def test_lazy_sweep_frees_stock_for_next_reserve(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        first = make_order((fibra, 10), submit=False)
        expire(first)
        second = make_order((fibra, 10), submit=False)

        assert second.items.get().qty_reserved_from_stock == Decimal('10')
        assert not StockReservation.objects.filter(order=first).exists()

    def test_sweep_on_terminal_order_only_deletes(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 10))
        order.status = OrderStatus.FINALIZADO
        order.save(update_fields=['status'])
        expire(order)

        supply.sweep_expired()

        item = order.items.get()
        assert item.qty_reserved_from_stock == Decimal('10')
        assert not StockReservation.objects.filter(order=order).exists()


class TestReleaseExpiredCommand:

    def test_dry_run(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 5), submit=False)
        expire(order)
        out = StringIO()

        call_command('release_expired_reservations', '--dry-run', stdout=out)

        assert '1 reserva(s) seria(m) liberada(s)' in out.getvalue()
        assert StockReservation.objects.filter(order=order).exists()

    def test_release(self, fibra, stock_in, make_order):
        stock_in(fibra, 10)
        order = make_order((fibra, 5), submit=False)
        expire(order)
        out = StringIO()

        call_command('release_expired_reservations', stdout=out)

        assert '1 reserva(s) liberada(s)' in out.getvalue()
        assert not StockReservation.objects.filter(order=order).exists()


class TestOrderLocks:
    """Non-blocking order locks taken under a balance lock."""

    def test_try_lock_orders_returns_locked_ids(self, fibra, make_order):
        from supplyman.services.reservations import try_lock_orders

        a = make_order((fibra, 1))
        b = make_order((fibra, 1))

        assert try_lock_orders({a.pk, b.pk, 999999}) == {a.pk, b.pk}
        assert try_lock_orders(set()) == set()

    def test_sweep_leaves_claims_of_busy_orders(self, fibra, stock_in, make_order, monkeypatch):
        from supplyman.services import reservations

        stock_in(fibra, 10)
        order = make_order((fibra, 4))
        expire(order)
        monkeypatch.setattr(reservations, 'try_lock_orders', lambda ids: set())

        assert supply.sweep_expired() == 0
        assert StockReservation.objects.filter(order=order).exists()
        assert supply.reserved_total(fibra) == Decimal('0')
