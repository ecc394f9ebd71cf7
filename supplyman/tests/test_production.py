"""
Tests for production tasks and the end-to-end shortage scenario.
"""

from decimal import Decimal

import pytest

from supplyman import supply, SupplyError
from supplyman.models import (
    InventoryReceipt,
    Notification,
    NotificationType,
    ProductionReservation,
    ProductionTask,
    ProductionTaskStatus,
    ReceiptStatus,
    ReceiptType,
    StockBalance,
)


pytestmark = pytest.mark.django_db


class TestUpsert:
    """Tests for supply.upsert_task()."""

    def test_upsert_creates_pending_task(self, fibra, make_order):
        order = make_order((fibra, 5), submit=False)

        task = supply.upsert_task(order, fibra, Decimal('5'))

        assert task.status == ProductionTaskStatus.PENDING
        assert task.qty_to_produce == Decimal('5')
        assert ProductionReservation.objects.get(order=order, material=fibra).qty == Decimal('5')
        assert StockBalance.objects.get(material=fibra).production_reserved == Decimal('5')

    def test_upsert_replaces_quantity_and_resets_status(self, fibra, make_order):
        order = make_order((fibra, 5))
        task = ProductionTask.objects.open().get(order=order)
        supply.start_task(task)

        updated = supply.upsert_task(order, fibra, Decimal('8'))

        assert updated.pk == task.pk
        assert updated.qty_to_produce == Decimal('8')
        assert updated.status == ProductionTaskStatus.PENDING
        assert ProductionTask.objects.filter(order=order).count() == 1

    def test_upsert_zero_deletes_task_and_production_reservation(self, fibra, make_order):
        order = make_order((fibra, 5))
        assert ProductionTask.objects.open().filter(order=order).exists()

        assert supply.upsert_task(order, fibra, Decimal('0')) is None

        assert not ProductionTask.objects.filter(order=order).exists()
        assert not ProductionReservation.objects.filter(order=order).exists()
        assert StockBalance.objects.get(material=fibra).production_reserved == Decimal('0')

    def test_done_task_is_never_resurrected(self, fibra, make_order, operator):
        """A new need after DONE opens a new PENDING task; DONE stays as history."""
        order = make_order((fibra, 5))
        task = ProductionTask.objects.open().get(order=order)
        supply.complete_task(task, user=operator)

        new_task = supply.upsert_task(order, fibra, Decimal('3'))

        task.refresh_from_db()
        assert task.status == ProductionTaskStatus.DONE
        assert new_task.pk != task.pk
        assert new_task.status == ProductionTaskStatus.PENDING
        assert ProductionTask.objects.filter(order=order).count() == 2


class TestStart:
    """Tests for supply.start_task()."""

    def test_start_moves_to_in_progress(self, fibra, make_order):
        order = make_order((fibra, 5))
        task = ProductionTask.objects.open().get(order=order)

        started = supply.start_task(task)

        assert started.status == ProductionTaskStatus.IN_PROGRESS
        assert started.started_at is not None

    def test_start_stamps_once(self, fibra, make_order):
        order = make_order((fibra, 5))
        task = ProductionTask.objects.open().get(order=order)

        first = supply.start_task(task).started_at
        second = supply.start_task(task).started_at

        assert first == second

    def test_start_done_task_is_noop(self, fibra, make_order):
        order = make_order((fibra, 5))
        task = ProductionTask.objects.open().get(order=order)
        supply.complete_task(task)

        started = supply.start_task(task)

        assert started.status == ProductionTaskStatus.DONE

    def test_start_unknown_task(self, db):
        with pytest.raises(SupplyError) as exc:
            supply.start_task(999999)

        assert exc.value.code == 'TASK_NOT_FOUND'


class TestComplete:
    """Tests for supply.complete_task()."""

    def test_complete_posts_production_receipt(self, fibra, make_order, operator):
        order = make_order((fibra, 12))
        task = ProductionTask.objects.open().get(order=order)

        result = supply.complete_task(task, user=operator)

        task.refresh_from_db()
        receipt = InventoryReceipt.objects.get(pk=result.receipt_id)
        assert result.produced_qty == Decimal('12')
        assert task.status == ProductionTaskStatus.DONE
        assert task.qty_to_produce == Decimal('0')
        assert task.qty_produced == Decimal('12')
        assert receipt.type == ReceiptType.PRODUCTION
        assert receipt.status == ReceiptStatus.POSTED
        assert receipt.auto_allocated is True
        assert receipt.source_ref == f"O-{order.pk}"
        assert receipt.items.get().qty == Decimal('12')

    def test_complete_allocates_to_the_producing_order(self, fibra, make_order):
        order = make_order((fibra, 12))
        task = ProductionTask.objects.open().get(order=order)

        supply.complete_task(task)

        item = order.items.get()
        order.refresh_from_db()
        assert item.qty_reserved_from_stock == Decimal('12')
        assert item.qty_to_produce == Decimal('0')
        assert order.readiness == 'READY_FULL'
        assert supply.reserved_total(fibra) == Decimal('12')
        assert not ProductionReservation.objects.filter(order=order).exists()

    def test_complete_goes_to_producing_order_before_older_ones(self, fibra, make_order):
        older = make_order((fibra, 10))
        newer = make_order((fibra, 10))
        task = ProductionTask.objects.open().get(order=newer)

        supply.complete_task(task)

        assert newer.items.get().qty_reserved_from_stock == Decimal('10')
        assert older.items.get().qty_reserved_from_stock == Decimal('0')

    def test_complete_notifies_creator(self, fibra, make_order, user):
        order = make_order((fibra, 4))
        task = ProductionTask.objects.open().get(order=order)

        supply.complete_task(task)

        assert Notification.objects.filter(
            type=NotificationType.PEDIDO_FLUXO,
            user_target=user,
            title='Produção concluída',
        ).exists()
        assert Notification.objects.filter(
            type=NotificationType.ALOCACAO_DISPONIVEL,
            order=order,
        ).exists()

    def test_complete_with_zero_only_cleans_up(self, fibra, make_order):
        order = make_order((fibra, 4))
        task = ProductionTask.objects.open().get(order=order)
        ProductionTask.objects.filter(pk=task.pk).update(qty_to_produce=Decimal('0'))

        result = supply.complete_task(task)

        assert result.produced_qty == Decimal('0')
        assert result.receipt_id is None
        assert not InventoryReceipt.objects.filter(type=ReceiptType.PRODUCTION).exists()
        assert not ProductionReservation.objects.filter(order=order).exists()

    def test_complete_twice_is_noop(self, fibra, make_order):
        order = make_order((fibra, 4))
        task = ProductionTask.objects.open().get(order=order)
        supply.complete_task(task)

        again = supply.complete_task(task)

        assert again.produced_qty == Decimal('0')
        assert InventoryReceipt.objects.filter(type=ReceiptType.PRODUCTION).count() == 1
        assert StockBalance.objects.get(material=fibra).on_hand == Decimal('4')

    def test_complete_rolls_back_on_failure(self, fibra, make_order, monkeypatch):
        """Capture, receipt and reservation happen together or not at all."""
        from supplyman.services.receipts import Receipts

        order = make_order((fibra, 4))
        task = ProductionTask.objects.open().get(order=order)

        def boom(*args, **kwargs):
            raise SupplyError('RECEIPT_NOT_FOUND')

        monkeypatch.setattr(Receipts, 'post', classmethod(lambda cls, *a, **kw: boom()))

        with pytest.raises(SupplyError):
            supply.complete_task(task)

        task.refresh_from_db()
        assert task.status == ProductionTaskStatus.PENDING
        assert task.qty_to_produce == Decimal('4')
        assert not InventoryReceipt.objects.exists()
        assert ProductionReservation.objects.filter(order=order).exists()

    def test_complete_unknown_task(self, db):
        with pytest.raises(SupplyError) as exc:
            supply.complete_task(424242)

        assert exc.value.code == 'TASK_NOT_FOUND'


class TestShortageScenario:
    """
    M has on_hand=100.
    A asks 80 -> 80 reserved. B asks 50 -> 20 reserved, 30 to produce.
    Completing B's task covers B; no new PENDING task appears.
    """

    def test_full_flow(self, fibra, stock_in, make_order, operator):
        stock_in(fibra, 100)

        order_a = make_order((fibra, 80))
        item_a = order_a.items.get()
        assert item_a.qty_reserved_from_stock == Decimal('80')
        assert item_a.qty_to_produce == Decimal('0')

        order_b = make_order((fibra, 50))
        item_b = order_b.items.get()
        assert item_b.qty_reserved_from_stock == Decimal('20')
        assert item_b.qty_to_produce == Decimal('30')

        task = ProductionTask.objects.get(order=order_b, material=fibra)
        assert task.status == ProductionTaskStatus.PENDING
        assert task.qty_to_produce == Decimal('30')

        result = supply.complete_task(task, user=operator)

        receipt = InventoryReceipt.objects.get(pk=result.receipt_id)
        assert receipt.items.get().qty == Decimal('30')
        assert receipt.status == ReceiptStatus.POSTED

        item_b.refresh_from_db()
        task.refresh_from_db()
        assert item_b.qty_reserved_from_stock == Decimal('50')
        assert item_b.qty_to_produce == Decimal('0')
        assert item_b.needed == Decimal('0')
        assert task.status == ProductionTaskStatus.DONE
        assert not ProductionTask.objects.open().filter(material=fibra).exists()

        balance = StockBalance.objects.get(material=fibra)
        assert balance.on_hand == Decimal('130')
        assert balance.reserved_total == Decimal('130')
        assert balance.production_reserved == Decimal('0')
