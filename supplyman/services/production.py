"""
Production tasks: shortages turned into work (upsert, start, complete).

Completing a task posts its output as a PRODUCTION receipt and hands the
stock to the order that asked for it, all in one transaction.
"""

import logging

from django.db import transaction
from django.utils import timezone

from supplyman.exceptions import SupplyError
from supplyman.models.enums import ProductionTaskStatus, ReceiptType
from supplyman.models.production import ProductionTask
from supplyman.models.receipt import InventoryReceipt, InventoryReceiptItem
from supplyman.models.reservation import ProductionReservation
from supplyman.quantities import ZERO
from supplyman.results import CompletionResult
from supplyman.services.ledger import lock_balance, sync_balance

logger = logging.getLogger('supplyman')


def _lock_task(task) -> ProductionTask:
    pk = getattr(task, 'pk', task)
    try:
        return ProductionTask.objects.select_for_update().select_related('order', 'material').get(pk=pk)
    except ProductionTask.DoesNotExist:
        raise SupplyError('TASK_NOT_FOUND', task_id=pk) from None


class ProductionTasks:
    """Production task lifecycle methods."""

    @classmethod
    def upsert(cls, order, material, qty) -> ProductionTask | None:
        """
        Make the open task for (order, material) ask for exactly qty.

        qty <= 0 deletes the open task and its production reservation.
        Otherwise the open task is updated (status back to PENDING) or a
        new PENDING one is created. DONE tasks are history and are never
        touched. Terminal orders only get the cleanup.

        Returns:
            The open task, or None
        """
        with transaction.atomic():
            lock_balance(material)
            open_tasks = ProductionTask.objects.open().filter(order=order, material=material)

            if qty <= 0 or order.is_terminal:
                open_tasks.delete()
                ProductionReservation.objects.filter(order=order, material=material).delete()
                sync_balance(material)
                return None

            task = open_tasks.select_for_update().first()
            if task is None:
                task = ProductionTask.objects.create(
                    order=order,
                    material=material,
                    qty_to_produce=qty,
                )
                logger.info(
                    "supply.production.task_created",
                    extra={
                        "task": task.task_id,
                        "order": str(order),
                        "material": str(material),
                        "qty": str(qty),
                    },
                )
            elif task.qty_to_produce != qty or task.status != ProductionTaskStatus.PENDING:
                task.qty_to_produce = qty
                task.status = ProductionTaskStatus.PENDING
                task.save(update_fields=['qty_to_produce', 'status', 'updated_at'])

            ProductionReservation.objects.update_or_create(
                order=order,
                material=material,
                defaults={'qty': qty},
            )
            sync_balance(material)
            return task

    @classmethod
    def start(cls, task) -> ProductionTask:
        """
        PENDING -> IN_PROGRESS.

        started_at is stamped on the first start only. No-op on DONE.
        """
        with transaction.atomic():
            task = _lock_task(task)
            if task.is_done:
                return task

            lock_balance(task.material)
            if task.status == ProductionTaskStatus.PENDING:
                task.status = ProductionTaskStatus.IN_PROGRESS
            if task.started_at is None:
                task.started_at = timezone.now()
            task.save(update_fields=['status', 'started_at', 'updated_at'])

            if task.qty_to_produce > 0:
                ProductionReservation.objects.update_or_create(
                    order=task.order,
                    material=task.material,
                    defaults={'qty': task.qty_to_produce},
                )
                sync_balance(task.material)

            logger.info(
                "supply.production.task_started",
                extra={"task": task.task_id, "qty": str(task.qty_to_produce)},
            )
            return task

    @classmethod
    def complete(cls, task, user=None) -> CompletionResult:
        """
        Finish production and deliver the output.

        1. Captures qty_to_produce, then DONE with qty_to_produce = 0
        2. Drops the production reservation
        3. If something was produced: DRAFT PRODUCTION receipt with one
           line, posted with auto-allocation to this order first, and a
           fresh stock reservation for the order
        4. Notifies the order's creator

        Any failure rolls back every step.

        Raises:
            SupplyError('TASK_NOT_FOUND')
        """
        from supplyman.services.notifications import Notifications
        from supplyman.services.receipts import Receipts
        from supplyman.services.reservations import Reservations, lock_order
        from supplyman.services.shortage import refresh_readiness, reserved_sum

        pk = getattr(task, 'pk', task)
        order_id = (
            ProductionTask.objects.filter(pk=pk).values_list('order_id', flat=True).first()
        )
        if order_id is None:
            raise SupplyError('TASK_NOT_FOUND', task_id=pk)

        with transaction.atomic():
            order = lock_order(order_id)
            task = _lock_task(pk)
            if task.is_done:
                logger.info(
                    "supply.production.already_done",
                    extra={"task": task.task_id},
                )
                return CompletionResult(task_id=task.task_id, produced_qty=ZERO)

            material = task.material
            lock_balance(material)

            captured = task.qty_to_produce
            now = timezone.now()
            task.status = ProductionTaskStatus.DONE
            task.qty_produced = captured
            task.qty_to_produce = ZERO
            task.completed_at = now
            if task.started_at is None:
                task.started_at = now
            task.save()

            ProductionReservation.objects.filter(order=order, material=material).delete()

            if captured <= 0:
                sync_balance(material)
                logger.info(
                    "supply.production.task_completed",
                    extra={"task": task.task_id, "produced": "0"},
                )
                return CompletionResult(task_id=task.task_id, produced_qty=ZERO)

            receipt = InventoryReceipt.objects.create(
                type=ReceiptType.PRODUCTION,
                source_ref=f"O-{order.pk}",
                created_by=user,
            )
            InventoryReceiptItem.objects.create(
                receipt=receipt,
                material=material,
                qty=captured,
                uom=material.unit,
            )
            posting = Receipts.post(receipt, auto_allocate=True, user=user, priority_order=order)

            items = list(order.items.filter(material=material))
            Reservations.set_reservation(order, material, reserved_sum(items), user=user)
            sync_balance(material)

            Notifications.order_produced(order, material, captured)
            refresh_readiness(order)

            logger.info(
                "supply.production.task_completed",
                extra={
                    "task": task.task_id,
                    "order": str(order),
                    "material": str(material),
                    "produced": str(captured),
                    "receipt_id": receipt.pk,
                },
            )
            return CompletionResult(
                task_id=task.task_id,
                produced_qty=captured,
                receipt_id=receipt.pk,
                posting=posting,
            )
