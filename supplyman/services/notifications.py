"""
Notifications: deduplicated, role-targeted inbox events.

Usage:
    from supplyman.services.notifications import Notifications

    Notifications.check_stock_levels()
    # Run periodically (cron) or after stock changes
"""

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from supplyman.exceptions import SupplyError
from supplyman.models.balance import StockBalance
from supplyman.models.enums import NotificationType, Role
from supplyman.models.material import Material
from supplyman.models.notification import Notification
from supplyman.models.production import ProductionTask
from supplyman.signals import notification_created

logger = logging.getLogger('supplyman')


def _send_on_commit(notification: Notification) -> None:
    transaction.on_commit(
        lambda: notification_created.send(sender=Notification, notification=notification)
    )


class Notifications:
    """Emitters and inbox operations."""

    @classmethod
    def notify(cls, type, title, message='', role=None, user=None,
               order=None, material=None, dedupe_key=None) -> Notification | None:
        """
        Create a notification unless an unread one shares dedupe_key.

        Returns:
            The new Notification, or None when suppressed as duplicate
        """
        with transaction.atomic():
            if dedupe_key and Notification.objects.unread().filter(dedupe_key=dedupe_key).exists():
                logger.debug(
                    "supply.notification.suppressed",
                    extra={"dedupe_key": dedupe_key},
                )
                return None
            try:
                # Savepoint: a concurrent insert of the same key must not
                # poison the caller's transaction
                with transaction.atomic():
                    notification = Notification.objects.create(
                        type=type,
                        title=title,
                        message=message,
                        role_target=role or '',
                        user_target=user,
                        order=order,
                        material=material,
                        dedupe_key=dedupe_key or None,
                    )
            except IntegrityError:
                logger.debug(
                    "supply.notification.suppressed",
                    extra={"dedupe_key": dedupe_key},
                )
                return None

            _send_on_commit(notification)
            logger.info(
                "supply.notification.created",
                extra={
                    "type": type,
                    "role": role or "",
                    "dedupe_key": dedupe_key or "",
                    "notification_id": notification.pk,
                },
            )
            return notification

    # ── typed emitters ──────────────────────────────────────────────

    @classmethod
    def shortage(cls, order, item):
        return cls.notify(
            NotificationType.RUPTURA,
            'Ruptura detectada no pedido',
            f"{order}: {item.material} com {item.qty_to_produce} para produzir.",
            role=Role.MANAGER,
            order=order,
            material=item.material,
            dedupe_key=f"rupt-{order.pk}-{item.material_id}",
        )

    @classmethod
    def allocation_available(cls, order, material, qty, full: bool):
        title = 'Material totalmente disponível' if full else 'Material parcialmente disponível'
        return cls.notify(
            NotificationType.ALOCACAO_DISPONIVEL,
            title,
            f"{order} recebeu {qty} de {material} para picking.",
            role=Role.PICKER,
            order=order,
            material=material,
        )

    @classmethod
    def production_task_created(cls, task):
        return cls.notify(
            NotificationType.PRODUCAO_PENDENTE,
            'Nova tarefa de produção',
            f"{task.task_id}: produzir {task.qty_to_produce} de {task.material} para {task.order}.",
            role=Role.PRODUCTION_OPERATOR,
            order=task.order,
            material=task.material,
            dedupe_key=f"task-{task.pk}",
        )

    @classmethod
    def order_produced(cls, order, material, qty):
        if order.created_by_id is None:
            return None
        return cls.notify(
            NotificationType.PEDIDO_FLUXO,
            'Produção concluída',
            f"{order}: {qty} de {material} produzido(s).",
            user=order.created_by,
            order=order,
            material=material,
        )

    @classmethod
    def order_stage(cls, order, stage: str, message=''):
        if order.created_by_id is None:
            return None
        return cls.notify(
            NotificationType.PEDIDO_FLUXO,
            f"Pedido {order}: {stage}",
            message,
            user=order.created_by,
            order=order,
        )

    @classmethod
    def picking_completed(cls, order):
        return cls.notify(
            NotificationType.SISTEMA,
            'Picking concluído',
            f"{order} finalizado em picking ({order.status}).",
            role=Role.MANAGER,
            order=order,
        )

    @classmethod
    def check_stock_levels(cls, material=None) -> list[Notification]:
        """
        Raise low-stock / reorder-point / pending-production notifications.

        A threshold of 0 disables the check for that material. Returns the
        notifications actually created (duplicates are suppressed).
        """
        created = []
        materials = Material.objects.filter(is_active=True)
        if material is not None:
            materials = materials.filter(pk=material.pk)

        balances = {
            b.material_id: b
            for b in StockBalance.objects.filter(material__in=materials)
        }

        for mat in materials:
            balance = balances.get(mat.pk)
            available = balance.available if balance else Decimal('0')

            if mat.min_stock > 0 and available <= mat.min_stock:
                logger.warning(
                    "supply.stock.below_minimum",
                    extra={
                        "material": str(mat),
                        "available": str(available),
                        "min_stock": str(mat.min_stock),
                    },
                )
                created.append(cls.notify(
                    NotificationType.ESTOQUE_MINIMO,
                    f"{mat.name} abaixo do mínimo",
                    f"Disponível: {available} {mat.unit}. Mínimo configurado: {mat.min_stock}.",
                    role=Role.INPUT_OPERATOR,
                    material=mat,
                    dedupe_key=f"min-{mat.pk}",
                ))

            if mat.reorder_point > 0 and available <= mat.reorder_point:
                created.append(cls.notify(
                    NotificationType.ESTOQUE_PONTO_PEDIDO,
                    f"{mat.name} no ponto de pedido",
                    f"Disponível: {available} {mat.unit}. Ponto de pedido: {mat.reorder_point}.",
                    role=Role.MANAGER,
                    material=mat,
                    dedupe_key=f"rop-{mat.pk}",
                ))

        pending = ProductionTask.objects.open().aggregate(
            t=Coalesce(Sum('qty_to_produce'), Decimal('0'))
        )['t']
        if pending > 0:
            created.append(cls.notify(
                NotificationType.PRODUCAO_PENDENTE,
                'Tarefas de produção pendentes',
                'Existem demandas de produção aguardando execução.',
                role=Role.PRODUCTION_OPERATOR,
                dedupe_key='pending-production',
            ))

        return [n for n in created if n is not None]

    # ── inbox ───────────────────────────────────────────────────────

    @classmethod
    def inbox(cls, role=None, user=None, unread_only=False):
        qs = Notification.objects.for_target(role=role, user=user)
        if unread_only:
            qs = qs.unread()
        return qs.select_related('order', 'material')

    @classmethod
    def mark_read(cls, notification_id) -> Notification:
        return cls._set_read(notification_id, timezone.now())

    @classmethod
    def mark_unread(cls, notification_id) -> Notification:
        """
        Mark as unread again.

        If another unread notification already holds the same dedupe_key,
        the key is dropped from this one so the unread uniqueness holds.
        """
        return cls._set_read(notification_id, None)

    @classmethod
    def _set_read(cls, notification_id, read_at) -> Notification:
        with transaction.atomic():
            try:
                notification = Notification.objects.select_for_update().get(pk=notification_id)
            except Notification.DoesNotExist:
                raise SupplyError('NOTIFICATION_NOT_FOUND', notification_id=notification_id) from None

            fields = ['read_at']
            if read_at is None and notification.dedupe_key:
                clash = Notification.objects.unread().filter(
                    dedupe_key=notification.dedupe_key,
                ).exclude(pk=notification.pk).exists()
                if clash:
                    notification.dedupe_key = None
                    fields.append('dedupe_key')

            notification.read_at = read_at
            notification.save(update_fields=fields)
            return notification
