"""
Order aggregate: order, line items, audit trail and numbering counter.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from supplyman.models.enums import (
    NON_COMPETING_STATUSES,
    TERMINAL_STATUSES,
    OrderSource,
    OrderStatus,
    Readiness,
    ShortageAction,
)


class OrderQuerySet(models.QuerySet):

    def alive(self):
        """Not in the trash."""
        return self.filter(trashed_at__isnull=True)

    def competing(self):
        """Orders whose demand competes for stock (no drafts, no terminal)."""
        return self.alive().exclude(status__in=NON_COMPETING_STATUSES)


class Order(models.Model):
    """
    Customer order.

    readiness is derived from the items (see compute_readiness) and is
    refreshed after every reservation or allocation touching the order.
    FINALIZADO and CANCELADO are terminal.
    """

    order_number = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_('Número'),
        help_text=_('AAAAMMDD + sequência do dia, ou MRP-<id>. Imutável.'),
    )
    client_name = models.CharField(max_length=200, blank=True, default='', verbose_name=_('Cliente'))
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.RASCUNHO,
        db_index=True,
        verbose_name=_('Status'),
    )
    readiness = models.CharField(
        max_length=20,
        choices=Readiness.choices,
        default=Readiness.NOT_READY,
        verbose_name=_('Prontidão'),
    )
    source = models.CharField(
        max_length=10,
        choices=OrderSource.choices,
        default=OrderSource.MANUAL,
        verbose_name=_('Origem'),
    )
    total = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0'),
        verbose_name=_('Total'),
    )
    due_date = models.DateTimeField(null=True, blank=True, verbose_name=_('Entrega'))
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Criado por'),
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    trashed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Na lixeira desde'))

    objects = OrderQuerySet.as_manager()

    class Meta:
        verbose_name = _('Pedido')
        verbose_name_plural = _('Pedidos')
        ordering = ['created_at', 'pk']

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_competing(self) -> bool:
        return self.trashed_at is None and self.status not in NON_COMPETING_STATUSES

    @staticmethod
    def compute_readiness(items) -> str:
        """NOT_READY if nothing reserved, READY_FULL if all open demand is reserved."""
        requested = sum((item.open_qty for item in items), Decimal('0'))
        reserved = sum((item.qty_reserved_from_stock for item in items), Decimal('0'))
        if reserved <= 0:
            return Readiness.NOT_READY
        if reserved >= requested:
            return Readiness.READY_FULL
        return Readiness.READY_PARTIAL

    def __str__(self) -> str:
        return self.order_number or f"O-{self.pk}"


class OrderItem(models.Model):
    """
    Order line.

    Invariants:
    - PRODUCE: qty_shipped + qty_reserved_from_stock + qty_to_produce == qty_requested
    - BUY: qty_to_produce == 0
    - qty_reserved_from_stock only counts stock still to be shipped, so
      the order's reservation row always equals the lines' sum

    conditions: ordered list of [key, value] string pairs (color, fiber...),
    opaque tags used to group variants in reports.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('Pedido'),
    )
    material = models.ForeignKey(
        'supplyman.Material',
        on_delete=models.PROTECT,
        related_name='order_items',
        verbose_name=_('Material'),
    )
    qty_requested = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0'), verbose_name=_('Solicitado'),
    )
    qty_reserved_from_stock = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0'), verbose_name=_('Reservado do estoque'),
    )
    qty_to_produce = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0'), verbose_name=_('A produzir'),
    )
    qty_separated = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0'), verbose_name=_('Separado'),
    )
    qty_shipped = models.DecimalField(
        max_digits=12, decimal_places=3, default=Decimal('0'), verbose_name=_('Expedido'),
        help_text=_('Consumido em picking. Sai da demanda em aberto.'),
    )
    shortage_action = models.CharField(
        max_length=10,
        choices=ShortageAction.choices,
        default=ShortageAction.PRODUCE,
        verbose_name=_('Em ruptura'),
    )
    unit_price = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal('0'), verbose_name=_('Preço unitário'),
    )
    description = models.TextField(blank=True, default='', verbose_name=_('Descrição'))
    conditions = models.JSONField(default=list, blank=True, verbose_name=_('Condições'))

    class Meta:
        verbose_name = _('Item do pedido')
        verbose_name_plural = _('Itens do pedido')
        ordering = ['pk']
        indexes = [
            models.Index(fields=['material', 'order'], name='supplyman_item_material_ord'),
        ]

    @property
    def open_qty(self) -> Decimal:
        """Requested quantity not shipped yet."""
        return max(Decimal('0'), self.qty_requested - self.qty_shipped)

    @property
    def needed(self) -> Decimal:
        """Open quantity not yet reserved."""
        return max(Decimal('0'), self.open_qty - self.qty_reserved_from_stock)

    @property
    def condition_pairs(self) -> tuple[tuple[str, str], ...]:
        return tuple((str(k), str(v)) for k, v in self.conditions or [])

    def __str__(self) -> str:
        return f"{self.qty_requested}x {self.material} ({self.order})"


class OrderAuditEvent(models.Model):
    """Append-only audit trail of an order."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='audit_events',
        verbose_name=_('Pedido'),
    )
    action = models.CharField(max_length=50, verbose_name=_('Ação'))
    actor = models.CharField(max_length=150, blank=True, default='', verbose_name=_('Responsável'))
    details = models.TextField(blank=True, default='', verbose_name=_('Detalhes'))
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _('Evento do pedido')
        verbose_name_plural = _('Eventos do pedido')
        ordering = ['-timestamp', '-pk']

    def __str__(self) -> str:
        return f"{self.action} | {self.order}"


class OrderNumberCounter(models.Model):
    """Per-day sequence for manual order numbers."""

    day = models.DateField(unique=True, verbose_name=_('Dia'))
    last_seq = models.PositiveIntegerField(default=0, verbose_name=_('Última sequência'))

    class Meta:
        verbose_name = _('Contador de pedidos')
        verbose_name_plural = _('Contadores de pedidos')

    def __str__(self) -> str:
        return f"{self.day:%Y%m%d}: {self.last_seq}"
