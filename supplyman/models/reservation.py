"""
Reservation models: time-boxed stock claims and production earmarks.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class StockReservationQuerySet(models.QuerySet):

    def active(self, now=None):
        """Not yet expired. Expired rows are ignored even before the sweep."""
        return self.filter(expires_at__gt=now or timezone.now())

    def expired(self, now=None):
        return self.filter(expires_at__lte=now or timezone.now())

    def for_material(self, material):
        return self.filter(material=material)


class StockReservation(models.Model):
    """
    Claim on physical stock of a material for one order.

    LIFECYCLE:

        reserve() ──► [row: qty, expires_at = now + TTL]
                         │            │
              heartbeat()│            │ expires_at <= now
                         ▼            ▼
                  expires_at moved   sweep deletes the row and sends
                  forward            the order item back to the
                                     shortage resolver

    At most one row per (order, material); renewing overwrites qty and
    expiry. A row never stores qty <= 0 (it is deleted instead).
    """

    order = models.ForeignKey(
        'supplyman.Order',
        on_delete=models.CASCADE,
        related_name='reservations',
        verbose_name=_('Pedido'),
    )
    material = models.ForeignKey(
        'supplyman.Material',
        on_delete=models.PROTECT,
        related_name='reservations',
        verbose_name=_('Material'),
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Reservado por'),
    )
    qty = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Quantidade'))
    expires_at = models.DateTimeField(
        db_index=True,
        verbose_name=_('Expira em'),
        help_text=_('Após esta data a reserva é liberada automaticamente'),
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockReservationQuerySet.as_manager()

    class Meta:
        verbose_name = _('Reserva de estoque')
        verbose_name_plural = _('Reservas de estoque')
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'material'],
                name='unique_stock_reservation_per_order_material',
            ),
        ]
        indexes = [
            models.Index(fields=['material', 'expires_at'], name='supplyman_resv_material_exp'),
        ]

    @property
    def is_expired(self) -> bool:
        return timezone.now() >= self.expires_at

    def __str__(self) -> str:
        return f"🔒 {self.qty}x {self.material} → {self.order} (até {self.expires_at:%H:%M:%S})"


class ProductionReservation(models.Model):
    """
    Earmark for stock promised by an in-flight production task.

    Not part of on_hand; subtracted from StockBalance.available so the
    promised quantity is not counted twice. Mirrors the pending quantity
    of the (order, material) production task and disappears when the
    produced stock is posted.
    """

    order = models.ForeignKey(
        'supplyman.Order',
        on_delete=models.CASCADE,
        related_name='production_reservations',
        verbose_name=_('Pedido'),
    )
    material = models.ForeignKey(
        'supplyman.Material',
        on_delete=models.PROTECT,
        related_name='production_reservations',
        verbose_name=_('Material'),
    )
    qty = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Quantidade'))
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Reserva de produção')
        verbose_name_plural = _('Reservas de produção')
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'material'],
                name='unique_production_reservation_per_order_material',
            ),
        ]

    def __str__(self) -> str:
        return f"🏭 {self.qty}x {self.material} → {self.order}"
