"""
StockBalance model: on-hand quantity per material.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class StockBalance(models.Model):
    """
    One row per material. The per-material lock for every mutation.

    on_hand: committed physical quantity, changed only by StockMove.
    reserved_total / production_reserved: re-derived from the reservation
    rows at the end of every mutation (see services.ledger.sync_balance).
    """

    material = models.OneToOneField(
        'supplyman.Material',
        on_delete=models.PROTECT,
        related_name='balance',
        verbose_name=_('Material'),
    )
    on_hand = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Em estoque'),
    )
    reserved_total = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Reservado'),
    )
    production_reserved = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Reservado p/ produção'),
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Saldo')
        verbose_name_plural = _('Saldos')

    @property
    def available(self) -> Decimal:
        """on_hand - reserved_total - production_reserved."""
        return self.on_hand - self.reserved_total - self.production_reserved

    def __str__(self) -> str:
        return f"{self.material}: {self.on_hand} ({self.reserved_total} reservado)"
