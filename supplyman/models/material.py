"""
Material model: what is stocked, reserved and produced.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class Material(models.Model):
    """
    Stocked material.

    min_stock and reorder_point drive the low-stock notifications.
    Treat as immutable while referenced by active orders (admin edits only).
    """

    sku = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_('SKU'),
    )
    name = models.CharField(max_length=200, verbose_name=_('Nome'))
    description = models.TextField(blank=True, default='', verbose_name=_('Descrição'))
    unit = models.CharField(
        max_length=16,
        default='EA',
        verbose_name=_('Unidade'),
        help_text=_('Unidade de medida padrão (ex: EA, KG, M)'),
    )
    min_stock = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Estoque mínimo'),
    )
    reorder_point = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        default=Decimal('0'),
        verbose_name=_('Ponto de pedido'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Ativo'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Material')
        verbose_name_plural = _('Materiais')
        ordering = ['name']

    def __str__(self) -> str:
        return self.name
