"""
InventoryReceipt model: inbound stock waiting to be posted.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from supplyman.models.enums import ReceiptStatus, ReceiptType


class InventoryReceipt(models.Model):
    """
    Inbound stock (production or purchase).

    Only POSTED receipts count in on_hand. DRAFT → POSTED is one-way;
    a receipt is posted exactly once.

    source_ref: for PRODUCTION receipts, the order that triggered the
    production ("O-<id>" or the order number).
    """

    type = models.CharField(
        max_length=20,
        choices=ReceiptType.choices,
        default=ReceiptType.PURCHASE,
        verbose_name=_('Tipo'),
    )
    status = models.CharField(
        max_length=10,
        choices=ReceiptStatus.choices,
        default=ReceiptStatus.DRAFT,
        db_index=True,
        verbose_name=_('Status'),
    )
    source_ref = models.CharField(max_length=64, blank=True, default='', verbose_name=_('Origem'))
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Criado por'),
    )
    created_at = models.DateTimeField(default=timezone.now)
    posted_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Lançado em'))
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Lançado por'),
    )
    auto_allocated = models.BooleanField(default=False, verbose_name=_('Alocado automaticamente'))

    class Meta:
        verbose_name = _('Recebimento')
        verbose_name_plural = _('Recebimentos')
        ordering = ['-created_at', '-pk']

    @property
    def is_posted(self) -> bool:
        return self.status == ReceiptStatus.POSTED

    def __str__(self) -> str:
        return f"RC-{self.pk} {self.get_type_display()} [{self.status}]"


class InventoryReceiptItem(models.Model):
    """Receipt line."""

    receipt = models.ForeignKey(
        InventoryReceipt,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('Recebimento'),
    )
    material = models.ForeignKey(
        'supplyman.Material',
        on_delete=models.PROTECT,
        related_name='receipt_items',
        verbose_name=_('Material'),
    )
    qty = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('Quantidade'))
    uom = models.CharField(max_length=16, blank=True, default='', verbose_name=_('Unidade'))

    class Meta:
        verbose_name = _('Item do recebimento')
        verbose_name_plural = _('Itens do recebimento')
        ordering = ['pk']

    def __str__(self) -> str:
        return f"{self.qty} {self.uom} {self.material}"
