"""
StockMove model: Immutable ledger of on-hand changes.
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class StockMove(models.Model):
    """
    Immutable record of an on-hand change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new moves with inverse delta
    - Updates StockBalance.on_hand atomically on save()

    Receipt posting (+) and picking completion (-) are the only writers.
    """

    material = models.ForeignKey(
        'supplyman.Material',
        on_delete=models.PROTECT,
        related_name='moves',
        verbose_name=_('Material'),
    )

    delta = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        verbose_name=_('Variação'),
        help_text=_('Positivo = entrada, Negativo = saída'),
    )

    # What caused the move (receipt, order)
    reference_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Tipo de Referência'),
    )
    reference_id = models.PositiveIntegerField(null=True, blank=True, verbose_name=_('ID da Referência'))
    reference = GenericForeignKey('reference_type', 'reference_id')

    reason = models.CharField(
        max_length=255,
        verbose_name=_('Motivo'),
        help_text=_('Obrigatório. Ex: "Recebimento #12", "Picking 2026101801"'),
    )
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadados'))

    timestamp = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_('Data/Hora'))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Usuário'),
    )

    class Meta:
        verbose_name = _('Movimento')
        verbose_name_plural = _('Movimentos')
        ordering = ['timestamp']
        indexes = [
            models.Index(fields=['material', 'timestamp'], name='supplyman_move_material_ts'),
        ]

    def save(self, *args, **kwargs):
        """Save move and update balance atomically."""
        if self.pk:
            raise ValueError(
                "Movimentos são imutáveis. "
                "Para corrigir, crie um novo movimento com delta inverso."
            )

        if not self.reason:
            raise ValueError("Motivo é obrigatório")

        with transaction.atomic():
            super().save(*args, **kwargs)

            from supplyman.models.balance import StockBalance

            updated = StockBalance.objects.filter(material_id=self.material_id).update(
                on_hand=F('on_hand') + self.delta,
                updated_at=timezone.now(),
            )
            if not updated:
                StockBalance.objects.create(material_id=self.material_id, on_hand=self.delta)

    def delete(self, *args, **kwargs):
        """Moves are immutable."""
        raise ValueError(
            "Movimentos são imutáveis. "
            "Para estornar, crie um novo movimento com delta inverso."
        )

    def __str__(self) -> str:
        signal = '+' if self.delta > 0 else ''
        return f"{signal}{self.delta} {self.material} | {self.reason}"
