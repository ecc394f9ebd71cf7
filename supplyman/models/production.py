"""
ProductionTask model: production need per (order, material).
"""

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from supplyman.models.enums import ProductionTaskStatus


class ProductionTaskQuerySet(models.QuerySet):

    def open(self):
        """PENDING or IN_PROGRESS."""
        return self.exclude(status=ProductionTaskStatus.DONE)


class ProductionTask(models.Model):
    """
    What must be produced for one order and material.

    LIFECYCLE:

        ┌─────────┐  start()  ┌─────────────┐ complete() ┌──────┐
        │ PENDING │ ────────► │ IN_PROGRESS │ ─────────► │ DONE │
        └─────────┘           └─────────────┘            └──────┘
             ▲                       │
             └───── upsert(qty>0) ───┘

    DONE is terminal and kept as history. A later need for the same
    (order, material) opens a new PENDING row; at most one non-DONE row
    exists per pair.
    """

    order = models.ForeignKey(
        'supplyman.Order',
        on_delete=models.CASCADE,
        related_name='production_tasks',
        verbose_name=_('Pedido'),
    )
    material = models.ForeignKey(
        'supplyman.Material',
        on_delete=models.PROTECT,
        related_name='production_tasks',
        verbose_name=_('Material'),
    )
    qty_to_produce = models.DecimalField(max_digits=12, decimal_places=3, verbose_name=_('A produzir'))
    qty_produced = models.DecimalField(
        max_digits=12,
        decimal_places=3,
        null=True,
        blank=True,
        verbose_name=_('Produzido'),
        help_text=_('Quantidade capturada na conclusão'),
    )
    status = models.CharField(
        max_length=20,
        choices=ProductionTaskStatus.choices,
        default=ProductionTaskStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )
    started_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Iniciada em'))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Concluída em'))
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductionTaskQuerySet.as_manager()

    class Meta:
        verbose_name = _('Tarefa de produção')
        verbose_name_plural = _('Tarefas de produção')
        ordering = ['created_at', 'pk']
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'material'],
                condition=~Q(status='DONE'),
                name='unique_open_production_task',
            ),
        ]

    @property
    def task_id(self) -> str:
        return f"PT-{self.pk}"

    @property
    def is_done(self) -> bool:
        return self.status == ProductionTaskStatus.DONE

    def __str__(self) -> str:
        return f"{self.task_id} {self.qty_to_produce}x {self.material} ({self.order}) [{self.status}]"
