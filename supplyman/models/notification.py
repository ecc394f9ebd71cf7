"""
Notification model: role/user targeted events with dedup.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from supplyman.models.enums import NotificationType, Role


class NotificationQuerySet(models.QuerySet):

    def unread(self):
        return self.filter(read_at__isnull=True)

    def for_target(self, role=None, user=None):
        """Notifications addressed to the role or to the user."""
        q = Q()
        if role:
            q |= Q(role_target=role)
        if user is not None:
            q |= Q(user_target=user)
        return self.filter(q) if q else self


class Notification(models.Model):
    """
    Inbox entry.

    No two unread notifications share a dedupe_key (partial unique
    constraint). Once read, the same key may be raised again.
    """

    type = models.CharField(
        max_length=30,
        choices=NotificationType.choices,
        verbose_name=_('Tipo'),
    )
    title = models.CharField(max_length=200, verbose_name=_('Título'))
    message = models.TextField(blank=True, default='', verbose_name=_('Mensagem'))
    role_target = models.CharField(
        max_length=30,
        choices=Role.choices,
        blank=True,
        default='',
        db_index=True,
        verbose_name=_('Perfil'),
    )
    user_target = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Usuário'),
    )
    order = models.ForeignKey(
        'supplyman.Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications',
        verbose_name=_('Pedido'),
    )
    material = models.ForeignKey(
        'supplyman.Material',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications',
        verbose_name=_('Material'),
    )
    dedupe_key = models.CharField(max_length=120, null=True, blank=True, verbose_name=_('Chave de deduplicação'))
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Lida em'))

    objects = NotificationQuerySet.as_manager()

    class Meta:
        verbose_name = _('Notificação')
        verbose_name_plural = _('Notificações')
        ordering = ['-created_at', '-pk']
        constraints = [
            models.UniqueConstraint(
                fields=['dedupe_key'],
                condition=Q(read_at__isnull=True, dedupe_key__isnull=False),
                name='unique_unread_notification_dedupe_key',
            ),
        ]

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def __str__(self) -> str:
        mark = '●' if self.read_at is None else '○'
        return f"{mark} {self.get_type_display()}: {self.title}"
