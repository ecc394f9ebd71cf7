"""
Tests for notifications: dedup, inbox and stock-level checks.
"""

from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command

from supplyman import supply, SupplyError
from supplyman.models import Notification, NotificationType
from supplyman.services.notifications import Notifications
from supplyman.signals import notification_created


pytestmark = pytest.mark.django_db


def emit(key='k-1', **kwargs):
    return Notifications.notify(NotificationType.SISTEMA, 'Aviso', role='Manager', dedupe_key=key, **kwargs)


class TestDedup:

    def test_duplicate_unread_is_suppressed(self):
        first = emit()
        second = emit()

        assert first is not None
        assert second is None
        assert Notification.objects.count() == 1

    def test_read_key_may_be_raised_again(self):
        first = emit()
        supply.mark_read(first.pk)

        second = emit()

        assert second is not None
        assert second.pk != first.pk

    def test_without_key_never_deduplicated(self):
        emit(key=None)
        emit(key=None)

        assert Notification.objects.count() == 2

    def test_mark_unread_drops_clashing_key(self):
        """Two unread notifications never share a key."""
        first = emit()
        supply.mark_read(first.pk)
        emit()

        restored = supply.mark_unread(first.pk)

        assert restored.read_at is None
        assert restored.dedupe_key is None
        assert Notification.objects.unread().filter(dedupe_key='k-1').count() == 1

    def test_mark_unread_keeps_key_without_clash(self):
        first = emit()
        supply.mark_read(first.pk)

        restored = supply.mark_unread(first.pk)

        assert restored.dedupe_key == 'k-1'

    def test_mark_unknown(self):
        with pytest.raises(SupplyError) as exc:
            supply.mark_read(424242)

        assert exc.value.code == 'NOTIFICATION_NOT_FOUND'


class TestInbox:

    def test_role_and_user_targets(self, user):
        emit(key='a')
        Notifications.notify(NotificationType.PEDIDO_FLUXO, 'Seu pedido', user=user)
        Notifications.notify(NotificationType.SISTEMA, 'Outro', role='Picker')

        titles = {n.title for n in supply.list_notifications(role='Manager', user=user)}

        assert titles == {'Aviso', 'Seu pedido'}

    def test_unread_only(self):
        read = emit(key='a')
        emit(key='b')
        supply.mark_read(read.pk)

        unread = supply.list_notifications(role='Manager', unread_only=True)

        assert [n.dedupe_key for n in unread] == ['b']


class TestSignal:

    def test_signal_sent_after_commit(self, django_capture_on_commit_callbacks):
        received = []

        def handler(sender, notification, **kwargs):
            received.append(notification.pk)

        notification_created.connect(handler)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                notification = emit()
        finally:
            notification_created.disconnect(handler)

        assert received == [notification.pk]

    def test_no_signal_for_suppressed(self, django_capture_on_commit_callbacks):
        emit()

        with django_capture_on_commit_callbacks() as callbacks:
            emit()

        assert callbacks == []


class TestStockLevels:
    """resina: min_stock 10, reorder_point 25."""

    def test_below_minimum_and_reorder_point(self, resina, stock_in):
        stock_in(resina, 8)
        Notification.objects.all().delete()

        created = supply.check_stock_levels(resina)

        types = {n.type for n in created}
        assert types == {NotificationType.ESTOQUE_MINIMO, NotificationType.ESTOQUE_PONTO_PEDIDO}
        minimum = Notification.objects.get(type=NotificationType.ESTOQUE_MINIMO)
        assert minimum.role_target == 'Input Operator'
        assert minimum.dedupe_key == f"min-{resina.pk}"

    def test_only_reorder_point(self, resina, stock_in):
        stock_in(resina, 20)

        assert Notification.objects.filter(type=NotificationType.ESTOQUE_PONTO_PEDIDO).exists()
        assert not Notification.objects.filter(type=NotificationType.ESTOQUE_MINIMO).exists()

    def test_reservations_count_against_thresholds(self, resina, stock_in, make_order):
        stock_in(resina, 100)
        make_order((resina, 95))

        created = supply.check_stock_levels(resina)

        assert {n.type for n in created} == {
            NotificationType.ESTOQUE_MINIMO,
            NotificationType.ESTOQUE_PONTO_PEDIDO,
        }

    def test_repeated_checks_do_not_spam(self, resina, stock_in):
        stock_in(resina, 5)

        assert supply.check_stock_levels(resina) == []
        assert Notification.objects.filter(type=NotificationType.ESTOQUE_MINIMO).count() == 1

    def test_zero_thresholds_disable_checks(self, fibra, stock_in):
        stock_in(fibra, '0.5')

        assert supply.check_stock_levels(fibra) == []

    def test_healthy_stock_is_quiet(self, resina, stock_in):
        stock_in(resina, 30)

        assert supply.available(resina) == Decimal('30')
        assert not Notification.objects.filter(material=resina).exists()

    def test_pending_production(self, fibra, make_order):
        make_order((fibra, 3))
        Notification.objects.filter(dedupe_key='pending-production').delete()

        created = supply.check_stock_levels()

        pending = [n for n in created if n.dedupe_key == 'pending-production']
        assert len(pending) == 1
        assert pending[0].role_target == 'Production Operator'


class TestCheckStockLevelsCommand:

    def test_command_reports_created(self, resina):
        out = StringIO()

        call_command('check_stock_levels', stdout=out)

        # resina has no balance yet: available is 0
        assert '2 notificação(ões) criada(s)' in out.getvalue()
        assert Notification.objects.filter(material=resina).count() == 2
