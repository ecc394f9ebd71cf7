"""
Management command to raise low-stock notifications.

Usage:
    python manage.py check_stock_levels
"""

from django.core.management.base import BaseCommand

from supplyman import supply


class Command(BaseCommand):

    help = 'Verifica estoque mínimo, ponto de pedido e produção pendente'

    def handle(self, *args, **options):
        created = supply.check_stock_levels()
        for notification in created:
            self.stdout.write(f'{notification.get_type_display()}: {notification.title}')
        self.stdout.write(
            self.style.SUCCESS(f'{len(created)} notificação(ões) criada(s)')
        )
