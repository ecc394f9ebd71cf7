"""
Management command to release expired stock reservations.

Usage:
    python manage.py release_expired_reservations
    python manage.py release_expired_reservations --dry-run

Schedule it every minute (cron / beat); reservations live
RESERVATION_TTL_MINUTES without a heartbeat.
"""

from django.core.management.base import BaseCommand

from supplyman import supply
from supplyman.models import StockReservation


class Command(BaseCommand):
    """Release expired reservations command."""

    help = 'Libera reservas de estoque expiradas'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Mostra o que seria liberado sem executar'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            expired = StockReservation.objects.expired().count()
            self.stdout.write(f'{expired} reserva(s) seria(m) liberada(s)')
        else:
            count = supply.sweep_expired()
            self.stdout.write(
                self.style.SUCCESS(f'{count} reserva(s) liberada(s)')
            )
