"""
Order numbers.

Manual orders: <YYYYMMDD><seq:02d>, the day taken in ORDER_NUMBER_TIMEZONE
and seq from a per-day counter row incremented under lock.
MRP orders: MRP-<pk>, no counter involved.
"""

from zoneinfo import ZoneInfo

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from supplyman.conf import supplyman_settings
from supplyman.models.order import OrderNumberCounter


def order_day(now=None):
    tz = ZoneInfo(supplyman_settings.ORDER_NUMBER_TIMEZONE)
    return timezone.localtime(now or timezone.now(), tz).date()


def next_order_number(now=None) -> str:
    """Take the next number of the day. Concurrent callers never collide."""
    day = order_day(now)
    with transaction.atomic():
        counter, _ = OrderNumberCounter.objects.select_for_update().get_or_create(day=day)
        OrderNumberCounter.objects.filter(pk=counter.pk).update(last_seq=F('last_seq') + 1)
        counter.refresh_from_db(fields=['last_seq'])
        return f"{day:%Y%m%d}{counter.last_seq:02d}"


def mrp_order_number(order) -> str:
    return f"MRP-{order.pk}"
