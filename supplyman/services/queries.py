"""
Supply queries: read-only operations.

No locking. Expired reservations are ignored even before the sweep runs,
so availability is right regardless of cron timing.
"""

from decimal import Decimal

from django.core.cache import caches
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from supplyman.conf import supplyman_settings
from supplyman.models.balance import StockBalance
from supplyman.models.material import Material
from supplyman.models.order import Order, OrderItem
from supplyman.models.production import ProductionTask
from supplyman.models.reservation import ProductionReservation, StockReservation
from supplyman.quantities import ZERO

SNAPSHOT_CACHE_KEY = 'supplyman:inventory_snapshot'


class SupplyQueries:
    """Read-only supply query methods."""

    @classmethod
    def on_hand(cls, material) -> Decimal:
        return (
            StockBalance.objects.filter(material=material)
            .values_list('on_hand', flat=True).first()
        ) or ZERO

    @classmethod
    def reserved_total(cls, material) -> Decimal:
        """Sum of active stock reservations."""
        return StockReservation.objects.for_material(material).active().aggregate(
            t=Coalesce(Sum('qty'), Decimal('0'))
        )['t']

    @classmethod
    def production_reserved(cls, material) -> Decimal:
        return ProductionReservation.objects.filter(material=material).aggregate(
            t=Coalesce(Sum('qty'), Decimal('0'))
        )['t']

    @classmethod
    def available(cls, material) -> Decimal:
        """
        Quantity free for new claims.

        available = on_hand - active reservations - production reserved
        """
        return cls.on_hand(material) - cls.reserved_total(material) - cls.production_reserved(material)

    @classmethod
    def reservation_state(cls, order) -> list[dict]:
        """Current claims of an order, one entry per material."""
        now = timezone.now()
        return [
            {
                'material_id': r.material_id,
                'material': str(r.material),
                'qty': r.qty,
                'expires_at': r.expires_at,
                'expired': r.expires_at <= now,
            }
            for r in StockReservation.objects.filter(order=order)
            .select_related('material').order_by('material_id')
        ]

    @classmethod
    def production_tasks(cls, status=None, material=None):
        qs = ProductionTask.objects.select_related('order', 'material')
        if status:
            qs = qs.filter(status=status)
        if material is not None:
            qs = qs.filter(material=material)
        return qs

    @classmethod
    def _open_items(cls, material=None):
        qs = OrderItem.objects.filter(order__in=Order.objects.competing())
        if material is not None:
            qs = qs.filter(material=material)
        return qs.select_related('material', 'order')

    @classmethod
    def open_demand(cls, material) -> Decimal:
        """Requested but not yet reserved, over competing orders."""
        return sum((i.needed for i in cls._open_items(material)), ZERO)

    @classmethod
    def variant_report(cls, material=None) -> list[dict]:
        """
        Open demand grouped by (material, conditions).

        Conditions are opaque tags: two lines are the same variant when
        their ordered (key, value) pairs match.
        """
        groups: dict[tuple, dict] = {}
        for item in cls._open_items(material).order_by('material_id', 'pk'):
            key = (item.material_id, item.condition_pairs)
            row = groups.setdefault(key, {
                'material_id': item.material_id,
                'material': str(item.material),
                'conditions': [list(p) for p in item.condition_pairs],
                'orders': set(),
                'requested': ZERO,
                'reserved': ZERO,
                'to_produce': ZERO,
            })
            row['orders'].add(item.order_id)
            row['requested'] += item.open_qty
            row['reserved'] += item.qty_reserved_from_stock
            row['to_produce'] += item.qty_to_produce

        report = []
        for row in groups.values():
            row['orders'] = len(row['orders'])
            report.append(row)
        return report

    @classmethod
    def inventory_snapshot(cls, refresh=False) -> list[dict]:
        """
        Per-material stock picture for dashboards.

        Served from the cache for INVENTORY_CACHE_SECONDS; stale reads are
        accepted here and nowhere else.
        """
        timeout = supplyman_settings.INVENTORY_CACHE_SECONDS
        cache = caches[supplyman_settings.CACHE_ALIAS]

        if timeout and not refresh:
            cached = cache.get(SNAPSHOT_CACHE_KEY)
            if cached is not None:
                return cached

        balances = {b.material_id: b for b in StockBalance.objects.all()}
        snapshot = []
        for material in Material.objects.filter(is_active=True).order_by('name', 'pk'):
            balance = balances.get(material.pk)
            on_hand = balance.on_hand if balance else ZERO
            reserved = balance.reserved_total if balance else ZERO
            promised = balance.production_reserved if balance else ZERO
            available = on_hand - reserved - promised
            snapshot.append({
                'material_id': material.pk,
                'sku': material.sku,
                'name': material.name,
                'unit': material.unit,
                'on_hand': on_hand,
                'reserved_total': reserved,
                'production_reserved': promised,
                'available': available,
                'below_minimum': material.min_stock > 0 and available <= material.min_stock,
                'at_reorder_point': material.reorder_point > 0 and available <= material.reorder_point,
            })

        if timeout:
            cache.set(SNAPSHOT_CACHE_KEY, snapshot, timeout)
        return snapshot

    @classmethod
    def invalidate_snapshot(cls) -> None:
        caches[supplyman_settings.CACHE_ALIAS].delete(SNAPSHOT_CACHE_KEY)
