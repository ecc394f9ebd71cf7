"""
Stock reservations: time-boxed claims (reserve, heartbeat, expiry sweep).

All mutating methods run under transaction.atomic() and take the
material's balance lock before reading availability.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from supplyman.conf import supplyman_settings
from supplyman.exceptions import SupplyError
from supplyman.models.balance import StockBalance
from supplyman.models.material import Material
from supplyman.models.order import Order
from supplyman.models.reservation import ProductionReservation, StockReservation
from supplyman.quantities import ZERO, parse_quantity
from supplyman.results import ReservationResult
from supplyman.services.ledger import lock_balance, lock_balances, sync_balance
from supplyman.services.shortage import (
    distribute,
    open_total,
    produce_need,
    refresh_readiness,
    reset,
)

logger = logging.getLogger('supplyman')


def lock_order(order) -> Order:
    """
    Re-read the order under a row lock.

    Accepts an Order or its pk. Order locks are always taken before
    balance locks.
    """
    pk = getattr(order, 'pk', order)
    try:
        return Order.objects.select_for_update().get(pk=pk)
    except Order.DoesNotExist:
        raise SupplyError('ORDER_NOT_FOUND', order_id=pk) from None


def try_lock_orders(order_ids) -> set[int]:
    """
    Lock the given orders without waiting and return the ids obtained.

    For code that already holds a balance lock and must touch other
    orders: rows locked elsewhere are skipped (SKIP LOCKED), so the
    order -> balance lock order can never be inverted into a wait.
    """
    if not order_ids:
        return set()
    return set(
        Order.objects.select_for_update(skip_locked=True)
        .filter(pk__in=order_ids)
        .order_by('pk')
        .values_list('pk', flat=True)
    )


class Reservations:
    """Reservation lifecycle methods."""

    @classmethod
    def reserved_by_others(cls, order, material, now=None) -> Decimal:
        """Active reservations of the material held by other orders."""
        return StockReservation.objects.for_material(material).active(now).exclude(
            order=order,
        ).aggregate(t=Coalesce(Sum('qty'), Decimal('0')))['t']

    @classmethod
    def reserve(cls, order, material, requested_qty, user=None) -> ReservationResult:
        """
        Claim up to requested_qty of material for the order.

        reserved = min(requested, open lines, max(0, on_hand - reserved_by_others))

        The claim never exceeds what the order's lines for the material
        can still hold (requested - shipped). It replaces the order's
        previous claim for the material and expires after
        RESERVATION_TTL_MINUTES. A result of 0 deletes it.
        The rest of the order's need for the material goes to production
        (PRODUCE lines of non-draft orders) or is left to be bought (BUY).

        Raises:
            SupplyError('MATERIAL_REQUIRED'): If material is None
            SupplyError('INVALID_QUANTITY'): If requested_qty < 0
            SupplyError('ORDER_TERMINAL'): If the order is finalized/cancelled
        """
        if material is None:
            raise SupplyError('MATERIAL_REQUIRED')
        requested = parse_quantity(requested_qty, allow_zero=True)

        from supplyman.services.notifications import Notifications
        from supplyman.services.production import ProductionTasks

        with transaction.atomic():
            order = lock_order(order)
            if order.is_terminal:
                raise SupplyError('ORDER_TERMINAL', order=str(order), status=order.status)

            balance = lock_balance(material)
            now = timezone.now()
            cls.sweep_material(material, now)

            available = balance.on_hand - cls.reserved_by_others(order, material, now)
            items = list(order.items.filter(material=material).select_related('material'))
            reserved = min(requested, open_total(items), max(ZERO, available))

            distribute(items, reserved)
            expires_at = cls.set_reservation(order, material, reserved, user=user, now=now)

            produce = produce_need(items)
            if order.is_competing:
                ProductionTasks.upsert(order, material, produce)
            sync_balance(material)

            short = next((i for i in items if i.qty_to_produce > 0), None)
            if short is not None:
                Notifications.shortage(order, short)

            refresh_readiness(order)

            logger.info(
                "supply.reservation.reserved",
                extra={
                    "order": str(order),
                    "material": str(material),
                    "requested": str(requested),
                    "reserved": str(reserved),
                    "to_produce": str(produce),
                },
            )
            return ReservationResult(
                order_id=order.pk,
                material_id=material.pk,
                reserved_qty=reserved,
                produce_qty=produce,
                expires_at=expires_at,
            )

    @classmethod
    def set_reservation(cls, order, material, qty, user=None, now=None):
        """
        Upsert the (order, material) claim with a fresh expiry.

        qty <= 0 deletes the row. Caller holds the balance lock and calls
        sync_balance() afterwards.

        Returns:
            The new expires_at, or None when the row was deleted
        """
        if qty <= 0:
            StockReservation.objects.filter(order=order, material=material).delete()
            return None

        expires_at = (now or timezone.now()) + supplyman_settings.reservation_ttl
        defaults = {'qty': qty, 'expires_at': expires_at}
        if user is not None:
            defaults['user'] = user
        StockReservation.objects.update_or_create(
            order=order,
            material=material,
            defaults=defaults,
        )
        return expires_at

    @classmethod
    def heartbeat(cls, order) -> int:
        """
        Push every live reservation of the order to now + TTL.

        Quantities are untouched. Reservations already expired are swept
        first; a heartbeat never revives them.

        Returns:
            Number of reservations extended
        """
        with transaction.atomic():
            order = lock_order(order)
            if order.is_terminal:
                return 0

            now = timezone.now()
            stale = set(
                StockReservation.objects.filter(order=order).expired(now)
                .values_list('material_id', flat=True)
            )
            for material in Material.objects.filter(pk__in=stale).order_by('pk'):
                lock_balance(material)
                cls.sweep_material(material, now)

            count = StockReservation.objects.filter(order=order).active(now).update(
                expires_at=now + supplyman_settings.reservation_ttl,
            )
            logger.debug(
                "supply.reservation.heartbeat",
                extra={"order": str(order), "extended": count},
            )
            return count

    @classmethod
    def release_order(cls, order) -> None:
        """
        Drop every stock and production claim of the order.

        Caller holds the order lock. Balances are locked here.
        """
        material_ids = set(
            StockReservation.objects.filter(order=order).values_list('material_id', flat=True)
        ) | set(
            ProductionReservation.objects.filter(order=order).values_list('material_id', flat=True)
        )
        materials = list(Material.objects.filter(pk__in=material_ids))
        lock_balances(materials)

        StockReservation.objects.filter(order=order).delete()
        ProductionReservation.objects.filter(order=order).delete()
        for material in materials:
            sync_balance(material)

    # ── expiry ──────────────────────────────────────────────────────

    @classmethod
    def sweep_material(cls, material, now=None, limit=None) -> int:
        """
        Release the material's expired reservations.

        Each expired claim is deleted and the owning lines are reset to
        nothing reserved, so their full need goes back to the shortage
        resolver. Caller holds the balance lock.

        Owning orders are locked with SKIP LOCKED. A claim whose order is
        busy elsewhere is left in place; active() already ignores it and
        a later sweep picks it up.

        Returns:
            Number of reservations released
        """
        from supplyman.services.production import ProductionTasks

        now = now or timezone.now()
        rows = StockReservation.objects.for_material(material).expired(now).order_by('pk')
        if limit:
            rows = rows[:limit]
        rows = list(rows)

        locked = try_lock_orders({row.order_id for row in rows})
        skipped = [row for row in rows if row.order_id not in locked]
        if skipped:
            logger.debug(
                "supply.reservation.sweep_skipped",
                extra={"material": str(material), "skipped": len(skipped)},
            )
        rows = [row for row in rows if row.order_id in locked]
        orders = Order.objects.in_bulk(locked)

        for row in rows:
            order = orders[row.order_id]
            qty = row.qty
            row.delete()
            if not order.is_terminal:
                items = list(order.items.filter(material=material))
                reset(items)
                if order.is_competing:
                    ProductionTasks.upsert(order, material, produce_need(items))
                refresh_readiness(order)
            logger.info(
                "supply.reservation.expired",
                extra={
                    "order": str(order),
                    "material": str(material),
                    "qty": str(qty),
                },
            )

        if rows:
            sync_balance(material)
        return len(rows)

    @classmethod
    def sweep_expired(cls) -> int:
        """
        Release all expired reservations in batches.

        Returns:
            Number of reservations released

        Concurrency:
            - One transaction.atomic() per material batch
            - The balance row is taken with SKIP LOCKED; a material busy
              in another transaction is skipped (that transaction sweeps
              it lazily)
            - Safe for multiple instances
        """
        now = timezone.now()
        total = 0
        batch_size = supplyman_settings.EXPIRED_BATCH_SIZE

        material_ids = sorted(set(
            StockReservation.objects.expired(now).values_list('material_id', flat=True)
        ))

        for material_id in material_ids:
            while True:
                with transaction.atomic():
                    locked = (
                        StockBalance.objects.select_for_update(skip_locked=True)
                        .filter(material_id=material_id)
                        .first()
                    )
                    if locked is None:
                        break
                    material = Material.objects.get(pk=material_id)
                    released = cls.sweep_material(material, now, limit=batch_size)
                total += released
                if released < batch_size:
                    break

        if total:
            logger.info(
                "supply.reservations.expired_released",
                extra={"released": total},
            )
        return total
