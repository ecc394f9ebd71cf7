"""
Stock ledger: on-hand changes and balance bookkeeping.

receive() and consume() are the only paths that change on_hand.
sync_balance() re-derives reserved_total and production_reserved from the
reservation rows and is called at the end of every mutation.
"""

import logging
from decimal import Decimal

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from supplyman.exceptions import SupplyError
from supplyman.models.balance import StockBalance
from supplyman.models.move import StockMove
from supplyman.models.reservation import ProductionReservation, StockReservation

logger = logging.getLogger('supplyman')


def lock_balance(material) -> StockBalance:
    """
    Lock the material's balance row, creating it if absent.

    Must run inside transaction.atomic(). Every writer of a material goes
    through this lock, so two transactions on the same material never
    observe the same pre-mutation availability.
    """
    StockBalance.objects.get_or_create(material=material)
    return StockBalance.objects.select_for_update().get(material=material)


def lock_balances(materials) -> dict[int, StockBalance]:
    """Lock several balances in ascending material id order (no deadlocks)."""
    unique = {m.pk: m for m in materials}
    return {pk: lock_balance(unique[pk]) for pk in sorted(unique)}


def sync_balance(material) -> StockBalance:
    """Re-derive reserved_total / production_reserved from the rows."""
    reserved = StockReservation.objects.for_material(material).active().aggregate(
        t=Coalesce(Sum('qty'), Decimal('0'))
    )['t']
    promised = ProductionReservation.objects.filter(material=material).aggregate(
        t=Coalesce(Sum('qty'), Decimal('0'))
    )['t']
    StockBalance.objects.filter(material=material).update(
        reserved_total=reserved,
        production_reserved=promised,
    )
    return StockBalance.objects.get(material=material)


def _reference_kwargs(reference) -> dict:
    if reference is None:
        return {}
    return {
        'reference_type': ContentType.objects.get_for_model(reference),
        'reference_id': reference.pk,
    }


class StockLedger:
    """On-hand movements."""

    @classmethod
    def receive(cls, material, qty, reference=None, user=None,
                reason='Recebimento', **metadata) -> StockBalance:
        """
        Stock entry (+qty).

        Concurrency:
            - Runs under transaction.atomic()
            - Locks the balance row before the move
        """
        if qty <= 0:
            raise SupplyError('INVALID_QUANTITY', requested=qty)

        with transaction.atomic():
            lock_balance(material)
            StockMove.objects.create(
                material=material,
                delta=qty,
                reason=reason,
                user=user,
                metadata=metadata,
                **_reference_kwargs(reference),
            )
            balance = StockBalance.objects.get(material=material)
            logger.info(
                "supply.ledger.receive",
                extra={
                    "material": str(material),
                    "qty": str(qty),
                    "on_hand": str(balance.on_hand),
                    "reason": reason,
                },
            )
            return balance

    @classmethod
    def consume(cls, material, qty, reference=None, user=None,
                reason='Saída') -> StockBalance:
        """
        Stock exit (-qty), used by picking completion.

        Raises:
            SupplyError('INSUFFICIENT_STOCK'): If qty > on_hand
        """
        if qty <= 0:
            raise SupplyError('INVALID_QUANTITY', requested=qty)

        with transaction.atomic():
            balance = lock_balance(material)
            if balance.on_hand < qty:
                raise SupplyError(
                    'INSUFFICIENT_STOCK',
                    material=str(material),
                    on_hand=balance.on_hand,
                    requested=qty,
                )
            StockMove.objects.create(
                material=material,
                delta=-qty,
                reason=reason,
                user=user,
                **_reference_kwargs(reference),
            )
            balance.refresh_from_db()
            logger.info(
                "supply.ledger.consume",
                extra={
                    "material": str(material),
                    "qty": str(qty),
                    "on_hand": str(balance.on_hand),
                    "reason": reason,
                },
            )
            return balance

    @classmethod
    def recalculate(cls, material) -> Decimal:
        """
        Recompute on_hand from the moves (integrity audit).

        Returns:
            The ledger total
        """
        with transaction.atomic():
            balance = lock_balance(material)
            total = StockMove.objects.filter(material=material).aggregate(
                t=Coalesce(Sum('delta'), Decimal('0'))
            )['t']

            if total != balance.on_hand:
                old = balance.on_hand
                balance.on_hand = total
                balance.save(update_fields=['on_hand', 'updated_at'])
                logger.warning(
                    "supply.ledger.recalculated",
                    extra={
                        "material": str(material),
                        "old": str(old),
                        "new": str(total),
                    },
                )
            return total
