"""
Receipt posting: DRAFT -> POSTED, exactly once.
"""

import logging

from django.db import transaction
from django.utils import timezone

from supplyman.exceptions import SupplyError
from supplyman.models.enums import ReceiptStatus, ReceiptType
from supplyman.models.order import Order
from supplyman.models.receipt import InventoryReceipt, InventoryReceiptItem
from supplyman.models.reservation import ProductionReservation
from supplyman.quantities import parse_quantity
from supplyman.results import PostingResult
from supplyman.services.ledger import StockLedger, sync_balance
from supplyman.services.queries import SupplyQueries

logger = logging.getLogger('supplyman')


def _source_order(receipt) -> Order | None:
    """Order behind a PRODUCTION receipt ("O-<pk>" or an order number)."""
    ref = (receipt.source_ref or '').strip()
    if receipt.type != ReceiptType.PRODUCTION or not ref:
        return None
    if ref.startswith('O-') and ref[2:].isdigit():
        return Order.objects.filter(pk=int(ref[2:])).first()
    return Order.objects.filter(order_number=ref).first()


class Receipts:
    """Receipt methods."""

    @classmethod
    def create(cls, lines, type=ReceiptType.PURCHASE, source_ref='', user=None) -> InventoryReceipt:
        """
        Create a DRAFT receipt.

        Args:
            lines: iterable of (material, qty)
        """
        parsed = [(material, parse_quantity(qty)) for material, qty in lines]
        with transaction.atomic():
            receipt = InventoryReceipt.objects.create(
                type=type,
                source_ref=source_ref,
                created_by=user,
            )
            InventoryReceiptItem.objects.bulk_create([
                InventoryReceiptItem(receipt=receipt, material=material, qty=qty, uom=material.unit)
                for material, qty in parsed
            ])
            return receipt

    @classmethod
    def post(cls, receipt, auto_allocate=False, user=None, priority_order=None) -> PostingResult:
        """
        Commit the receipt's quantities to on_hand.

        Per line: receive into the ledger, clear the source order's
        production reservation (PRODUCTION receipts), then allocate the
        line if auto_allocate.

        Raises:
            SupplyError('RECEIPT_NOT_FOUND')
            SupplyError('RECEIPT_ALREADY_POSTED'): Posting is one-way
        """
        from supplyman.services.allocation import Allocator
        from supplyman.services.notifications import Notifications

        pk = getattr(receipt, 'pk', receipt)

        with transaction.atomic():
            try:
                receipt = InventoryReceipt.objects.select_for_update().get(pk=pk)
            except InventoryReceipt.DoesNotExist:
                raise SupplyError('RECEIPT_NOT_FOUND', receipt_id=pk) from None

            if receipt.status != ReceiptStatus.DRAFT:
                raise SupplyError(
                    'RECEIPT_ALREADY_POSTED',
                    receipt_id=pk,
                    posted_at=receipt.posted_at,
                )

            source_order = _source_order(receipt)
            allocations = []
            materials = []

            for line in receipt.items.select_related('material').order_by('pk'):
                if line.qty <= 0:
                    continue
                material = line.material
                materials.append(material)

                StockLedger.receive(
                    material,
                    line.qty,
                    reference=receipt,
                    user=user,
                    reason=f"Recebimento RC-{receipt.pk}",
                    receipt_type=receipt.type,
                )

                if source_order is not None:
                    ProductionReservation.objects.filter(
                        order=source_order,
                        material=material,
                    ).delete()
                    sync_balance(material)

                if auto_allocate:
                    allocations.append(Allocator.allocate(
                        material,
                        line.qty,
                        user=user,
                        priority_order=priority_order or source_order,
                    ))

            receipt.status = ReceiptStatus.POSTED
            receipt.posted_at = timezone.now()
            receipt.posted_by = user
            receipt.auto_allocated = bool(auto_allocate)
            receipt.save(update_fields=['status', 'posted_at', 'posted_by', 'auto_allocated'])

            transaction.on_commit(SupplyQueries.invalidate_snapshot)
            for material in materials:
                Notifications.check_stock_levels(material)

            logger.info(
                "supply.receipt.posted",
                extra={
                    "receipt_id": receipt.pk,
                    "type": receipt.type,
                    "lines": len(materials),
                    "auto_allocated": receipt.auto_allocated,
                },
            )
            return PostingResult(
                receipt_id=receipt.pk,
                posted_at=receipt.posted_at,
                auto_allocated=receipt.auto_allocated,
                allocations=allocations,
            )
