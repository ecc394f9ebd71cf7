"""
Orders: intake, line edits, submission, picking and soft delete.

Every method validates its input before opening a transaction and takes
the order lock before any balance lock.
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from supplyman.exceptions import SupplyError
from supplyman.models.balance import StockBalance
from supplyman.models.enums import OrderSource, OrderStatus, Readiness
from supplyman.models.material import Material
from supplyman.models.order import Order, OrderAuditEvent, OrderItem
from supplyman.models.production import ProductionTask
from supplyman.models.reservation import ProductionReservation, StockReservation
from supplyman.quantities import (
    ZERO,
    clamp,
    parse_conditions,
    parse_quantity,
    parse_shortage_action,
)
from supplyman.results import MaterialCoverage, ReservationResult, SubmissionResult
from supplyman.services.ledger import StockLedger, lock_balance, lock_balances, sync_balance
from supplyman.services.notifications import Notifications
from supplyman.services.numbering import mrp_order_number, next_order_number
from supplyman.services.production import ProductionTasks
from supplyman.services.queries import SupplyQueries
from supplyman.services.reservations import Reservations, lock_order
from supplyman.services.shortage import (
    ITEM_FIELDS,
    apply_reserved,
    competing_available,
    distribute,
    open_total,
    produce_need,
    refresh_readiness,
    reserved_sum,
)

logger = logging.getLogger('supplyman')


def audit(order, action: str, user=None, details: str = '') -> OrderAuditEvent:
    return OrderAuditEvent.objects.create(
        order=order,
        action=action,
        actor=user.get_username() if user is not None else 'sistema',
        details=details,
    )


def _refresh_total(order) -> Decimal:
    total = sum(
        (i.qty_requested * i.unit_price for i in order.items.all()),
        Decimal('0'),
    ).quantize(Decimal('0.01'))
    Order.objects.filter(pk=order.pk).update(total=total)
    order.total = total
    return total


def _ensure_editable(order) -> None:
    if order.is_terminal:
        raise SupplyError('ORDER_TERMINAL', order=str(order), status=order.status)


def _ensure_status(order, expected) -> None:
    if order.status != expected:
        raise SupplyError('INVALID_STATUS', order=str(order), current=order.status, expected=expected)


def _by_material(items) -> dict[int, list[OrderItem]]:
    grouped: dict[int, list[OrderItem]] = {}
    for item in items:
        grouped.setdefault(item.material_id, []).append(item)
    return dict(sorted(grouped.items()))


class Orders:
    """Order aggregate methods."""

    # ── input ───────────────────────────────────────────────────────

    @classmethod
    def parse_line(cls, line: dict, prefix: str = 'item') -> tuple[dict, dict[str, str]]:
        """
        Validate one order line.

        Returns:
            (parsed fields, field-keyed errors)
        """
        parsed: dict = {}
        errors: dict[str, str] = {}

        material = line.get('material')
        if material is not None and not isinstance(material, Material):
            material = Material.objects.filter(pk=material).first()
        if material is None:
            errors[f'{prefix}.material'] = SupplyError('MATERIAL_REQUIRED').message
        else:
            parsed['material'] = material

        checks = [
            ('quantity', 'qty_requested', lambda v: parse_quantity(v, field=f'{prefix}.quantity')),
            ('shortage_action', 'shortage_action', parse_shortage_action),
            ('unit_price', 'unit_price', lambda v: parse_quantity(v or 0, allow_zero=True)),
            ('conditions', 'conditions', parse_conditions),
        ]
        for key, field, parse in checks:
            try:
                parsed[field] = parse(line.get(key))
            except SupplyError as e:
                errors[f'{prefix}.{key}'] = e.message

        parsed['description'] = str(line.get('description') or '')
        return parsed, errors

    @classmethod
    def parse_lines(cls, lines) -> list[dict]:
        """
        Raises:
            SupplyError('VALIDATION_FAILED'): errors keyed like items[0].quantity
        """
        parsed, errors = [], {}
        for i, line in enumerate(lines):
            fields, line_errors = cls.parse_line(line, prefix=f'items[{i}]')
            parsed.append(fields)
            errors.update(line_errors)
        if errors:
            raise SupplyError('VALIDATION_FAILED', errors=errors)
        return parsed

    # ── intake & editing ────────────────────────────────────────────

    @classmethod
    def create(cls, user=None, client_name='', due_date=None,
               source=OrderSource.MANUAL, items=None) -> Order:
        """
        Create a RASCUNHO order and give it its number.

        Lines in `items` (dicts with material, quantity, shortage_action,
        unit_price, description, conditions) are added and reserved.
        """
        if source not in OrderSource.values:
            raise SupplyError('VALIDATION_FAILED', errors={'source': 'Origem inválida'})
        lines = cls.parse_lines(items or [])

        with transaction.atomic():
            order = Order.objects.create(
                client_name=client_name or '',
                due_date=due_date,
                source=source,
                created_by=user,
            )
            if source == OrderSource.MRP:
                order.order_number = mrp_order_number(order)
            else:
                order.order_number = next_order_number()
            order.save(update_fields=['order_number'])

            created = [cls._new_item(order, line) for line in lines]
            audit(order, 'CREATED', user, f"Pedido {order} criado com {len(created)} item(ns).")

            for material_items in _by_material(created).values():
                material = material_items[0].material
                Reservations.reserve(order, material, cls._material_total(order, material), user=user)

            _refresh_total(order)
            logger.info(
                "supply.order.created",
                extra={
                    "order": str(order),
                    "source": source,
                    "items": len(created),
                },
            )
            order.refresh_from_db()
            return order

    @classmethod
    def _new_item(cls, order, line: dict) -> OrderItem:
        item = OrderItem(order=order, **line)
        apply_reserved(item, ZERO)
        item.save()
        return item

    @classmethod
    def _material_total(cls, order, material) -> Decimal:
        return sum(
            (i.open_qty for i in order.items.filter(material=material)),
            ZERO,
        )

    @classmethod
    def _lock_item(cls, item) -> tuple[Order, OrderItem]:
        pk = getattr(item, 'pk', item)
        order_id = OrderItem.objects.filter(pk=pk).values_list('order_id', flat=True).first()
        if order_id is None:
            raise SupplyError('ITEM_NOT_FOUND', item_id=pk)
        order = lock_order(order_id)
        item = OrderItem.objects.select_related('material').filter(pk=pk).first()
        if item is None:
            raise SupplyError('ITEM_NOT_FOUND', item_id=pk)
        return order, item

    @classmethod
    def add_item(cls, order, material, quantity, shortage_action=None, unit_price=0,
                 description='', conditions=None, user=None) -> OrderItem:
        """Add a line and reserve the order's total for its material."""
        line = cls.parse_lines([{
            'material': material,
            'quantity': quantity,
            'shortage_action': shortage_action,
            'unit_price': unit_price,
            'description': description,
            'conditions': conditions,
        }])[0]

        with transaction.atomic():
            order = lock_order(order)
            _ensure_editable(order)
            item = cls._new_item(order, line)
            _refresh_total(order)
            audit(order, 'ITEM_ADDED', user, f"{item.qty_requested}x {item.material}")
            Reservations.reserve(order, item.material, cls._material_total(order, item.material), user=user)
            item.refresh_from_db()
            return item

    @classmethod
    def update_item_quantity(cls, item, quantity, user=None) -> ReservationResult:
        """
        Change a line's requested quantity (the "quantity blur" edit).

        The order's claim on the material is re-derived for its new total.
        A line cannot go below what it already shipped.
        """
        qty = parse_quantity(quantity)

        with transaction.atomic():
            order, item = cls._lock_item(item)
            _ensure_editable(order)
            if qty < item.qty_shipped:
                raise SupplyError(
                    'INVALID_QUANTITY',
                    field='quantity',
                    requested=qty,
                    shipped=item.qty_shipped,
                )
            item.qty_requested = qty
            apply_reserved(item, item.qty_reserved_from_stock)
            item.save(update_fields=['qty_requested', *ITEM_FIELDS])
            _refresh_total(order)
            audit(order, 'ITEM_QTY_CHANGED', user, f"{item.material}: {qty}")
            return Reservations.reserve(order, item.material, cls._material_total(order, item.material), user=user)

    @classmethod
    def set_shortage_action(cls, item, shortage_action, user=None) -> OrderItem:
        action = parse_shortage_action(shortage_action)

        with transaction.atomic():
            order, item = cls._lock_item(item)
            _ensure_editable(order)
            material = item.material
            lock_balance(material)

            item.shortage_action = action
            apply_reserved(item, item.qty_reserved_from_stock)
            item.save(update_fields=['shortage_action', *ITEM_FIELDS])

            if order.is_competing:
                ProductionTasks.upsert(order, material, produce_need(order.items.filter(material=material)))
            refresh_readiness(order)
            audit(order, 'SHORTAGE_ACTION_CHANGED', user, f"{material}: {action}")
            return item

    @classmethod
    def remove_item(cls, item, user=None) -> ReservationResult:
        """Delete a line; the material's claim shrinks to what is left."""
        with transaction.atomic():
            order, item = cls._lock_item(item)
            _ensure_editable(order)
            material = item.material
            item.delete()
            _refresh_total(order)
            audit(order, 'ITEM_REMOVED', user, str(material))
            return Reservations.reserve(order, material, cls._material_total(order, material), user=user)

    @classmethod
    def recalculate(cls, order) -> Order:
        """Re-derive qty_to_produce and production tasks for every line."""
        with transaction.atomic():
            order = lock_order(order)
            if order.is_terminal:
                return order

            grouped = _by_material(order.items.select_related('material'))
            lock_balances(items[0].material for items in grouped.values())
            for items in grouped.values():
                for item in items:
                    apply_reserved(item, item.qty_reserved_from_stock)
                    item.save(update_fields=ITEM_FIELDS)
                if order.is_competing:
                    ProductionTasks.upsert(order, items[0].material, produce_need(items))

            refresh_readiness(order)
            return order

    # ── submission ──────────────────────────────────────────────────

    @classmethod
    def validate_items(cls, items) -> None:
        """
        Raises:
            SupplyError('EMPTY_ORDER')
            SupplyError('VALIDATION_FAILED'): errors keyed like items[0].quantity
        """
        if not items:
            raise SupplyError('EMPTY_ORDER')

        errors = {}
        for i, item in enumerate(items):
            if not item.material.is_active:
                errors[f'items[{i}].material'] = 'Material inativo'
            if item.qty_requested <= 0:
                errors[f'items[{i}].quantity'] = SupplyError('INVALID_QUANTITY').message
            try:
                parse_shortage_action(item.shortage_action)
            except SupplyError as e:
                errors[f'items[{i}].shortage_action'] = e.message
        if errors:
            raise SupplyError('VALIDATION_FAILED', errors=errors)

    @classmethod
    def submit(cls, order, user=None) -> SubmissionResult:
        """
        RASCUNHO -> ABERTO, with the bulk shortage computation.

        Per material, against the other competing orders:

            others_demand = their requested - their open production
            competing     = max(0, on_hand - max(0, others_demand))
            reserved      = min(requested, competing, on_hand - reserved_by_others)
            to_produce    = requested - reserved      (PRODUCE lines)

        Balances are locked (ascending material id) before the read, so
        two submissions for the same material are serialized.

        Raises:
            SupplyError('ORDER_NOT_DRAFT')
            SupplyError('EMPTY_ORDER')
            SupplyError('VALIDATION_FAILED')
        """
        with transaction.atomic():
            order = lock_order(order)
            if order.status != OrderStatus.RASCUNHO:
                raise SupplyError('ORDER_NOT_DRAFT', order=str(order), status=order.status)

            items = list(order.items.select_related('material').order_by('pk'))
            cls.validate_items(items)

            grouped = _by_material(items)
            lock_balances(m_items[0].material for m_items in grouped.values())
            now = timezone.now()
            for m_items in grouped.values():
                Reservations.sweep_material(m_items[0].material, now)

            order.status = OrderStatus.ABERTO
            order.save(update_fields=['status', 'updated_at'])

            coverage = []
            for material_id, m_items in grouped.items():
                material = m_items[0].material
                requested = open_total(m_items)
                on_hand = StockBalance.objects.get(material_id=material_id).on_hand

                competing = competing_available(material, on_hand, order)
                free = on_hand - Reservations.reserved_by_others(order, material, now)
                reserved = min(requested, max(ZERO, min(competing, free)))

                distribute(m_items, reserved)
                Reservations.set_reservation(order, material, reserved, user=user, now=now)
                produce = produce_need(m_items)
                task = ProductionTasks.upsert(order, material, produce)
                sync_balance(material)

                if task is not None:
                    Notifications.production_task_created(task)
                    Notifications.shortage(order, next(i for i in m_items if i.qty_to_produce > 0))
                if reserved > 0:
                    Notifications.allocation_available(order, material, reserved, full=reserved >= requested)

                coverage.append(MaterialCoverage(
                    material_id=material_id,
                    requested=requested,
                    reserved=reserved,
                    to_produce=produce,
                ))

            readiness = refresh_readiness(order)
            producing = any(c.to_produce > 0 for c in coverage)
            Notifications.order_stage(
                order,
                'produção iniciada' if producing else 'aberto',
                f"{len(coverage)} material(is) avaliado(s).",
            )
            audit(order, 'SUBMITTED', user, f"Pedido enviado ({readiness}).")

            logger.info(
                "supply.order.submitted",
                extra={
                    "order": str(order),
                    "materials": len(coverage),
                    "readiness": readiness,
                    "producing": producing,
                },
            )
            return SubmissionResult(
                order_id=order.pk,
                order_number=order.order_number or '',
                status=order.status,
                readiness=readiness,
                materials=coverage,
            )

    # ── picking ─────────────────────────────────────────────────────

    @classmethod
    def start_picking(cls, order, user=None) -> Order:
        """ABERTO -> EM_PICKING. A SAIDA_CONCLUIDA order can be picked again for what is left."""
        with transaction.atomic():
            order = lock_order(order)
            _ensure_editable(order)
            if order.status != OrderStatus.SAIDA_CONCLUIDA:
                _ensure_status(order, OrderStatus.ABERTO)
            order.status = OrderStatus.EM_PICKING
            order.save(update_fields=['status', 'updated_at'])
            audit(order, 'PICKING_STARTED', user)
            Notifications.order_stage(order, 'em picking')
            return order

    @classmethod
    def update_picking_quantity(cls, item, quantity, user=None) -> OrderItem:
        """Set qty_separated, clamped to [0, qty_reserved_from_stock]."""
        qty = parse_quantity(quantity, allow_zero=True)

        with transaction.atomic():
            order, item = cls._lock_item(item)
            _ensure_status(order, OrderStatus.EM_PICKING)
            item.qty_separated = clamp(qty, ZERO, item.qty_reserved_from_stock)
            item.save(update_fields=['qty_separated'])
            # Picking is an editing session: keep its claims alive
            Reservations.heartbeat(order)
            return item

    @classmethod
    def complete_picking(cls, order, user=None) -> Order:
        """
        Consume what was separated and close the picking.

        What was separated moves to qty_shipped and out of the lines'
        reserved figures; the reservation row is set to what the lines
        still hold. FINALIZADO when every line is fully shipped (remaining
        claims are released), SAIDA_CONCLUIDA otherwise.

        Raises:
            SupplyError('INVALID_STATUS'): If not EM_PICKING
            SupplyError('INSUFFICIENT_STOCK'): Nothing is consumed then
        """
        with transaction.atomic():
            order = lock_order(order)
            _ensure_status(order, OrderStatus.EM_PICKING)

            items = list(order.items.select_related('material').order_by('pk'))
            grouped = _by_material(items)
            materials = [m_items[0].material for m_items in grouped.values()]
            lock_balances(materials)

            for material, m_items in zip(materials, grouped.values()):
                separated = sum((i.qty_separated for i in m_items), ZERO)
                if separated <= 0:
                    continue
                StockLedger.consume(material, separated, reference=order, user=user, reason=f"Picking {order}")
                for item in m_items:
                    if item.qty_separated <= 0:
                        continue
                    item.qty_shipped += item.qty_separated
                    reserved = max(ZERO, item.qty_reserved_from_stock - item.qty_separated)
                    item.qty_separated = ZERO
                    apply_reserved(item, reserved)
                    item.save(update_fields=['qty_shipped', 'qty_separated', *ITEM_FIELDS])
                Reservations.set_reservation(order, material, reserved_sum(m_items), user=user)

            fully = all(i.qty_shipped >= i.qty_requested for i in items)
            fields = ['status', 'updated_at']
            if fully:
                order.status = OrderStatus.FINALIZADO
                order.readiness = Readiness.READY_FULL
                fields.append('readiness')
                ProductionTask.objects.open().filter(order=order).delete()
                Reservations.release_order(order)
            else:
                order.status = OrderStatus.SAIDA_CONCLUIDA
            order.save(update_fields=fields)
            if not fully:
                refresh_readiness(order)

            for material in materials:
                sync_balance(material)

            transaction.on_commit(SupplyQueries.invalidate_snapshot)
            audit(order, 'PICKING_COMPLETED', user, f"Pedido concluído com status {order.status}.")
            Notifications.picking_completed(order)
            for material in materials:
                Notifications.check_stock_levels(material)

            logger.info(
                "supply.order.picking_completed",
                extra={"order": str(order), "status": order.status},
            )
            return order

    # ── cancel & trash ──────────────────────────────────────────────

    @classmethod
    def _cleanup(cls, order) -> None:
        """Release claims and drop production not yet done."""
        material_ids = set(
            ProductionTask.objects.open().filter(order=order).values_list('material_id', flat=True)
        ) | set(
            StockReservation.objects.filter(order=order).values_list('material_id', flat=True)
        ) | set(
            ProductionReservation.objects.filter(order=order).values_list('material_id', flat=True)
        )
        lock_balances(Material.objects.filter(pk__in=material_ids))
        ProductionTask.objects.open().filter(order=order).delete()
        Reservations.release_order(order)

    @classmethod
    def cancel(cls, order, user=None, reason='') -> Order:
        """
        Any non-terminal status -> CANCELADO, releasing every claim.

        Raises:
            SupplyError('ORDER_TERMINAL')
        """
        with transaction.atomic():
            order = lock_order(order)
            _ensure_editable(order)
            cls._cleanup(order)
            order.status = OrderStatus.CANCELADO
            order.save(update_fields=['status', 'updated_at'])
            audit(order, 'CANCELLED', user, reason)
            logger.info(
                "supply.order.cancelled",
                extra={"order": str(order), "reason": reason},
            )
            return order

    @classmethod
    def trash(cls, order, user=None) -> Order:
        """Soft delete. Live orders are cancelled first."""
        with transaction.atomic():
            order = lock_order(order)
            if order.trashed_at is not None:
                return order
            fields = ['trashed_at', 'updated_at']
            if not order.is_terminal:
                cls._cleanup(order)
                order.status = OrderStatus.CANCELADO
                fields.append('status')
            order.trashed_at = timezone.now()
            order.save(update_fields=fields)
            audit(order, 'TRASHED', user)
            return order

    @classmethod
    def restore(cls, order, user=None) -> Order:
        """Back from the trash. The status stays as it was (CANCELADO)."""
        with transaction.atomic():
            order = lock_order(order)
            if order.trashed_at is None:
                raise SupplyError('ORDER_NOT_TRASHED', order=str(order))
            order.trashed_at = None
            order.save(update_fields=['trashed_at', 'updated_at'])
            audit(order, 'RESTORED', user)
            return order

    @classmethod
    def purge(cls, order, user=None) -> None:
        """Hard delete of a trashed order."""
        with transaction.atomic():
            order = lock_order(order)
            if order.trashed_at is None:
                raise SupplyError('ORDER_NOT_TRASHED', order=str(order))
            cls._cleanup(order)
            label = str(order)
            order.delete()
            logger.info(
                "supply.order.purged",
                extra={"order": label, "user": user.get_username() if user else ""},
            )
