"""
Django Supplyman: Motor de Reservas e Produção.

Reserva estoque para pedidos, calcula rupturas, acompanha tarefas de
produção e redistribui recebimentos entre os pedidos que aguardam material.

Uso:
    from supplyman import supply, SupplyError

    supply.reserve(pedido, fibra, Decimal('80'), user=operador)
    supply.complete_task(tarefa, user=producao)
    supply.available(fibra)  # 20
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'supply':
        from supplyman.service import Supply
        return Supply
    elif name == 'SupplyError':
        from supplyman.exceptions import SupplyError
        return SupplyError
    elif name == 'Material':
        from supplyman.models.material import Material
        return Material
    elif name == 'StockBalance':
        from supplyman.models.balance import StockBalance
        return StockBalance
    elif name == 'StockMove':
        from supplyman.models.move import StockMove
        return StockMove
    elif name == 'StockReservation':
        from supplyman.models.reservation import StockReservation
        return StockReservation
    elif name == 'ProductionReservation':
        from supplyman.models.reservation import ProductionReservation
        return ProductionReservation
    elif name == 'Order':
        from supplyman.models.order import Order
        return Order
    elif name == 'OrderItem':
        from supplyman.models.order import OrderItem
        return OrderItem
    elif name == 'ProductionTask':
        from supplyman.models.production import ProductionTask
        return ProductionTask
    elif name == 'InventoryReceipt':
        from supplyman.models.receipt import InventoryReceipt
        return InventoryReceipt
    elif name == 'Notification':
        from supplyman.models.notification import Notification
        return Notification
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'supply',
    'SupplyError',
    'Material',
    'StockBalance',
    'StockMove',
    'StockReservation',
    'ProductionReservation',
    'Order',
    'OrderItem',
    'ProductionTask',
    'InventoryReceipt',
    'Notification',
]

__version__ = '0.1.0'
