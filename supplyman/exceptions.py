"""
Exceptions for Supplyman.

All errors are SupplyError with a structured code for programmatic handling.
Codes are split in two kinds:

- validation: rejected before any mutation (bad input)
- conflict: the current state forbids the operation; do not retry blindly
"""

from decimal import Decimal
from typing import Any


class BaseError(Exception):
    """
    Error with a machine-readable code, a message and context data.

    Subclasses provide _default_messages so callers only pass the code.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, data={self.data!r})"


VALIDATION = 'validation'
CONFLICT = 'conflict'


class SupplyError(BaseError):
    """
    Structured exception for supply operations.

    Usage:
        try:
            supply.post_receipt(recebimento, auto_allocate=True)
        except SupplyError as e:
            if e.code == 'RECEIPT_ALREADY_POSTED':
                print("Recebimento já lançado")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'INVALID_QUANTITY': 'Quantidade inválida',
        'INSUFFICIENT_STOCK': 'Quantidade insuficiente em estoque',
        'MATERIAL_REQUIRED': 'Material é obrigatório',
        'INVALID_SHORTAGE_ACTION': 'Ação de ruptura inválida (PRODUCE ou BUY)',
        'INVALID_CONDITIONS': 'Condições inválidas (lista de pares chave/valor)',
        'EMPTY_ORDER': 'Pedido deve conter pelo menos um item',
        'VALIDATION_FAILED': 'Dados inválidos',
        'ORDER_NOT_FOUND': 'Pedido não encontrado',
        'ITEM_NOT_FOUND': 'Item do pedido não encontrado',
        'ORDER_TERMINAL': 'Pedido finalizado ou cancelado',
        'ORDER_NOT_DRAFT': 'Pedido não está em rascunho',
        'ORDER_NOT_TRASHED': 'Pedido não está na lixeira',
        'INVALID_STATUS': 'Transição de status inválida',
        'TASK_NOT_FOUND': 'Tarefa de produção não encontrada',
        'RECEIPT_NOT_FOUND': 'Recebimento não encontrado',
        'RECEIPT_ALREADY_POSTED': 'Recebimento já lançado',
        'NOTIFICATION_NOT_FOUND': 'Notificação não encontrada',
    }

    _kinds = {
        'INVALID_QUANTITY': VALIDATION,
        'MATERIAL_REQUIRED': VALIDATION,
        'INVALID_SHORTAGE_ACTION': VALIDATION,
        'INVALID_CONDITIONS': VALIDATION,
        'EMPTY_ORDER': VALIDATION,
        'VALIDATION_FAILED': VALIDATION,
    }

    @property
    def kind(self) -> str:
        """'validation' or 'conflict'."""
        return self._kinds.get(self.code, CONFLICT)

    @property
    def errors(self) -> dict[str, str]:
        """Field-keyed messages (only for VALIDATION_FAILED)."""
        return self.data.get('errors', {})

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'ok': False,
            'code': self.code,
            'kind': self.kind,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }
