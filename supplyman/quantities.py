"""
Quantity and input validation.

Every check here runs before a transaction is opened, so a rejected
request never leaves partial state behind.

Examples:
    parse_quantity('12.5')              # Decimal('12.5')
    parse_quantity(0)                   # SupplyError('INVALID_QUANTITY')
    parse_quantity(0, allow_zero=True)  # Decimal('0')
    parse_conditions({'cor': 'azul'})   # [['cor', 'azul']]
"""

from decimal import Decimal, InvalidOperation

from supplyman.exceptions import SupplyError
from supplyman.models.enums import ShortageAction

ZERO = Decimal('0')


def parse_quantity(value, allow_zero: bool = False, field: str = 'quantity') -> Decimal:
    """
    Coerce to Decimal and reject non-positive values.

    Raises:
        SupplyError('INVALID_QUANTITY')
    """
    try:
        qty = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise SupplyError('INVALID_QUANTITY', field=field, requested=value) from None

    if not qty.is_finite() or qty < 0 or (qty == 0 and not allow_zero):
        raise SupplyError('INVALID_QUANTITY', field=field, requested=value)
    return qty


def parse_shortage_action(value) -> str:
    """Normalize 'produce'/'BUY'... None defaults to PRODUCE."""
    if value is None or value == '':
        return ShortageAction.PRODUCE
    normalized = str(value).strip().upper()
    if normalized not in ShortageAction.values:
        raise SupplyError('INVALID_SHORTAGE_ACTION', requested=value)
    return normalized


def parse_conditions(value) -> list[list[str]]:
    """
    Accept a list of (key, value) pairs, a list of {'key', 'value'} dicts
    or a plain dict. Order is preserved. Keys and values must be strings.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        value = list(value.items())
    if not isinstance(value, (list, tuple)):
        raise SupplyError('INVALID_CONDITIONS', requested=value)

    pairs = []
    for entry in value:
        if isinstance(entry, dict):
            entry = (entry.get('key'), entry.get('value'))
        if not isinstance(entry, (list, tuple)) or len(entry) != 2:
            raise SupplyError('INVALID_CONDITIONS', requested=value)
        key, val = entry
        if not isinstance(key, str) or not isinstance(val, str) or not key.strip():
            raise SupplyError('INVALID_CONDITIONS', requested=value)
        pairs.append([key.strip(), val.strip()])
    return pairs


def clamp(value: Decimal, low: Decimal = ZERO, high: Decimal | None = None) -> Decimal:
    if value < low:
        return low
    if high is not None and value > high:
        return high
    return value
