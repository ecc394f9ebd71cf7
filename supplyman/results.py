"""
Result objects returned by successful mutations.

Failures raise SupplyError instead; SupplyError.as_dict() is the failure
counterpart of as_dict() below.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


@dataclass
class Result:

    def as_dict(self) -> dict[str, Any]:
        return {'ok': True, **_plain(asdict(self))}


@dataclass
class ReservationResult(Result):
    order_id: int
    material_id: int
    reserved_qty: Decimal
    produce_qty: Decimal
    expires_at: datetime | None = None


@dataclass
class MaterialCoverage(Result):
    material_id: int
    requested: Decimal
    reserved: Decimal
    to_produce: Decimal


@dataclass
class SubmissionResult(Result):
    order_id: int
    order_number: str
    status: str
    readiness: str
    materials: list[MaterialCoverage] = field(default_factory=list)


@dataclass
class AllocationLine(Result):
    order_id: int
    item_id: int
    qty: Decimal
    full: bool


@dataclass
class AllocationResult(Result):
    material_id: int
    offered: Decimal
    allocated: Decimal
    lines: list[AllocationLine] = field(default_factory=list)

    @property
    def leftover(self) -> Decimal:
        return self.offered - self.allocated


@dataclass
class PostingResult(Result):
    receipt_id: int
    posted_at: datetime
    auto_allocated: bool
    allocations: list[AllocationResult] = field(default_factory=list)


@dataclass
class CompletionResult(Result):
    task_id: str
    produced_qty: Decimal
    receipt_id: int | None = None
    posting: PostingResult | None = None
