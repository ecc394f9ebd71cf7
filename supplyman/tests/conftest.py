"""
Pytest fixtures for Supplyman tests.
"""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import caches

from supplyman import supply
from supplyman.models import Material


User = get_user_model()


@pytest.fixture(autouse=True)
def clear_cache():
    """The inventory snapshot lives in the locmem cache."""
    caches['default'].clear()
    yield
    caches['default'].clear()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='vendedor',
        password='testpass123'
    )


@pytest.fixture
def operator(db):
    """Production operator."""
    return User.objects.create_user(
        username='producao',
        password='testpass123'
    )


@pytest.fixture
def fibra(db):
    """Material with no thresholds."""
    return Material.objects.create(
        sku='FIB-001',
        name='Fibra de Vidro',
        unit='KG',
    )


@pytest.fixture
def resina(db):
    """Material with min stock and reorder point."""
    return Material.objects.create(
        sku='RES-001',
        name='Resina Poliéster',
        unit='KG',
        min_stock=Decimal('10'),
        reorder_point=Decimal('25'),
    )


@pytest.fixture
def stock_in():
    """Put physical stock in through a posted purchase receipt (no allocation)."""
    def _stock_in(material, qty, auto_allocate=False):
        receipt = supply.create_receipt([(material, Decimal(qty))])
        supply.post_receipt(receipt, auto_allocate=auto_allocate)
        return receipt
    return _stock_in


@pytest.fixture
def make_order(user):
    """
    Create an order with one line per (material, qty[, action]) tuple.

    Submitted by default (ABERTO).
    """
    def _make_order(*lines, submit=True, **kwargs):
        items = []
        for line in lines:
            material, qty, *rest = line
            items.append({
                'material': material,
                'quantity': Decimal(qty),
                'shortage_action': rest[0] if rest else 'PRODUCE',
            })
        order = supply.create_order(user=user, items=items, **kwargs)
        if submit:
            supply.submit(order, user=user)
        order.refresh_from_db()
        return order
    return _make_order
