"""
Supplyman configuration.

Usage in settings.py:
    SUPPLYMAN = {
        "RESERVATION_TTL_MINUTES": 5,
        "EXPIRED_BATCH_SIZE": 200,
        "ORDER_NUMBER_TIMEZONE": "America/Sao_Paulo",
        "INVENTORY_CACHE_SECONDS": 30,
    }
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from django.conf import settings


@dataclass
class SupplymanSettings:
    """Supplyman configuration settings."""

    # Lifetime of a stock reservation before the sweep releases it
    RESERVATION_TTL_MINUTES: int = 5

    # Batch size for sweep_expired processing
    EXPIRED_BATCH_SIZE: int = 200

    # Day boundary for the daily order number counter
    ORDER_NUMBER_TIMEZONE: str = "America/Sao_Paulo"

    # Staleness accepted by inventory_snapshot() (0 = no cache)
    INVENTORY_CACHE_SECONDS: int = 30

    # Cache alias used by the read side
    CACHE_ALIAS: str = "default"

    # Whole-operation retries after a dropped connection
    TRANSIENT_RETRIES: int = 1

    @property
    def reservation_ttl(self) -> timedelta:
        return timedelta(minutes=self.RESERVATION_TTL_MINUTES)


def get_supplyman_settings() -> SupplymanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "SUPPLYMAN", {})
    return SupplymanSettings(**{
        k: v for k, v in user_settings.items()
        if k in SupplymanSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_supplyman_settings(), name)


supplyman_settings = _LazySettings()
