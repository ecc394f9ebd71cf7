"""
Database helpers.

retry_on_transient: re-run a whole operation once after the connection
dropped. Never retries inside an outer atomic block, where the
transaction may already be half applied.
"""

import functools
import logging

from django.db import InterfaceError, OperationalError, transaction

from supplyman.conf import supplyman_settings

logger = logging.getLogger('supplyman')


def retry_on_transient(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except (OperationalError, InterfaceError) as exc:
                connection = transaction.get_connection()
                if connection.in_atomic_block or attempt >= supplyman_settings.TRANSIENT_RETRIES:
                    raise
                attempt += 1
                logger.warning(
                    "supply.db.retry",
                    extra={
                        "operation": func.__qualname__,
                        "attempt": attempt,
                        "error": str(exc),
                    },
                )
                # Next query opens a fresh connection
                connection.close()
    return wrapper
