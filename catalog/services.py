"""
Catalog — Service Layer

Supply code resolution for the usage ledger. Lookups made inside a write
transaction run under a PostgreSQL statement timeout so that a stalled
catalog read surfaces as a retryable DependencyTimeoutError instead of
blocking the submission.

@file catalog/services.py
"""

import logging
from collections.abc import Iterable
from contextlib import contextmanager

from django.conf import settings
from django.db import OperationalError, connection

from core.exceptions import DependencyTimeoutError, NotFoundError

from .models import SupplyCatalogEntry

logger = logging.getLogger('supplytrack')

QUERY_CANCELED_SQLSTATE = '57014'


def _is_statement_timeout(exc: OperationalError) -> bool:
    cause = exc.__cause__
    code = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    return code == QUERY_CANCELED_SQLSTATE


@contextmanager
def bounded_lookup():
    """
    Bound catalog queries by SUPPLY_CATALOG_TIMEOUT_MS.

    Only applies on PostgreSQL inside an atomic block (SET LOCAL is
    transaction-scoped); elsewhere it just translates cancellations.
    """
    bounded = connection.vendor == 'postgresql' and connection.in_atomic_block
    if bounded:
        timeout_ms = int(settings.SUPPLY_CATALOG_TIMEOUT_MS)
        with connection.cursor() as cursor:
            cursor.execute(f'SET LOCAL statement_timeout = {timeout_ms}')
    try:
        yield
    except OperationalError as exc:
        if _is_statement_timeout(exc):
            logger.warning('Supply catalog lookup timed out: %s', exc)
            raise DependencyTimeoutError(detail='Supply catalog did not respond in time.') from exc
        raise
    if bounded:
        with connection.cursor() as cursor:
            cursor.execute('SET LOCAL statement_timeout TO DEFAULT')


class SupplyCatalogService:
    """Read-only access to the supply catalog."""

    @staticmethod
    def _active():
        return SupplyCatalogEntry.objects.filter(is_deleted=False, is_active=True)

    @classmethod
    def resolve(cls, code: str) -> SupplyCatalogEntry:
        """Return the active entry for ``code`` or raise NotFoundError."""
        with bounded_lookup():
            entry = cls._active().filter(code=code).first()
        if entry is None:
            raise NotFoundError(detail=f'Supply code {code} not found in catalog.')
        return entry

    @classmethod
    def resolve_many(cls, codes: Iterable[str]) -> dict[str, SupplyCatalogEntry]:
        """Map each known code to its entry. Unknown codes are simply absent."""
        wanted = {code for code in codes if code}
        if not wanted:
            return {}
        with bounded_lookup():
            entries = list(cls._active().filter(code__in=wanted))
        return {entry.code: entry for entry in entries}

    @classmethod
    def validate_codes(cls, codes: Iterable[str]) -> dict:
        """
        Report which codes exist in the catalog.

        Returns ``{'valid': [...], 'invalid': [...], 'items': {code: {...}}}``
        with codes de-duplicated, in request order.
        """
        ordered = list(dict.fromkeys(code.strip() for code in codes if code and code.strip()))
        found = cls.resolve_many(ordered)
        return {
            'valid': [code for code in ordered if code in found],
            'invalid': [code for code in ordered if code not in found],
            'items': {
                code: {
                    'name': entry.name,
                    'category': entry.category,
                    'unit': entry.unit,
                    'unit_price': str(entry.unit_price),
                }
                for code, entry in found.items()
            },
        }

    @classmethod
    def codes_in_category(cls, category: str) -> set[str]:
        with bounded_lookup():
            return set(cls._active().filter(category=category).values_list('code', flat=True))
