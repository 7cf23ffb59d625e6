"""
Reconciliation — Dispensed Data Sources

The dispensing system (supply cabinets / stores) is an external,
read-only collaborator. A source returns a DispensedBatch: an empty batch
with complete=True is a confirmed zero; complete=False means some data
is missing and the comparison must say so.

The concrete source is chosen by settings.DISPENSED_DATA_SOURCE.

@file reconciliation/sources.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.utils.module_loading import import_string

from core.exceptions import DependencyTimeoutError, DependencyUnavailableError

if TYPE_CHECKING:
    from .engine import ReconciliationFilters, Window

logger = logging.getLogger('supplytrack')


@dataclass(frozen=True)
class DispensedRecord:
    supply_code: str
    department_code: str
    quantity_dispensed: int
    dispensed_at: datetime


@dataclass(frozen=True)
class DispensedBatch:
    records: tuple[DispensedRecord, ...] = ()
    complete: bool = True
    warnings: tuple[str, ...] = field(default_factory=tuple)


class DispensedDataSource:
    """Interface: fetch what was dispensed in ``window``, narrowed by ``filters``."""

    def fetch_dispensed(self, window: Window, filters: ReconciliationFilters) -> DispensedBatch:
        raise NotImplementedError


class HttpDispensedDataSource(DispensedDataSource):
    """
    Reads dispensed items from the dispensing service over HTTP.

    GET {DISPENSED_DATA_URL}/dispensed-items?start=...&end=...
    -> {"data": [{"supply_code", "department_code", "quantity_dispensed",
                  "dispensed_at"}, ...], "complete": true}

    Rows that cannot be parsed are skipped and mark the batch incomplete.
    """

    path = '/dispensed-items'

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.DISPENSED_DATA_URL or '').rstrip('/')
        self.token = token if token is not None else settings.DISPENSED_DATA_TOKEN
        self.timeout = timeout_seconds or settings.DISPENSED_DATA_TIMEOUT_SECONDS
        self.transport = transport

    def _get_headers(self) -> dict[str, str]:
        headers = {'Accept': 'application/json', 'User-Agent': 'SupplyTrack/1.0'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _params(self, window: Window, filters: ReconciliationFilters) -> dict[str, str]:
        params = {'start': window.start.isoformat(), 'end': window.end.isoformat()}
        if filters.supply_code:
            params['supply_code'] = filters.supply_code
        if filters.department_code:
            params['department_code'] = filters.department_code
        return params

    def fetch_dispensed(self, window: Window, filters: ReconciliationFilters) -> DispensedBatch:
        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=self._get_headers(),
                transport=self.transport,
            ) as client:
                response = client.get(self.path, params=self._params(window, filters))
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            logger.warning('Dispensed data request timed out after %ss: %s', self.timeout, exc)
            raise DependencyTimeoutError(detail='Dispensed data source did not respond in time.') from exc
        except httpx.HTTPStatusError as exc:
            logger.warning('Dispensed data source returned HTTP %s', exc.response.status_code)
            raise DependencyUnavailableError(
                detail=f'Dispensed data source returned HTTP {exc.response.status_code}.',
            ) from exc
        except (httpx.RequestError, ValueError) as exc:
            logger.warning('Dispensed data source unavailable: %s', exc)
            raise DependencyUnavailableError(detail='Dispensed data source is unavailable.') from exc

        return self._parse(payload)

    def _parse(self, payload: Any) -> DispensedBatch:
        if not isinstance(payload, dict) or not isinstance(payload.get('data'), list):
            raise DependencyUnavailableError(detail='Dispensed data source sent an unexpected payload.')

        records = []
        skipped = 0
        for row in payload['data']:
            record = _parse_row(row)
            if record is None:
                skipped += 1
            else:
                records.append(record)

        complete = bool(payload.get('complete', True))
        warnings = []
        if not complete:
            warnings.append('Dispensed data source reported a partial result.')
        if skipped:
            logger.warning('Skipped %d malformed dispensed row(s)', skipped)
            warnings.append(f'{skipped} dispensed row(s) could not be read.')
            complete = False
        return DispensedBatch(records=tuple(records), complete=complete, warnings=tuple(warnings))


def _parse_row(row: Any) -> DispensedRecord | None:
    if not isinstance(row, dict):
        return None
    code = row.get('supply_code')
    quantity = row.get('quantity_dispensed')
    raw_at = row.get('dispensed_at')
    if not code or isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        return None
    try:
        dispensed_at = parse_datetime(raw_at) if isinstance(raw_at, str) else None
    except ValueError:
        return None
    if dispensed_at is None:
        return None
    if timezone.is_naive(dispensed_at):
        dispensed_at = timezone.make_aware(dispensed_at)
    return DispensedRecord(
        supply_code=str(code),
        department_code=str(row.get('department_code') or ''),
        quantity_dispensed=quantity,
        dispensed_at=dispensed_at,
    )


def get_dispensed_source() -> DispensedDataSource:
    return import_string(settings.DISPENSED_DATA_SOURCE)()
