"""
Reconciliation — Engine

Compares what the dispensing system handed out with what the usage
ledger says was consumed, per supply code, over a half-open window
[start, end):

    difference = total_dispensed - (total_used - total_returned)

    difference == 0  MATCHED
    difference  > 0  UNACCOUNTED     (dispensed but not recorded as used)
    difference  < 0  OVER_REPORTED   (recorded as used but never dispensed)

When the dispensed side is partial or timed out, every row is INCOMPLETE
and total_dispensed is only a lower bound. Ledger reads run inside one
read-only snapshot; nothing is written.

@file reconciliation/engine.py
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from django.db import connection, transaction
from django.db.models import IntegerField, Max, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from catalog.services import SupplyCatalogService
from core.exceptions import DependencyUnavailableError, ValidationError
from core.timeutils import end_of_day_exclusive, start_of_day
from usage.models import UsageLineEntry

from .sources import DispensedBatch, DispensedDataSource, DispensedRecord, get_dispensed_source

logger = logging.getLogger('supplytrack')

MATCHED = 'MATCHED'
UNACCOUNTED = 'UNACCOUNTED'
OVER_REPORTED = 'OVER_REPORTED'
INCOMPLETE = 'INCOMPLETE'


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime

    def __post_init__(self):
        if timezone.is_naive(self.start) or timezone.is_naive(self.end):
            raise ValidationError({'window': ['Window bounds must be timezone-aware.']})
        if self.start >= self.end:
            raise ValidationError({'window': ['Window start must be before its end.']})

    @classmethod
    def for_dates(cls, start_date: date, end_date: date) -> 'Window':
        """Inclusive calendar dates -> [start_date 00:00, end_date + 1 day 00:00)."""
        return cls(start=start_of_day(start_date), end=end_of_day_exclusive(end_date))

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass(frozen=True)
class ReconciliationFilters:
    supply_code: str = ''
    department_code: str = ''
    category: str = ''


@dataclass(frozen=True)
class ReconciliationResult:
    supply_code: str
    supply_name: str
    window_start: datetime
    window_end: datetime
    total_dispensed: int
    total_used: int
    total_returned: int
    difference: int
    status: str

    @property
    def net_used(self) -> int:
        return self.total_used - self.total_returned

    def as_dict(self) -> dict[str, Any]:
        return {
            'supply_code': self.supply_code,
            'supply_name': self.supply_name,
            'window_start': self.window_start.isoformat(),
            'window_end': self.window_end.isoformat(),
            'total_dispensed': self.total_dispensed,
            'total_used': self.total_used,
            'total_returned': self.total_returned,
            'net_used': self.net_used,
            'difference': self.difference,
            'status': self.status,
        }


@dataclass(frozen=True)
class ReconciliationReport:
    window: Window
    results: tuple[ReconciliationResult, ...]
    complete: bool = True
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def summary(self) -> dict[str, int]:
        matched = sum(1 for result in self.results if result.status == MATCHED)
        return {
            'total': len(self.results),
            'matched': matched,
            'not_matched': len(self.results) - matched,
        }

    def discrepancies(self) -> list[ReconciliationResult]:
        return [result for result in self.results if result.difference != 0]

    def as_dict(self) -> dict[str, Any]:
        return {
            'results': [result.as_dict() for result in self.results],
            'summary': self.summary,
            'complete': self.complete,
            'warnings': list(self.warnings),
            'window': {'start': self.window.start.isoformat(), 'end': self.window.end.isoformat()},
        }


def classify(difference: int, complete: bool) -> str:
    if not complete:
        return INCOMPLETE
    if difference == 0:
        return MATCHED
    return UNACCOUNTED if difference > 0 else OVER_REPORTED


@contextmanager
def snapshot_read():
    """
    One consistent read of the ledger. On PostgreSQL the transaction is
    REPEATABLE READ and READ ONLY; an enclosing transaction is reused.
    """
    if connection.in_atomic_block:
        yield
        return
    with transaction.atomic():
        if connection.vendor == 'postgresql':
            with connection.cursor() as cursor:
                cursor.execute('SET TRANSACTION ISOLATION LEVEL REPEATABLE READ, READ ONLY')
        yield


class ReconciliationEngine:
    """Dispensed vs used, aggregated by supply code."""

    def __init__(self, source: DispensedDataSource | None = None):
        self.source = source or get_dispensed_source()

    @staticmethod
    def _live_lines(window: Window, filters: ReconciliationFilters, codes: set[str] | None):
        qs = UsageLineEntry.objects.filter(
            is_deleted=False,
            record__is_deleted=False,
            record__usage_datetime__gte=window.start,
            record__usage_datetime__lt=window.end,
        )
        if filters.supply_code:
            qs = qs.filter(supply_code=filters.supply_code)
        if filters.department_code:
            qs = qs.filter(record__department_code=filters.department_code)
        if codes is not None:
            qs = qs.filter(supply_code__in=codes)
        return qs

    @staticmethod
    def _category_codes(filters: ReconciliationFilters) -> set[str] | None:
        if not filters.category:
            return None
        return SupplyCatalogService.codes_in_category(filters.category)

    def _usage_totals(self, window, filters, codes) -> dict[str, dict[str, Any]]:
        rows = (
            self._live_lines(window, filters, codes)
            .values('supply_code')
            .annotate(
                used=Coalesce(Sum('quantity_used'), 0, output_field=IntegerField()),
                returned=Coalesce(Sum('quantity_returned'), 0, output_field=IntegerField()),
                name=Max('supply_name'),
            )
            .order_by('supply_code')
        )
        return {row['supply_code']: row for row in rows}

    @staticmethod
    def _dispensed_totals(
        records: tuple[DispensedRecord, ...],
        window: Window,
        filters: ReconciliationFilters,
        codes: set[str] | None,
    ) -> dict[str, int]:
        # The source may ignore query parameters; narrow again here.
        totals: dict[str, int] = {}
        for record in records:
            if not window.contains(record.dispensed_at):
                continue
            if filters.supply_code and record.supply_code != filters.supply_code:
                continue
            if filters.department_code and record.department_code != filters.department_code:
                continue
            if codes is not None and record.supply_code not in codes:
                continue
            totals[record.supply_code] = totals.get(record.supply_code, 0) + record.quantity_dispensed
        return totals

    def _fetch(self, window: Window, filters: ReconciliationFilters) -> DispensedBatch:
        try:
            return self.source.fetch_dispensed(window, filters)
        except DependencyUnavailableError as exc:
            logger.warning('Reconciliation continuing without dispensed data: %s', exc.detail)
            return DispensedBatch(records=(), complete=False, warnings=(str(exc.detail),))

    def _resolve_category(self, filters: ReconciliationFilters) -> tuple[set[str] | None, str]:
        """Category codes, or (None, warning) when the catalog cannot answer."""
        if not filters.category:
            return None, ''
        try:
            with transaction.atomic():
                return self._category_codes(filters), ''
        except DependencyUnavailableError as exc:
            logger.warning('Category %s not resolved: %s', filters.category, exc.detail)
            return None, f'{exc.detail} Results are not narrowed to category {filters.category}.'

    def compare(self, window: Window, filters: ReconciliationFilters | None = None) -> ReconciliationReport:
        """
        One row per supply code seen on either side, ordered by
        abs(difference) descending then supply_code. Read-only.
        """
        filters = filters or ReconciliationFilters()
        warnings = []

        with snapshot_read():
            codes, category_warning = self._resolve_category(filters)
            usage = self._usage_totals(window, filters, codes)
        if category_warning:
            warnings.append(category_warning)

        batch = self._fetch(window, filters)
        dispensed = self._dispensed_totals(batch.records, window, filters, codes)
        warnings.extend(batch.warnings)
        if not batch.complete and not batch.warnings:
            warnings.append('Dispensed data is partial.')
        complete = batch.complete and not category_warning

        names = {code: row['name'] or '' for code, row in usage.items()}
        missing = [code for code in dispensed if not names.get(code)]
        if missing:
            try:
                entries = SupplyCatalogService.resolve_many(missing)
                names.update({code: entry.name for code, entry in entries.items()})
            except DependencyUnavailableError as exc:
                warnings.append(str(exc.detail))

        results = []
        for code in set(usage) | set(dispensed):
            used = usage.get(code, {}).get('used', 0)
            returned = usage.get(code, {}).get('returned', 0)
            total_dispensed = dispensed.get(code, 0)
            difference = total_dispensed - (used - returned)
            results.append(ReconciliationResult(
                supply_code=code,
                supply_name=names.get(code, ''),
                window_start=window.start,
                window_end=window.end,
                total_dispensed=total_dispensed,
                total_used=used,
                total_returned=returned,
                difference=difference,
                status=classify(difference, complete),
            ))
        results.sort(key=lambda result: (-abs(result.difference), result.supply_code))

        report = ReconciliationReport(
            window=window,
            results=tuple(results),
            complete=complete,
            warnings=tuple(warnings),
        )
        logger.info(
            'Reconciliation %s..%s: %d code(s), %d not matched%s',
            window.start.isoformat(), window.end.isoformat(),
            report.summary['total'], report.summary['not_matched'],
            '' if report.complete else ' (incomplete)',
        )
        return report

    def usage_for_supply(
        self,
        supply_code: str,
        window: Window,
        filters: ReconciliationFilters | None = None,
    ) -> list[dict[str, Any]]:
        """The usage lines behind one comparison row, oldest first."""
        if not supply_code:
            raise ValidationError({'supply_code': ['This field is required.']})
        filters = filters or ReconciliationFilters()
        filters = ReconciliationFilters(
            supply_code=supply_code,
            department_code=filters.department_code,
            category=filters.category,
        )
        with snapshot_read():
            codes = self._category_codes(filters)
            lines = list(
                self._live_lines(window, filters, codes)
                .select_related('record')
                .order_by('record__usage_datetime', 'record_id'),
            )
        return [
            {
                'usage_record_id': str(line.record_id),
                'patient_hn': line.record.patient_hn,
                'patient_name_th': line.record.patient_name_th,
                'patient_name_en': line.record.patient_name_en,
                'episode_number': line.record.episode_number,
                'department_code': line.record.department_code,
                'usage_datetime': line.record.usage_datetime.isoformat(),
                'supply_code': line.supply_code,
                'supply_name': line.supply_name,
                'quantity_used': line.quantity_used,
                'quantity_returned': line.quantity_returned,
                'net_quantity': line.net_quantity,
                'billing_status': line.record.billing_status,
            }
            for line in lines
        ]
