"""
Reconciliation — Celery Tasks

Periodic dispensed-vs-usage comparison.

@file reconciliation/tasks.py
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger('supplytrack')


@shared_task(name='reconciliation.run_daily_reconciliation')
def run_daily_reconciliation(lookback_days=None):
    """
    Compare the last RECONCILIATION_LOOKBACK_DAYS full days (ending at
    today's midnight) and log every discrepancy.
    Registered with Celery Beat to run once per day.
    """
    from .engine import ReconciliationEngine, Window

    days = int(lookback_days or settings.RECONCILIATION_LOOKBACK_DAYS)
    today = timezone.localdate()
    window = Window.for_dates(today - timedelta(days=days), today - timedelta(days=1))

    report = ReconciliationEngine().compare(window)
    for result in report.discrepancies():
        logger.warning(
            'Reconciliation discrepancy %s: dispensed=%d used=%d returned=%d difference=%d (%s)',
            result.supply_code, result.total_dispensed, result.total_used,
            result.total_returned, result.difference, result.status,
        )
    logger.info(
        'run_daily_reconciliation completed: %d code(s), %d not matched, complete=%s',
        report.summary['total'], report.summary['not_matched'], report.complete,
    )
    return {
        'window_start': window.start.isoformat(),
        'window_end': window.end.isoformat(),
        'complete': report.complete,
        'warnings': list(report.warnings),
        **report.summary,
    }
