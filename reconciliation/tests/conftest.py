"""
Reconciliation test fixtures.

@file reconciliation/tests/conftest.py
"""

from datetime import datetime
from unittest import mock

import pytest
from django.utils import timezone

from reconciliation.sources import DispensedBatch, DispensedDataSource, DispensedRecord


class StaticDispensedSource(DispensedDataSource):
    """In-memory dispensing system. ``fail`` is raised instead of answering."""

    def __init__(self, records=(), complete=True, warnings=(), fail=None):
        self.records = list(records)
        self.complete = complete
        self.warnings = tuple(warnings)
        self.fail = fail
        self.calls = []

    def add(self, supply_code, quantity, at, department_code='ER'):
        self.records.append(DispensedRecord(
            supply_code=supply_code,
            department_code=department_code,
            quantity_dispensed=quantity,
            dispensed_at=at,
        ))

    def fetch_dispensed(self, window, filters):
        self.calls.append((window, filters))
        if self.fail is not None:
            raise self.fail
        return DispensedBatch(records=tuple(self.records), complete=self.complete, warnings=self.warnings)


@pytest.fixture
def dispensed():
    """A StaticDispensedSource also installed as the configured source."""
    source = StaticDispensedSource()
    with mock.patch('reconciliation.engine.get_dispensed_source', return_value=source):
        yield source


@pytest.fixture
def dispensed_time():
    return timezone.make_aware(datetime(2026, 3, 10, 8, 0))
