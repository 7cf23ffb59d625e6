"""
Tests — SupplyCatalogService: resolve, resolve_many, validate_codes, timeouts.

@file catalog/tests/test_services.py
"""

from decimal import Decimal

import pytest
from django.db import OperationalError

from catalog.services import SupplyCatalogService, bounded_lookup
from core.exceptions import DependencyTimeoutError, NotFoundError
from tests.factories import SupplyCatalogEntryFactory


pytestmark = pytest.mark.django_db


class TestResolve:
    def test_resolve_known_code(self, gauze):
        assert SupplyCatalogService.resolve('GZ-01') == gauze

    def test_unknown_code_not_found(self):
        with pytest.raises(NotFoundError):
            SupplyCatalogService.resolve('NOPE')

    def test_inactive_and_deleted_entries_hidden(self):
        SupplyCatalogEntryFactory(code='OLD-1', is_active=False)
        deleted = SupplyCatalogEntryFactory(code='OLD-2')
        deleted.soft_delete()
        assert SupplyCatalogService.resolve_many(['OLD-1', 'OLD-2']) == {}

    def test_resolve_many_skips_unknown(self, gauze, syringe):
        found = SupplyCatalogService.resolve_many(['GZ-01', 'SY-05', 'XX'])
        assert set(found) == {'GZ-01', 'SY-05'}
        assert found['SY-05'].unit_price == Decimal('12.50')

    def test_codes_in_category(self, gauze, syringe):
        assert SupplyCatalogService.codes_in_category('Dressing') == {'GZ-01'}


class TestValidateCodes:
    def test_reports_valid_and_invalid_in_order(self, gauze, syringe):
        report = SupplyCatalogService.validate_codes(['SY-05', 'BAD', 'GZ-01', 'SY-05', ' '])
        assert report['valid'] == ['SY-05', 'GZ-01']
        assert report['invalid'] == ['BAD']
        assert report['items']['GZ-01']['unit_price'] == '50.00'


class QueryCanceled(Exception):
    sqlstate = '57014'


class TestBoundedLookup:
    def test_statement_timeout_becomes_dependency_timeout(self):
        cause = QueryCanceled('canceling statement due to statement timeout')
        error = OperationalError('canceling statement due to statement timeout')
        error.__cause__ = cause
        with pytest.raises(DependencyTimeoutError) as exc_info:
            with bounded_lookup():
                raise error
        assert exc_info.value.__cause__ is error

    def test_other_operational_errors_propagate(self):
        with pytest.raises(OperationalError):
            with bounded_lookup():
                raise OperationalError('database is locked')
