"""
Tests — ReturnService: record_return, concurrency, history, pending lines, statistics.

@file returns/tests/test_services.py
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.utils import timezone

from billing.status import BillingStatus
from core.constants import EVENT_RETURN_RECORDED
from core.exceptions import (
    ConflictError,
    InvalidQuantityError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from core.models import AuditLog
from returns.models import ReturnEvent
from returns.services import ReturnService
from tests.factories import SupplyCatalogEntryFactory, UserFactory
from usage.drafts import LineDraft, PriceSource, UsageDraft
from usage.models import UsageLineEntry, UsageRecord
from usage.services import UsageLedgerService


pytestmark = pytest.mark.django_db

UNUSED = ReturnEvent.Reason.UNWRAPPED_UNUSED


@pytest.fixture
def record(usage_time):
    """SUP-001 × 10 at an override price of 5.00 (subtotal 50.00)."""
    SupplyCatalogEntryFactory(code='SUP-001', unit_price=Decimal('7.00'))
    return UsageLedgerService.submit(draft=UsageDraft(
        patient_hn='HN000123', usage_datetime=usage_time, department_code='ER',
        lines=[LineDraft('SUP-001', 10, price_source=PriceSource.OVERRIDE, unit_price=Decimal('5.00'))],
    ))


def _line(record):
    return UsageLineEntry.objects.get(record=record, supply_code='SUP-001', is_deleted=False)


class TestRecordReturn:
    def test_partial_return_reprices_line_and_record(self, record):
        user = UserFactory()
        event = ReturnService.record_return(
            usage_record_id=record.pk, supply_code='SUP-001', qty=3, reason=UNUSED,
            actor=user, note='Pack unopened',
        )
        line = _line(record)
        record.refresh_from_db()
        assert event.qty_returned == 3
        assert event.returned_by == user
        assert line.quantity_returned == 3
        assert line.total_price == Decimal('35.00')
        assert record.billing_subtotal == Decimal('35.00')
        assert record.version == 2

    def test_return_beyond_used_rejected(self, record):
        ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=3, reason=UNUSED)
        with pytest.raises(InvalidQuantityError) as exc_info:
            ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=8, reason=UNUSED)
        assert exc_info.value.line == {
            'supply_code': 'SUP-001',
            'quantity_used': 10,
            'quantity_returned': 3,
            'returnable': 7,
        }
        assert _line(record).quantity_returned == 3
        assert ReturnEvent.objects.count() == 1

    @pytest.mark.parametrize('qty', [0, -2])
    def test_non_positive_quantity_rejected(self, record, qty):
        with pytest.raises(InvalidQuantityError):
            ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=qty, reason=UNUSED)
        assert not ReturnEvent.objects.exists()

    def test_unknown_line_not_found(self, record):
        with pytest.raises(NotFoundError):
            ReturnService.record_return(usage_record_id=record.pk, supply_code='NOPE', qty=1, reason=UNUSED)

    def test_voided_record_not_found(self, record):
        UsageLedgerService.void(record_id=record.pk)
        with pytest.raises(NotFoundError):
            ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=1, reason=UNUSED)

    def test_unknown_reason_rejected(self, record):
        with pytest.raises(ValidationError):
            ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=1, reason='LOST')

    def test_settled_record_locked(self, record):
        UsageRecord.objects.filter(pk=record.pk).update(billing_status=BillingStatus.SETTLED)
        with pytest.raises(InvalidStateTransition):
            ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=1, reason=UNUSED)

    def test_stale_expected_version_conflicts(self, record):
        with pytest.raises(ConflictError):
            ReturnService.record_return(
                usage_record_id=record.pk, supply_code='SUP-001', qty=1, reason=UNUSED,
                expected_version=7,
            )

    def test_event_published(self, record, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            event = ReturnService.record_return(
                usage_record_id=record.pk, supply_code='SUP-001', qty=2, reason=UNUSED,
            )
        log = AuditLog.objects.get(event=EVENT_RETURN_RECORDED)
        assert log.object_id == str(event.pk)
        assert log.new_values['quantity_returned'] == 2
        assert log.new_values['usage_record_id'] == str(record.pk)


class TestConcurrentReturns:
    def test_second_return_loses_version_race(self, record):
        """
        Another writer claims the version between our read and our claim;
        ours fails with ConflictError and leaves no trace.
        """
        original = ReturnService._load_target

        def load_then_race(usage_record_id, supply_code):
            loaded = original(usage_record_id, supply_code)
            UsageRecord.objects.filter(pk=usage_record_id).update(version=loaded[0].version + 1)
            return loaded

        with mock.patch.object(ReturnService, '_load_target', side_effect=load_then_race):
            with pytest.raises(ConflictError):
                ReturnService.record_return(
                    usage_record_id=record.pk, supply_code='SUP-001', qty=6, reason=UNUSED,
                )

        assert _line(record).quantity_returned == 0
        assert not ReturnEvent.objects.exists()

    def test_sequential_returns_second_exceeds(self, record):
        ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=6, reason=UNUSED)
        with pytest.raises(InvalidQuantityError):
            ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=6, reason=UNUSED)
        assert _line(record).quantity_returned == 6


class TestHistory:
    def test_filters_and_pagination(self, record, usage_time):
        SupplyCatalogEntryFactory(code='SUP-002', unit_price=Decimal('1.00'))
        other = UsageLedgerService.submit(draft=UsageDraft(
            patient_hn='HN000999', usage_datetime=usage_time, department_code='ICU',
            lines=[LineDraft('SUP-002', 5)],
        ))
        ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=1, reason=UNUSED)
        ReturnService.record_return(
            usage_record_id=record.pk, supply_code='SUP-001', qty=1, reason=ReturnEvent.Reason.EXPIRED,
        )
        ReturnService.record_return(usage_record_id=other.pk, supply_code='SUP-002', qty=2, reason=UNUSED)

        assert ReturnService.history()['count'] == 3
        assert ReturnService.history(filters={'department_code': 'ICU'})['count'] == 1
        assert ReturnService.history(filters={'patient_hn': '000123'})['count'] == 2
        assert ReturnService.history(filters={'reason': 'EXPIRED'})['count'] == 1
        assert ReturnService.history(filters={'supply_code': 'SUP-002'})['count'] == 1

        page = ReturnService.history(page=2, limit=2)
        assert page['count'] == 3
        assert len(page['results']) == 1

        tomorrow = timezone.now() + timedelta(days=1)
        assert ReturnService.history(filters={'date_from': tomorrow})['count'] == 0


class TestPendingLines:
    @pytest.fixture
    def others(self, usage_time):
        SupplyCatalogEntryFactory(code='SUP-002', unit_price=Decimal('1.00'))
        SupplyCatalogEntryFactory(code='SUP-003', unit_price=Decimal('2.00'))
        icu = UsageLedgerService.submit(draft=UsageDraft(
            patient_hn='HN000999', usage_datetime=usage_time + timedelta(hours=1), department_code='ICU',
            lines=[LineDraft('SUP-002', 5), LineDraft('SUP-003', 2)],
        ))
        settled = UsageLedgerService.submit(draft=UsageDraft(
            patient_hn='HN000777', usage_datetime=usage_time, department_code='ER',
            lines=[LineDraft('SUP-002', 1)],
        ))
        UsageRecord.objects.filter(pk=settled.pk).update(billing_status=BillingStatus.SETTLED)
        return icu

    def test_lists_lines_with_quantity_left(self, record, others):
        page = ReturnService.pending_lines()
        assert page['count'] == 3
        # newest usage first, then line order
        assert [line.supply_code for line in page['results']] == ['SUP-002', 'SUP-003', 'SUP-001']
        assert page['results'][2].record_id == record.pk

    def test_fully_returned_line_drops_out(self, record, others):
        ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=10, reason=UNUSED)
        codes = {line.supply_code for line in ReturnService.pending_lines()['results']}
        assert codes == {'SUP-002', 'SUP-003'}

    def test_partially_returned_line_stays(self, record):
        ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=9, reason=UNUSED)
        [line] = ReturnService.pending_lines()['results']
        assert line.net_quantity == 1

    def test_deleted_lines_and_voided_records_excluded(self, record, others):
        UsageLineEntry.objects.filter(record=others, supply_code='SUP-003').update(is_deleted=True)
        UsageRecord.objects.filter(pk=record.pk).update(is_deleted=True)
        page = ReturnService.pending_lines()
        assert [line.supply_code for line in page['results']] == ['SUP-002']

    def test_filters_and_pagination(self, record, others):
        assert ReturnService.pending_lines(filters={'department_code': 'ICU'})['count'] == 2
        assert ReturnService.pending_lines(filters={'patient_hn': '000123'})['count'] == 1
        assert ReturnService.pending_lines(filters={'supply_code': 'SUP-003'})['count'] == 1
        assert ReturnService.pending_lines(filters={'usage_record_id': record.pk})['count'] == 1

        page = ReturnService.pending_lines(page=2, limit=2)
        assert page['count'] == 3
        assert len(page['results']) == 1


class TestQuantityStatistics:
    def test_totals_and_reasons(self, record):
        ReturnService.record_return(usage_record_id=record.pk, supply_code='SUP-001', qty=2, reason=UNUSED)
        ReturnService.record_return(
            usage_record_id=record.pk, supply_code='SUP-001', qty=1, reason=ReturnEvent.Reason.DAMAGED,
        )
        stats = ReturnService.quantity_statistics()
        assert stats['total_used'] == 10
        assert stats['total_returned'] == 3
        assert stats['net_used'] == 7
        assert stats['by_reason']['UNWRAPPED_UNUSED'] == {'events': 1, 'quantity': 2}
        assert stats['by_reason']['EXPIRED'] == {'events': 0, 'quantity': 0}

        assert ReturnService.quantity_statistics(department_code='ICU')['total_used'] == 0
