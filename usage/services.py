"""
Usage — Ledger Service

submit, amend, get, list, billing status, void, statistics.

Every mutation of an existing record claims its version with a single
conditional UPDATE (version = read_version + 1). Zero rows updated means
another writer got there first: the whole transaction rolls back with a
ConflictError and the caller retries after reloading.

@file usage/services.py
"""

import logging
from collections.abc import Sequence
from typing import Any

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import EmptyPage, Paginator
from django.db import transaction
from django.db.models import Count, F, Prefetch, Q, Sum
from django.utils import timezone

from billing.calculator import BillingCalculator, default_tax_rate, money, to_decimal
from billing.status import LOCKED_STATUSES, BillingStatus, assert_billing_transition
from catalog.models import SupplyCatalogEntry
from core.constants import (
    DEFAULT_PAGE_SIZE,
    EVENT_BILLING_STATUS_CHANGED,
    EVENT_USAGE_AMENDED,
    EVENT_USAGE_SUBMITTED,
    EVENT_USAGE_VOIDED,
    MAX_PAGE_SIZE,
)
from core.events import publish_event
from core.exceptions import (
    ConflictError,
    InvalidQuantityError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from core.services import AuditService

from .drafts import LineDraft, PriceSource, UsageDraft
from .models import UsageLineEntry, UsageRecord
from .validators import header_errors, validate_lines, validate_usage_draft

logger = logging.getLogger('supplytrack')

# Header fields an amendment may correct alongside the line list.
AMENDABLE_FIELDS = (
    'patient_hn', 'patient_name_th', 'patient_name_en', 'episode_number',
    'hospital_code', 'usage_datetime', 'usage_type', 'purpose',
    'department_code', 'recorded_by_user_id',
)


# ---------------------------------------------------------------------------
# Shared helpers (also used by the returns service)
# ---------------------------------------------------------------------------

def ledger_queryset():
    """Live records with their live lines prefetched as ``live_lines``."""
    return UsageRecord.objects.filter(is_deleted=False).prefetch_related(
        Prefetch(
            'lines',
            queryset=UsageLineEntry.objects.filter(is_deleted=False).order_by('position'),
            to_attr='live_lines',
        ),
    )


def load_record(record_id) -> UsageRecord:
    """Fetch a live record or raise NotFoundError (malformed IDs included)."""
    try:
        return UsageRecord.objects.get(pk=record_id, is_deleted=False)
    except (UsageRecord.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(detail=f'Usage record {record_id} not found.')


def check_expected_version(record: UsageRecord, expected_version: int | None) -> None:
    if expected_version is not None and int(expected_version) != record.version:
        raise ConflictError(
            detail=(
                f'Usage record {record.pk} is at version {record.version}, '
                f'not {expected_version}. Reload and retry.'
            ),
        )


def assert_mutable(record: UsageRecord) -> None:
    if record.billing_status in LOCKED_STATUSES:
        raise InvalidStateTransition(
            detail=f'Usage record {record.pk} is {record.billing_status} and can no longer change.',
        )


def claim_version(record: UsageRecord, actor=None) -> int:
    """
    Compare-and-set the record version. On success ``record.version`` is
    the new value; on a lost race raises ConflictError.
    """
    read_version = record.version
    claimed = UsageRecord.objects.filter(
        pk=record.pk, version=read_version, is_deleted=False,
    ).update(
        version=F('version') + 1,
        updated_at=timezone.now(),
        updated_by=actor,
    )
    if claimed != 1:
        logger.warning(
            'Version conflict on usage record %s (read version %s)', record.pk, read_version,
        )
        raise ConflictError()
    record.version = read_version + 1
    return record.version


def apply_billing(record: UsageRecord, lines: Sequence[UsageLineEntry] | None = None) -> None:
    """Re-derive billing totals from live lines and persist them."""
    if lines is None:
        lines = list(record.lines.filter(is_deleted=False))
    totals = BillingCalculator(record.billing_tax_rate).recompute(lines)
    record.billing_subtotal = totals.subtotal
    record.billing_tax = totals.tax
    record.billing_total = totals.total
    record.save(update_fields=['billing_subtotal', 'billing_tax', 'billing_total', 'updated_at'])


def billing_snapshot(record: UsageRecord) -> dict[str, str]:
    return {
        'subtotal': str(record.billing_subtotal),
        'tax_rate': str(record.billing_tax_rate),
        'tax': str(record.billing_tax),
        'total': str(record.billing_total),
        'currency': record.billing_currency,
        'status': record.billing_status,
    }


def _build_lines(
    record: UsageRecord,
    drafts: Sequence[LineDraft],
    catalog: dict[str, SupplyCatalogEntry],
    *,
    returned: dict[str, int] | None = None,
    actor=None,
) -> list[UsageLineEntry]:
    returned = returned or {}
    lines = []
    for position, draft in enumerate(drafts):
        entry = catalog[draft.supply_code]
        if draft.price_source == PriceSource.OVERRIDE:
            unit_price = money(draft.unit_price)
        else:
            unit_price = entry.unit_price
        line = UsageLineEntry(
            record=record,
            position=position,
            supply_code=draft.supply_code,
            supply_name=entry.name,
            supply_category=entry.category,
            unit=entry.unit,
            quantity_used=draft.quantity_used,
            quantity_returned=returned.get(draft.supply_code, 0),
            unit_price=unit_price,
            price_source=draft.price_source,
            expiry_date=draft.expiry_date,
            created_by=actor,
            updated_by=actor,
        )
        line.refresh_total()
        lines.append(line)
    return UsageLineEntry.objects.bulk_create(lines)


def _check_returns_carried(record: UsageRecord, drafts: Sequence[LineDraft]) -> dict[str, int]:
    """
    Returned quantities survive an amendment. A code with returns must stay
    on the record with quantity_used >= what was already returned.
    """
    returned = {
        line.supply_code: line.quantity_returned
        for line in record.lines.filter(is_deleted=False, quantity_returned__gt=0)
    }
    by_code = {draft.supply_code: draft for draft in drafts}
    for code, qty_returned in returned.items():
        draft = by_code.get(code)
        if draft is None:
            raise InvalidQuantityError(
                detail=f'Cannot remove {code}: {qty_returned} already returned.',
                line={'supply_code': code, 'quantity_returned': qty_returned},
            )
        if draft.quantity_used < qty_returned:
            raise InvalidQuantityError(
                detail=(
                    f'Quantity used for {code} cannot drop below the {qty_returned} '
                    f'already returned.'
                ),
                line={
                    'supply_code': code,
                    'quantity_used': draft.quantity_used,
                    'quantity_returned': qty_returned,
                },
            )
    return returned


def _parse_page(page, limit) -> tuple[int, int]:
    errors: dict[str, list[str]] = {}
    try:
        page = int(page)
        if page < 1:
            raise ValueError
    except (TypeError, ValueError):
        errors['page'] = ['Page must be a positive integer.']
    try:
        limit = int(limit)
        if limit < 1:
            raise ValueError
    except (TypeError, ValueError):
        errors['limit'] = ['Limit must be a positive integer.']
    if errors:
        raise ValidationError(errors)
    return page, min(limit, MAX_PAGE_SIZE)


def paginate(queryset, page=1, limit=DEFAULT_PAGE_SIZE) -> dict[str, Any]:
    """1-based page slicing. Pages past the end are empty, not errors."""
    page, limit = _parse_page(page, limit)
    paginator = Paginator(queryset, limit)
    try:
        results = list(paginator.page(page).object_list)
    except EmptyPage:
        results = []
    return {
        'results': results,
        'count': paginator.count,
        'page': page,
        'limit': limit,
    }


# ---------------------------------------------------------------------------
# Ledger service
# ---------------------------------------------------------------------------

class UsageLedgerService:
    """Usage ledger: records, line entries and their billing."""

    @staticmethod
    @transaction.atomic
    def submit(*, draft: UsageDraft, actor=None) -> UsageRecord:
        """
        Validate and persist a new usage record with its lines. Billing is
        computed before commit; UsageSubmitted is published after it.
        """
        requested_rate = default_tax_rate() if draft.tax_rate is None else draft.tax_rate
        catalog = validate_usage_draft(draft, tax_rate=requested_rate)
        tax_rate = to_decimal(requested_rate)

        record = UsageRecord.objects.create(
            patient_hn=draft.patient_hn,
            patient_name_th=draft.patient_name_th,
            patient_name_en=draft.patient_name_en,
            episode_number=draft.episode_number,
            hospital_code=draft.hospital_code,
            usage_datetime=draft.usage_datetime,
            usage_type=draft.usage_type,
            purpose=draft.purpose,
            department_code=draft.department_code,
            recorded_by_user_id=draft.recorded_by_user_id,
            billing_tax_rate=tax_rate,
            billing_currency=(draft.currency or settings.SUPPLY_BILLING_CURRENCY).upper(),
            billing_status=BillingStatus.DRAFT,
            created_by=actor,
            updated_by=actor,
        )
        lines = _build_lines(record, draft.lines, catalog, actor=actor)
        apply_billing(record, lines)

        publish_event(
            EVENT_USAGE_SUBMITTED,
            model_name='UsageRecord',
            object_id=record.pk,
            actor=actor,
            payload={
                'patient_hn': record.patient_hn,
                'department_code': record.department_code,
                'lines': len(lines),
                'billing': billing_snapshot(record),
            },
        )
        logger.info(
            'Usage record %s submitted: HN %s, %d line(s), total %s',
            record.pk, record.patient_hn, len(lines), record.billing_total,
        )
        return record

    @staticmethod
    @transaction.atomic
    def amend(
        *,
        record_id,
        lines: Sequence[LineDraft],
        actor=None,
        expected_version: int | None = None,
        fields: dict[str, Any] | None = None,
    ) -> UsageRecord:
        """
        Replace the live line set (and optionally correct header fields).
        Previous lines are soft-deleted; returned quantities carry forward.
        """
        record = load_record(record_id)
        check_expected_version(record, expected_version)
        assert_mutable(record)

        fields = dict(fields or {})
        unknown = sorted(set(fields) - set(AMENDABLE_FIELDS))
        if unknown:
            raise ValidationError({name: ['This field cannot be amended.'] for name in unknown})
        merged = UsageDraft(
            patient_hn=fields.get('patient_hn', record.patient_hn),
            usage_datetime=fields.get('usage_datetime', record.usage_datetime),
            department_code=fields.get('department_code', record.department_code),
        )
        catalog = validate_lines(
            lines, extra_errors=header_errors(merged), tax_rate=record.billing_tax_rate,
        )
        returned = _check_returns_carried(record, lines)

        old_values = AuditService.snapshot(record, fields=list(AMENDABLE_FIELDS) + ['version'])
        old_values['billing'] = billing_snapshot(record)

        claim_version(record, actor=actor)

        now = timezone.now()
        record.lines.filter(is_deleted=False).update(
            is_deleted=True, deleted_at=now, deleted_by=actor, updated_at=now,
        )
        new_lines = _build_lines(record, lines, catalog, returned=returned, actor=actor)

        for name, value in fields.items():
            setattr(record, name, value)
        record.updated_by = actor
        record.save(update_fields=list(fields) + ['updated_by', 'updated_at'])
        apply_billing(record, new_lines)

        publish_event(
            EVENT_USAGE_AMENDED,
            model_name='UsageRecord',
            object_id=record.pk,
            actor=actor,
            payload={
                'old_values': old_values,
                'version': record.version,
                'lines': len(new_lines),
                'changed_fields': sorted(fields),
                'billing': billing_snapshot(record),
            },
        )
        logger.info('Usage record %s amended to version %s', record.pk, record.version)
        return record

    @staticmethod
    def get(record_id) -> UsageRecord:
        try:
            return ledger_queryset().get(pk=record_id)
        except (UsageRecord.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError(detail=f'Usage record {record_id} not found.')

    @staticmethod
    def filter_queryset(filters: dict[str, Any] | None = None):
        filters = filters or {}
        qs = ledger_queryset()
        if filters.get('patient_hn'):
            qs = qs.filter(patient_hn__icontains=filters['patient_hn'])
        if filters.get('episode_number'):
            qs = qs.filter(episode_number=filters['episode_number'])
        if filters.get('department_code'):
            qs = qs.filter(department_code=filters['department_code'])
        if filters.get('usage_type'):
            qs = qs.filter(usage_type=filters['usage_type'])
        if filters.get('billing_status'):
            qs = qs.filter(billing_status=filters['billing_status'])
        if filters.get('supply_code'):
            qs = qs.filter(
                lines__supply_code=filters['supply_code'], lines__is_deleted=False,
            ).distinct()
        if filters.get('date_from'):
            qs = qs.filter(usage_datetime__gte=filters['date_from'])
        if filters.get('date_to'):
            qs = qs.filter(usage_datetime__lt=filters['date_to'])
        return qs.order_by('-created_at', 'id')

    @classmethod
    def list_records(
        cls,
        *,
        filters: dict[str, Any] | None = None,
        page=1,
        limit=DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """Filtered page of live records, newest first: {results, count, page, limit}."""
        return paginate(cls.filter_queryset(filters), page=page, limit=limit)

    @classmethod
    def find_by_patient(cls, patient_hn: str) -> list[UsageRecord]:
        return list(ledger_queryset().filter(patient_hn=patient_hn).order_by('-usage_datetime'))

    @classmethod
    def find_by_department(cls, department_code: str) -> list[UsageRecord]:
        return list(
            ledger_queryset().filter(department_code=department_code).order_by('-usage_datetime'),
        )

    @staticmethod
    @transaction.atomic
    def update_billing_status(
        *,
        record_id,
        status: str,
        actor=None,
        expected_version: int | None = None,
    ) -> UsageRecord:
        record = load_record(record_id)
        check_expected_version(record, expected_version)
        old_status = record.billing_status
        assert_billing_transition(old_status, status)

        claim_version(record, actor=actor)
        record.billing_status = status
        record.updated_by = actor
        record.save(update_fields=['billing_status', 'updated_by', 'updated_at'])

        publish_event(
            EVENT_BILLING_STATUS_CHANGED,
            model_name='UsageRecord',
            object_id=record.pk,
            actor=actor,
            payload={
                'old_values': {'billing_status': old_status},
                'billing_status': status,
                'version': record.version,
            },
        )
        logger.info('Usage record %s billing %s -> %s', record.pk, old_status, status)
        return record

    @staticmethod
    @transaction.atomic
    def void(*, record_id, actor=None, expected_version: int | None = None) -> UsageRecord:
        """Soft-delete a record and its lines. Voided records leave every read path."""
        record = load_record(record_id)
        check_expected_version(record, expected_version)
        assert_mutable(record)

        claim_version(record, actor=actor)
        now = timezone.now()
        record.lines.filter(is_deleted=False).update(
            is_deleted=True, deleted_at=now, deleted_by=actor, updated_at=now,
        )
        record.soft_delete(user=actor)

        publish_event(
            EVENT_USAGE_VOIDED,
            model_name='UsageRecord',
            object_id=record.pk,
            actor=actor,
            payload={'version': record.version, 'billing': billing_snapshot(record)},
        )
        logger.info('Usage record %s voided', record.pk)
        return record

    @staticmethod
    def statistics(filters: dict[str, Any] | None = None) -> dict[str, Any]:
        """Record counts by billing status and department, plus billed amounts."""
        qs = UsageLedgerService.filter_queryset(filters).prefetch_related(None).order_by()
        totals = qs.aggregate(
            total=Count('id', distinct=True),
            amount=Sum('billing_total'),
        )
        by_status = {
            row['billing_status']: row['count']
            for row in qs.values('billing_status').annotate(count=Count('id', distinct=True))
        }
        by_department = [
            {
                'department_code': row['department_code'],
                'count': row['count'],
                'amount': str(money(row['amount'] or 0)),
            }
            for row in qs.values('department_code')
            .annotate(count=Count('id', distinct=True), amount=Sum('billing_total'))
            .order_by('department_code')
        ]
        return {
            'total': totals['total'] or 0,
            'billing_total': str(money(totals['amount'] or 0)),
            'by_status': {status: by_status.get(status, 0) for status in BillingStatus.values},
            'by_department': by_department,
            'open': qs.filter(~Q(billing_status=BillingStatus.SETTLED)).count(),
        }
