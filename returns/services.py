"""
Returns — Service Layer

record_return, history, pending_lines, quantity_statistics.

A return claims the parent record's version exactly like an amendment, so
two concurrent returns against the same record cannot both pass the
returnable check: the loser gets a ConflictError and writes nothing.
INSERT ONLY — ReturnEvent rows are never updated or deleted.

@file returns/services.py
"""

import logging
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, F, Sum

from billing.status import LOCKED_STATUSES
from core.constants import DEFAULT_PAGE_SIZE, EVENT_RETURN_RECORDED
from core.events import publish_event
from core.exceptions import InvalidQuantityError, NotFoundError, ValidationError
from usage.models import UsageLineEntry, UsageRecord
from usage.services import (
    apply_billing,
    assert_mutable,
    check_expected_version,
    claim_version,
    paginate,
)

from .models import ReturnEvent

logger = logging.getLogger('supplytrack')


class ReturnService:
    """Returns of unused supplies against submitted usage."""

    @staticmethod
    def _load_target(usage_record_id, supply_code: str) -> tuple[UsageRecord, UsageLineEntry]:
        try:
            record = UsageRecord.objects.get(pk=usage_record_id, is_deleted=False)
        except (UsageRecord.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError(detail=f'Usage record {usage_record_id} not found.')
        line = record.lines.filter(supply_code=supply_code, is_deleted=False).first()
        if line is None:
            raise NotFoundError(
                detail=f'Supply code {supply_code} is not on usage record {usage_record_id}.',
            )
        return record, line

    @staticmethod
    @transaction.atomic
    def record_return(
        *,
        usage_record_id,
        supply_code: str,
        qty: int,
        reason: str,
        actor=None,
        note: str = '',
        expected_version: int | None = None,
    ) -> ReturnEvent:
        """
        Return ``qty`` units of ``supply_code`` against a usage record.
        Updates the line's returned counter and total, re-derives record
        billing, appends a ReturnEvent and publishes ReturnRecorded.
        """
        if reason not in ReturnEvent.Reason.values:
            raise ValidationError({'reason': [f'Unknown return reason {reason}.']})

        record, line = ReturnService._load_target(usage_record_id, supply_code)
        check_expected_version(record, expected_version)
        assert_mutable(record)

        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidQuantityError(
                detail='Return quantity must be a positive integer.',
                line=line.quantity_state(),
            )
        if line.quantity_returned + qty > line.quantity_used:
            raise InvalidQuantityError(
                detail=(
                    f'Cannot return {qty} of {supply_code}: only {line.returnable} '
                    f'of {line.quantity_used} remain returnable.'
                ),
                line=line.quantity_state(),
            )

        claim_version(record, actor=actor)

        line.quantity_returned += qty
        line.refresh_total()
        line.updated_by = actor
        line.save(update_fields=['quantity_returned', 'total_price', 'updated_by', 'updated_at'])

        event = ReturnEvent.objects.create(
            usage_record=record,
            supply_code=supply_code,
            qty_returned=qty,
            reason=reason,
            note=note or '',
            returned_by=actor,
        )
        apply_billing(record)

        publish_event(
            EVENT_RETURN_RECORDED,
            model_name='ReturnEvent',
            object_id=event.pk,
            actor=actor,
            payload={
                'usage_record_id': str(record.pk),
                'supply_code': supply_code,
                'qty_returned': qty,
                'reason': reason,
                'quantity_returned': line.quantity_returned,
                'version': record.version,
                'billing_total': str(record.billing_total),
            },
        )
        logger.info(
            'Return recorded on usage %s: %s × %s (%s), now %s/%s returned',
            record.pk, qty, supply_code, reason, line.quantity_returned, line.quantity_used,
        )
        return event

    @staticmethod
    def get(event_id) -> ReturnEvent:
        try:
            return ReturnEvent.objects.select_related('usage_record', 'returned_by').get(pk=event_id)
        except (ReturnEvent.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError(detail=f'Return event {event_id} not found.')

    @staticmethod
    def filter_queryset(filters: dict[str, Any] | None = None):
        filters = filters or {}
        qs = ReturnEvent.objects.select_related('usage_record', 'returned_by')
        if filters.get('usage_record_id'):
            qs = qs.filter(usage_record_id=filters['usage_record_id'])
        if filters.get('department_code'):
            qs = qs.filter(usage_record__department_code=filters['department_code'])
        if filters.get('patient_hn'):
            qs = qs.filter(usage_record__patient_hn__icontains=filters['patient_hn'])
        if filters.get('reason'):
            qs = qs.filter(reason=filters['reason'])
        if filters.get('supply_code'):
            qs = qs.filter(supply_code=filters['supply_code'])
        if filters.get('date_from'):
            qs = qs.filter(returned_at__gte=filters['date_from'])
        if filters.get('date_to'):
            qs = qs.filter(returned_at__lt=filters['date_to'])
        return qs.order_by('-returned_at', 'id')

    @classmethod
    def history(
        cls,
        *,
        filters: dict[str, Any] | None = None,
        page=1,
        limit=DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """Return events, newest first, including those on since-voided records."""
        return paginate(cls.filter_queryset(filters), page=page, limit=limit)

    @staticmethod
    def pending_queryset(filters: dict[str, Any] | None = None):
        """Live lines on open records that still have something to return."""
        filters = filters or {}
        qs = (
            UsageLineEntry.objects.filter(
                is_deleted=False,
                record__is_deleted=False,
                quantity_returned__lt=F('quantity_used'),
            )
            .exclude(record__billing_status__in=LOCKED_STATUSES)
            .select_related('record')
        )
        if filters.get('usage_record_id'):
            qs = qs.filter(record_id=filters['usage_record_id'])
        if filters.get('department_code'):
            qs = qs.filter(record__department_code=filters['department_code'])
        if filters.get('patient_hn'):
            qs = qs.filter(record__patient_hn__icontains=filters['patient_hn'])
        if filters.get('supply_code'):
            qs = qs.filter(supply_code=filters['supply_code'])
        return qs.order_by('-record__usage_datetime', 'record_id', 'position')

    @classmethod
    def pending_lines(
        cls,
        *,
        filters: dict[str, Any] | None = None,
        page=1,
        limit=DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """Returnable lines, newest usage first: the worklist a return is picked from."""
        return paginate(cls.pending_queryset(filters), page=page, limit=limit)

    @staticmethod
    def quantity_statistics(department_code: str | None = None) -> dict[str, Any]:
        """Used / returned / net quantities over live lines, and return counts by reason."""
        lines = UsageLineEntry.objects.filter(is_deleted=False, record__is_deleted=False)
        events = ReturnEvent.objects.filter(usage_record__is_deleted=False)
        if department_code:
            lines = lines.filter(record__department_code=department_code)
            events = events.filter(usage_record__department_code=department_code)

        totals = lines.aggregate(used=Sum('quantity_used'), returned=Sum('quantity_returned'))
        used = totals['used'] or 0
        returned = totals['returned'] or 0
        by_reason = {
            row['reason']: {'events': row['events'], 'quantity': row['quantity']}
            for row in events.order_by().values('reason').annotate(
                events=Count('id'), quantity=Sum('qty_returned'),
            )
        }
        return {
            'department_code': department_code or None,
            'total_used': used,
            'total_returned': returned,
            'net_used': used - returned,
            'by_reason': {
                reason: by_reason.get(reason, {'events': 0, 'quantity': 0})
                for reason in ReturnEvent.Reason.values
            },
        }
