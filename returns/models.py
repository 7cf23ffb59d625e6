"""
Returns — Models

Unused supplies handed back after a usage record was submitted. The
event log is immutable: each ReturnEvent is written once and never
updated or deleted. A line's quantity_returned is the running sum of its
events.

@file returns/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class ReturnEvent(models.Model):
    """A single immutable return of ``qty_returned`` units of one supply code."""

    class Reason(models.TextChoices):
        UNWRAPPED_UNUSED = 'UNWRAPPED_UNUSED', _('Unwrapped, unused')
        EXPIRED = 'EXPIRED', _('Expired')
        CONTAMINATED = 'CONTAMINATED', _('Contaminated')
        DAMAGED = 'DAMAGED', _('Damaged')

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )
    usage_record = models.ForeignKey(
        'usage.UsageRecord',
        on_delete=models.PROTECT,
        related_name='return_events',
        verbose_name=_('usage record'),
    )
    supply_code = models.CharField(_('supply code'), max_length=50, db_index=True)
    qty_returned = models.PositiveIntegerField(_('quantity returned'))
    reason = models.CharField(
        _('reason'), max_length=20,
        choices=Reason.choices, db_index=True,
    )
    note = models.TextField(_('note'), blank=True)
    returned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('returned by'),
    )
    returned_at = models.DateTimeField(
        _('returned at'), auto_now_add=True, db_index=True,
    )
    # No updated_at; immutable record.

    class Meta:
        verbose_name = _('return event')
        verbose_name_plural = _('return events')
        ordering = ['-returned_at']
        indexes = [
            models.Index(fields=['usage_record', 'supply_code'], name='return_record_code_idx'),
            models.Index(fields=['reason', 'returned_at'], name='return_reason_at_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(qty_returned__gte=1),
                name='return_qty_positive',
            ),
        ]

    def __str__(self):
        return f'{self.reason} {self.qty_returned} × {self.supply_code} on {self.usage_record_id}'

    def save(self, *args, **kwargs):
        if not self._state.adding and ReturnEvent.objects.filter(pk=self.pk).exists():
            raise NotImplementedError('ReturnEvent is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('ReturnEvent records cannot be deleted.')
