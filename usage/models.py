"""
Usage — Models

One UsageRecord per patient-encounter submission, owning an ordered set
of UsageLineEntry rows (one per supply code). Billing totals are kept on
the record and re-derived after every mutation. Records carry a version
counter for optimistic concurrency and are voided, never deleted.

@file usage/models.py
"""

from decimal import Decimal

from django.db import models
from django.db.models import Sum
from django.utils.translation import gettext_lazy as _

from billing.calculator import line_total
from billing.status import BillingStatus
from core.models import RegulatedModel


class UsageRecord(RegulatedModel):
    """
    Supplies used on a patient encounter.

    Invariant: billing_subtotal == sum(total_price of live lines) after
    every committed mutation. billing_status only moves forward.
    """

    hospital_code = models.CharField(_('hospital code'), max_length=20, blank=True)
    episode_number = models.CharField(
        _('episode number (EN)'), max_length=50, blank=True, db_index=True,
    )
    patient_hn = models.CharField(
        _('hospital number (HN)'), max_length=50, db_index=True,
    )
    patient_name_th = models.CharField(_('patient name (TH)'), max_length=255, blank=True)
    patient_name_en = models.CharField(_('patient name (EN)'), max_length=255, blank=True)
    usage_datetime = models.DateTimeField(_('usage datetime'), db_index=True)
    usage_type = models.CharField(
        _('usage type'), max_length=30, blank=True, db_index=True,
        help_text=_('e.g. OPD, IPD, EMERGENCY'),
    )
    purpose = models.TextField(_('purpose'), blank=True)
    department_code = models.CharField(_('department code'), max_length=30, db_index=True)
    recorded_by_user_id = models.CharField(
        _('recorded by (user ID)'), max_length=64, blank=True,
        help_text=_('Identifier of the staff member in the submitting system'),
    )

    billing_status = models.CharField(
        _('billing status'), max_length=10,
        choices=BillingStatus.choices,
        default=BillingStatus.DRAFT,
        db_index=True,
    )
    billing_subtotal = models.DecimalField(
        _('subtotal'), max_digits=14, decimal_places=2, default=Decimal('0.00'),
    )
    billing_tax_rate = models.DecimalField(
        _('tax rate'), max_digits=6, decimal_places=4, default=Decimal('0'),
        help_text=_('Snapshotted from billing policy at submission'),
    )
    billing_tax = models.DecimalField(
        _('tax'), max_digits=14, decimal_places=2, default=Decimal('0.00'),
    )
    billing_total = models.DecimalField(
        _('total'), max_digits=14, decimal_places=2, default=Decimal('0.00'),
    )
    billing_currency = models.CharField(_('currency'), max_length=3, default='THB')

    version = models.PositiveIntegerField(
        _('version'), default=1,
        help_text=_('Incremented on every amend, return, status change or void'),
    )

    class Meta:
        verbose_name = _('usage record')
        verbose_name_plural = _('usage records')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['department_code', 'usage_datetime']),
            models.Index(fields=['patient_hn', 'is_deleted']),
            models.Index(fields=['billing_status', 'is_deleted']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(billing_subtotal__gte=0),
                name='usage_subtotal_non_negative',
            ),
        ]

    def __str__(self):
        return f'Usage {self.pk} — HN {self.patient_hn} ({self.department_code})'

    def get_live_lines(self) -> list['UsageLineEntry']:
        """Live line entries in submission order; uses the ledger prefetch when present."""
        prefetched = getattr(self, 'live_lines', None)
        if prefetched is not None:
            return prefetched
        return list(self.lines.filter(is_deleted=False).order_by('position'))


class UsageLineEntry(RegulatedModel):
    """
    One supply on a usage record.

    total_price = (quantity_used - quantity_returned) * unit_price.
    quantity_returned is a cached counter of the record's ReturnEvents for
    this supply code (see returned_from_events).
    """

    class PriceSource(models.TextChoices):
        CATALOG = 'CATALOG', _('Catalog price')
        OVERRIDE = 'OVERRIDE', _('Explicit override')

    record = models.ForeignKey(
        UsageRecord,
        on_delete=models.PROTECT,
        related_name='lines',
        verbose_name=_('usage record'),
    )
    position = models.PositiveSmallIntegerField(_('position'), default=0)
    supply_code = models.CharField(_('supply code'), max_length=50, db_index=True)
    supply_name = models.CharField(_('supply name'), max_length=255, blank=True)
    supply_category = models.CharField(_('supply category'), max_length=100, blank=True)
    unit = models.CharField(_('unit'), max_length=30, blank=True)
    quantity_used = models.PositiveIntegerField(_('quantity used'))
    quantity_returned = models.PositiveIntegerField(_('quantity returned'), default=0)
    unit_price = models.DecimalField(_('unit price'), max_digits=12, decimal_places=2)
    price_source = models.CharField(
        _('price source'), max_length=10,
        choices=PriceSource.choices,
        default=PriceSource.CATALOG,
    )
    total_price = models.DecimalField(
        _('total price'), max_digits=14, decimal_places=2, default=Decimal('0.00'),
    )
    expiry_date = models.DateField(_('expiry date'), null=True, blank=True)

    class Meta:
        verbose_name = _('usage line entry')
        verbose_name_plural = _('usage line entries')
        ordering = ['record', 'position']
        indexes = [
            models.Index(fields=['record', 'is_deleted']),
            models.Index(fields=['supply_code', 'is_deleted']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['record', 'supply_code'],
                condition=models.Q(is_deleted=False),
                name='unique_live_line_per_supply',
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_used__gte=1),
                name='line_quantity_used_positive',
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_returned__lte=models.F('quantity_used')),
                name='line_returned_lte_used',
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0),
                name='line_unit_price_non_negative',
            ),
        ]

    def __str__(self):
        return f'{self.record_id} — {self.supply_code} × {self.quantity_used}'

    @property
    def net_quantity(self) -> int:
        return self.quantity_used - self.quantity_returned

    @property
    def returnable(self) -> int:
        return self.quantity_used - self.quantity_returned

    def refresh_total(self) -> Decimal:
        self.total_price = line_total(self.quantity_used, self.quantity_returned, self.unit_price)
        return self.total_price

    def quantity_state(self) -> dict:
        return {
            'supply_code': self.supply_code,
            'quantity_used': self.quantity_used,
            'quantity_returned': self.quantity_returned,
            'returnable': self.returnable,
        }

    def returned_from_events(self) -> int:
        """Sum of ReturnEvents for this supply code on the parent record."""
        total = self.record.return_events.filter(
            supply_code=self.supply_code,
        ).aggregate(total=Sum('qty_returned'))['total']
        return total or 0
