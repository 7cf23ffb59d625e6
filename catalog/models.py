"""
Catalog — Models

Read-only reference data for consumable medical supplies: supply code,
name, category, unit of measure and list price. Entries are maintained
by catalog management outside this service.

@file catalog/models.py
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import RegulatedModel


class SupplyCatalogEntry(RegulatedModel):
    """A consumable supply that may be recorded against a patient encounter."""

    code = models.CharField(
        _('supply code'), max_length=50,
        help_text=_('Hospital item code (e.g. S4214JELCO018)'),
    )
    name = models.CharField(_('name'), max_length=255)
    category = models.CharField(_('category'), max_length=100, blank=True, db_index=True)
    unit = models.CharField(_('unit of measure'), max_length=30, default='Each')
    unit_price = models.DecimalField(
        _('unit price'), max_digits=12, decimal_places=2,
    )
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    class Meta:
        verbose_name = _('supply catalog entry')
        verbose_name_plural = _('supply catalog entries')
        ordering = ['code']
        indexes = [
            models.Index(fields=['code']),
            models.Index(fields=['category', 'is_active']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['code'],
                condition=models.Q(is_deleted=False),
                name='unique_active_supply_code',
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0),
                name='supply_unit_price_non_negative',
            ),
        ]

    def __str__(self):
        return f'{self.code} — {self.name}'
