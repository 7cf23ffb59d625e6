"""
Billing — Status Lifecycle

Billing status only moves forward:
DRAFT → BILLED → (DISPUTED | SETTLED), and DISPUTED → SETTLED.

@file billing/status.py
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.exceptions import InvalidStateTransition


class BillingStatus(models.TextChoices):
    DRAFT = 'DRAFT', _('Draft')
    BILLED = 'BILLED', _('Billed')
    DISPUTED = 'DISPUTED', _('Disputed')
    SETTLED = 'SETTLED', _('Settled')


BILLING_TRANSITIONS = {
    BillingStatus.DRAFT: {BillingStatus.BILLED},
    BillingStatus.BILLED: {BillingStatus.DISPUTED, BillingStatus.SETTLED},
    BillingStatus.DISPUTED: {BillingStatus.SETTLED},
    BillingStatus.SETTLED: set(),
}

# Line entries of a settled bill can no longer change.
LOCKED_STATUSES = {BillingStatus.SETTLED}


def assert_billing_transition(current: str, new: str) -> None:
    allowed = BILLING_TRANSITIONS.get(current, set())
    if new not in allowed:
        raise InvalidStateTransition(
            detail=f'Cannot move billing status from {current} to {new}.',
        )
