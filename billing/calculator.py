"""
Billing — Calculator

Derives subtotal / tax / total for a usage record from its line entries.
Pure and deterministic: the same lines and tax rate always give the same
totals. All arithmetic is fixed-point Decimal, quantized to cents.

@file billing/calculator.py
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and Decimals; floats go through str() to avoid binary noise."""
    if isinstance(value, float):
        value = str(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f'Not a decimal amount: {value!r}') from exc
    if not result.is_finite():
        raise ValueError(f'Not a finite decimal amount: {value!r}')
    return result


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity_used: int, quantity_returned: int, unit_price) -> Decimal:
    """(used - returned) * unit_price, in cents."""
    return money(Decimal(quantity_used - quantity_returned) * to_decimal(unit_price))


def default_tax_rate() -> Decimal:
    return to_decimal(settings.SUPPLY_BILLING_TAX_RATE)


@dataclass(frozen=True)
class BillingTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def as_dict(self) -> dict[str, str]:
        return {'subtotal': str(self.subtotal), 'tax': str(self.tax), 'total': str(self.total)}


class BillingCalculator:
    """
    subtotal = sum(line.total_price)
    tax      = subtotal * tax_rate   (rounded half-up to cents)
    total    = subtotal + tax
    """

    def __init__(self, tax_rate=None):
        rate = default_tax_rate() if tax_rate is None else to_decimal(tax_rate)
        if rate < 0:
            raise ValueError('Tax rate cannot be negative.')
        self.tax_rate = rate

    def recompute(self, lines: Iterable) -> BillingTotals:
        """``lines`` are objects exposing ``total_price`` (live line entries only)."""
        subtotal = sum((money(line.total_price) for line in lines), ZERO)
        tax = money(subtotal * self.tax_rate)
        return BillingTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)
