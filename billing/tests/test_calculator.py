"""
Tests — BillingCalculator: subtotal, half-up tax rounding, line totals.

@file billing/tests/test_calculator.py
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from django.test import override_settings

from billing.calculator import BillingCalculator, line_total, money


def _lines(*totals):
    return [SimpleNamespace(total_price=Decimal(total)) for total in totals]


class TestLineTotal:
    def test_net_of_returns(self):
        assert line_total(5, 2, Decimal('50.00')) == Decimal('150.00')

    def test_fully_returned_line_is_zero(self):
        assert line_total(3, 3, Decimal('12.50')) == Decimal('0.00')

    def test_rounds_half_up_to_cents(self):
        assert line_total(1, 0, Decimal('0.125')) == Decimal('0.13')


class TestRecompute:
    def test_zero_tax(self):
        totals = BillingCalculator(tax_rate='0').recompute(_lines('100.00', '25.50'))
        assert totals.subtotal == Decimal('125.50')
        assert totals.tax == Decimal('0.00')
        assert totals.total == Decimal('125.50')

    def test_tax_rounded_half_up(self):
        # 10.05 * 0.07 = 0.7035 -> 0.70 ; 10.50 * 0.07 = 0.735 -> 0.74
        assert BillingCalculator('0.07').recompute(_lines('10.05')).tax == Decimal('0.70')
        totals = BillingCalculator('0.07').recompute(_lines('10.50'))
        assert totals.tax == Decimal('0.74')
        assert totals.total == Decimal('11.24')

    def test_empty_lines(self):
        totals = BillingCalculator('0.07').recompute([])
        assert totals.as_dict() == {'subtotal': '0.00', 'tax': '0.00', 'total': '0.00'}

    def test_deterministic(self):
        lines = _lines('33.33', '66.67')
        calculator = BillingCalculator('0.07')
        assert calculator.recompute(lines) == calculator.recompute(lines)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            BillingCalculator('-0.01')

    @override_settings(SUPPLY_BILLING_TAX_RATE='0.07')
    def test_default_rate_from_settings(self):
        assert BillingCalculator().tax_rate == Decimal('0.07')


class TestMoney:
    def test_float_goes_through_str(self):
        assert money(0.1 + 0.2) == Decimal('0.30')

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            money('abc')

    @pytest.mark.parametrize('value', ['NaN', 'sNaN', 'Infinity', '-Infinity', Decimal('NaN')])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValueError):
            money(value)

    def test_non_finite_tax_rate_rejected(self):
        with pytest.raises(ValueError):
            BillingCalculator('NaN')
