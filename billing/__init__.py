from .calculator import BillingCalculator, BillingTotals
from .status import BillingStatus, assert_billing_transition

__all__ = ('BillingCalculator', 'BillingTotals', 'BillingStatus', 'assert_billing_transition')
