"""
Core — Constants

Shared pagination limits, audit actions and domain event names.

@file core/constants.py
"""

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

AUDIT_ACTION_CREATE = 'CREATE'
AUDIT_ACTION_UPDATE = 'UPDATE'
AUDIT_ACTION_SOFT_DELETE = 'SOFT_DELETE'
AUDIT_ACTION_STATUS_CHANGE = 'STATUS_CHANGE'

EVENT_USAGE_SUBMITTED = 'UsageSubmitted'
EVENT_USAGE_AMENDED = 'UsageAmended'
EVENT_USAGE_VOIDED = 'UsageVoided'
EVENT_RETURN_RECORDED = 'ReturnRecorded'
EVENT_BILLING_STATUS_CHANGED = 'BillingStatusChanged'

# Audit action recorded for each domain event.
EVENT_AUDIT_ACTIONS = {
    EVENT_USAGE_SUBMITTED: AUDIT_ACTION_CREATE,
    EVENT_USAGE_AMENDED: AUDIT_ACTION_UPDATE,
    EVENT_USAGE_VOIDED: AUDIT_ACTION_SOFT_DELETE,
    EVENT_RETURN_RECORDED: AUDIT_ACTION_CREATE,
    EVENT_BILLING_STATUS_CHANGED: AUDIT_ACTION_STATUS_CHANGE,
}

# Upper bounds that keep line and billing amounts inside their columns.
MAX_LINE_QUANTITY = 100_000
MAX_UNIT_PRICE = '9999999999.99'
MAX_BILLING_AMOUNT = '999999999999.99'
MAX_TAX_RATE = '1'
