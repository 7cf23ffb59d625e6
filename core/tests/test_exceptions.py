"""
Core — Exception Handler Tests

@file core/tests/test_exceptions.py
"""

from django.http import Http404
from rest_framework import status

from core.exceptions import (
    ConflictError,
    DependencyTimeoutError,
    InvalidQuantityError,
    ValidationError,
    standard_exception_handler,
)


class TestStandardExceptionHandler:
    def test_validation_error_lists_every_field(self):
        exc = ValidationError({'patient_hn': ['This field is required.'], 'lines': ['Empty.']})
        response = standard_exception_handler(exc, {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['success'] is False
        assert response.data['code'] == 'VALIDATION_ERROR'
        assert set(response.data['errors']) == {'patient_hn', 'lines'}
        assert exc.errors['lines'] == ['Empty.']

    def test_invalid_quantity_carries_line_state(self):
        exc = InvalidQuantityError(
            detail='Too many.',
            line={'supply_code': 'GZ-01', 'quantity_used': 5, 'quantity_returned': 4, 'returnable': 1},
        )
        response = standard_exception_handler(exc, {})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data['code'] == 'INVALID_QUANTITY'
        assert response.data['errors']['line']['returnable'] == 1

    def test_conflict_and_timeout_codes(self):
        assert standard_exception_handler(ConflictError(), {}).data['code'] == 'CONFLICT'
        timeout = standard_exception_handler(DependencyTimeoutError(), {})
        assert timeout.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert timeout.data['code'] == 'DEPENDENCY_TIMEOUT'

    def test_http404_becomes_not_found(self):
        response = standard_exception_handler(Http404(), {})
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['code'] == 'RESOURCE_NOT_FOUND'
