"""
Core — Exception Handling

Typed domain errors raised by the service layer and the DRF exception
handler that renders them in the standard error envelope.

@file core/exceptions.py
"""

import logging

from django.core.exceptions import PermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('supplytrack')


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class BusinessRuleViolation(APIException):
    """Raised when a business rule is violated at the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Business rule violation.'
    default_code = 'BUSINESS_RULE_VIOLATION'


class ValidationError(BusinessRuleViolation):
    """
    Malformed or missing input, rejected before anything is persisted.

    ``errors`` maps each failing field to its list of messages, so a
    caller can show every problem at once.
    """
    default_detail = 'Invalid input.'
    default_code = 'VALIDATION_ERROR'

    def __init__(self, errors: dict[str, list[str]] | None = None, detail=None):
        self.errors = errors or {}
        super().__init__(detail=detail if detail is not None else self.errors or self.default_detail)


class InvalidStateTransition(BusinessRuleViolation):
    """Raised when a state machine transition is not allowed."""
    default_detail = 'Invalid state transition.'
    default_code = 'INVALID_STATE_TRANSITION'


class InvalidQuantityError(APIException):
    """
    Return quantity is non-positive or exceeds what remains returnable.

    Carries the current state of the offending line (``line``) so the
    caller can display the valid range.
    """
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Invalid quantity.'
    default_code = 'INVALID_QUANTITY'

    def __init__(self, detail=None, line: dict | None = None):
        self.line = line or {}
        message = detail or self.default_detail
        payload = {'detail': message}
        if self.line:
            payload['line'] = self.line
        super().__init__(detail=message)
        # Keep integer quantities intact in the response body.
        self.detail = payload
        self.message = message


class ConflictError(APIException):
    """Optimistic version mismatch; the caller must reload and retry."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The record was modified concurrently. Reload and retry.'
    default_code = 'CONFLICT'


class NotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'RESOURCE_NOT_FOUND'


class DependencyUnavailableError(APIException):
    """A collaborator (catalog, dispensing source) failed to answer. Retryable."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'A dependency is unavailable. Retry later.'
    default_code = 'DEPENDENCY_UNAVAILABLE'


class DependencyTimeoutError(DependencyUnavailableError):
    default_detail = 'A dependency did not respond in time. Retry later.'
    default_code = 'DEPENDENCY_TIMEOUT'


# ---------------------------------------------------------------------------
# Standard exception handler
# ---------------------------------------------------------------------------

def standard_exception_handler(exc, context):
    """
    Wraps every error response in the standard envelope:
      { "success": false, "errors": {...}, "code": "ERROR_CODE" }
    """
    if isinstance(exc, Http404):
        exc = NotFoundError()
    elif isinstance(exc, PermissionDenied):
        exc = APIException(detail='Permission denied.', code='PERMISSION_DENIED')
        exc.status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, DjangoValidationError):
        data = {
            'success': False,
            'errors': exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages},
            'code': 'VALIDATION_ERROR',
        }
        return Response(data, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)

    if response is not None:
        errors = {}
        code = getattr(exc, 'default_code', 'ERROR')
        if isinstance(exc, DRFValidationError):
            code = ValidationError.default_code

        if isinstance(response.data, dict):
            errors = response.data
            code = response.data.pop('code', code) if 'code' in response.data else code
        elif isinstance(response.data, list):
            errors = {'detail': response.data}
        else:
            errors = {'detail': [str(response.data)]}

        response.data = {
            'success': False,
            'errors': errors,
            'code': code,
        }

    if response is None:
        logger.exception('Unhandled exception in view: %s', exc)
        return Response(
            {'success': False, 'errors': {'detail': ['Internal server error.']}, 'code': 'INTERNAL_ERROR'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return response
