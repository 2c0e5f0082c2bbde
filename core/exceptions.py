import logging

from django.db import DatabaseError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Base class for errors raised by the negotiation and contract engines."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'MARKETPLACE_ERROR'
    default_message = 'Request could not be processed.'

    def __init__(self, message=None, code=None, errors=None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(MarketplaceError):
    default_code = 'VALIDATION_ERROR'
    default_message = 'Validation failed'


class RecordNotFound(MarketplaceError):
    # Also raised when the caller is not a party to the record.
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'NOT_FOUND'
    default_message = 'Record not found'


class StateConflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'INVALID_STATE_TRANSITION'
    default_message = 'Operation not allowed in the current state'

    def __init__(self, message=None, code=None, current_state=None):
        super().__init__(message, code)
        self.current_state = current_state


class DuplicateReview(StateConflict):
    default_code = 'REVIEW_ALREADY_EXISTS'
    default_message = 'You have already submitted a review for this contract'


class CapacityConflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'WORKER_NOT_AVAILABLE'
    default_message = (
        'The worker is already engaged on another job. '
        'Current work must be completed before starting a new one.'
    )


class TransientFailure(MarketplaceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = 'TRANSACTION_ABORTED'
    default_message = 'The operation could not be completed. Please try again.'


def _field_errors(detail, prefix=''):
    errors = []
    if isinstance(detail, dict):
        for field, value in detail.items():
            name = f"{prefix}.{field}" if prefix else str(field)
            errors.extend(_field_errors(value, name))
    elif isinstance(detail, list):
        for item in detail:
            errors.extend(_field_errors(item, prefix))
    else:
        errors.append({'field': prefix or 'non_field_errors', 'message': str(detail)})
    return errors


def error_response(message, code, status_code, errors=None, **extra):
    body = {'success': False, 'message': message, 'code': code}
    if errors:
        body['errors'] = errors
    body.update(extra)
    return Response(body, status=status_code)


def marketplace_exception_handler(exc, context):
    """Render engine and DRF errors into the shared error envelope."""
    view = context.get('view')
    view_name = view.__class__.__name__ if view else 'unknown view'

    if isinstance(exc, StateConflict):
        logger.info(f"{view_name}: {exc.code} ({exc.current_state or 'n/a'})")
        extra = {'current_state': exc.current_state} if exc.current_state else {}
        return error_response(exc.message, exc.code, exc.status_code, **extra)

    if isinstance(exc, MarketplaceError):
        logger.info(f"{view_name}: {exc.code}")
        return error_response(exc.message, exc.code, exc.status_code, exc.errors)

    if isinstance(exc, exceptions.ValidationError):
        return error_response(
            'Validation failed', 'VALIDATION_ERROR', status.HTTP_400_BAD_REQUEST,
            _field_errors(exc.detail)
        )

    if isinstance(exc, DatabaseError):
        logger.exception(f"{view_name}: database error, transaction aborted")
        failure = TransientFailure()
        return error_response(failure.message, failure.code, failure.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data.get('detail', '') if isinstance(response.data, dict) else response.data
        code = getattr(getattr(exc, 'detail', None), 'code', None) or 'ERROR'
        response.data = {
            'success': False,
            'message': str(detail),
            'code': str(code).upper(),
        }
    return response
