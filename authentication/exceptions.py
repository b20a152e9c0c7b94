import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from inventory.exceptions import InsufficientStock, PersistenceFailure

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    400: 'Validation error',
    401: 'Authentication required',
    403: 'Permission denied',
    404: 'Resource not found',
    405: 'Method not allowed',
    500: 'Internal server error',
    503: 'Service unavailable',
}


def error_body(status_code, details, message=None):
    """Error envelope shared by every API response"""
    return {
        'error': True,
        'message': message or STATUS_MESSAGES.get(status_code, 'An error occurred'),
        'details': details,
        'status_code': status_code,
    }


def _debug_details(exc):
    return {'error': str(exc)} if settings.DEBUG else {}


def custom_exception_handler(exc, context):
    """
    Wrap DRF errors in the error envelope and translate the Django and
    database exceptions DRF leaves unhandled.
    """
    response = exception_handler(exc, context)

    if response is not None:
        message = None
        if isinstance(exc, InsufficientStock):
            logger.warning(f"Insufficient stock: {exc.item.name} required {exc.required}, available {exc.available}")
            message = 'Insufficient stock'
        elif isinstance(exc, PersistenceFailure):
            logger.error(f"Persistence failure: {exc.__cause__ or exc}")
        response.data = error_body(response.status_code, response.data, message)
        return response

    if isinstance(exc, ValidationError):
        logger.error(f"Validation Error: {exc}")
        body = error_body(400, {'non_field_errors': exc.messages})
        return Response(body, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, IntegrityError):
        logger.error(f"Integrity Error: {exc}")
        body = error_body(400, {'error': 'This operation violates database constraints'}, 'Database integrity error')
        return Response(body, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, DatabaseError):
        logger.error(f"Database Error: {exc}")
        return Response(error_body(503, _debug_details(exc)), status=status.HTTP_503_SERVICE_UNAVAILABLE)

    logger.exception(f"Unexpected Error: {exc}")
    body = error_body(500, _debug_details(exc), 'An unexpected error occurred')
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
