from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.logger_service import get_logger

logger = get_logger()


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'


def _first_message(detail):
    """Pull a human readable message out of a DRF error detail structure."""
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return ''
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ''
    return str(detail)


def api_exception_handler(exc, context):
    """
    Render every error as ``{"success": false, "message": ..., "errors": ...}``.

    Unhandled exceptions are logged with their traceback and reported with a
    generic message so internals never reach the client.
    """
    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        return Response(
            {'success': False, 'message': 'Internal server error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, Http404):
        message = 'Not found'
    elif isinstance(exc, DjangoPermissionDenied):
        message = 'Access denied'
    else:
        message = _first_message(getattr(exc, 'detail', response.data))

    payload = {'success': False, 'message': message}
    if isinstance(exc, ValidationError):
        payload['errors'] = response.data
    response.data = payload
    return response
