"""API error taxonomy and the project-wide DRF exception handler.

Row-level upload problems are never raised; they are collected as
`excel_import.validator.ValidationIssue` values. Everything here aborts the
single operation it is raised from.
"""
import logging

from django.db import InterfaceError, OperationalError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ConflictError(APIException):
    """Duplicate name/code, or a delete blocked by live dependents."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with existing data.'
    default_code = 'conflict'

    def __init__(self, detail=None, blockers=None):
        super().__init__(detail)
        self.blockers = blockers or {}


class NotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class BulkUploadError(APIException):
    """The uploaded file as a whole cannot be previewed."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The uploaded file could not be processed.'
    default_code = 'bulk_upload_error'


class UnsupportedUploadError(BulkUploadError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_detail = 'Unsupported file type. Use .xlsx, .xls, or .csv'
    default_code = 'unsupported_upload'


class UploadTooLargeError(BulkUploadError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = 'File too large.'
    default_code = 'upload_too_large'


class TransientDatabaseError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The database is temporarily unavailable. Please retry.'
    default_code = 'database_unavailable'


def api_exception_handler(exc, context):
    """Wrap DRF's handler so every error body is `{"success": false, "detail": ...}`."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.exception('Transient database error in %s', context.get('view').__class__.__name__)
        exc = TransientDatabaseError()

    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and 'detail' in data:
        body = {'success': False, 'detail': data['detail']}
    else:
        body = {'success': False, 'detail': 'Invalid request.', 'errors': data}
    if isinstance(exc, ConflictError) and exc.blockers:
        body['blockers'] = exc.blockers
    return Response(body, status=response.status_code, headers=_passthrough_headers(response))


def _passthrough_headers(response):
    headers = {}
    for key in ('WWW-Authenticate', 'Retry-After'):
        if response.has_header(key):
            headers[key] = response[key]
    return headers
