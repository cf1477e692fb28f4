import json
import logging
import traceback

from django.http.request import RawPostDataException
from django.utils.deprecation import MiddlewareMixin

from .domain_logs import UserActivityLog, ErrorLog

logger = logging.getLogger(__name__)

# bulk commit bodies can hold thousands of rows; keep only the envelope
_MAX_PAYLOAD_CHARS = 20000


def _request_user(request):
    user = getattr(request, 'user', None)
    return user if user is not None and user.is_authenticated else None


def _json_payload(request):
    """Decoded JSON body, or None for uploads and non-JSON bodies."""
    if 'json' not in (request.content_type or ''):
        return None
    try:
        body = request.body
    except RawPostDataException:
        return None
    if not body:
        return None
    if len(body) > _MAX_PAYLOAD_CHARS:
        return {'truncated': True, 'size': len(body)}
    try:
        return json.loads(body.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        return None


class RequestActivityMiddleware(MiddlewareMixin):
    """Logs basic user activity for POST/PUT/PATCH/DELETE requests."""

    def process_response(self, request, response):
        if request.method not in ('POST', 'PUT', 'PATCH', 'DELETE'):
            return response
        try:
            match = getattr(request, 'resolver_match', None)
            UserActivityLog.objects.create(
                user=_request_user(request),
                module=match.url_name if match else None,
                action='API',
                path=request.path,
                method=request.method,
                payload=_json_payload(request),
                status_code=getattr(response, 'status_code', None),
            )
        except Exception:
            # an activity row is never worth failing the request for
            logger.exception('Failed to record activity for %s %s', request.method, request.path)
        return response


class ExceptionLoggingMiddleware(MiddlewareMixin):
    def process_exception(self, request, exception):
        try:
            ErrorLog.objects.create(
                user=_request_user(request),
                path=request.path,
                method=request.method,
                message=str(exception),
                stack=traceback.format_exc(),
                payload=_json_payload(request),
            )
        except Exception:
            logger.exception('Failed to record error log for %s', request.path)
        # returning None allows normal exception handling to continue
        return None
