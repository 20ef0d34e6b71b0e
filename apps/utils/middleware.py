import logging
import time
from django.utils.deprecation import MiddlewareMixin
from django.http import JsonResponse

logger = logging.getLogger("django")


class GlobalExceptionMiddleware(MiddlewareMixin):
    """
    Last line of defense for non-DRF views.
    """
    def process_exception(self, request, exception):
        logger.exception(f"Unhandled Middleware Exception: {str(exception)}")
        if request.path.startswith('/api/'):
            return JsonResponse(
                {"success": False, "error": "Internal Server Error", "code": "server_error"},
                status=500
            )
        return None  # Let Django's default 500 handler work for HTML


class RequestLogMiddleware(MiddlewareMixin):
    """
    One log line per API request: method, path, status, duration.
    """
    def process_request(self, request):
        request._log_started = time.monotonic()

    def process_response(self, request, response):
        started = getattr(request, "_log_started", None)
        if started is not None and request.path.startswith('/api/'):
            user = getattr(request, "user", None)
            logger.info(
                "%s %s -> %s (%.1fms)",
                request.method,
                request.path,
                response.status_code,
                (time.monotonic() - started) * 1000,
                extra={"user_id": str(user.pk) if user is not None and user.is_authenticated else None},
            )
        return response
