from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').
    Every subclass carries a machine-readable `code` and an HTTP status.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "business_error"

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class ValidationFailed(BusinessLogicException):
    default_code = "validation_error"


class NotFound(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class Conflict(BusinessLogicException):
    """
    Lost a race on a shared counter. Safe for the client to retry.
    """
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if isinstance(exc, BusinessLogicException):
        return Response(
            {"success": False, "error": exc.message, "code": exc.code},
            status=exc.status_code
        )

    # If response is None, it's an unhandled server error (500)
    if response is None:
        view = context.get("view")
        logger.error(
            "Unhandled Exception in %s: %s",
            view.__class__.__name__ if view else "unknown view",
            exc,
            exc_info=True,
        )
        return Response(
            {"success": False, "error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
