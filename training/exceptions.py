"""
Exceptions raised by the training service layer and their API mapping.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class TrainingError(Exception):
    """Base exception class for the training app"""
    def __init__(self, message="Training service error"):
        self.message = message
        super().__init__(self.message)


class SessionNotFound(TrainingError):
    """Raised when a session does not exist in the academy"""
    def __init__(self, message="Session not found"):
        super().__init__(message)


class PlayerNotFound(TrainingError):
    """Raised when a player does not exist in the academy"""
    def __init__(self, message="Player not found"):
        super().__init__(message)


class StoreUnavailable(TrainingError):
    """Raised when the document store keeps failing after retries"""
    def __init__(self, message="Document store unavailable"):
        super().__init__(message)


class MalformedSessionError(TrainingError):
    """Raised when a stored session document cannot be parsed"""
    def __init__(self, message="Malformed session document"):
        super().__init__(message)


_STATUS_CODES = {
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    PlayerNotFound: status.HTTP_404_NOT_FOUND,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    MalformedSessionError: status.HTTP_400_BAD_REQUEST,
}


def api_exception_handler(exc, context):
    """DRF exception handler that also understands service-layer errors."""
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, TrainingError):
        code = _STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        if code >= 500:
            logger.error("Request failed: %s", exc.message)
        return Response({'detail': exc.message}, status=code)

    if isinstance(exc, ValueError):
        return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    return None
