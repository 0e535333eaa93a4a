"""Domain Errors

Error taxonomy shared by the services and the web routes.
"""
from typing import Any, Dict, Optional


class HotelClientError(Exception):
    """Base class for every error raised by the hotel client"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(HotelClientError, ValueError):
    """Input rejected locally, before any remote call"""


class AvailabilityConflictError(HotelClientError):
    """The room is no longer free for the requested range"""


class RemoteRequestError(HotelClientError):
    """Transport or server failure while talking to the hotel API"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.server_message = server_message


class UnauthenticatedError(RemoteRequestError):
    """Session rejected by the hotel API; no local recovery possible"""

    def __init__(self, message: str = "Unauthenticated.", **kwargs):
        kwargs.setdefault("status_code", 401)
        super().__init__(message, **kwargs)


class RequestCancelledError(HotelClientError):
    """A query was superseded by a newer one or torn down"""

    def __init__(self, message: str = "Request cancelled", **kwargs):
        super().__init__(message, **kwargs)


def user_message(error: Exception, fallback: str) -> str:
    """Message to show the user: the server's own words when present"""
    if isinstance(error, RemoteRequestError) and error.server_message:
        return error.server_message
    if isinstance(error, (ValidationError, AvailabilityConflictError)):
        return error.message
    return fallback
