"""
Errors raised by the impCentral client library.

- InvalidDataError: the library detected a problem before talking to the
  server (invalid argument, unknown LogStream id, missing access token) or
  the request could not be sent at all.
- ImpCentralApiError: the server rejected a request, or a LogStream
  connection reported a transport error with an HTTP status.
"""

from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


class ImpCentralError(Exception):
    """Base class for all library errors."""


class InvalidDataError(ImpCentralError):
    """Local precondition violation. The details are in the message."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Invalid data error")


class InvalidStateError(ImpCentralError):
    """Internal bookkeeping found itself in an impossible state."""


class ImpCentralApiError(ImpCentralError):
    """
    HTTP request to impCentral API failed.

    Attributes:
        status_code: HTTP status reported by the server or the event stream,
            None when there was no response at all (e.g. open timeout)
        body: Decoded error body, in the API's {"errors": [...]} shape when
            the server provided one
    """

    def __init__(self, message: Optional[str] = None,
                 status_code: Optional[int] = None, body: Any = None):
        super().__init__(message or "impCentral API error")
        self.status_code = status_code
        self.body = body
        logger.error(f"HTTP/{status_code}: {self}")
