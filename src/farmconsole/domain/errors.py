"""Classified API errors raised to callers of the client"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of a failed call"""

    UNAUTHORIZED = "unauthorized"
    CLIENT_ERROR = "client_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"


class ApiError(Exception):
    """Base class for every terminal error the client raises.

    Attributes:
        message: Human-readable text, meant to be shown as-is
        status: HTTP status code, or None when no response was received
    """

    kind: ErrorKind = ErrorKind.CLIENT_ERROR

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status!r})"


class Unauthorized(ApiError):
    """Session is missing, invalid or expired (HTTP 401)"""

    kind = ErrorKind.UNAUTHORIZED


class ClientError(ApiError):
    """Request rejected by the server (4xx other than 401/429)"""

    kind = ErrorKind.CLIENT_ERROR


class RateLimited(ApiError):
    """Server asked us to slow down (HTTP 429)"""

    kind = ErrorKind.RATE_LIMITED


class ServerError(ApiError):
    """Server-side failure (5xx)"""

    kind = ErrorKind.SERVER_ERROR


class NetworkError(ApiError):
    """The server could not be reached"""

    kind = ErrorKind.NETWORK_ERROR


class ParseError(ApiError):
    """Response body was not what the client expected"""

    kind = ErrorKind.PARSE_ERROR


ERRORS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: Unauthorized,
    ErrorKind.CLIENT_ERROR: ClientError,
    ErrorKind.RATE_LIMITED: RateLimited,
    ErrorKind.SERVER_ERROR: ServerError,
    ErrorKind.NETWORK_ERROR: NetworkError,
    ErrorKind.PARSE_ERROR: ParseError,
}
