from typing import Any, Optional

from .types import APIError, ErrorEntry


class AgnostError(Exception):
    """Base exception for all Agnost client errors."""

    code = "client_error"
    origin = "client_error"
    status = 400
    status_text = "Bad Request"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_entry(self) -> ErrorEntry:
        return ErrorEntry(
            origin=self.origin,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )

    def to_api_error(self) -> APIError:
        """Wrap the error in the result envelope shared by every public call."""
        return APIError(
            status=self.status,
            status_text=self.status_text,
            items=[self.to_entry()],
        )


class ClientError(AgnostError):
    """Raised when the client is misconfigured or called with bad arguments."""


class InvalidAPIKeyError(ClientError):
    """Raised when API key is invalid or missing."""

    code = "invalid_client_key"

    def __init__(self) -> None:
        super().__init__(
            "Missing API key. Pass `api_key` to AgnostClient() or set the AGNOST_API_KEY environment variable."
        )


class InvalidBaseURLError(ClientError):
    """Raised when base URL is invalid."""

    code = "missing_required_value"

    def __init__(self, url: Optional[str] = None) -> None:
        message = "baseUrl is a required parameter and needs to start with http(s)://"
        super().__init__(f"{message} (got {url!r})" if url else message)


class InvalidOptionsError(ClientError):
    code = "invalid_options"


class InvalidValueError(ClientError):
    """Raised when a realtime argument fails validation."""

    code = "invalid_value"


class SessionRequiredError(AgnostError):
    """Raised when realtime requires a session and none is available."""

    code = "session_required"
    status = 401
    status_text = "Unauthorized"

    def __init__(self, message: str = "An active user session is required to open a realtime connection") -> None:
        super().__init__(message)


class SessionExpiredError(AgnostError):
    """Raised when the server invalidates the session of a live connection."""

    code = "session_expired"
    origin = "server_error"
    status = 401
    status_text = "Unauthorized"

    def __init__(self, message: str = "The user session is no longer valid", cause: Optional[Exception] = None) -> None:
        super().__init__(message, cause=cause)


class NotConnectedError(AgnostError):
    """Raised when a realtime operation cannot be sent or buffered."""

    code = "not_connected"
    status = 503
    status_text = "Service Unavailable"

    def __init__(self, message: str = "Realtime connection is not established") -> None:
        super().__init__(message)


class ConnectionTimeoutError(AgnostError):
    """Raised when a connection attempt exceeds the configured timeout."""

    code = "connection_timeout"
    status = 504
    status_text = "Gateway Timeout"

    def __init__(self, timeout_ms: float) -> None:
        super().__init__(
            f"Realtime connection attempt timed out after {timeout_ms:g}ms",
            details={"timeout": timeout_ms},
        )


class TransportError(AgnostError):
    """Raised when the underlying websocket fails."""

    code = "transport_error"
    status = 503
    status_text = "Service Unavailable"

    def __init__(
        self,
        message: str = "Realtime transport error",
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)


class ListenerError(AgnostError):
    """Reported when a registered realtime callback raises."""

    code = "listener_error"

    def __init__(self, event: str, cause: Exception) -> None:
        super().__init__(
            f"Listener for '{event}' raised {cause.__class__.__name__}: {cause}",
            details={"event": event},
            cause=cause,
        )
        self.event = event


class ServerError(AgnostError):
    """Error frame reported by the realtime server."""

    origin = "server_error"
    status = 500
    status_text = "Internal Server Error"


class BufferFullError(AgnostError):
    """Raised when the outbound buffer is full and rejects new envelopes."""

    code = "buffer_full"
    status = 503
    status_text = "Service Unavailable"

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Outbound message buffer is full ({limit} envelopes)",
            details={"limit": limit},
        )


class UnsupportedFileError(ClientError):
    """Raised when a file body cannot be uploaded."""

    code = "unsupported_file_format"


RECOVERABLE_ERRORS = (ConnectionTimeoutError, TransportError)


def is_recoverable(exception: BaseException) -> bool:
    return isinstance(exception, RECOVERABLE_ERRORS)
