"""Error taxonomy for the Tally MCP server.

Every failure the query client can raise is a subclass of TallyMcpError and
carries a JSON-RPC style code, so the MCP shell can turn any of them into a
structured report without matching on message strings.
"""

from typing import Any, Dict, List, Optional

from tallymcp.domain.models.common import ErrorReport

# JSON-RPC 2.0 codes plus the server's custom range
INVALID_REQUEST = -32600
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
NETWORK_ERROR_CODE = -32001
AUTHENTICATION_ERROR_CODE = -32003
RATE_LIMIT_ERROR_CODE = -32004
QUERY_ERROR_CODE = -32005

DEFAULT_RETRY_AFTER_SECONDS = 60


class TallyMcpError(Exception):
    """Base error with a code and optional structured data."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Any] = None, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.data = data
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "data": self.data,
        }


class ValidationError(TallyMcpError):
    """Malformed query text, missing required variables or invalid tool input."""

    code = INVALID_PARAMS

    def __init__(self, message: str, validation_errors: Optional[List[Any]] = None):
        super().__init__(message, data=validation_errors)
        self.validation_errors = validation_errors or []


class ConfigValidationError(ValidationError):
    """Configuration could not be loaded or failed validation."""

    def __init__(self, message: str, validation_errors: Optional[List[Any]] = None):
        super().__init__(f"Configuration validation error: {message}", validation_errors)


class NetworkError(TallyMcpError):
    """Transport failure, timeout, non-2xx response or undecodable body."""

    code = NETWORK_ERROR_CODE

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, data={"status": status_code} if status_code is not None else None)
        self.status_code = status_code


class AuthenticationError(TallyMcpError):
    """The credential holder could not supply a token."""

    code = AUTHENTICATION_ERROR_CODE


class RateLimitError(TallyMcpError):
    """Self-imposed admission denial or an upstream 429."""

    code = RATE_LIMIT_ERROR_CODE

    def __init__(self, message: str, retry_after: int = DEFAULT_RETRY_AFTER_SECONDS, limit: Optional[int] = None):
        super().__init__(message, data={"retryAfter": retry_after, "limit": limit})
        self.retry_after = retry_after
        self.limit = limit


class QueryError(TallyMcpError):
    """A decoded response whose body carries application-level errors."""

    code = QUERY_ERROR_CODE

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message, data={"errors": errors or []})
        self.errors = errors or []


class ResourceNotFoundError(TallyMcpError):
    """A resource URI resolved to nothing upstream."""

    code = INTERNAL_ERROR

    def __init__(self, uri: str):
        super().__init__(f"Resource not found: {uri}", data={"uri": uri})
        self.uri = uri


def is_known_error(error: Any) -> bool:
    """Returns True for errors raised by this package."""
    return isinstance(error, TallyMcpError)


def format_mcp_error(error: Any) -> ErrorReport:
    """Formats any error into a JSON-RPC style report.

    Args:
        error: The exception (or arbitrary value) to format.

    Returns:
        A dict with ``code``, ``message`` and ``data`` keys.
    """
    if error is None:
        return {"code": INTERNAL_ERROR, "message": "Internal error", "data": None}

    if isinstance(error, TallyMcpError):
        return {"code": error.code, "message": error.message, "data": error.data}

    if isinstance(error, Exception):
        return {
            "code": INTERNAL_ERROR,
            "message": "Internal error",
            "data": {"originalMessage": str(error)},
        }

    return {"code": INTERNAL_ERROR, "message": "Internal error", "data": {"error": error}}
