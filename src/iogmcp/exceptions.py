"""
Custom exceptions for the IOG MCP tool server.

Every failure that crosses a tool boundary is reported as a structured
``{"kind": ..., "message": ...}`` value. The ``kind`` strings are part of the
public contract and must stay stable:

- ``InvalidInput``: malformed or out-of-range caller arguments (never retried)
- ``NotFound``: coin id (or persona/product) unknown to the source
- ``RateLimited``: upstream returned 429
- ``ProviderUnavailable``: network error, timeout or upstream 5xx
- ``ToolNotFound``: dispatcher has no handler for the requested tool
- ``InternalError``: anything unexpected
"""

from typing import Optional, Any, Dict


class IOGToolError(Exception):
    """
    Base exception for all tool server errors.

    Attributes:
        message: Human-readable error message
        kind: Machine-readable error kind
        context: Additional context information
        cause: Original exception, if any
    """

    kind: str = "InternalError"

    def __init__(self,
                 message: str,
                 context: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the structured error shape returned to callers."""
        return {
            "kind": self.kind,
            "message": self.message,
        }


class InvalidInputError(IOGToolError, ValueError):
    """Raised when caller arguments are malformed or out of range."""

    kind = "InvalidInput"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        context = {}
        if field is not None:
            context = {"field": field, "value": value}
        super().__init__(message, context=context)
        self.field = field


class InternalError(IOGToolError):
    """Raised for unexpected failures that are not part of the tool contract."""

    kind = "InternalError"


class ToolNotFoundError(IOGToolError):
    """Raised when the dispatcher has no handler registered for a tool name."""

    kind = "ToolNotFound"

    def __init__(self, tool_name: str, available_tools: Optional[list] = None):
        super().__init__(
            message=f"Tool '{tool_name}' not found",
            context={"requested_tool": tool_name, "available_tools": available_tools or []}
        )
        self.tool_name = tool_name


# Pricing provider errors

class PricingError(IOGToolError):
    """Base class for failures reported by the market-data provider."""
    pass


class NotFoundError(PricingError):
    """Raised when the provider does not recognize the requested identifier."""

    kind = "NotFound"

    def __init__(self, message: str, identifier: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(message, context={"identifier": identifier}, cause=cause)
        self.identifier = identifier


class RateLimitedError(PricingError):
    """Raised when the provider answers with HTTP 429."""

    kind = "RateLimited"

    def __init__(self, message: str, retry_after: Optional[float] = None, cause: Optional[Exception] = None):
        super().__init__(message, context={"retry_after": retry_after}, cause=cause)
        self.retry_after = retry_after


class ProviderUnavailableError(PricingError):
    """Raised on network errors, timeouts, invalid payloads and 5xx responses."""

    kind = "ProviderUnavailable"

    def __init__(self, message: str, status_code: Optional[int] = None, cause: Optional[Exception] = None):
        super().__init__(message, context={"status_code": status_code}, cause=cause)
        self.status_code = status_code


# Utility Functions

def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None
) -> IOGToolError:
    """
    Convert a generic exception to an appropriate IOGToolError.

    Args:
        exception: The original exception
        context: Additional context information

    Returns:
        Appropriate IOGToolError subclass
    """
    context = context or {}

    if isinstance(exception, IOGToolError):
        exception.context.update(context)
        return exception

    if isinstance(exception, TimeoutError):
        return ProviderUnavailableError(f"Operation timed out: {exception}", cause=exception)

    return InternalError(
        message=f"Unexpected error: {exception}",
        context={**context, "original_error_type": type(exception).__name__},
        cause=exception
    )

