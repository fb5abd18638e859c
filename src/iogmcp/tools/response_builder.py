"""Response Builder Utilities
===========================

Uniform tool payloads: ``{"success": True, ...}`` on success and
``{"success": False, "error": message, "kind": kind}`` on failure.
"""

from typing import Any, Dict, Optional

from iogmcp.error_handler import ErrorHandler

__all__ = ["ResponseBuilder"]


class ResponseBuilder:
    """Builds the payloads returned by one tool.

    Failures go through the shared ``ErrorHandler`` so they are logged and
    counted under the tool's name.
    """

    def __init__(self, tool_name: str, error_handler: Optional[ErrorHandler] = None):
        self.tool_name = tool_name
        self.error_handler = error_handler or ErrorHandler()

    def success_response(self, **fields: Any) -> Dict[str, Any]:
        """Create a success payload carrying ``fields``."""
        return {"success": True, **fields}

    def error_response(self, error: Exception) -> Dict[str, Any]:
        """Create a failure payload from any exception."""
        return self.error_handler.tool_failure(error, component=self.tool_name)

    def from_service_result(self, result: Dict[str, Any], key: Optional[str] = None) -> Dict[str, Any]:
        """Convert a pricing-service result (``{"error": {...}}`` on failure).

        Args:
            result: Dict returned by a ``CryptoPricingService`` entry point
            key: Field to nest a successful result under; merged flat when None
        """
        error = result.get("error")
        if isinstance(error, dict):
            return {
                "success": False,
                "error": error.get("message", "Unknown error"),
                "kind": error.get("kind", "InternalError"),
            }
        if key is None:
            return self.success_response(**result)
        return self.success_response(**{key: result})
