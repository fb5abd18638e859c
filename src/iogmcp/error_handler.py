"""
Error handling utilities for the IOG MCP tool server.

This module turns exceptions raised inside tool handlers into the structured
error payloads returned to callers, with consistent logging and statistics.
"""

import asyncio
import traceback
from functools import wraps
from typing import Optional, Dict, Any, Callable, Awaitable

from loguru import logger

from iogmcp.exceptions import IOGToolError, InternalError, handle_exception


class ErrorHandler:
    """Converts, logs and counts errors raised at a tool boundary."""

    def __init__(self, enable_detailed_logging: bool = True):
        self.enable_detailed_logging = enable_detailed_logging
        self.error_stats = {
            "total_errors": 0,
            "errors_by_kind": {},
            "errors_by_component": {}
        }

    def handle_error(self,
                     error: Exception,
                     component: str = "unknown",
                     context: Optional[Dict[str, Any]] = None,
                     reraise: bool = True) -> Optional[IOGToolError]:
        """
        Handle an error with consistent logging and statistics tracking.

        Args:
            error: The exception that occurred
            component: Component where error occurred
            context: Additional context
            reraise: Whether to re-raise the converted error after handling

        Returns:
            IOGToolError if not re-raising

        Raises:
            IOGToolError: If reraise=True
        """
        tool_error = handle_exception(error, context=context or {})

        self.error_stats["total_errors"] += 1
        self.error_stats["errors_by_kind"][tool_error.kind] = \
            self.error_stats["errors_by_kind"].get(tool_error.kind, 0) + 1
        self.error_stats["errors_by_component"][component] = \
            self.error_stats["errors_by_component"].get(component, 0) + 1

        self._log_error(tool_error, component)

        if reraise:
            raise tool_error
        return tool_error

    def _log_error(self, error: IOGToolError, component: str):
        """Log an error with appropriate detail level."""
        # Caller mistakes are expected traffic, not server faults
        if error.kind in ("InvalidInput", "NotFound", "ToolNotFound"):
            logger.info(f"[{component}] {error.kind}: {error.message}")
        elif isinstance(error, InternalError):
            logger.error(f"[{component}] {error.message}")
        else:
            logger.warning(f"[{component}] {error.kind}: {error.message}")

        if self.enable_detailed_logging:
            if error.context:
                logger.debug(f"Error context: {error.context}")

            if error.cause is not None and isinstance(error, InternalError):
                logger.debug("Traceback:")
                for line in traceback.format_exception(
                    type(error.cause), error.cause, error.cause.__traceback__
                ):
                    logger.debug(line.strip())

    def tool_failure(self, error: Exception, component: str) -> Dict[str, Any]:
        """Handle ``error`` and return the ``{"success": False, ...}`` tool payload."""
        tool_error = self.handle_error(error, component=component, reraise=False)
        return {
            "success": False,
            "error": tool_error.message,
            "kind": tool_error.kind,
        }

    def boundary(self, component: str) -> Callable:
        """
        Decorator for async tool handlers: exceptions become failure payloads.

        Cancellation is never swallowed.
        """
        def decorator(func: Callable[..., Awaitable[Dict[str, Any]]]) -> Callable[..., Awaitable[Dict[str, Any]]]:
            @wraps(func)
            async def wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    return self.tool_failure(e, component)
            return wrapper
        return decorator

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        return {
            "total_errors": self.error_stats["total_errors"],
            "errors_by_kind": dict(self.error_stats["errors_by_kind"]),
            "errors_by_component": dict(self.error_stats["errors_by_component"]),
        }
