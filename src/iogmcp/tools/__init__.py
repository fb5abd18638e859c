"""
Tools exposed by the server: calculator, search, persona/product lookup and
cryptocurrency pricing.
"""

from .expression import evaluate_expression
from .data_lookup import DataLookup
from .response_builder import ResponseBuilder
from .registry import ToolDefinition, ToolRegistry, CoreTools, build_tool_registry

__all__ = [
    "evaluate_expression",
    "DataLookup",
    "ResponseBuilder",
    "ToolDefinition",
    "ToolRegistry",
    "CoreTools",
    "build_tool_registry",
]
