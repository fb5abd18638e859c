"""
Tool registry and dispatch.

The registry is an explicit name -> ``ToolDefinition`` mapping built once at
startup by ``build_tool_registry`` and handed to the transport layer. There is
no module-level registry.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from loguru import logger

from iogmcp.config import ToolServerConfig
from iogmcp.error_handler import ErrorHandler
from iogmcp.exceptions import InvalidInputError, ToolNotFoundError
from iogmcp.tools.data_lookup import DataLookup
from iogmcp.tools.expression import evaluate_expression
from iogmcp.tools.response_builder import ResponseBuilder

__all__ = ["ToolDefinition", "ToolRegistry", "CoreTools", "build_tool_registry"]

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolDefinition:
    """A named tool: JSON-schema parameters plus its async handler."""

    name: str
    description: str
    parameters: Dict[str, Any]
    handler: ToolHandler

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class ToolRegistry:
    """Maps tool names to definitions and executes them."""

    def __init__(self, tools: Optional[Iterable[ToolDefinition]] = None, error_handler: Optional[ErrorHandler] = None):
        self._tools: Dict[str, ToolDefinition] = {}
        self.error_handler = error_handler or ErrorHandler()
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool '{tool.name}'")

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name, available_tools=self.names())

    def definitions(self) -> Dict[str, Dict[str, Any]]:
        """Tool definitions keyed by name, as served by ``/mcp/tools``."""
        return {name: tool.to_dict() for name, tool in self._tools.items()}

    async def execute(self, name: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a tool.

        Handler failures come back as ``{"success": False, ...}`` payloads.

        Raises:
            ToolNotFoundError: no tool registered under ``name``
        """
        tool = self.get(name)
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return self.error_handler.tool_failure(
                InvalidInputError("params must be an object", field="params"), component=name
            )

        logger.debug(f"Executing tool '{name}' with params {sorted(params)}")
        return await tool.handler(params)


class CoreTools:
    """Handlers for the built-in tools."""

    def __init__(self, pricing_service: Any, data_lookup: DataLookup, error_handler: ErrorHandler):
        self.pricing_service = pricing_service
        self.data_lookup = data_lookup
        self.error_handler = error_handler

    def _builder(self, tool_name: str) -> ResponseBuilder:
        return ResponseBuilder(tool_name, self.error_handler)

    async def calculator(self, params: Dict[str, Any]) -> Dict[str, Any]:
        builder = self._builder("calculator")
        try:
            expression = params.get("expression")
            if expression is None:
                raise InvalidInputError("expression is required", field="expression")
            return builder.success_response(result=evaluate_expression(expression))
        except Exception as e:
            return builder.error_response(e)

    async def search(self, params: Dict[str, Any]) -> Dict[str, Any]:
        # Placeholder until a real search backend is wired in
        query = params.get("query", "")
        return self._builder("search").success_response(results=[f"Search results for: {query}"])

    async def get_persona(self, params: Dict[str, Any]) -> Dict[str, Any]:
        builder = self._builder("getPersona")
        try:
            return builder.success_response(**self.data_lookup.get_persona(params.get("name")))
        except Exception as e:
            return builder.error_response(e)

    async def get_product(self, params: Dict[str, Any]) -> Dict[str, Any]:
        builder = self._builder("getProduct")
        try:
            result = self.data_lookup.get_product(params.get("name"), detailed=bool(params.get("detailed")))
            return builder.success_response(**result)
        except Exception as e:
            return builder.error_response(e)

    async def crypto_price(self, params: Dict[str, Any]) -> Dict[str, Any]:
        builder = self._builder("cryptoPrice")
        action = params.get("action")

        if action == "getPrice":
            result = await self.pricing_service.price_lookup(params.get("coinId"), params.get("currencies"))
            return builder.from_service_result(result, key="priceData")

        if action == "search":
            result = await self.pricing_service.coin_search(params.get("query", ""), limit=params.get("limit"))
            return builder.from_service_result(result)

        if action == "calculateStaking":
            staking_params = {
                key: params[key]
                for key in ("amount", "years", "apy", "coinId", "currency")
                if params.get(key) is not None
            }
            result = await self.pricing_service.staking_projection(staking_params)
            return builder.from_service_result(result, key="stakingResults")

        return builder.error_response(
            InvalidInputError(f"Unknown action: {action}", field="action", value=action)
        )


TOOL_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "calculator": {
        "description": "Performs mathematical calculations",
        "parameters": {
            "type": "object",
            "properties": {
                "expression": {
                    "type": "string",
                    "description": "The arithmetic expression to evaluate (+, -, *, /, %, ** and parentheses)",
                },
            },
            "required": ["expression"],
        },
    },
    "search": {
        "description": "Searches for information",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query"},
            },
            "required": ["query"],
        },
    },
    "getPersona": {
        "description": "Retrieves information about IOG personas",
        "parameters": {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": 'The name of the persona to retrieve, or "all" for all personas',
                },
            },
        },
    },
    "getProduct": {
        "description": "Retrieves information about IOG products",
        "parameters": {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": 'The name of the product to retrieve, or "all" for all products',
                },
                "detailed": {
                    "type": "boolean",
                    "description": "Whether to retrieve detailed information about the product",
                },
            },
        },
    },
    "cryptoPrice": {
        "description": "Cryptocurrency pricing and staking calculator",
        "parameters": {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "description": "Action to perform: getPrice, search, or calculateStaking",
                    "enum": ["getPrice", "search", "calculateStaking"],
                },
                "coinId": {
                    "type": "string",
                    "description": 'CoinGecko ID of the cryptocurrency (e.g., "cardano" for ADA)',
                },
                "currencies": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": 'Currency codes for price conversion (e.g., ["usd", "eur"])',
                },
                "query": {
                    "type": "string",
                    "description": "Search query for finding cryptocurrencies (only for search action)",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of search results (only for search action)",
                },
                "amount": {
                    "type": "number",
                    "description": "Amount of cryptocurrency for staking calculations",
                },
                "years": {
                    "type": "number",
                    "description": "Duration in years for staking calculations",
                },
                "apy": {
                    "type": "number",
                    "description": "Annual percentage yield for staking (e.g., 5 for 5%)",
                },
                "currency": {
                    "type": "string",
                    "description": 'Currency for price display in staking calculations (default: "usd")',
                },
            },
            "required": ["action"],
        },
    },
}


def build_tool_registry(
    config: ToolServerConfig,
    pricing_service: Any,
    data_lookup: Optional[DataLookup] = None,
    error_handler: Optional[ErrorHandler] = None,
) -> ToolRegistry:
    """Create the registry holding every built-in tool."""
    error_handler = error_handler or ErrorHandler()
    core = CoreTools(pricing_service, data_lookup or DataLookup(config.data), error_handler)

    handlers: Dict[str, ToolHandler] = {
        "calculator": core.calculator,
        "search": core.search,
        "getPersona": core.get_persona,
        "getProduct": core.get_product,
        "cryptoPrice": core.crypto_price,
    }

    registry = ToolRegistry(
        (
            ToolDefinition(
                name=name,
                description=TOOL_SCHEMAS[name]["description"],
                parameters=TOOL_SCHEMAS[name]["parameters"],
                handler=error_handler.boundary(name)(handler),
            )
            for name, handler in handlers.items()
        ),
        error_handler=error_handler,
    )
    logger.info(f"Tool registry built with {len(registry.names())} tools: {', '.join(registry.names())}")
    return registry
