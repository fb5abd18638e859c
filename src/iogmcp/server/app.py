"""
FastAPI transport for the tool registry.

Endpoints:
- ``GET  /mcp/tools``   tool definitions
- ``POST /mcp/execute`` run a tool: ``{"tool": name, "params": {...}}``
- ``GET  /health``      liveness plus cache statistics
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from iogmcp import __version__
from iogmcp.config import ToolServerConfig
from iogmcp.error_handler import ErrorHandler
from iogmcp.exceptions import ToolNotFoundError
from iogmcp.pricing import CryptoPricingService
from iogmcp.tools import ToolRegistry, build_tool_registry


class ExecuteRequest(BaseModel):
    tool: Optional[str] = None
    params: Optional[Any] = None


def create_app(
    config: Optional[ToolServerConfig] = None,
    pricing_service: Optional[CryptoPricingService] = None,
    registry: Optional[ToolRegistry] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    The pricing service and registry are created in the lifespan hook unless
    supplied; only what the app created is closed on shutdown.
    """
    config = config or ToolServerConfig()
    error_handler = ErrorHandler()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_service = pricing_service is None
        service = pricing_service or CryptoPricingService(config, error_handler=error_handler)
        service.start_background_tasks()

        app.state.pricing_service = service
        app.state.registry = registry or build_tool_registry(config, service, error_handler=error_handler)
        logger.success(f"IOG MCP server ready with tools: {', '.join(app.state.registry.names())}")

        yield

        logger.info("Shutting down IOG MCP server...")
        if owns_service:
            await service.aclose()

    app = FastAPI(
        title="IOG MCP Tool Server",
        description="Calculator, persona/product lookup and cryptocurrency pricing tools",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/mcp/tools")
    async def list_tools(request: Request) -> Dict[str, Any]:
        """Tool definitions keyed by name."""
        return {"tools": request.app.state.registry.definitions()}

    @app.post("/mcp/execute")
    async def execute_tool(body: ExecuteRequest, request: Request):
        """Execute a tool and return its payload."""
        if not body.tool:
            return JSONResponse(status_code=400, content={"error": "Tool name is required"})

        registry: ToolRegistry = request.app.state.registry
        try:
            return await registry.execute(body.tool, body.params)
        except ToolNotFoundError as e:
            error_handler.handle_error(e, component="server", reraise=False)
            return JSONResponse(status_code=404, content={"error": e.message})
        except Exception as e:
            tool_error = error_handler.handle_error(e, component="server", reraise=False)
            return JSONResponse(status_code=500, content={"error": tool_error.message})

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        """Health check with tool names and pricing statistics."""
        service: CryptoPricingService = request.app.state.pricing_service
        return {
            "status": "healthy",
            "version": __version__,
            "tools": request.app.state.registry.names(),
            "pricing": service.stats(),
            "errors": error_handler.get_error_stats(),
        }

    return app
