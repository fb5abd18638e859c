"""
Main Server Module

Contains the server wrapper and the command-line entry point.
"""

import argparse
from typing import List, Optional

import uvicorn
from loguru import logger

from ..config import ToolServerConfig, auto_load_config, get_config_info, load_config
from .app import create_app


class IOGMCPServer:
    """Runs the FastAPI app under uvicorn."""

    def __init__(self, config: Optional[ToolServerConfig] = None):
        if config is None:
            logger.info("No config provided, auto-loading configuration...")
            config = auto_load_config()
        self.config = config
        self.app = None

    def create(self):
        """Create the FastAPI application."""
        self.app = create_app(self.config)
        logger.debug(f"Server configuration: {get_config_info(self.config)}")
        return self.app

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Run the server.

        Args:
            host: Host to bind to (defaults to config)
            port: Port to bind to (defaults to config)
        """
        if self.app is None:
            self.create()

        host = host or self.config.server.host
        port = port or self.config.server.port

        logger.info(f"Starting IOG MCP server on http://{host}:{port}")
        logger.info("   GET  /mcp/tools   - list available tools")
        logger.info("   POST /mcp/execute - execute a tool")
        logger.info("   GET  /health      - health check")

        # uvicorn has no SUCCESS level
        log_level = self.config.logging.level.lower()
        if log_level == "success":
            log_level = "info"
        uvicorn.run(self.app, host=host, port=port, log_level=log_level)


def create_server(config: Optional[ToolServerConfig] = None) -> IOGMCPServer:
    """Factory function to create a server instance."""
    return IOGMCPServer(config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='IOG MCP Tool Server')
    parser.add_argument('--host', type=str, default=None, help='Host to bind to')
    parser.add_argument('--port', type=int, default=None, help='Port to run server on')
    parser.add_argument('--config', type=str, help='Path to configuration file')
    parser.add_argument('--log-level', type=str, default=None, help='Log level (DEBUG, INFO, WARNING, ...)')
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the server with CLI support."""
    args = build_parser().parse_args(argv)

    if args.config:
        config = load_config(config_file=args.config)
    else:
        config = auto_load_config()

    if args.log_level:
        config = config.merge_with({"logging": {"level": args.log_level}})
    config.setup_logging()

    server = create_server(config)
    server.run(host=args.host, port=args.port)


if __name__ == '__main__':
    main()
