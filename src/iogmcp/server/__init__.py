"""
HTTP server exposing the tool registry.
"""

from .app import create_app
from .main import IOGMCPServer, create_server, main

__all__ = ["create_app", "IOGMCPServer", "create_server", "main"]
