"""
Main entry point for the iogmcp package.

Usage:
    python -m iogmcp [--host HOST] [--port PORT] [--config FILE] [--log-level LEVEL]
"""

from .server.main import main

if __name__ == '__main__':
    main()
