"""
Logging configuration for the IOG MCP tool server.

Readable console output with loguru plus an optional rotating file sink.
"""

import re
import sys
from typing import Dict, Optional, Callable

from loguru import logger


def format_record(record: Dict) -> str:
    """
    Clean format - just the message, coloured by level.
    """
    message = record["message"]

    # Escape curly braces so loguru does not treat them as format fields
    message = message.replace("{", "{{").replace("}", "}}")
    # Tags inside messages would be parsed as colour markup
    message = message.replace("<", r"\<")

    level = record["level"].name
    if level in ("DEBUG", "TRACE"):
        return f"<dim>{message}</dim>\n"

    message = re.sub(r'^[\w\.]+:\d+ - ', '', message)

    if level in ["ERROR", "CRITICAL"]:
        return f"<red>{message}</red>\n"
    elif level == "WARNING":
        return f"<yellow>{message}</yellow>\n"
    elif level == "SUCCESS":
        return f"<green><bold>{message}</bold></green>\n"
    return f"{message}\n"


def get_console_format(style: str = "clean"):
    """Get console format based on style preference."""
    if style == "timestamp":
        return "<dim>{time:HH:mm:ss}</dim> | <level>{message}</level>"
    elif style == "detailed":
        return "<green>{time:HH:mm:ss}</green> | <level>{level: <5}</level> | <dim>{name}</dim> | <level>{message}</level>"
    return format_record


def setup_logging(config: 'LoggingConfig', console_filter: Optional[Callable] = None):
    """
    Set up logging sinks.

    Args:
        config: LoggingConfig instance
        console_filter: Optional filter function for console output
    """
    logger.remove()

    if config.enable_console:
        logger.add(
            sys.stderr,
            format=get_console_format(config.console_style),
            level=config.level,
            colorize=True,
            filter=console_filter,
            backtrace=True,
            diagnose=False,
        )

    if config.enable_file:
        log_path = config.get_log_file_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name: <30} | "
            "{function: <20} | "
            "{message}"
        )

        logger.add(
            str(log_path),
            format=file_format,
            level=config.level,
            rotation=config.file_rotation,
            retention=config.file_retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    logger.debug(f"Logging configured: level={config.level}")
