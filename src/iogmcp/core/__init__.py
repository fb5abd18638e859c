from .logging_config import setup_logging, format_record

__all__ = ["setup_logging", "format_record"]
