"""Logging utilities."""

import logging
import sys
from typing import Optional, TextIO

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"


def setup_logging(
    level: int = logging.INFO,
    format_str: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Setup logging for the repair agent.

    Args:
        level: Logging level (default: INFO)
        format_str: Custom format string
        stream: Where log records go (default: stdout). Commands that print
            machine-readable output on stdout pass stderr here.

    Returns:
        Configured "repair_agent" logger
    """
    logging.basicConfig(
        level=level,
        format=format_str or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(stream or sys.stdout)],
    )

    logger = logging.getLogger("repair_agent")
    logger.setLevel(level)

    return logger


def get_logger(name: str = "repair_agent") -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
