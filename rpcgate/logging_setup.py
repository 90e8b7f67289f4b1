"""
Logging setup for the proxy
"""

import logging
from typing import Optional

from .config import DEFAULT_LOG_LEVEL


def setup_logging(log_level: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Log level name (DEBUG, INFO, WARNING, ERROR)
    """
    level_name = (log_level or DEFAULT_LOG_LEVEL).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root.addHandler(handler)

    # Request bodies are logged by the proxy itself
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    root.info("Logging configured: level=%s", logging.getLevelName(level))
