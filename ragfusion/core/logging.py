"""
Logging setup shared by the scripts and the API app.
"""

import logging
import sys


def configure_logging(level: int | str = "INFO") -> None:
    """
    Attach a stderr handler to the ``ragfusion`` logger once and set its level.

    Args:
        level: Log level name or number (DEBUG, INFO, WARNING, ...)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger("ragfusion")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root.addHandler(handler)
    root.setLevel(level)
