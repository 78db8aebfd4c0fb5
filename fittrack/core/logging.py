"""
Logging setup shared by the API process and the reminder loop.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once with the service-wide format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request at INFO, which drowns out callback tracing.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
