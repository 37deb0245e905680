"""Logging setup shared by the API server and the document engine."""
from __future__ import annotations

import logging
import os
from typing import Optional


def configure_logging(level: Optional[str] = None) -> None:
    """Initialize basic logging with a shared format and log level.

    The level can be given directly or through the ``RP_LOG_LEVEL``
    environment variable (defaults to ``INFO``).
    """

    resolved_level = (level or os.getenv("RP_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
