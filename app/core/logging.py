"""
Logging configuration.
Modules log through logging.getLogger(__name__); this only wires the root handler.
"""

import logging
import sys
from typing import Optional

from app.core.settings import settings


def setup_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.LOG_LEVEL or "INFO").upper()

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
