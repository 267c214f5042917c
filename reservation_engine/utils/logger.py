"""Process-wide logging setup and key=value context rendering."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from reservation_engine.utils.config import get_settings


_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler once; later calls are no-ops.

    Workflow lines follow `message | key=value | key=value` so conversion
    steps can be grepped by tenant, plan or campaign id.
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=_LOG_FORMAT,
        stream=sys.stdout,
    )
    _configured = True


def log_fields(**fields: object) -> str:
    """Render keyword context as pipe-separated `key=value` pairs; None values are skipped."""
    return " | ".join(f"{key}={value}" for key, value in fields.items() if value is not None)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
