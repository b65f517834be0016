"""Logging initialization."""

from __future__ import annotations

import logging
import os

LOG_LEVEL = os.getenv("SHELLYRPC_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv(
    "SHELLYRPC_LOG_FORMAT",
    "%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
