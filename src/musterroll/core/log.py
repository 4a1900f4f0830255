"""Process-wide logging setup."""

from __future__ import annotations

import logging

from musterroll.core.config import AppSettings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: AppSettings | None = None) -> None:
    """Apply ``settings.log_level`` to the root logger."""
    if settings is None:
        settings = AppSettings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("musterroll").setLevel(level)
    # botocore is chatty at INFO
    logging.getLogger("botocore").setLevel(max(level, logging.WARNING))
