# =============================================================================
# Logging Configuration
# =============================================================================
#
# Every module logs through `logging.getLogger(__name__)`. This module only
# installs the root handler and level once, when the app is created.
#
# Noisy third-party loggers are capped at WARNING unless debug is on, so
# SQL echo and connection-pool chatter only show up when asked for.
# =============================================================================

from __future__ import annotations

import logging

from feedback_api.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "asyncio")


def configure_logging(settings: Settings) -> None:
    """Install the root handler and apply the configured level."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    if not settings.debug:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
