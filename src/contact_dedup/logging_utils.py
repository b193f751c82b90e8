from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from .config_loader import PipelineConfig

LOG_LEVEL_ENV = "CONTACT_DEDUP_LOG_LEVEL"
PACKAGE_LOGGER = "contact_dedup"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LEVEL = logging.WARNING


def parse_level(value: Optional[str]) -> Optional[int]:
    """Numeric level for a level name or number, ``None`` when unrecognised."""
    text = (value or "").strip().upper()
    if not text:
        return None
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text)
    return level if isinstance(level, int) else None


def resolve_log_level(
    config: PipelineConfig, level_override: Optional[str] = None
) -> Tuple[int, str]:
    """
    Pick the level for the ``contact_dedup`` loggers and say where it came from.

    Precedence: ``CONTACT_DEDUP_LOG_LEVEL``, then ``level_override`` (the
    ``--log-level`` flag), then ``logging.level`` from the YAML config. A value
    that is set but not a level name is skipped in favour of the next one.
    """
    candidates = (
        (os.getenv(LOG_LEVEL_ENV), LOG_LEVEL_ENV),
        (level_override, "--log-level"),
        (config.logging.level, "config"),
    )
    for value, origin in candidates:
        level = parse_level(value)
        if level is not None:
            return level, origin
    return DEFAULT_LEVEL, "default"


def configure_logging(config: PipelineConfig, level_override: Optional[str] = None) -> int:
    """Attach a stream handler to the root logger once and set the package level.

    Only the ``contact_dedup`` logger hierarchy gets the resolved level; the
    root logger and third-party loggers keep theirs. Returns the level.
    """
    level, origin = resolve_log_level(config, level_override)
    if not logging.getLogger().handlers:
        logging.basicConfig(format=LOG_FORMAT)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    package_logger.debug("Log level %s from %s", logging.getLevelName(level), origin)
    return level
