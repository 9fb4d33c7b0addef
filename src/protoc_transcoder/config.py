"""Configuration constants and logging setup."""

from __future__ import annotations

import logging
import os
from typing import Optional

# Nesting depth used when generating default messages.
DEFAULT_MAX_DEPTH = 2

WELL_KNOWN_PACKAGE = "google.protobuf"
WELL_KNOWN_IMPORT_PREFIX = "google/protobuf/"

# Text format and .proto rendering indent, one per nesting level.
INDENT = "  "

PROTOC_ENV_VAR = "PROTOC_TRANSCODER_PROTOC"
LOG_LEVEL_ENV_VAR = "PROTOC_TRANSCODER_LOG_LEVEL"

LOG_FORMAT = "[%(levelname)s] %(message)s"
DEBUG_LOG_FORMAT = "[%(levelname)s] [%(name)s:%(lineno)d] %(message)s"


def protoc_executable() -> str:
    """Return the protoc binary to invoke, honouring the environment override."""
    return os.environ.get(PROTOC_ENV_VAR) or "protoc"


def resolve_log_level(verbosity: int = 0) -> int:
    """Map CLI verbosity onto a logging level.

    Without -v flags the level comes from the environment (default WARNING).
    """
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    name = os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(verbosity: int = 0, level: Optional[int] = None) -> None:
    if level is None:
        level = resolve_log_level(verbosity)
    logging.basicConfig(
        level=level,
        format=DEBUG_LOG_FORMAT if level <= logging.DEBUG else LOG_FORMAT,
    )
