"""
Runtime configuration for rezcore tooling
Version tags are compiled in (rezcore.versions) and never configurable
"""

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
OUTPUT_FORMATS = ("table", "json")

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_OUTPUT_FORMAT = "table"


@dataclass(frozen=True)
class CoreConfig:
    """Settings read from REZCORE_* environment variables"""
    log_level: str = DEFAULT_LOG_LEVEL
    output_format: str = DEFAULT_OUTPUT_FORMAT


def _read_choice(env: Mapping[str, str], key: str, choices: tuple, default: str) -> str:
    raw = env.get(key)
    if raw is None or raw == "":
        return default

    value = raw.strip()
    value = value.upper() if choices is LOG_LEVELS else value.lower()
    if value not in choices:
        logger.warning(f"Invalid {key} '{raw}', defaulting to {default}")
        return default

    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> CoreConfig:
    """
    Load configuration from the environment

    Args:
        env: Mapping to read instead of os.environ (tests)

    Returns:
        CoreConfig with invalid values replaced by defaults
    """
    if env is None:
        env = os.environ

    return CoreConfig(
        log_level=_read_choice(env, "REZCORE_LOG_LEVEL", LOG_LEVELS, DEFAULT_LOG_LEVEL),
        output_format=_read_choice(env, "REZCORE_OUTPUT_FORMAT", OUTPUT_FORMATS, DEFAULT_OUTPUT_FORMAT),
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Install a single stream handler on the rezcore logger, replacing any earlier one"""
    root = logging.getLogger("rezcore")
    root.setLevel(level)

    for existing in [h for h in root.handlers if getattr(h, "_rezcore", False)]:
        root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._rezcore = True
    root.addHandler(handler)
