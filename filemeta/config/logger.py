"""
loguru setup for filemeta.

Loaders log through the module-level loguru ``logger`` and attach load
counters (files, table location, stage) via ``extra``. This module only
decides where those records go: stderr, as JSON lines for log shippers or
as colored text for local runs.
"""

import sys

from loguru import logger

from filemeta.config.settings import AppSettings, settings


def _text_formatter(record: dict) -> str:
    """Text format; the extra dict is appended only when a call supplied one."""
    base_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    if record["extra"]:
        base_format += " | {extra}"

    return base_format + "\n{exception}"


def setup_logging(app_settings: AppSettings | None = None) -> None:
    """Configure loguru logger.

    Sets up logging based on FILEMETA_LOG_LEVEL and FILEMETA_LOG_FORMAT:
    - text format: Pretty-printed colorful logs to stderr
    - json format: JSON-formatted logs to stderr for container logging

    Args:
        app_settings: Settings to read; defaults to the global instance.
    """
    cfg = app_settings or settings

    logger.remove()

    # Normalize log level to uppercase (loguru has no WARN alias)
    level = cfg.log_level.upper()
    if level == "WARN":
        level = "WARNING"

    if cfg.log_format == "text":
        logger.add(
            sys.stderr,
            format=_text_formatter,
            level=level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=level,
            serialize=True,
        )

    logger.info(f"Logging configured (level={level}, format={cfg.log_format})")
