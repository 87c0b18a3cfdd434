from __future__ import annotations

import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import cast

from loguru import logger as loguru_logger

from .settings import Settings, load_settings

_LOGGING_CONFIGURED = False
_EXTRA_KEYS = ("task", "kind", "step")


def _loguru_level(record: logging.LogRecord) -> str | int:
    try:
        return loguru_logger.level(record.levelname).name
    except ValueError:
        return record.levelno


class _InterceptHandler(logging.Handler):
    """Forward stdlib records into loguru, tagged with the emitting stdlib logger name."""

    def emit(self, record: logging.LogRecord) -> None:
        # Skip logging's own frames so loguru reports the real call site.
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame, depth = frame.f_back, depth + 1
        loguru_logger.bind(source=record.name).opt(depth=depth, exception=record.exc_info).log(
            _loguru_level(record), record.getMessage()
        )


def _patch_record(record: dict[str, object]) -> None:
    extra = cast(dict[str, object], record["extra"])
    for key in _EXTRA_KEYS:
        extra[key] = str(extra.get(key, "-") or "-").strip() or "-"


def setup_logging(settings: Settings | None = None) -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    config = settings or load_settings()

    loguru_logger.remove()
    loguru_logger.configure(patcher=_patch_record)
    format_text = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "task=<yellow>{extra[task]}</yellow> "
        "kind=<cyan>{extra[kind]}</cyan> "
        "step=<magenta>{extra[step]}</magenta> | "
        "{message}"
    )
    loguru_logger.add(
        sys.stderr,
        level=config.log_level,
        format=format_text,
        colorize=not config.log_json,
        serialize=config.log_json,
        backtrace=True,
        diagnose=False,
    )

    if config.log_path:
        path = Path(config.log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        loguru_logger.add(
            str(path),
            level=config.log_level,
            serialize=True,
            backtrace=True,
            diagnose=False,
            rotation=f"{config.log_rotation_mb} MB",
            retention=f"{config.log_retention_days} days",
            compression="gz",
        )

    intercept = _InterceptHandler()
    root_logger = logging.getLogger()
    root_logger.handlers = [intercept]
    root_logger.setLevel(config.log_level)

    _LOGGING_CONFIGURED = True


@lru_cache(maxsize=1)
def get_logger():
    setup_logging(load_settings())
    # Defaults for task/kind/step come from the patcher so `contextualize` can fill them.
    return loguru_logger
