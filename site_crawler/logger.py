"""Логирование SiteCrawler.

Один логгер проекта ``SiteCrawler``: вывод в stdout и, по желанию, в файл с
ротацией. Модули пишут либо через общий :data:`logger`, либо через дочерние
логгеры из :func:`get_logger` (``SiteCrawler.robots``, ``SiteCrawler.crawler``),
которые используют те же обработчики.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, List, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteCrawler"

# ротация файла логов: 5 MiB, три архивных копии
_MAX_BYTES: Final[int] = 5 * 1024 * 1024
_BACKUPS: Final[int] = 3


def _handlers(log_file: Union[str, Path, None]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(str(log_file), maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8")
        )
    return handlers


def configure(
    *,
    level: Union[int, str] = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """Настраивает логгер проекта; при replace_handlers старые обработчики закрываются."""
    project = logging.getLogger(LOGGER_NAME)
    project.setLevel(level)
    project.propagate = False

    if replace_handlers:
        for old in project.handlers[:]:
            project.removeHandler(old)
            old.close()

    formatter = logging.Formatter(log_format)
    for handler in _handlers(log_file):
        handler.setFormatter(formatter)
        project.addHandler(handler)
    return project


def init_logging(
    level: Union[int, str] = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Точка входа для CLI и тестов: всегда заменяет обработчики."""
    return configure(level=level, log_file=log_file, log_format=log_format)


def get_logger(suffix: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{suffix}")


logger: logging.Logger = init_logging()

__all__ = ["DEFAULT_FORMAT", "LOGGER_NAME", "configure", "get_logger", "init_logging", "logger"]
