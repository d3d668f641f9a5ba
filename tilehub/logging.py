"""Logging configuration for Tilehub."""

from __future__ import annotations

import logging
import sys
from typing import Any


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    # Reduce noise from third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class ServiceLogger:
    """Structured logger for service operations.

    ``bind`` returns a logger that prefixes every record with fixed context,
    e.g. the order id for the duration of one placement.
    """

    def __init__(self, service_name: str, **context: Any) -> None:
        self._service_name = service_name
        self._context = context
        self._logger = get_logger(f"tilehub.{service_name}")

    def bind(self, **context: Any) -> "ServiceLogger":
        return ServiceLogger(self._service_name, **{**self._context, **context})

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(logging.ERROR, message, context)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, context)

    def _log(self, level: int, message: str, context: dict[str, Any]) -> None:
        context = {**self._context, **context}
        if context:
            context_str = " | ".join(f"{k}={v}" for k, v in context.items())
            message = f"{message} | {context_str}"
        self._logger.log(level, message)
