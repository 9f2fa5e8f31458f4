from __future__ import annotations

import logging
from typing import Any


def _render(value: Any) -> str:
    if isinstance(value, str) and (not value or " " in value):
        return repr(value)
    return str(value)


class NDLogger:
    """Key=value logging on top of a stdlib logging.Logger.

    Each call emits ``event k1=v1 k2=v2``; bound context comes first,
    per-call fields after it.
    """

    def __init__(self, logger: logging.Logger, context: dict[str, Any] | None = None) -> None:
        self._logger = logger
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **ctx: Any) -> NDLogger:
        return NDLogger(self._logger, {**self._context, **ctx})

    def _format(self, event: str, extra: dict[str, Any]) -> str:
        fields = {**self._context, **extra}
        return " ".join([event, *(f"{k}={_render(v)}" for k, v in fields.items())])

    def _log(self, level: int, event: str, kw: dict[str, Any], exc_info: bool = False) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._format(event, kw), exc_info=exc_info)

    def debug(self, event: str, **kw: Any) -> None:
        self._log(logging.DEBUG, event, kw)

    def info(self, event: str, **kw: Any) -> None:
        self._log(logging.INFO, event, kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._log(logging.WARNING, event, kw)

    def error(self, event: str, **kw: Any) -> None:
        self._log(logging.ERROR, event, kw)

    def exception(self, event: str, **kw: Any) -> None:
        self._log(logging.ERROR, event, kw, exc_info=True)


def get_logger(name: str = "podleader") -> NDLogger:
    return NDLogger(logging.getLogger(name))
