"""Console logger shared by every ledger component.

Call sites tag each line with the emitting component and an optional
structured payload::

    log.info("Fee sweep finished", source="FeeVaultManager", payload=summary)

renders as ``[FeeVaultManager] Fee sweep finished {"collected": 2, ...}``.
"""

from __future__ import annotations

import json
import logging
import os
import traceback
from typing import Any

from launchpad.core.constants import LOG_DATE_FORMAT

LOGGER_NAME = "launchpad"
TRACE_TAIL = 2000


def _render_payload(payload: Any) -> str:
    if isinstance(payload, (dict, list, tuple)):
        return json.dumps(payload, default=str, sort_keys=False)
    return str(payload)


class SimpleLogger:
    """Thin wrapper around :mod:`logging` with ``source`` tags and payloads."""

    def __init__(self, name: str = LOGGER_NAME) -> None:
        self._logger = logging.getLogger(name)
        if not self._logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(levelname)s - %(message)s", datefmt=LOG_DATE_FORMAT)
            )
            self._logger.addHandler(handler)
        self.configure()

    def configure(self, level: int = logging.INFO) -> None:
        self._logger.setLevel(level)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------
    def debug(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(self._format(msg, source, payload))

    def info(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.info(self._format(msg, source, payload))

    def warning(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.warning(self._format(msg, source, payload))

    def error(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.error(self._format(msg, source, payload))

    def exception(self, exc: BaseException, msg: str, source: str | None = None, **_: Any) -> None:
        """ERROR line for ``msg``; the traceback tail goes out at DEBUG."""
        self._logger.error(self._format(f"{msg}: {exc}", source))
        if self._logger.isEnabledFor(logging.DEBUG):
            trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            self._logger.debug(trace[-TRACE_TAIL:])

    # Aliases -----------------------------------------------------------
    def success(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.info(self._format(msg, source, payload))

    def banner(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.info(self._format(f"==== {msg} ====", source, payload))

    @staticmethod
    def _format(msg: str, source: str | None, payload: Any | None = None) -> str:
        line = f"[{source}] {msg}" if source else msg
        if payload is not None:
            line = f"{line} {_render_payload(payload)}"
        return line


log = SimpleLogger()


def configure_console_log(debug: bool = False) -> None:
    log.configure(logging.DEBUG if debug else logging.INFO)


if os.getenv("LAUNCHPAD_DEBUG", "0").strip().lower() in {"1", "true", "yes", "on"}:
    configure_console_log(debug=True)


__all__ = ["log", "configure_console_log", "SimpleLogger"]
