from .constants import (
    BASE_DIR,
    LEDGER_DB_PATH,
    CONFIG_DIR,
    LOG_DATE_FORMAT,
)
from .logging import log, configure_console_log

__all__ = [
    "BASE_DIR",
    "LEDGER_DB_PATH",
    "CONFIG_DIR",
    "LOG_DATE_FORMAT",
    "log",
    "configure_console_log",
]
