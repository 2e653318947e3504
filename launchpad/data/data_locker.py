# data_locker.py
"""
Module: DataLocker
Description:
    Central access point for the ledger's tables. Composes one DL*Manager per
    record kind on top of a single SQLite :class:`DatabaseManager`:

    - tokens / trades          (written by the reconciler)
    - fee_vaults / fee_claims  (written by the fee sweep)
    - creator_rewards          (written by distribution and payouts)
    - pools                    (pool configuration, read-only to this core)
    - job_ledger               (scheduled run history)
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from launchpad.core.constants import LEDGER_DB_PATH
from launchpad.core.logging import log
from launchpad.data.database import DatabaseManager
from launchpad.data.dl_creator_rewards import DLCreatorRewardManager
from launchpad.data.dl_fee_claims import DLFeeClaimJournal
from launchpad.data.dl_fee_vaults import DLFeeVaultManager
from launchpad.data.dl_job_ledger import DLJobLedgerManager
from launchpad.data.dl_pools import DLPoolManager
from launchpad.data.dl_tokens import DLTokenManager
from launchpad.data.dl_trades import DLTradeManager


class DataLocker:
    """Singleton-style access point for all data managers."""

    _instance: Optional["DataLocker"] = None

    def __setattr__(self, name, value):
        if name == "db":
            if not isinstance(value, DatabaseManager):
                log.error(
                    f"Attempt to assign non-DatabaseManager to 'db': {type(value)}",
                    source="DataLocker",
                )
                raise TypeError("db must be a DatabaseManager instance")
            current = self.__dict__.get("db")
            if current is not None and current is not value:
                log.error(
                    "Attempt to reassign existing DatabaseManager instance",
                    source="DataLocker",
                )
                raise AttributeError(
                    "Cannot reassign 'db' once a DatabaseManager has been set"
                )
        object.__setattr__(self, name, value)

    def __init__(self, db_path: str):
        self.db = DatabaseManager(db_path)
        self.initialize_database()

        self.tokens = DLTokenManager(self.db)
        self.trades = DLTradeManager(self.db)
        self.vaults = DLFeeVaultManager(self.db)
        self.fee_claims = DLFeeClaimJournal(self.db)
        self.rewards = DLCreatorRewardManager(self.db)
        self.pools = DLPoolManager(self.db)
        self.ledger = DLJobLedgerManager(self.db)

        if self.db.conn:
            log.debug("All DL managers bootstrapped successfully.", source="DataLocker")
        else:
            log.warning(
                "⚠️ DataLocker initialization failed: no DB connection",
                source="DataLocker",
            )

    @classmethod
    def get_instance(cls, db_path: str = str(LEDGER_DB_PATH)) -> "DataLocker":
        """Return a singleton instance of DataLocker."""
        if cls._instance is None or str(cls._instance.db.db_path) != str(db_path):
            cls._instance = cls(db_path)
        return cls._instance

    def initialize_database(self) -> None:
        """Create every table if missing. Safe to run repeatedly."""
        log.info("🔧 Initializing ledger schema...", source="DataLocker")
        for manager in (
            DLTokenManager,
            DLTradeManager,
            DLFeeVaultManager,
            DLFeeClaimJournal,
            DLCreatorRewardManager,
            DLPoolManager,
        ):
            manager.initialize_schema(self.db)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes across managers into one atomic unit."""
        with self.db.transaction():
            yield

    def close(self) -> None:
        self.db.close()
        if DataLocker._instance is self:
            DataLocker._instance = None


__all__ = ["DataLocker"]
