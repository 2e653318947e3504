from __future__ import annotations

from decimal import Decimal
from typing import Optional

from launchpad.core.logging import log
from launchpad.models.pool import Pool
from launchpad.utils.time_utils import iso_utc_now


class DLPoolManager:
    """Pool configuration rows; written by pool creation, read by fee distribution."""

    TABLE_NAME = "pools"

    def __init__(self, db) -> None:
        self.db = db

    @staticmethod
    def initialize_schema(db) -> None:
        cursor = db.get_cursor()
        if cursor is None:
            log.error("DB unavailable creating pools", source="DLPoolManager")
            return
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DLPoolManager.TABLE_NAME} (
                pool_address TEXT PRIMARY KEY,
                token_address TEXT NOT NULL,
                creator_id TEXT,
                creator_wallet TEXT,
                revenue_share_percent TEXT NOT NULL DEFAULT '50',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        db.commit()

    def upsert_pool(self, pool: Pool) -> None:
        now = iso_utc_now()
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            INSERT INTO {self.TABLE_NAME} (
                pool_address, token_address, creator_id, creator_wallet,
                revenue_share_percent, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(pool_address) DO UPDATE SET
                token_address = excluded.token_address,
                creator_id = excluded.creator_id,
                creator_wallet = excluded.creator_wallet,
                revenue_share_percent = excluded.revenue_share_percent,
                updated_at = excluded.updated_at
            """,
            (
                pool.pool_address,
                pool.token_address,
                pool.creator_id,
                pool.creator_wallet,
                str(pool.revenue_share_percent),
                now,
                now,
            ),
        )
        self.db.commit()
        log.debug(f"Pool {pool.pool_address} saved", source="DLPoolManager")

    def get_pool(self, pool_address: str) -> Optional[Pool]:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT * FROM {self.TABLE_NAME} WHERE pool_address = ?", (pool_address,))
        row = cursor.fetchone()
        if not row:
            return None
        data = dict(row)
        return Pool(
            pool_address=data["pool_address"],
            token_address=data["token_address"],
            creator_id=data.get("creator_id"),
            creator_wallet=data.get("creator_wallet"),
            revenue_share_percent=Decimal(data["revenue_share_percent"]),
        )


__all__ = ["DLPoolManager"]
