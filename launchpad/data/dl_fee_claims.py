from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from launchpad.core.amounts import from_db, to_db
from launchpad.core.logging import log
from launchpad.utils.time_utils import iso_utc_now, parse_iso

PENDING = "pending"
APPLIED = "applied"


@dataclass
class FeeClaimEntry:
    signature: str
    pool_address: str
    amount: Decimal
    status: str
    created_at: datetime
    applied_at: Optional[datetime] = None


class DLFeeClaimJournal:
    """Write-ahead journal of confirmed vault claims.

    A claim is journaled as ``pending`` as soon as its transaction confirms;
    the vault update and creator accrual are then applied and the entry is
    flipped to ``applied`` inside the same database transaction.
    """

    TABLE_NAME = "fee_claims"

    def __init__(self, db) -> None:
        self.db = db

    @staticmethod
    def initialize_schema(db) -> None:
        cursor = db.get_cursor()
        if cursor is None:
            log.error("DB unavailable creating fee_claims", source="DLFeeClaimJournal")
            return
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DLFeeClaimJournal.TABLE_NAME} (
                signature TEXT PRIMARY KEY,
                pool_address TEXT NOT NULL,
                amount TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT '{PENDING}',
                created_at TEXT NOT NULL,
                applied_at TEXT
            )
            """
        )
        db.commit()

    def record_pending(self, signature: str, pool_address: str, amount: Decimal) -> bool:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            INSERT OR IGNORE INTO {self.TABLE_NAME} (signature, pool_address, amount, status, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (signature, pool_address, to_db(amount), PENDING, iso_utc_now()),
        )
        self.db.commit()
        return cursor.rowcount == 1

    def get(self, signature: str) -> Optional[FeeClaimEntry]:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT * FROM {self.TABLE_NAME} WHERE signature = ?", (signature,))
        row = cursor.fetchone()
        return self._row_to_entry(row) if row else None

    def list_pending(self) -> List[FeeClaimEntry]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT * FROM {self.TABLE_NAME} WHERE status = ? ORDER BY created_at", (PENDING,)
        )
        return [self._row_to_entry(r) for r in cursor.fetchall()]

    def mark_applied(self, signature: str) -> bool:
        """Flip a pending entry to applied; ``False`` if it was not pending."""
        cursor = self.db.get_cursor()
        cursor.execute(
            f"UPDATE {self.TABLE_NAME} SET status = ?, applied_at = ? WHERE signature = ? AND status = ?",
            (APPLIED, iso_utc_now(), signature, PENDING),
        )
        self.db.commit()
        return cursor.rowcount == 1

    @staticmethod
    def _row_to_entry(row) -> FeeClaimEntry:
        data = dict(row)
        return FeeClaimEntry(
            signature=data["signature"],
            pool_address=data["pool_address"],
            amount=from_db(data["amount"]),
            status=data["status"],
            created_at=parse_iso(data["created_at"]),
            applied_at=parse_iso(data.get("applied_at")),
        )


__all__ = ["DLFeeClaimJournal", "FeeClaimEntry", "PENDING", "APPLIED"]
