from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from launchpad.core.amounts import ZERO, from_db, to_db, to_sol
from launchpad.core.logging import log
from launchpad.models.fee_vault import FeeVault
from launchpad.utils.time_utils import advance_past, iso_utc_now, parse_iso, to_iso


class DLFeeVaultManager:
    TABLE_NAME = "fee_vaults"

    def __init__(self, db) -> None:
        self.db = db
        log.debug("DLFeeVaultManager initialized", source="DLFeeVaultManager")

    @staticmethod
    def initialize_schema(db) -> None:
        cursor = db.get_cursor()
        if cursor is None:
            log.error("DB unavailable creating fee_vaults", source="DLFeeVaultManager")
            return
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DLFeeVaultManager.TABLE_NAME} (
                pool_address TEXT PRIMARY KEY,
                token_address TEXT NOT NULL,
                vault_address TEXT NOT NULL,
                total_collected TEXT NOT NULL DEFAULT '0',
                total_claimed TEXT NOT NULL DEFAULT '0',
                unclaimed TEXT NOT NULL DEFAULT '0',
                last_claim_at TEXT,
                claim_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cursor.execute(
            f"CREATE INDEX IF NOT EXISTS idx_fee_vaults_last_claim "
            f"ON {DLFeeVaultManager.TABLE_NAME}(last_claim_at)"
        )
        db.commit()

    # ------------------------------------------------------------ public API --

    def create_vault(self, vault: FeeVault) -> bool:
        """Insert ``vault``; ``False`` if the pool already has one."""
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            INSERT OR IGNORE INTO {self.TABLE_NAME} (
                pool_address, token_address, vault_address, total_collected,
                total_claimed, unclaimed, last_claim_at, claim_count,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                vault.pool_address,
                vault.token_address,
                vault.vault_address,
                to_db(vault.total_collected),
                to_db(vault.total_claimed),
                to_db(vault.unclaimed),
                to_iso(vault.last_claim_at) if vault.last_claim_at else None,
                vault.claim_count,
                to_iso(vault.created_at),
                to_iso(vault.updated_at),
            ),
        )
        self.db.commit()
        return cursor.rowcount == 1

    def get_vault(self, pool_address: str) -> Optional[FeeVault]:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT * FROM {self.TABLE_NAME} WHERE pool_address = ?", (pool_address,))
        row = cursor.fetchone()
        return self._row_to_vault(row) if row else None

    def list_vaults(self) -> List[FeeVault]:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT * FROM {self.TABLE_NAME} ORDER BY created_at")
        return [self._row_to_vault(r) for r in cursor.fetchall()]

    def list_due_vaults(self, cutoff: datetime) -> List[FeeVault]:
        """Vaults never claimed or last claimed before ``cutoff``."""
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            SELECT * FROM {self.TABLE_NAME}
             WHERE last_claim_at IS NULL OR last_claim_at < ?
             ORDER BY last_claim_at IS NOT NULL, last_claim_at
            """,
            (to_iso(cutoff),),
        )
        return [self._row_to_vault(r) for r in cursor.fetchall()]

    def record_claim(
        self, pool_address: str, amount: Decimal, claimed_at: Optional[datetime] = None
    ) -> FeeVault:
        """Book a confirmed claim of ``amount`` against the pool's vault.

        Both lifetime counters grow by ``amount`` and ``unclaimed`` resets to
        zero. Raises ``LookupError`` if the vault does not exist.
        """
        amount = to_sol(amount)
        if amount <= ZERO:
            raise ValueError(f"claim amount must be positive, got {amount}")
        with self.db.transaction() as cursor:
            cursor.execute(
                f"SELECT * FROM {self.TABLE_NAME} WHERE pool_address = ?", (pool_address,)
            )
            row = cursor.fetchone()
            if row is None:
                raise LookupError(f"no fee vault for pool {pool_address}")
            vault = self._row_to_vault(row)
            when = advance_past(vault.last_claim_at, claimed_at)
            vault.total_collected = vault.total_collected + amount
            vault.total_claimed = vault.total_claimed + amount
            vault.unclaimed = ZERO
            vault.last_claim_at = when
            vault.claim_count += 1
            cursor.execute(
                f"""
                UPDATE {self.TABLE_NAME}
                   SET total_collected = ?, total_claimed = ?, unclaimed = ?,
                       last_claim_at = ?, claim_count = ?, updated_at = ?
                 WHERE pool_address = ?
                """,
                (
                    to_db(vault.total_collected),
                    to_db(vault.total_claimed),
                    to_db(vault.unclaimed),
                    to_iso(when),
                    vault.claim_count,
                    iso_utc_now(),
                    pool_address,
                ),
            )
        return vault

    def totals(self) -> Dict[str, object]:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT total_collected FROM {self.TABLE_NAME}")
        rows = cursor.fetchall()
        return {
            "total_collected": sum((from_db(r[0]) for r in rows), ZERO),
            "vault_count": len(rows),
        }

    @staticmethod
    def _row_to_vault(row) -> FeeVault:
        data = dict(row)
        return FeeVault(
            pool_address=data["pool_address"],
            token_address=data["token_address"],
            vault_address=data["vault_address"],
            total_collected=from_db(data["total_collected"]),
            total_claimed=from_db(data["total_claimed"]),
            unclaimed=from_db(data["unclaimed"]),
            last_claim_at=parse_iso(data.get("last_claim_at")),
            claim_count=int(data["claim_count"]),
            created_at=parse_iso(data["created_at"]),
            updated_at=parse_iso(data["updated_at"]),
        )


__all__ = ["DLFeeVaultManager"]
