from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from launchpad.core.amounts import ZERO, from_db, price_from_db, price_to_db, to_db
from launchpad.core.constants import VOLUME_WINDOW_SEC
from launchpad.core.logging import log
from launchpad.models.trade import Trade, TradeSide
from launchpad.utils.time_utils import parse_iso, to_iso, utc_now


class DLTradeManager:
    TABLE_NAME = "trades"

    def __init__(self, db) -> None:
        self.db = db
        log.debug("DLTradeManager initialized", source="DLTradeManager")

    @staticmethod
    def initialize_schema(db) -> None:
        cursor = db.get_cursor()
        if cursor is None:
            log.error("DB unavailable creating trades", source="DLTradeManager")
            return
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DLTradeManager.TABLE_NAME} (
                signature TEXT PRIMARY KEY,
                token_address TEXT NOT NULL,
                trader TEXT NOT NULL,
                side TEXT NOT NULL,
                amount_sol TEXT NOT NULL,
                amount_tokens TEXT NOT NULL,
                price TEXT NOT NULL,
                fee TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        cursor.execute(
            f"CREATE INDEX IF NOT EXISTS idx_trades_token_time "
            f"ON {DLTradeManager.TABLE_NAME}(token_address, created_at)"
        )
        cursor.execute(
            f"CREATE INDEX IF NOT EXISTS idx_trades_trader ON {DLTradeManager.TABLE_NAME}(trader)"
        )
        db.commit()

    def insert_trade(self, trade: Trade) -> bool:
        """Insert ``trade``; ``False`` when the signature was already recorded."""
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            INSERT OR IGNORE INTO {self.TABLE_NAME} (
                signature, token_address, trader, side, amount_sol,
                amount_tokens, price, fee, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                trade.signature,
                trade.token_address,
                trade.trader,
                trade.side.value,
                to_db(trade.amount_sol),
                str(trade.amount_tokens),
                price_to_db(trade.price),
                to_db(trade.fee),
                to_iso(trade.created_at),
            ),
        )
        self.db.commit()
        return cursor.rowcount == 1

    def get_by_signature(self, signature: str) -> Optional[Trade]:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT * FROM {self.TABLE_NAME} WHERE signature = ?", (signature,))
        row = cursor.fetchone()
        return self._row_to_trade(row) if row else None

    def get_24h_volume(self, token_address: str, now: Optional[datetime] = None) -> Decimal:
        since = (now or utc_now()) - timedelta(seconds=VOLUME_WINDOW_SEC)
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT amount_sol FROM {self.TABLE_NAME} WHERE token_address = ? AND created_at > ?",
            (token_address, to_iso(since)),
        )
        # summed in Decimal; SQLite SUM() would go through REAL
        return sum((from_db(r[0]) for r in cursor.fetchall()), ZERO)

    def list_by_token(self, token_address: str, limit: int = 50) -> List[Trade]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT * FROM {self.TABLE_NAME} WHERE token_address = ? ORDER BY created_at DESC LIMIT ?",
            (token_address, limit),
        )
        return [self._row_to_trade(r) for r in cursor.fetchall()]

    def list_by_trader(self, trader: str, limit: int = 50) -> List[Trade]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT * FROM {self.TABLE_NAME} WHERE trader = ? ORDER BY created_at DESC LIMIT ?",
            (trader, limit),
        )
        return [self._row_to_trade(r) for r in cursor.fetchall()]

    def count(self, token_address: Optional[str] = None) -> int:
        cursor = self.db.get_cursor()
        if token_address:
            cursor.execute(
                f"SELECT COUNT(*) FROM {self.TABLE_NAME} WHERE token_address = ?", (token_address,)
            )
        else:
            cursor.execute(f"SELECT COUNT(*) FROM {self.TABLE_NAME}")
        return int(cursor.fetchone()[0])

    @staticmethod
    def _row_to_trade(row) -> Trade:
        data = dict(row)
        return Trade(
            signature=data["signature"],
            token_address=data["token_address"],
            trader=data["trader"],
            side=TradeSide(data["side"]),
            amount_sol=from_db(data["amount_sol"]),
            amount_tokens=int(data["amount_tokens"]),
            price=price_from_db(data["price"]),
            fee=from_db(data["fee"]),
            created_at=parse_iso(data["created_at"]),
        )


__all__ = ["DLTradeManager"]
