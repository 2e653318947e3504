from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from launchpad.core.amounts import from_db, price_from_db, price_to_db, to_db
from launchpad.core.logging import log
from launchpad.models.token import CreatorType, Token
from launchpad.utils.time_utils import iso_utc_now, parse_iso, to_iso


class DLTokenManager:
    TABLE_NAME = "tokens"

    def __init__(self, db) -> None:
        self.db = db
        log.debug("DLTokenManager initialized", source="DLTokenManager")

    # ---------------------------------------------------------------- schema --

    @staticmethod
    def initialize_schema(db) -> None:
        cursor = db.get_cursor()
        if cursor is None:
            log.error("DB unavailable creating tokens", source="DLTokenManager")
            return
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DLTokenManager.TABLE_NAME} (
                address TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                symbol TEXT NOT NULL,
                creator TEXT NOT NULL,
                creator_type TEXT NOT NULL DEFAULT 'human',
                bonding_curve TEXT,
                current_price TEXT NOT NULL DEFAULT '0',
                market_cap TEXT NOT NULL DEFAULT '0',
                total_supply TEXT,
                volume_24h TEXT NOT NULL DEFAULT '0',
                graduated INTEGER NOT NULL DEFAULT 0,
                graduated_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cursor.execute(
            f"CREATE INDEX IF NOT EXISTS idx_tokens_creator ON {DLTokenManager.TABLE_NAME}(creator)"
        )
        db.commit()

    # ------------------------------------------------------------ public API --

    def insert_token(self, token: Token) -> bool:
        """Insert ``token``; return ``False`` when the address already exists."""
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            INSERT OR IGNORE INTO {self.TABLE_NAME} (
                address, name, symbol, creator, creator_type, bonding_curve,
                current_price, market_cap, total_supply, volume_24h,
                graduated, graduated_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                token.address,
                token.name,
                token.symbol,
                token.creator,
                token.creator_type.value,
                token.bonding_curve,
                price_to_db(token.current_price),
                price_to_db(token.market_cap),
                str(token.total_supply) if token.total_supply is not None else None,
                to_db(token.volume_24h),
                int(token.graduated),
                to_iso(token.graduated_at) if token.graduated_at else None,
                to_iso(token.created_at),
                to_iso(token.updated_at),
            ),
        )
        self.db.commit()
        return cursor.rowcount == 1

    def get_token(self, address: str) -> Optional[Token]:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT * FROM {self.TABLE_NAME} WHERE address = ?", (address,))
        row = cursor.fetchone()
        return self._row_to_token(row) if row else None

    def update_market(
        self,
        address: str,
        *,
        price: Decimal,
        market_cap: Decimal,
        volume_24h: Decimal,
    ) -> None:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            UPDATE {self.TABLE_NAME}
               SET current_price = ?, market_cap = ?, volume_24h = ?, updated_at = ?
             WHERE address = ?
            """,
            (price_to_db(price), price_to_db(market_cap), to_db(volume_24h), iso_utc_now(), address),
        )
        self.db.commit()

    def mark_graduated(self, address: str, graduated_at: datetime) -> bool:
        """Flag the token graduated; ``False`` if missing or already graduated."""
        cursor = self.db.get_cursor()
        cursor.execute(
            f"""
            UPDATE {self.TABLE_NAME}
               SET graduated = 1, graduated_at = ?, updated_at = ?
             WHERE address = ? AND graduated = 0
            """,
            (to_iso(graduated_at), iso_utc_now(), address),
        )
        self.db.commit()
        return cursor.rowcount == 1

    def list_tokens(self, limit: int = 50, creator: Optional[str] = None) -> List[Token]:
        cursor = self.db.get_cursor()
        if creator:
            cursor.execute(
                f"SELECT * FROM {self.TABLE_NAME} WHERE creator = ? ORDER BY created_at DESC LIMIT ?",
                (creator, limit),
            )
        else:
            cursor.execute(
                f"SELECT * FROM {self.TABLE_NAME} ORDER BY created_at DESC LIMIT ?",
                (limit,),
            )
        return [self._row_to_token(r) for r in cursor.fetchall()]

    def count(self) -> int:
        cursor = self.db.get_cursor()
        cursor.execute(f"SELECT COUNT(*) FROM {self.TABLE_NAME}")
        return int(cursor.fetchone()[0])

    # --------------------------------------------------------------- helpers --

    @staticmethod
    def _row_to_token(row) -> Token:
        data = dict(row)
        return Token(
            address=data["address"],
            name=data["name"],
            symbol=data["symbol"],
            creator=data["creator"],
            creator_type=CreatorType(data.get("creator_type") or "human"),
            bonding_curve=data.get("bonding_curve"),
            current_price=price_from_db(data["current_price"]),
            market_cap=price_from_db(data["market_cap"]),
            total_supply=int(data["total_supply"]) if data.get("total_supply") else None,
            volume_24h=from_db(data["volume_24h"]),
            graduated=bool(data["graduated"]),
            graduated_at=parse_iso(data.get("graduated_at")),
            created_at=parse_iso(data["created_at"]),
            updated_at=parse_iso(data["updated_at"]),
        )


__all__ = ["DLTokenManager"]
