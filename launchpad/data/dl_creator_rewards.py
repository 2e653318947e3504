from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from launchpad.core.amounts import ZERO, from_db, to_db, to_sol
from launchpad.core.errors import ClaimTooSmallError, NoUnclaimedRewardsError
from launchpad.core.logging import log
from launchpad.models.creator_reward import CreatorReward
from launchpad.models.pool import Pool
from launchpad.utils.time_utils import iso_utc_now, parse_iso, to_iso, utc_now

PAYOUT_RESERVED = "reserved"
PAYOUT_SETTLED = "settled"
PAYOUT_RELEASED = "released"


class DLCreatorRewardManager:
    TABLE_NAME = "creator_rewards"
    PAYOUTS_TABLE = "reward_payouts"

    def __init__(self, db) -> None:
        self.db = db
        log.debug("DLCreatorRewardManager initialized", source="DLCreatorRewardManager")

    @staticmethod
    def initialize_schema(db) -> None:
        cursor = db.get_cursor()
        if cursor is None:
            log.error("DB unavailable creating creator_rewards", source="DLCreatorRewardManager")
            return
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DLCreatorRewardManager.TABLE_NAME} (
                id TEXT PRIMARY KEY,
                creator_id TEXT NOT NULL,
                creator_wallet TEXT NOT NULL,
                pool_address TEXT NOT NULL,
                token_address TEXT NOT NULL,
                lifetime_earned TEXT NOT NULL DEFAULT '0',
                claimed_amount TEXT NOT NULL DEFAULT '0',
                unclaimed TEXT NOT NULL DEFAULT '0',
                reserved_amount TEXT NOT NULL DEFAULT '0',
                revenue_share_percent TEXT NOT NULL DEFAULT '50',
                claimed INTEGER NOT NULL DEFAULT 0,
                last_claim_at TEXT,
                last_claim_signature TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (creator_id, pool_address)
            )
            """
        )
        cursor.execute(
            f"CREATE INDEX IF NOT EXISTS idx_creator_rewards_claimed "
            f"ON {DLCreatorRewardManager.TABLE_NAME}(creator_id, claimed)"
        )
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DLCreatorRewardManager.PAYOUTS_TABLE} (
                payout_id TEXT NOT NULL,
                reward_id TEXT NOT NULL,
                creator_id TEXT NOT NULL,
                amount TEXT NOT NULL,
                status TEXT NOT NULL,
                signature TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (payout_id, reward_id)
            )
            """
        )
        db.commit()

    # ---------------------------------------------------------------- reads --

    def get(self, creator_id: str, pool_address: str) -> Optional[CreatorReward]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT * FROM {self.TABLE_NAME} WHERE creator_id = ? AND pool_address = ?",
            (creator_id, pool_address),
        )
        row = cursor.fetchone()
        return self._row_to_reward(row) if row else None

    def list_for_creator(self, creator_id: str) -> List[CreatorReward]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT * FROM {self.TABLE_NAME} WHERE creator_id = ? ORDER BY created_at",
            (creator_id,),
        )
        return [self._row_to_reward(r) for r in cursor.fetchall()]

    def leaderboard(self, limit: int = 10) -> List[Dict[str, object]]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT creator_id, creator_wallet, pool_address, lifetime_earned FROM {self.TABLE_NAME}"
        )
        board: "OrderedDict[Tuple[str, str], Dict[str, object]]" = OrderedDict()
        for row in cursor.fetchall():
            key = (row["creator_id"], row["creator_wallet"])
            entry = board.setdefault(
                key,
                {"botId": key[0], "botWallet": key[1], "totalEarned": ZERO, "pools": set()},
            )
            entry["totalEarned"] += from_db(row["lifetime_earned"])
            entry["pools"].add(row["pool_address"])
        ranked = sorted(board.values(), key=lambda e: e["totalEarned"], reverse=True)[:limit]
        return [
            {
                "botId": e["botId"],
                "botWallet": e["botWallet"],
                "totalEarned": e["totalEarned"],
                "poolCount": len(e["pools"]),
            }
            for e in ranked
        ]

    def totals(self) -> Dict[str, Decimal]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT lifetime_earned, claimed_amount, unclaimed FROM {self.TABLE_NAME}"
        )
        out = {"earned": ZERO, "claimed": ZERO, "unclaimed": ZERO}
        for row in cursor.fetchall():
            out["earned"] += from_db(row[0])
            out["claimed"] += from_db(row[1])
            out["unclaimed"] += from_db(row[2])
        return out

    # --------------------------------------------------------------- writes --

    def accrue(self, pool: Pool, share: Decimal) -> CreatorReward:
        """Add ``share`` to the (creator, pool) row, creating it on first credit.

        A fresh credit always leaves the row payable (``claimed = 0``).
        """
        share = to_sol(share)
        now = iso_utc_now()
        with self.db.transaction() as cursor:
            cursor.execute(
                f"SELECT * FROM {self.TABLE_NAME} WHERE creator_id = ? AND pool_address = ?",
                (pool.creator_id, pool.pool_address),
            )
            row = cursor.fetchone()
            if row is None:
                reward = CreatorReward(
                    id=str(uuid4()),
                    creator_id=pool.creator_id,
                    creator_wallet=pool.creator_wallet or "",
                    pool_address=pool.pool_address,
                    token_address=pool.token_address,
                    lifetime_earned=share,
                    unclaimed=share,
                    revenue_share_percent=pool.revenue_share_percent,
                )
                cursor.execute(
                    f"""
                    INSERT INTO {self.TABLE_NAME} (
                        id, creator_id, creator_wallet, pool_address, token_address,
                        lifetime_earned, claimed_amount, unclaimed, revenue_share_percent,
                        claimed, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                    """,
                    (
                        reward.id,
                        reward.creator_id,
                        reward.creator_wallet,
                        reward.pool_address,
                        reward.token_address,
                        to_db(reward.lifetime_earned),
                        to_db(reward.claimed_amount),
                        to_db(reward.unclaimed),
                        str(reward.revenue_share_percent),
                        now,
                        now,
                    ),
                )
                return reward

            reward = self._row_to_reward(row)
            reward.lifetime_earned += share
            reward.unclaimed += share
            reward.revenue_share_percent = pool.revenue_share_percent
            if share > ZERO:
                reward.claimed = False
            cursor.execute(
                f"""
                UPDATE {self.TABLE_NAME}
                   SET lifetime_earned = ?, unclaimed = ?, revenue_share_percent = ?,
                       claimed = ?, updated_at = ?
                 WHERE id = ?
                """,
                (
                    to_db(reward.lifetime_earned),
                    to_db(reward.unclaimed),
                    str(reward.revenue_share_percent),
                    int(reward.claimed),
                    now,
                    reward.id,
                ),
            )
            return reward

    def reserve_payable(
        self,
        creator_id: str,
        minimum: Decimal,
        pool_address: Optional[str] = None,
    ) -> Tuple[str, Dict[str, Decimal], Decimal, List[CreatorReward]]:
        """Atomically take every payable row for ``creator_id`` out of circulation.

        Returns ``(payout id, reserved amounts by reward id, total, rows)``.
        Rows are moved ``unclaimed -> claimed_amount`` and flagged ``claimed``
        in the same transaction that reads them, so a concurrent request cannot
        include them again. Each moved amount is booked as one
        ``reward_payouts`` line under the new payout id; settling or releasing
        that payout touches only its own lines. Raises
        :class:`NoUnclaimedRewardsError` or :class:`ClaimTooSmallError` without
        touching any row.
        """
        with self.db.transaction() as cursor:
            sql = f"SELECT * FROM {self.TABLE_NAME} WHERE creator_id = ? AND claimed = 0"
            params: list = [creator_id]
            if pool_address:
                sql += " AND pool_address = ?"
                params.append(pool_address)
            cursor.execute(sql, params)
            rows = [self._row_to_reward(r) for r in cursor.fetchall()]
            rows = [r for r in rows if r.unclaimed > ZERO]
            if not rows:
                raise NoUnclaimedRewardsError(creator_id)

            total = sum((r.unclaimed for r in rows), ZERO)
            if total < minimum:
                raise ClaimTooSmallError(total, minimum)

            payout_id = str(uuid4())
            now = iso_utc_now()
            reserved: Dict[str, Decimal] = {}
            for reward in rows:
                amount = reward.unclaimed
                reserved[reward.id] = amount
                reward.claimed_amount += amount
                reward.reserved_amount += amount
                reward.unclaimed = ZERO
                reward.claimed = True
                cursor.execute(
                    f"""
                    UPDATE {self.TABLE_NAME}
                       SET claimed_amount = ?, unclaimed = ?, reserved_amount = ?,
                           claimed = 1, updated_at = ?
                     WHERE id = ? AND claimed = 0
                    """,
                    (
                        to_db(reward.claimed_amount),
                        to_db(reward.unclaimed),
                        to_db(reward.reserved_amount),
                        now,
                        reward.id,
                    ),
                )
                cursor.execute(
                    f"""
                    INSERT INTO {self.PAYOUTS_TABLE} (
                        payout_id, reward_id, creator_id, amount, status, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (payout_id, reward.id, creator_id, to_db(amount), PAYOUT_RESERVED, now, now),
                )
            return payout_id, reserved, total, rows

    def get_payout_lines(self, payout_id: str) -> List[Dict[str, object]]:
        cursor = self.db.get_cursor()
        cursor.execute(
            f"SELECT * FROM {self.PAYOUTS_TABLE} WHERE payout_id = ? ORDER BY rowid",
            (payout_id,),
        )
        return [
            {
                "payout_id": r["payout_id"],
                "reward_id": r["reward_id"],
                "creator_id": r["creator_id"],
                "amount": from_db(r["amount"]),
                "status": r["status"],
                "signature": r["signature"],
            }
            for r in cursor.fetchall()
        ]

    def stamp_settlement(
        self,
        payout_id: str,
        signature: str,
        settled_at: Optional[datetime] = None,
        creator_id: Optional[str] = None,
    ) -> int:
        """Record the payout signature and clear this payout's reservations.

        Only lines of ``payout_id`` still in ``reserved`` state are settled;
        returns how many were.
        """
        when = to_iso(settled_at or utc_now())
        with self.db.transaction() as cursor:
            lines = self._open_lines(cursor, payout_id, creator_id)
            for reward_id, amount in lines:
                reward = self._locked_reward(cursor, reward_id)
                if reward is None:
                    continue
                cursor.execute(
                    f"""
                    UPDATE {self.TABLE_NAME}
                       SET last_claim_signature = ?, last_claim_at = ?,
                           reserved_amount = ?, updated_at = ?
                     WHERE id = ?
                    """,
                    (signature, when, to_db(max(ZERO, reward.reserved_amount - amount)), when, reward_id),
                )
            if lines:
                self._close_lines(cursor, payout_id, PAYOUT_SETTLED, signature, when)
        return len(lines)

    def release(self, payout_id: str, creator_id: Optional[str] = None) -> int:
        """Undo :meth:`reserve_payable` for the unsettled lines of ``payout_id``."""
        now = iso_utc_now()
        with self.db.transaction() as cursor:
            lines = self._open_lines(cursor, payout_id, creator_id)
            for reward_id, amount in lines:
                reward = self._locked_reward(cursor, reward_id)
                if reward is None:
                    continue
                cursor.execute(
                    f"""
                    UPDATE {self.TABLE_NAME}
                       SET claimed_amount = ?, unclaimed = ?, reserved_amount = ?,
                           claimed = 0, updated_at = ?
                     WHERE id = ?
                    """,
                    (
                        to_db(reward.claimed_amount - amount),
                        to_db(reward.unclaimed + amount),
                        to_db(max(ZERO, reward.reserved_amount - amount)),
                        now,
                        reward_id,
                    ),
                )
            if lines:
                self._close_lines(cursor, payout_id, PAYOUT_RELEASED, None, now)
        return len(lines)

    def _open_lines(self, cursor, payout_id: str, creator_id: Optional[str]) -> List[Tuple[str, Decimal]]:
        sql = f"SELECT reward_id, amount FROM {self.PAYOUTS_TABLE} WHERE payout_id = ? AND status = ?"
        params: list = [payout_id, PAYOUT_RESERVED]
        if creator_id:
            sql += " AND creator_id = ?"
            params.append(creator_id)
        cursor.execute(sql, params)
        return [(r["reward_id"], from_db(r["amount"])) for r in cursor.fetchall()]

    def _locked_reward(self, cursor, reward_id: str) -> Optional[CreatorReward]:
        cursor.execute(f"SELECT * FROM {self.TABLE_NAME} WHERE id = ?", (reward_id,))
        row = cursor.fetchone()
        return self._row_to_reward(row) if row else None

    def _close_lines(self, cursor, payout_id: str, status: str, signature: Optional[str], when: str) -> None:
        cursor.execute(
            f"""
            UPDATE {self.PAYOUTS_TABLE}
               SET status = ?, signature = ?, updated_at = ?
             WHERE payout_id = ? AND status = ?
            """,
            (status, signature, when, payout_id, PAYOUT_RESERVED),
        )

    @staticmethod
    def _row_to_reward(row) -> CreatorReward:
        data = dict(row)
        return CreatorReward(
            id=data["id"],
            creator_id=data["creator_id"],
            creator_wallet=data["creator_wallet"],
            pool_address=data["pool_address"],
            token_address=data["token_address"],
            lifetime_earned=from_db(data["lifetime_earned"]),
            claimed_amount=from_db(data["claimed_amount"]),
            unclaimed=from_db(data["unclaimed"]),
            reserved_amount=from_db(data.get("reserved_amount") or "0"),
            revenue_share_percent=Decimal(data["revenue_share_percent"]),
            claimed=bool(data["claimed"]),
            last_claim_at=parse_iso(data.get("last_claim_at")),
            last_claim_signature=data.get("last_claim_signature"),
            created_at=parse_iso(data["created_at"]),
            updated_at=parse_iso(data["updated_at"]),
        )


__all__ = ["DLCreatorRewardManager"]
