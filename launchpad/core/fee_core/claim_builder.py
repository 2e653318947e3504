"""
claim_builder.py
~~~~~~~~~~~~~~~~

Creator payouts.

A claim first reserves every payable reward row in one SQLite transaction
(rows already flagged ``claimed`` are never read as payable) under a fresh
payout id, then pays the reserved total. Settling or releasing acts on one
payout's reserved amounts only, so a row re-credited and claimed again while
an earlier payout is in flight keeps both payouts apart.

* ``platform`` mode signs and submits the transfer from the platform wallet
  and stamps the settlement signature on success; a failed submission
  releases the reservation.
* ``external`` mode returns the unsigned transfer plus the payout id; the
  caller settles with :meth:`ClaimBuilder.record_settlement` or gives the
  amounts back with :meth:`ClaimBuilder.release_reservation`.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from launchpad.core.amounts import ZERO, sol_to_lamports, to_sol
from launchpad.core.constants import MIN_PAYOUT_SOL
from launchpad.core.logging import log
from launchpad.utils.pubkey import parse_pubkey
from launchpad.utils.time_utils import to_iso, utc_now

PLATFORM_MODE = "platform"
EXTERNAL_MODE = "external"


class ClaimBuilder:
    def __init__(self, dl, client, min_payout_sol: Decimal = MIN_PAYOUT_SOL, payout_mode: str = PLATFORM_MODE):
        if payout_mode not in (PLATFORM_MODE, EXTERNAL_MODE):
            raise ValueError(f"unknown payout mode: {payout_mode!r}")
        self.dl = dl
        self.client = client
        self.min_payout_sol = to_sol(min_payout_sol)
        self.payout_mode = payout_mode

    # ---------------------------------------------------------------- reads --

    def get_creator_rewards(self, creator_id: str) -> Dict[str, Any]:
        rows = self.dl.rewards.list_for_creator(creator_id)
        return {
            "totalEarned": sum((r.lifetime_earned for r in rows), ZERO),
            "claimed": sum((r.claimed_amount for r in rows), ZERO),
            "unclaimed": sum((r.unclaimed for r in rows), ZERO),
            "poolCount": len({r.pool_address for r in rows}),
            "rewards": rows,
        }

    def get_leaderboard(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.dl.rewards.leaderboard(max(1, int(limit)))

    # ---------------------------------------------------------------- claim --

    async def claim(
        self, creator_id: str, creator_wallet: str, pool_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """Pay out every unclaimed reward of ``creator_id``.

        Raises :class:`~launchpad.core.errors.NoUnclaimedRewardsError` or
        :class:`~launchpad.core.errors.ClaimTooSmallError` before any row
        changes.
        """
        parse_pubkey(creator_wallet)
        payout_id, reserved, total, rows = self.dl.rewards.reserve_payable(
            creator_id, self.min_payout_sol, pool_address
        )
        reward_ids = list(reserved)
        lamports = sol_to_lamports(total)
        log.info(
            f"Reserved {total} SOL across {len(rows)} reward(s) for {creator_id}",
            source="ClaimBuilder",
            payload={"payoutId": payout_id},
        )

        if self.payout_mode == EXTERNAL_MODE:
            try:
                unsigned = await self.client.build_unsigned_transfer(creator_wallet, lamports)
            except Exception:
                self.dl.rewards.release(payout_id)
                raise
            return {
                "payoutId": payout_id,
                "amount": total,
                "rewardIds": reward_ids,
                "transaction": unsigned,
                "status": "pending_signature",
            }

        try:
            signature = await self.client.transfer(creator_wallet, lamports)
        except Exception as exc:
            self.dl.rewards.release(payout_id)
            log.error(f"Payout to {creator_wallet} failed; reservation released: {exc}", source="ClaimBuilder")
            raise

        settled_at = utc_now()
        self.dl.rewards.stamp_settlement(payout_id, signature, settled_at)
        log.success(
            f"💸 Paid {total} SOL to {creator_wallet}",
            source="ClaimBuilder",
            payload={"signature": signature, "rewards": len(reward_ids)},
        )
        return {
            "payoutId": payout_id,
            "amount": total,
            "rewardIds": reward_ids,
            "signature": signature,
            "claimedAt": to_iso(settled_at),
            "status": "settled",
        }

    def record_settlement(self, payout_id: str, signature: str, creator_id: Optional[str] = None) -> int:
        """Stamp an externally signed payout onto the rows it reserved."""
        count = self.dl.rewards.stamp_settlement(payout_id, signature, creator_id=creator_id)
        if count:
            log.success(f"Settlement {signature} recorded for {count} reward(s)", source="ClaimBuilder")
        return count

    def release_reservation(self, payout_id: str, creator_id: Optional[str] = None) -> int:
        """Return the unsettled part of one payout to the payable pool."""
        released = self.dl.rewards.release(payout_id, creator_id=creator_id)
        if released:
            log.info(f"Released {released} reserved reward(s) of payout {payout_id}", source="ClaimBuilder")
        return released


__all__ = ["ClaimBuilder", "PLATFORM_MODE", "EXTERNAL_MODE"]
