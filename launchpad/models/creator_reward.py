from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from launchpad.core.constants import DEFAULT_REVENUE_SHARE_PERCENT
from launchpad.utils.time_utils import utc_now


class CreatorReward(BaseModel):
    """
    Running fee share of one creator in one pool.

    ``claimed_amount + unclaimed == lifetime_earned`` always holds.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    creator_id: str                     # bot / agent id
    creator_wallet: str
    pool_address: str
    token_address: str
    lifetime_earned: Decimal = Decimal("0")
    claimed_amount: Decimal = Decimal("0")
    unclaimed: Decimal = Decimal("0")
    reserved_amount: Decimal = Decimal("0")   # part of claimed_amount awaiting settlement
    revenue_share_percent: Decimal = Field(default=DEFAULT_REVENUE_SHARE_PERCENT, ge=0, le=100)
    claimed: bool = False
    last_claim_at: Optional[datetime] = None
    last_claim_signature: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_api(self) -> dict:
        return {
            "id": self.id,
            "botId": self.creator_id,
            "botWallet": self.creator_wallet,
            "poolAddress": self.pool_address,
            "tokenAddress": self.token_address,
            "totalFeesEarned": float(self.lifetime_earned),
            "claimedAmount": float(self.claimed_amount),
            "unclaimedAmount": float(self.unclaimed),
            "revenueSharePercent": float(self.revenue_share_percent),
            "claimed": self.claimed,
            "pendingAmount": float(self.reserved_amount),
            "lastClaimAt": self.last_claim_at.isoformat() if self.last_claim_at else None,
            "lastClaimSignature": self.last_claim_signature,
        }


__all__ = ["CreatorReward"]
