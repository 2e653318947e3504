from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from launchpad.utils.time_utils import utc_now


class FeeVault(BaseModel):
    """
    Protocol-owned fee account for one pool.

    ``claimed <= collected`` and ``unclaimed == collected - claimed`` hold after
    every write made by the fee sweep; ``last_claim_at`` never moves backwards.
    """

    pool_address: str
    token_address: str
    vault_address: str
    total_collected: Decimal = Decimal("0")
    total_claimed: Decimal = Decimal("0")
    unclaimed: Decimal = Decimal("0")
    last_claim_at: Optional[datetime] = None
    claim_count: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["FeeVault"]
