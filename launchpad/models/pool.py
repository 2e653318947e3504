from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from launchpad.core.constants import DEFAULT_REVENUE_SHARE_PERCENT


class Pool(BaseModel):
    """Pool configuration written by pool creation; read-only to fee distribution."""

    pool_address: str
    token_address: str
    creator_id: Optional[str] = None
    creator_wallet: Optional[str] = None
    revenue_share_percent: Decimal = Field(default=DEFAULT_REVENUE_SHARE_PERCENT, ge=0, le=100)


__all__ = ["Pool"]
