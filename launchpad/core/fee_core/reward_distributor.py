"""
reward_distributor.py
~~~~~~~~~~~~~~~~~~~~~

Platform / creator split of a claimed fee amount.

``creator_share`` is rounded down to a lamport and ``platform_share`` takes
the remainder, so the two always add up to the claimed amount exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from launchpad.core.amounts import ZERO, percent_of, to_sol
from launchpad.core.logging import log
from launchpad.models.creator_reward import CreatorReward


@dataclass(frozen=True)
class FeeSplit:
    platform_share: Decimal
    creator_share: Decimal


def split_fee(amount, percent) -> FeeSplit:
    amount = to_sol(amount)
    percent = Decimal(str(percent))
    if amount < ZERO:
        raise ValueError(f"fee amount must not be negative, got {amount}")
    if not ZERO <= percent <= Decimal(100):
        raise ValueError(f"revenue share percent must be within [0, 100], got {percent}")
    creator = percent_of(amount, percent)
    return FeeSplit(platform_share=amount - creator, creator_share=creator)


class RewardDistributor:
    def __init__(self, dl):
        self.dl = dl

    def distribute(self, pool_address: str, amount) -> Optional[CreatorReward]:
        """Credit the pool creator's share of ``amount``.

        Returns the updated reward row, or ``None`` when the pool has no
        creator and the platform keeps the whole amount.
        """
        pool = self.dl.pools.get_pool(pool_address)
        if pool is None or not pool.creator_id:
            log.info(
                f"No creator for pool {pool_address}; platform keeps {to_sol(amount)} SOL",
                source="RewardDistributor",
            )
            return None

        split = split_fee(amount, pool.revenue_share_percent)
        reward = self.dl.rewards.accrue(pool, split.creator_share)
        log.info(
            f"💰 Credited {split.creator_share} SOL to {pool.creator_id} for pool {pool_address}",
            source="RewardDistributor",
            payload={"platform_share": str(split.platform_share)},
        )
        return reward


__all__ = ["FeeSplit", "split_fee", "RewardDistributor"]
