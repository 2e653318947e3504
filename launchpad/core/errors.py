"""Exception taxonomy for the ledger."""

from __future__ import annotations

from decimal import Decimal


def _sol(value) -> str:
    return format(Decimal(str(value)).normalize(), "f")


class LaunchpadError(Exception):
    """Base class for ledger errors."""


class RpcError(LaunchpadError, RuntimeError):
    """Transport or JSON-RPC failure talking to the cluster."""


class ClaimError(LaunchpadError):
    """A vault claim could not be submitted or confirmed."""


class PayoutError(LaunchpadError):
    """Expected, user-visible outcome of a creator payout request."""


class NoUnclaimedRewardsError(PayoutError):
    def __init__(self, creator_id: str) -> None:
        super().__init__("No unclaimed rewards available")
        self.creator_id = creator_id


class ClaimTooSmallError(PayoutError):
    def __init__(self, amount, minimum) -> None:
        super().__init__(f"Minimum claim amount is {_sol(minimum)} SOL (have {_sol(amount)} SOL)")
        self.amount = amount
        self.minimum = minimum


__all__ = [
    "LaunchpadError",
    "RpcError",
    "ClaimError",
    "PayoutError",
    "NoUnclaimedRewardsError",
    "ClaimTooSmallError",
]
