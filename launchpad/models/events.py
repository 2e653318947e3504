"""Event variants flowing through the indexer.

Two closed families:

* chain events produced by the log parser (:data:`ChainEvent`)
* channel events pushed to realtime observers (:data:`ChannelEvent`)

Consumers dispatch with ``isinstance`` over the full family and raise
``TypeError`` on anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from launchpad.models.token import CreatorType
from launchpad.models.trade import TradeSide
from launchpad.utils.time_utils import epoch_ms


# ---------------------------------------------------------------------------
# Chain events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenCreated:
    signature: str
    token_address: str
    name: str
    symbol: str
    creator: str
    creator_type: CreatorType = CreatorType.HUMAN
    bonding_curve: Optional[str] = None
    total_supply: Optional[int] = None


@dataclass(frozen=True)
class TradeExecuted:
    signature: str
    token_address: str
    trader: str
    side: TradeSide
    amount_sol: Decimal
    amount_tokens: int
    price: Decimal


@dataclass(frozen=True)
class Graduated:
    signature: str
    token_address: str
    pool_address: Optional[str] = None


ChainEvent = Union[TokenCreated, TradeExecuted, Graduated]


# ---------------------------------------------------------------------------
# Channel events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PriceUpdateEvent:
    token_address: str
    price: Decimal
    market_cap: Decimal
    volume_24h: Decimal
    timestamp: int = field(default_factory=epoch_ms)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": "price_update",
            "token_address": self.token_address,
            "price": float(self.price),
            "market_cap": float(self.market_cap),
            "volume_24h": float(self.volume_24h),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TokenCreatedEvent:
    token_address: str
    name: str
    symbol: str
    creator: str
    creator_type: str
    timestamp: int = field(default_factory=epoch_ms)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": "token_created",
            "token_address": self.token_address,
            "name": self.name,
            "symbol": self.symbol,
            "creator": self.creator,
            "creator_type": self.creator_type,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TradeEvent:
    token_address: str
    side: str
    amount_sol: Decimal
    amount_tokens: int
    trader: str
    price: Decimal
    timestamp: int = field(default_factory=epoch_ms)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": "trade",
            "token_address": self.token_address,
            "side": self.side,
            "amount_sol": float(self.amount_sol),
            # token amounts exceed JS safe integers, send as a string
            "amount_tokens": str(self.amount_tokens),
            "trader": self.trader,
            "price": float(self.price),
            "timestamp": self.timestamp,
        }


ChannelEvent = Union[PriceUpdateEvent, TokenCreatedEvent, TradeEvent]


__all__ = [
    "TokenCreated",
    "TradeExecuted",
    "Graduated",
    "ChainEvent",
    "PriceUpdateEvent",
    "TokenCreatedEvent",
    "TradeEvent",
    "ChannelEvent",
]
