"""
reconciler.py
~~~~~~~~~~~~~

Applies parsed chain events to the ledger and notifies the broadcaster.

Idempotency rests on store keys: a token address or trade signature that is
already present turns the event into a no-op. Each event in a batch is
guarded on its own; one failure never stops the rest.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, Optional

from launchpad.core.amounts import to_price, to_sol
from launchpad.core.constants import TRADE_FEE_RATE
from launchpad.core.logging import log
from launchpad.models.events import (
    ChainEvent,
    Graduated,
    PriceUpdateEvent,
    TokenCreated,
    TokenCreatedEvent,
    TradeEvent,
    TradeExecuted,
)
from launchpad.models.token import Token
from launchpad.models.trade import Trade
from launchpad.utils.time_utils import utc_now

APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


class Reconciler:
    def __init__(self, dl, broadcaster=None, trade_fee_rate: Decimal = TRADE_FEE_RATE):
        self.dl = dl
        self.broadcaster = broadcaster
        self.trade_fee_rate = Decimal(str(trade_fee_rate))

    def apply(self, event: ChainEvent) -> str:
        """Apply one event; returns ``"applied"`` or ``"skipped"``."""
        if isinstance(event, TokenCreated):
            return self._apply_token_created(event)
        if isinstance(event, TradeExecuted):
            return self._apply_trade(event)
        if isinstance(event, Graduated):
            return self._apply_graduation(event)
        raise TypeError(f"unsupported chain event: {type(event).__name__}")

    def apply_all(self, events: Iterable[ChainEvent]) -> Dict[str, int]:
        counts = {APPLIED: 0, SKIPPED: 0, FAILED: 0}
        for event in events:
            try:
                counts[self.apply(event)] += 1
            except Exception as exc:
                counts[FAILED] += 1
                sig = getattr(event, "signature", "?")
                log.exception(exc, f"Failed to apply {type(event).__name__} from {sig}", source="Reconciler")
        return counts

    # ------------------------------------------------------------- handlers --

    def _apply_token_created(self, event: TokenCreated) -> str:
        token = Token(
            address=event.token_address,
            name=event.name,
            symbol=event.symbol,
            creator=event.creator,
            creator_type=event.creator_type,
            bonding_curve=event.bonding_curve,
            total_supply=event.total_supply,
        )
        if not self.dl.tokens.insert_token(token):
            log.debug(f"Token {event.token_address} already indexed", source="Reconciler")
            return SKIPPED

        log.info(f"🪙 Token indexed: {token.symbol} ({token.address})", source="Reconciler")
        self._emit_token_created(
            TokenCreatedEvent(
                token_address=token.address,
                name=token.name,
                symbol=token.symbol,
                creator=token.creator,
                creator_type=token.creator_type.value,
            )
        )
        return APPLIED

    def _apply_trade(self, event: TradeExecuted) -> str:
        if self.dl.trades.get_by_signature(event.signature) is not None:
            log.debug(f"Trade {event.signature} already indexed", source="Reconciler")
            return SKIPPED

        token = self.dl.tokens.get_token(event.token_address)
        if token is None:
            log.warning(
                f"Trade {event.signature} for unknown token {event.token_address}; dropped",
                source="Reconciler",
            )
            return SKIPPED

        trade = Trade(
            signature=event.signature,
            token_address=event.token_address,
            trader=event.trader,
            side=event.side,
            amount_sol=event.amount_sol,
            amount_tokens=event.amount_tokens,
            price=event.price,
            fee=to_sol(event.amount_sol * self.trade_fee_rate),
        )

        with self.dl.transaction():
            if not self.dl.trades.insert_trade(trade):
                # a concurrent handler got here first
                return SKIPPED
            volume = self.dl.trades.get_24h_volume(trade.token_address)
            market_cap = (
                to_price(trade.price * token.total_supply)
                if token.total_supply
                else token.market_cap
            )
            self.dl.tokens.update_market(
                trade.token_address,
                price=trade.price,
                market_cap=market_cap,
                volume_24h=volume,
            )

        log.info(
            f"💱 {trade.side.value} {trade.amount_sol} SOL of {token.symbol}",
            source="Reconciler",
            payload={"signature": trade.signature},
        )
        self._emit_trade(
            TradeEvent(
                token_address=trade.token_address,
                side=trade.side.value,
                amount_sol=trade.amount_sol,
                amount_tokens=trade.amount_tokens,
                trader=trade.trader,
                price=trade.price,
            )
        )
        self._emit_price_update(
            PriceUpdateEvent(
                token_address=trade.token_address,
                price=trade.price,
                market_cap=market_cap,
                volume_24h=volume,
            )
        )
        return APPLIED

    def _apply_graduation(self, event: Graduated) -> str:
        if not self.dl.tokens.mark_graduated(event.token_address, utc_now()):
            log.debug(
                f"Graduation of {event.token_address} ignored (unknown or already graduated)",
                source="Reconciler",
            )
            return SKIPPED
        log.success(f"🎓 Token graduated: {event.token_address}", source="Reconciler")
        return APPLIED

    # ------------------------------------------------------------- emission --

    def _emit_token_created(self, ev: TokenCreatedEvent) -> None:
        if self.broadcaster is not None:
            self.broadcaster.emit_token_created(ev)

    def _emit_trade(self, ev: TradeEvent) -> None:
        if self.broadcaster is not None:
            self.broadcaster.emit_trade(ev)

    def _emit_price_update(self, ev: PriceUpdateEvent) -> None:
        if self.broadcaster is not None:
            self.broadcaster.emit_price_update(ev)


__all__ = ["Reconciler", "APPLIED", "SKIPPED", "FAILED"]
