"""
broadcaster.py
~~~~~~~~~~~~~~

Channel → observer membership and synchronous fan-out of channel events.

Channels:

* ``token:<address>``: events for one token
* ``new_tokens``: token launches
* ``trending``: price updates for every token
* ``trades``: trades for every token

A :class:`Broadcaster` is created at application start and closed at
shutdown. Delivery happens inline on the event loop, so per-channel order
equals emission order. Nothing is queued for observers that subscribe later.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Set

from launchpad.core.logging import log
from launchpad.models.events import (
    ChannelEvent,
    PriceUpdateEvent,
    TokenCreatedEvent,
    TradeEvent,
)

TOKEN_CHANNEL = "token"
NEW_TOKENS_CHANNEL = "new_tokens"
TRENDING_CHANNEL = "trending"
TRADES_CHANNEL = "trades"
CHANNELS = (TOKEN_CHANNEL, NEW_TOKENS_CHANNEL, TRENDING_CHANNEL, TRADES_CHANNEL)


class Observer(Protocol):
    def deliver(self, payload: Dict[str, Any]) -> None: ...


def channel_key(channel: str, token_address: Optional[str] = None) -> str:
    """Return the membership key for a client-facing channel name."""
    if channel not in CHANNELS:
        raise ValueError(f"Unknown channel: {channel}")
    if channel == TOKEN_CHANNEL:
        if not token_address:
            raise ValueError("token_address is required for the token channel")
        return f"{TOKEN_CHANNEL}:{token_address}"
    return channel


def event_payload(event: ChannelEvent) -> Dict[str, Any]:
    if isinstance(event, (PriceUpdateEvent, TokenCreatedEvent, TradeEvent)):
        return event.to_payload()
    raise TypeError(f"unsupported channel event: {type(event).__name__}")


class Broadcaster:
    def __init__(self) -> None:
        self._channels: Dict[str, Set[Observer]] = {}
        self._memberships: Dict[Observer, Set[str]] = {}
        self._closed = False

    # ---------------------------------------------------------- membership --

    def register(self, observer: Observer) -> None:
        """Track a connected observer before it joins any channel."""
        if self._closed:
            raise RuntimeError("broadcaster is closed")
        self._memberships.setdefault(observer, set())

    def subscribe(self, key: str, observer: Observer) -> None:
        if self._closed:
            raise RuntimeError("broadcaster is closed")
        self._channels.setdefault(key, set()).add(observer)
        self._memberships.setdefault(observer, set()).add(key)
        log.debug(f"Subscribed to {key}", source="Broadcaster")

    def unsubscribe(self, key: str, observer: Observer) -> None:
        members = self._channels.get(key)
        if members is not None:
            members.discard(observer)
            if not members:
                del self._channels[key]
        keys = self._memberships.get(observer)
        if keys is not None:
            keys.discard(key)

    def disconnect(self, observer: Observer) -> None:
        """Remove ``observer`` from every channel it joined."""
        for key in list(self._memberships.pop(observer, ())):
            members = self._channels.get(key)
            if members is None:
                continue
            members.discard(observer)
            if not members:
                del self._channels[key]

    def subscribers(self, key: str) -> Set[Observer]:
        return set(self._channels.get(key, ()))

    # ------------------------------------------------------------ emission --

    def emit(self, key: str, event: ChannelEvent) -> int:
        """Deliver ``event`` to current members of ``key``; returns the delivery count."""
        payload = event_payload(event)
        delivered = 0
        for observer in list(self._channels.get(key, ())):
            try:
                observer.deliver(payload)
                delivered += 1
            except Exception as exc:
                log.debug(f"Evicting observer on {key}: {exc}", source="Broadcaster")
                self.disconnect(observer)
        return delivered

    def emit_price_update(self, event: PriceUpdateEvent) -> None:
        self.emit(channel_key(TOKEN_CHANNEL, event.token_address), event)
        self.emit(TRENDING_CHANNEL, event)

    def emit_trade(self, event: TradeEvent) -> None:
        self.emit(channel_key(TOKEN_CHANNEL, event.token_address), event)
        self.emit(TRADES_CHANNEL, event)

    def emit_token_created(self, event: TokenCreatedEvent) -> None:
        self.emit(NEW_TOKENS_CHANNEL, event)

    # ------------------------------------------------------------- lifecycle --

    def get_stats(self) -> Dict[str, Any]:
        return {
            "totalConnections": len(self._memberships),
            "subscriptions": {key: len(members) for key, members in self._channels.items()},
        }

    def close(self) -> None:
        for observer in list(self._memberships):
            self.disconnect(observer)
        self._closed = True
        log.info("Broadcaster closed", source="Broadcaster")


__all__ = [
    "Broadcaster",
    "Observer",
    "channel_key",
    "event_payload",
    "CHANNELS",
    "TOKEN_CHANNEL",
    "NEW_TOKENS_CHANNEL",
    "TRENDING_CHANNEL",
    "TRADES_CHANNEL",
]
