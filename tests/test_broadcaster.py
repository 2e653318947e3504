from decimal import Decimal

import pytest

from launchpad.core.broadcast_core.broadcaster import Broadcaster, channel_key, event_payload
from launchpad.models.events import PriceUpdateEvent, TokenCreatedEvent, TradeEvent


class ListObserver:
    def __init__(self):
        self.received = []

    def deliver(self, payload):
        self.received.append(payload)


class BrokenObserver:
    def deliver(self, payload):
        raise ConnectionError("socket gone")


def _price(mint, price="0.001"):
    return PriceUpdateEvent(
        token_address=mint,
        price=Decimal(price),
        market_cap=Decimal("10"),
        volume_24h=Decimal("3"),
        timestamp=1,
    )


def _trade(mint):
    return TradeEvent(
        token_address=mint,
        side="buy",
        amount_sol=Decimal("0.5"),
        amount_tokens=2**60,
        trader="trader",
        price=Decimal("0.001"),
        timestamp=2,
    )


def test_channel_key_validation():
    assert channel_key("token", "abc") == "token:abc"
    assert channel_key("trending") == "trending"
    with pytest.raises(ValueError):
        channel_key("token")
    with pytest.raises(ValueError):
        channel_key("prices")


def test_event_payload_shapes():
    assert event_payload(_price("m"))["event"] == "price_update"
    trade = event_payload(_trade("m"))
    assert trade["event"] == "trade"
    assert trade["amount_tokens"] == str(2**60)
    with pytest.raises(TypeError):
        event_payload({"event": "trade"})


def test_token_channels_are_isolated():
    bc = Broadcaster()
    a, b = ListObserver(), ListObserver()
    bc.subscribe(channel_key("token", "A"), a)
    bc.subscribe(channel_key("token", "B"), b)

    bc.emit_price_update(_price("A"))

    assert [p["token_address"] for p in a.received] == ["A"]
    assert b.received == []


def test_trending_and_trades_fan_out():
    bc = Broadcaster()
    trending, trades, token = ListObserver(), ListObserver(), ListObserver()
    bc.subscribe("trending", trending)
    bc.subscribe("trades", trades)
    bc.subscribe("token:A", token)

    bc.emit_trade(_trade("A"))
    bc.emit_price_update(_price("A"))

    assert [p["event"] for p in token.received] == ["trade", "price_update"]
    assert [p["event"] for p in trades.received] == ["trade"]
    assert [p["event"] for p in trending.received] == ["price_update"]


def test_per_channel_order_matches_emission():
    bc = Broadcaster()
    obs = ListObserver()
    bc.subscribe("trending", obs)
    for price in ("1", "2", "3"):
        bc.emit_price_update(_price("A", price))
    assert [p["price"] for p in obs.received] == [1.0, 2.0, 3.0]


def test_new_tokens_channel():
    bc = Broadcaster()
    obs = ListObserver()
    bc.subscribe("new_tokens", obs)
    bc.emit_token_created(
        TokenCreatedEvent(
            token_address="A", name="Moon", symbol="MOON", creator="c", creator_type="agent", timestamp=3
        )
    )
    assert obs.received[0]["creator_type"] == "agent"


def test_failing_observer_is_evicted_without_affecting_others():
    bc = Broadcaster()
    good, bad = ListObserver(), BrokenObserver()
    bc.subscribe("trades", good)
    bc.subscribe("trades", bad)
    bc.subscribe("trending", bad)

    assert bc.emit("trades", _trade("A")) == 1
    assert bc.subscribers("trades") == {good}
    assert bc.subscribers("trending") == set()
    assert len(good.received) == 1


def test_disconnect_removes_every_membership():
    bc = Broadcaster()
    obs = ListObserver()
    bc.register(obs)
    bc.subscribe("trades", obs)
    bc.subscribe("token:A", obs)
    assert bc.get_stats() == {"totalConnections": 1, "subscriptions": {"trades": 1, "token:A": 1}}

    bc.disconnect(obs)
    bc.emit_trade(_trade("A"))

    assert obs.received == []
    assert bc.get_stats() == {"totalConnections": 0, "subscriptions": {}}


def test_unsubscribe_keeps_other_channels():
    bc = Broadcaster()
    obs = ListObserver()
    bc.subscribe("trades", obs)
    bc.subscribe("trending", obs)
    bc.unsubscribe("trades", obs)
    bc.emit_trade(_trade("A"))
    bc.emit_price_update(_price("A"))
    assert [p["event"] for p in obs.received] == ["price_update"]


def test_closed_broadcaster_refuses_subscribers():
    bc = Broadcaster()
    obs = ListObserver()
    bc.subscribe("trades", obs)
    bc.close()
    assert bc.emit("trades", _trade("A")) == 0
    with pytest.raises(RuntimeError):
        bc.subscribe("trades", obs)
