from decimal import Decimal

import pytest

from launchpad.core.indexer_core.event_parser import EventParser, IncompletePayload, parse_fields
from launchpad.models.events import Graduated, TokenCreated, TradeExecuted
from launchpad.models.token import CreatorType
from launchpad.models.trade import TradeSide

MINT = "Mint1111111111111111111111111111111111111111"
WALLET = "Wa11et1111111111111111111111111111111111111"


def test_parse_fields_handles_quoted_values():
    assert parse_fields(' mint=abc name="Moon Dog" symbol=MD stray') == {
        "mint": "abc",
        "name": "Moon Dog",
        "symbol": "MD",
    }


def test_parse_fields_rejects_unbalanced_quotes():
    with pytest.raises(IncompletePayload):
        parse_fields('name="Moon')


def test_token_created_line():
    logs = [
        "Program BondCurve invoke [1]",
        f'Program log: TokenCreated mint={MINT} name="Moon Dog" symbol=MDOG '
        f"creator={WALLET} creator_type=agent supply=1000000000",
        "Program BondCurve success",
    ]
    events = EventParser().parse(logs, "sig-1")

    assert events == [
        TokenCreated(
            signature="sig-1",
            token_address=MINT,
            name="Moon Dog",
            symbol="MDOG",
            creator=WALLET,
            creator_type=CreatorType.AGENT,
            total_supply=1_000_000_000,
        )
    ]


def test_trades_get_distinct_signatures():
    logs = [
        f"Program log: TokenPurchased mint={MINT} trader={WALLET} amount_sol=0.5 amount_tokens=1000 price=0.0005",
        f"Program log: TokenSold mint={MINT} trader={WALLET} amount_sol=0.2 amount_tokens=400 price=0.0005",
    ]
    buy, sell = EventParser().parse(logs, "sig-2")

    assert isinstance(buy, TradeExecuted) and buy.side is TradeSide.BUY
    assert buy.signature == "sig-2"
    assert buy.amount_sol == Decimal("0.5")
    assert sell.side is TradeSide.SELL
    assert sell.signature == "sig-2:1"
    assert sell.amount_tokens == 400


def test_sub_lamport_price_keeps_every_digit():
    logs = [
        f"Program log: TokenPurchased mint={MINT} trader={WALLET} amount_sol=0.0000000015 "
        f"amount_tokens=51 price=0.0000000294",
    ]
    (trade,) = EventParser().parse(logs, "sig-3")

    assert trade.price == Decimal("0.0000000294")
    assert trade.amount_sol == Decimal("0.000000001")


def test_graduation_pool_is_optional():
    events = EventParser().parse([f"Program log: TokenGraduated mint={MINT}"], "sig-3")
    assert events == [Graduated(signature="sig-3", token_address=MINT)]


@pytest.mark.parametrize(
    "line",
    [
        f"Program log: TokenPurchased mint={MINT} trader={WALLET} amount_sol=abc amount_tokens=1 price=1",
        f"Program log: TokenPurchased mint={MINT} amount_sol=1 amount_tokens=1 price=1",
        f"Program log: TokenSold mint={MINT} trader={WALLET} amount_sol=-1 amount_tokens=1 price=1",
        f"Program log: TokenCreated mint={MINT} name=x symbol=X creator={WALLET} creator_type=robot",
        'Program log: TokenCreated name="unterminated',
    ],
)
def test_malformed_markers_are_skipped(line):
    logs = [line, f"Program log: TokenGraduated mint={MINT}"]
    assert [type(e) for e in EventParser().parse(logs, "sig-4")] == [Graduated]


def test_unrelated_lines_yield_nothing():
    assert EventParser().parse(["Program log: Instruction: Buy", None, ""], "sig-5") == []
    assert EventParser().parse(None, "sig-6") == []


def test_registered_decoder_is_used():
    parser = EventParser()
    seen = []

    def decode(signature, fields):
        seen.append(fields)
        return Graduated(signature=signature, token_address=fields["mint"], pool_address="custom")

    parser.register("PoolMigrated", decode)
    events = parser.parse([f"Program log: PoolMigrated mint={MINT}"], "sig-7")

    assert events[0].pool_address == "custom"
    assert seen == [{"mint": MINT}]
