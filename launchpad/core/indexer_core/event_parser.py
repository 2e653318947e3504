"""
event_parser.py
~~~~~~~~~~~~~~~

Turns the log lines of an admitted transaction into chain events.

The bonding-curve program emits one line per event::

    Program log: TokenCreated mint=<addr> name="Moon Dog" symbol=MDOG creator=<addr> creator_type=agent
    Program log: TokenPurchased mint=<addr> trader=<addr> amount_sol=0.5 amount_tokens=1000 price=0.0005
    Program log: TokenSold mint=<addr> trader=<addr> amount_sol=0.2 amount_tokens=400 price=0.0005
    Program log: TokenGraduated mint=<addr> pool=<addr>

The payload after the marker is a list of ``key=value`` pairs. Decoders are
registered per marker, so a binary decoder for a marker can be swapped in
with :meth:`EventParser.register` without touching callers.

Parsing never raises: unknown lines are ignored and a marker whose payload
cannot be decoded is skipped with a DEBUG log.
"""

from __future__ import annotations

import re
import shlex
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional, Sequence

from launchpad.core.amounts import to_price, to_sol
from launchpad.core.logging import log
from launchpad.models.events import ChainEvent, Graduated, TokenCreated, TradeExecuted
from launchpad.models.token import CreatorType
from launchpad.models.trade import TradeSide

Decoder = Callable[[str, Dict[str, str]], ChainEvent]

TRADE_MARKERS = ("TokenPurchased", "TokenSold")


def _marker_re(markers) -> "re.Pattern[str]":
    names = "|".join(re.escape(m) for m in sorted(markers, key=len, reverse=True))
    return re.compile(rf"\b({names})\b(.*)$")


class IncompletePayload(ValueError):
    """Marker payload is missing a field or carries an unparseable value."""


def parse_fields(payload: str) -> Dict[str, str]:
    try:
        parts = shlex.split(payload)
    except ValueError as exc:
        raise IncompletePayload(f"unbalanced quoting: {exc}") from exc
    fields: Dict[str, str] = {}
    for part in parts:
        key, sep, value = part.partition("=")
        if sep:
            fields[key.strip()] = value.strip()
    return fields


def _require(fields: Dict[str, str], *names: str) -> List[str]:
    missing = [n for n in names if not fields.get(n)]
    if missing:
        raise IncompletePayload(f"missing {', '.join(missing)}")
    return [fields[n] for n in names]


def _amount(raw: str) -> Decimal:
    try:
        value = to_sol(raw)
    except ValueError as exc:
        raise IncompletePayload(f"bad amount {raw!r}") from exc
    if value < 0:
        raise IncompletePayload(f"negative amount {raw!r}")
    return value


def _price(raw: str) -> Decimal:
    try:
        value = to_price(raw)
    except ValueError as exc:
        raise IncompletePayload(f"bad price {raw!r}") from exc
    if value < 0:
        raise IncompletePayload(f"negative price {raw!r}")
    return value


def _integer(raw: str) -> int:
    try:
        value = int(Decimal(raw))
    except (InvalidOperation, ValueError) as exc:
        raise IncompletePayload(f"bad integer {raw!r}") from exc
    if value < 0:
        raise IncompletePayload(f"negative integer {raw!r}")
    return value


# ---------------------------------------------------------------------------
# Text decoders
# ---------------------------------------------------------------------------


def decode_token_created(signature: str, fields: Dict[str, str]) -> TokenCreated:
    mint, name, symbol, creator = _require(fields, "mint", "name", "symbol", "creator")
    try:
        creator_type = CreatorType(fields.get("creator_type", CreatorType.HUMAN.value).lower())
    except ValueError as exc:
        raise IncompletePayload(f"unknown creator_type {fields['creator_type']!r}") from exc
    supply = fields.get("supply")
    return TokenCreated(
        signature=signature,
        token_address=mint,
        name=name,
        symbol=symbol,
        creator=creator,
        creator_type=creator_type,
        bonding_curve=fields.get("bonding_curve"),
        total_supply=_integer(supply) if supply else None,
    )


def _trade_decoder(side: TradeSide) -> Decoder:
    def decode(signature: str, fields: Dict[str, str]) -> TradeExecuted:
        mint, trader, amount_sol, amount_tokens, price = _require(
            fields, "mint", "trader", "amount_sol", "amount_tokens", "price"
        )
        return TradeExecuted(
            signature=signature,
            token_address=mint,
            trader=trader,
            side=side,
            amount_sol=_amount(amount_sol),
            amount_tokens=_integer(amount_tokens),
            price=_price(price),
        )

    return decode


def decode_graduated(signature: str, fields: Dict[str, str]) -> Graduated:
    (mint,) = _require(fields, "mint")
    return Graduated(signature=signature, token_address=mint, pool_address=fields.get("pool"))


DEFAULT_DECODERS: Dict[str, Decoder] = {
    "TokenCreated": decode_token_created,
    "TokenPurchased": _trade_decoder(TradeSide.BUY),
    "TokenSold": _trade_decoder(TradeSide.SELL),
    "TokenGraduated": decode_graduated,
}


class EventParser:
    """Pure log-line → event decoder."""

    def __init__(self, decoders: Optional[Dict[str, Decoder]] = None) -> None:
        self._decoders: Dict[str, Decoder] = dict(DEFAULT_DECODERS)
        if decoders:
            self._decoders.update(decoders)
        self._marker_re = _marker_re(self._decoders)

    def register(self, marker: str, decoder: Decoder) -> None:
        self._decoders[marker] = decoder
        self._marker_re = _marker_re(self._decoders)

    def parse(self, logs: Sequence[str], signature: str) -> List[ChainEvent]:
        events: List[ChainEvent] = []
        trade_index = 0
        for line in logs or ():
            match = self._marker_re.search(line or "")
            if not match:
                continue
            marker, payload = match.group(1), match.group(2)
            decoder = self._decoders[marker]

            event_sig = signature
            if marker in TRADE_MARKERS:
                # trade rows are keyed by signature; later trades in the tx get a suffix
                event_sig = signature if trade_index == 0 else f"{signature}:{trade_index}"

            try:
                event = decoder(event_sig, parse_fields(payload))
            except (KeyError, ValueError) as exc:
                log.debug(f"Skipping {marker} in {signature}: {exc}", source="EventParser")
                continue

            if isinstance(event, TradeExecuted):
                trade_index += 1
            events.append(event)
        return events


__all__ = ["EventParser", "IncompletePayload", "parse_fields", "DEFAULT_DECODERS", "TRADE_MARKERS"]
