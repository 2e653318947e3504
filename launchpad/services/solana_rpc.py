"""Chain capability used by the indexer and fee core.

Everything that talks to the cluster goes through a :class:`ChainClient`.
:class:`SolanaChainClient` is the production implementation on top of
``solana-py``'s ``AsyncClient`` for JSON-RPC and a raw ``websockets``
connection for the ``logsSubscribe`` stream. Tests substitute a fake.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Protocol

import websockets
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException, UnconfirmedTxError
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction

from launchpad.core.errors import RpcError
from launchpad.core.logging import log
from launchpad.utils.pubkey import parse_pubkey

# Anchor-style discriminator of the fee program's claim instruction.
CLAIM_FEE_DISCRIMINATOR = hashlib.sha256(b"global:claim_fee").digest()[:8]

WS_BACKOFF_START = 0.5
WS_BACKOFF_MAX = 5.0

_RPC_ERRORS = (SolanaRpcException, RPCException, UnconfirmedTxError, OSError, asyncio.TimeoutError)


@dataclass(frozen=True)
class LogNotification:
    """One ``logsNotification`` from the cluster."""

    signature: str
    logs: List[str] = field(default_factory=list)
    slot: int = 0
    err: Optional[Any] = None


class ChainClient(Protocol):
    async def get_transaction_accounts(self, signature: str) -> Optional[List[str]]:
        """Account keys referenced by ``signature`` or ``None`` when not found."""

    async def get_balance(self, address: str) -> int:
        """Balance of ``address`` in lamports."""

    async def get_slot(self) -> int: ...

    async def get_latest_blockhash(self) -> Hash: ...

    async def claim_vault(self, vault_address: str, lamports: int) -> str:
        """Claim ``lamports`` out of a fee vault; returns the confirmed signature."""

    async def transfer(self, recipient: str, lamports: int) -> str:
        """Pay ``recipient`` from the platform wallet; returns the confirmed signature."""

    async def build_unsigned_transfer(self, recipient: str, lamports: int) -> str:
        """Base64 unsigned platform→recipient transfer for external signing."""

    def logs_subscribe(self, program_id: str) -> AsyncIterator[LogNotification]: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def load_keypair(path: str = "", secret: str = "") -> Optional[Keypair]:
    """Load the platform keypair from a JSON array file or a base58/JSON string."""
    raw = (secret or "").strip()
    if not raw and path:
        p = Path(path).expanduser()
        if not p.exists():
            raise FileNotFoundError(f"keypair file not found: {p}")
        raw = p.read_text(encoding="utf-8").strip()
    if not raw:
        return None
    if raw.startswith("["):
        return Keypair.from_bytes(bytes(json.loads(raw)))
    return Keypair.from_base58_string(raw)


def extract_account_keys(tx_value: Any) -> List[str]:
    """Static account keys plus address-table loaded keys of a fetched transaction."""
    inner = tx_value.transaction
    message = getattr(inner.transaction, "message", None)
    keys: List[str] = []
    for key in getattr(message, "account_keys", None) or []:
        # jsonParsed encoding wraps keys as ParsedAccount(pubkey=...)
        keys.append(str(getattr(key, "pubkey", key)))
    meta = getattr(inner, "meta", None)
    loaded = getattr(meta, "loaded_addresses", None) if meta is not None else None
    if loaded is not None:
        keys.extend(str(k) for k in (loaded.writable or []))
        keys.extend(str(k) for k in (loaded.readonly or []))
    return keys


def parse_logs_notification(msg: dict) -> Optional[LogNotification]:
    if msg.get("method") != "logsNotification":
        return None
    result = msg["params"]["result"]
    value = result.get("value") or {}
    return LogNotification(
        signature=value.get("signature", ""),
        logs=list(value.get("logs") or []),
        slot=int((result.get("context") or {}).get("slot", 0)),
        err=value.get("err"),
    )


def claim_fee_instruction(
    fee_program_id: Pubkey, vault: Pubkey, claimant: Pubkey, lamports: int
) -> Instruction:
    data = CLAIM_FEE_DISCRIMINATOR + struct.pack("<Q", lamports)
    accounts = [
        AccountMeta(pubkey=vault, is_signer=False, is_writable=True),
        AccountMeta(pubkey=claimant, is_signer=True, is_writable=True),
        AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(fee_program_id, data, accounts)


# ---------------------------------------------------------------------------
# Production client
# ---------------------------------------------------------------------------


class SolanaChainClient:
    def __init__(
        self,
        rpc_url: str,
        ws_url: str,
        fee_program_id: str,
        keypair: Optional[Keypair] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.ws_url = ws_url
        self.fee_program_id = parse_pubkey(fee_program_id)
        self.keypair = keypair
        self._client = AsyncClient(rpc_url, commitment=Confirmed)

    @classmethod
    def from_settings(cls, settings) -> "SolanaChainClient":
        keypair = load_keypair(settings.platform_keypair_path, settings.platform_keypair)
        if keypair is None:
            log.warning("⚠️ No platform keypair configured; claims and payouts disabled", source="SolanaRPC")
        return cls(settings.rpc_url, settings.ws_url, settings.fee_program_id, keypair)

    def _require_keypair(self) -> Keypair:
        if self.keypair is None:
            raise RpcError("platform keypair not configured")
        return self.keypair

    # ------------------------------------------------------------- reads --

    async def get_transaction_accounts(self, signature: str) -> Optional[List[str]]:
        try:
            resp = await self._client.get_transaction(
                Signature.from_string(signature),
                encoding="json",
                commitment=Confirmed,
                max_supported_transaction_version=0,
            )
        except _RPC_ERRORS as exc:
            raise RpcError(f"getTransaction {signature} failed: {exc}") from exc
        if resp.value is None:
            return None
        return extract_account_keys(resp.value)

    async def get_balance(self, address: str) -> int:
        try:
            resp = await self._client.get_balance(parse_pubkey(address), commitment=Confirmed)
        except _RPC_ERRORS as exc:
            raise RpcError(f"getBalance {address} failed: {exc}") from exc
        return int(resp.value)

    async def get_slot(self) -> int:
        try:
            resp = await self._client.get_slot(commitment=Confirmed)
        except _RPC_ERRORS as exc:
            raise RpcError(f"getSlot failed: {exc}") from exc
        return int(resp.value)

    async def get_latest_blockhash(self) -> Hash:
        try:
            resp = await self._client.get_latest_blockhash(commitment=Confirmed)
        except _RPC_ERRORS as exc:
            raise RpcError(f"getLatestBlockhash failed: {exc}") from exc
        return resp.value.blockhash

    # ------------------------------------------------------------ writes --

    async def send_and_confirm(self, tx: VersionedTransaction) -> str:
        try:
            resp = await self._client.send_raw_transaction(
                bytes(tx), opts=TxOpts(skip_preflight=False, max_retries=2)
            )
            sig = resp.value
            confirm = await self._client.confirm_transaction(sig, commitment=Confirmed)
        except _RPC_ERRORS as exc:
            raise RpcError(f"sendTransaction failed: {exc}") from exc
        statuses = confirm.value or []
        if statuses and statuses[0] is not None and statuses[0].err is not None:
            raise RpcError(f"transaction {sig} failed on chain: {statuses[0].err}")
        return str(sig)

    async def _sign_and_send(self, instructions: List[Instruction]) -> str:
        kp = self._require_keypair()
        blockhash = await self.get_latest_blockhash()
        msg = MessageV0.try_compile(kp.pubkey(), instructions, [], blockhash)
        return await self.send_and_confirm(VersionedTransaction(msg, [kp]))

    async def claim_vault(self, vault_address: str, lamports: int) -> str:
        kp = self._require_keypair()
        ix = claim_fee_instruction(self.fee_program_id, parse_pubkey(vault_address), kp.pubkey(), lamports)
        return await self._sign_and_send([ix])

    async def transfer(self, recipient: str, lamports: int) -> str:
        kp = self._require_keypair()
        ix = transfer(
            TransferParams(from_pubkey=kp.pubkey(), to_pubkey=parse_pubkey(recipient), lamports=lamports)
        )
        return await self._sign_and_send([ix])

    async def build_unsigned_transfer(self, recipient: str, lamports: int) -> str:
        payer = self._require_keypair().pubkey()
        ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=parse_pubkey(recipient), lamports=lamports))
        blockhash = await self.get_latest_blockhash()
        tx = Transaction.new_unsigned(Message.new_with_blockhash([ix], payer, blockhash))
        return base64.b64encode(bytes(tx)).decode("ascii")

    # ------------------------------------------------------------ stream --

    async def logs_subscribe(self, program_id: str) -> AsyncIterator[LogNotification]:
        """Yield log notifications mentioning ``program_id``, reconnecting on drop."""
        request = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [{"mentions": [program_id]}, {"commitment": "confirmed"}],
        }
        backoff = WS_BACKOFF_START
        while True:
            try:
                async with websockets.connect(
                    self.ws_url, ping_interval=20, ping_timeout=20, close_timeout=5
                ) as ws:
                    await ws.send(json.dumps(request))
                    log.info(f"🛰️ logsSubscribe → {program_id}", source="SolanaRPC")
                    backoff = WS_BACKOFF_START
                    async for raw in ws:
                        msg = json.loads(raw)
                        if "result" in msg and "id" in msg:
                            log.debug(f"sub ack id={msg['id']} → {msg['result']}", source="SolanaRPC")
                            continue
                        note = parse_logs_notification(msg)
                        if note is not None:
                            yield note
            except websockets.ConnectionClosed as exc:
                log.warning(f"🔁 WS closed: {exc}; reconnecting", source="SolanaRPC")
            except (OSError, ValueError) as exc:
                log.warning(f"⚠️ WS error: {exc}; reconnecting", source="SolanaRPC")
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, WS_BACKOFF_MAX)

    async def close(self) -> None:
        await self._client.close()


__all__ = [
    "ChainClient",
    "LogNotification",
    "SolanaChainClient",
    "load_keypair",
    "extract_account_keys",
    "parse_logs_notification",
    "claim_fee_instruction",
]
