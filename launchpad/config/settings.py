from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from dotenv import find_dotenv, load_dotenv

from launchpad.core import constants as C
from launchpad.core.logging import log

MERGE_PRECEDENCE = ("defaults", "json", "env")  # env wins (highest priority)
SENSITIVE_NAME_TOKENS: Tuple[str, ...] = ("KEY", "SECRET", "TOKEN", "PASSWORD", "KEYPAIR")
PAYOUT_MODES = ("platform", "external")

# setting name -> environment variable
ENV_NAMES: Dict[str, str] = {
    "rpc_url": "SOLANA_RPC_URL",
    "ws_url": "SOLANA_WS_URL",
    "program_id": "BONDING_CURVE_PROGRAM_ID",
    "deployment_config_key": "PLATFORM_CONFIG_KEY",
    "fee_program_id": "FEE_CLAIMER_PROGRAM_ID",
    "platform_keypair_path": "PLATFORM_KEYPAIR_PATH",
    "platform_keypair": "PLATFORM_WALLET_KEYPAIR",
    "db_path": "LAUNCHPAD_DB_PATH",
    "fee_sweep_interval_sec": "FEE_SWEEP_INTERVAL_SEC",
    "fee_claim_cooldown_sec": "FEE_CLAIM_COOLDOWN_SEC",
    "min_vault_claim_sol": "MIN_VAULT_CLAIM_SOL",
    "min_payout_sol": "MIN_PAYOUT_SOL",
    "trade_fee_rate": "TRADE_FEE_RATE",
    "sync_interval_sec": "SYNC_INTERVAL_SEC",
    "sync_lag_warn_slots": "SYNC_LAG_WARN_SLOTS",
    "stats_interval_sec": "STATS_INTERVAL_SEC",
    "payout_mode": "PAYOUT_MODE",
    "admin_token": "LAUNCHPAD_ADMIN_TOKEN",
    "indexer_enabled": "INDEXER_ENABLED",
    "scheduler_enabled": "SCHEDULER_ENABLED",
}


@dataclass(frozen=True)
class LaunchpadSettings:
    rpc_url: str = C.DEFAULT_RPC_URL
    ws_url: str = C.DEFAULT_WS_URL
    program_id: str = C.DEFAULT_PROGRAM_ID
    deployment_config_key: str = ""
    fee_program_id: str = C.DEFAULT_FEE_PROGRAM_ID
    platform_keypair_path: str = ""
    platform_keypair: str = ""
    db_path: str = str(C.LEDGER_DB_PATH)
    fee_sweep_interval_sec: int = C.FEE_SWEEP_INTERVAL_SEC
    fee_claim_cooldown_sec: int = C.FEE_CLAIM_COOLDOWN_SEC
    min_vault_claim_sol: Decimal = C.MIN_VAULT_CLAIM_SOL
    min_payout_sol: Decimal = C.MIN_PAYOUT_SOL
    trade_fee_rate: Decimal = C.TRADE_FEE_RATE
    sync_interval_sec: int = C.SYNC_INTERVAL_SEC
    sync_lag_warn_slots: int = C.SYNC_LAG_WARN_SLOTS
    stats_interval_sec: int = C.STATS_INTERVAL_SEC
    payout_mode: str = "platform"
    admin_token: str = ""
    indexer_enabled: bool = True
    scheduler_enabled: bool = True
    sources: Dict[str, str] = field(default_factory=dict, compare=False)

    def redacted(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("sources", None)
        return _redacted_dict(data)


def _redact_value(key: str, value: Any) -> Any:
    if isinstance(value, str) and value and any(tok in key.upper() for tok in SENSITIVE_NAME_TOKENS):
        return "****" if len(value) <= 4 else f"{'*' * 4}…{value[-4:]}"
    return value


def _redacted_dict(d: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _redact_value(k, v) for k, v in d.items()}


def _coerce(name: str, raw: Any) -> Any:
    """Convert ``raw`` to the type of the ``name`` field."""
    default = getattr(LaunchpadSettings, name)
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, Decimal):
        return Decimal(str(raw))
    return str(raw).strip()


def _load_json_config(path: Optional[Union[str, os.PathLike]]) -> Tuple[Dict[str, Any], Optional[Path]]:
    p = Path(path or C.LAUNCHPAD_CONFIG_PATH).expanduser()
    if not p.exists():
        return {}, None
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"config file {p} must contain a JSON object")
    return data, p


def load_settings(
    json_path: Optional[Union[str, os.PathLike]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    load_env_file: bool = True,
) -> LaunchpadSettings:
    """Merge defaults, the JSON config file, and the environment into settings.

    ``overrides`` is applied last and is meant for tests and scripts.
    """
    if load_env_file:
        found = find_dotenv(usecwd=True)
        if found:
            load_dotenv(found, override=False)

    names = {f.name for f in fields(LaunchpadSettings)} - {"sources"}
    values: Dict[str, Any] = {}
    sources: Dict[str, str] = {}

    json_cfg, json_file = _load_json_config(json_path)
    for key, raw in json_cfg.items():
        if key in names:
            values[key] = _coerce(key, raw)
            sources[key] = f"json:{json_file}"
        else:
            log.warning(f"Ignoring unknown config key '{key}'", source="Settings")

    for key, env_name in ENV_NAMES.items():
        raw = os.getenv(env_name)
        if raw is not None and raw.strip() != "":
            values[key] = _coerce(key, raw)
            sources[key] = f"env:{env_name}"

    for key, raw in (overrides or {}).items():
        if key not in names:
            raise KeyError(f"unknown setting: {key}")
        values[key] = _coerce(key, raw)
        sources[key] = "override"

    mode = values.get("payout_mode", "platform")
    if mode not in PAYOUT_MODES:
        raise ValueError(f"payout_mode must be one of {PAYOUT_MODES}, got {mode!r}")

    settings = LaunchpadSettings(**values, sources=sources)
    log.debug("Settings resolved", source="Settings", payload=settings.redacted())
    return settings


__all__ = ["LaunchpadSettings", "load_settings", "PAYOUT_MODES"]
