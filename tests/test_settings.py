import json
from decimal import Decimal

import pytest

from launchpad.config.settings import ENV_NAMES, load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for env_name in ENV_NAMES.values():
        monkeypatch.delenv(env_name, raising=False)


def test_defaults_without_sources(tmp_path):
    s = load_settings(json_path=tmp_path / "missing.json", load_env_file=False)
    assert s.fee_sweep_interval_sec == 3600
    assert s.fee_claim_cooldown_sec == 3600
    assert s.min_vault_claim_sol == Decimal("0.01")
    assert s.min_payout_sol == Decimal("0.01")
    assert s.sync_interval_sec == 10
    assert s.payout_mode == "platform"
    assert s.sources == {}


def test_env_beats_json(tmp_path, monkeypatch):
    cfg = tmp_path / "launchpad.json"
    cfg.write_text(json.dumps({"rpc_url": "https://json.example", "sync_lag_warn_slots": 25}))
    monkeypatch.setenv("SOLANA_RPC_URL", "https://env.example")

    s = load_settings(json_path=cfg, load_env_file=False)

    assert s.rpc_url == "https://env.example"
    assert s.sync_lag_warn_slots == 25
    assert s.sources["rpc_url"] == "env:SOLANA_RPC_URL"
    assert s.sources["sync_lag_warn_slots"].startswith("json:")


def test_bool_and_decimal_coercion(tmp_path, monkeypatch):
    monkeypatch.setenv("INDEXER_ENABLED", "false")
    monkeypatch.setenv("MIN_PAYOUT_SOL", "0.05")
    s = load_settings(json_path=tmp_path / "missing.json", load_env_file=False)
    assert s.indexer_enabled is False
    assert s.min_payout_sol == Decimal("0.05")


def test_unknown_override_rejected(tmp_path):
    with pytest.raises(KeyError):
        load_settings(json_path=tmp_path / "missing.json", overrides={"nope": 1}, load_env_file=False)


def test_invalid_payout_mode(tmp_path):
    with pytest.raises(ValueError):
        load_settings(
            json_path=tmp_path / "missing.json",
            overrides={"payout_mode": "yolo"},
            load_env_file=False,
        )


def test_secrets_redacted(tmp_path):
    s = load_settings(
        json_path=tmp_path / "missing.json",
        overrides={"admin_token": "supersecret", "platform_keypair": "abcdefgh12345678"},
        load_env_file=False,
    )
    red = s.redacted()
    assert "supersecret" not in str(red)
    assert red["admin_token"].endswith("cret")
    assert red["platform_keypair"].startswith("****")
