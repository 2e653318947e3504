from decimal import Decimal
from pathlib import Path
import os

# resolve launchpad/ from this file location (…/launchpad/core/constants.py -> launchpad/)
BASE_DIR = Path(__file__).resolve().parents[1]
REPO_ROOT = BASE_DIR.parent
CONFIG_DIR = REPO_ROOT / "config"
LAUNCHPAD_CONFIG_PATH = Path(
    os.getenv("LAUNCHPAD_CONFIG_JSON", str(CONFIG_DIR / "launchpad.json"))
)
LEDGER_DB_PATH = Path(os.environ.get("LAUNCHPAD_DB_PATH", BASE_DIR / "ledger.db"))
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_WS_URL = "wss://api.devnet.solana.com"

# Bonding-curve program whose logs the indexer follows.
DEFAULT_PROGRAM_ID = "BondCurve11111111111111111111111111111111"
# Program owning the fee-claimer vault PDAs (Meteora DLMM).
DEFAULT_FEE_PROGRAM_ID = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
FEE_CLAIMER_SEED = b"fee_claimer"

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

MIN_VAULT_CLAIM_SOL = Decimal("0.01")
MIN_PAYOUT_SOL = Decimal("0.01")
TRADE_FEE_RATE = Decimal("0.01")
DEFAULT_REVENUE_SHARE_PERCENT = Decimal("50")

FEE_SWEEP_INTERVAL_SEC = 60 * 60
FEE_CLAIM_COOLDOWN_SEC = 60 * 60
STATS_INTERVAL_SEC = 6 * 60 * 60
SYNC_INTERVAL_SEC = 10
SYNC_LAG_WARN_SLOTS = 10
VOLUME_WINDOW_SEC = 24 * 60 * 60

__all__ = [
    "BASE_DIR",
    "REPO_ROOT",
    "CONFIG_DIR",
    "LAUNCHPAD_CONFIG_PATH",
    "LEDGER_DB_PATH",
    "LOG_DATE_FORMAT",
    "DEFAULT_RPC_URL",
    "DEFAULT_WS_URL",
    "DEFAULT_PROGRAM_ID",
    "DEFAULT_FEE_PROGRAM_ID",
    "FEE_CLAIMER_SEED",
    "LAMPORTS_PER_SOL",
    "SOL_DECIMALS",
    "MIN_VAULT_CLAIM_SOL",
    "MIN_PAYOUT_SOL",
    "TRADE_FEE_RATE",
    "DEFAULT_REVENUE_SHARE_PERCENT",
    "FEE_SWEEP_INTERVAL_SEC",
    "FEE_CLAIM_COOLDOWN_SEC",
    "STATS_INTERVAL_SEC",
    "SYNC_INTERVAL_SEC",
    "SYNC_LAG_WARN_SLOTS",
    "VOLUME_WINDOW_SEC",
]
