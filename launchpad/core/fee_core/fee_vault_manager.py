"""
fee_vault_manager.py
~~~~~~~~~~~~~~~~~~~~

Hourly sweep of protocol-owned fee vaults.

For each vault outside the claim cooldown the on-chain balance is read; a
balance at or above the minimum is claimed. A confirmed claim is first
written to the ``fee_claims`` journal, then the vault update, the creator
accrual and the journal flip are applied in one SQLite transaction. An entry
left ``pending`` by a failed apply is replayed at the start of the next
sweep, so a vault is never marked claimed without the matching credit.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from solders.pubkey import Pubkey

from launchpad.core.amounts import ZERO, lamports_to_sol, to_sol
from launchpad.core.constants import (
    DEFAULT_FEE_PROGRAM_ID,
    FEE_CLAIM_COOLDOWN_SEC,
    FEE_CLAIMER_SEED,
    MIN_VAULT_CLAIM_SOL,
)
from launchpad.core.errors import ClaimError
from launchpad.core.logging import log
from launchpad.models.fee_vault import FeeVault
from launchpad.models.pool import Pool
from launchpad.utils.pubkey import parse_pubkey
from launchpad.utils.time_utils import utc_now


def derive_vault_address(pool_address: str, fee_program_id: str = DEFAULT_FEE_PROGRAM_ID) -> str:
    """Fee-claimer PDA of ``pool_address`` under the fee program."""
    pda, _bump = Pubkey.find_program_address(
        [FEE_CLAIMER_SEED, bytes(parse_pubkey(pool_address))],
        parse_pubkey(fee_program_id),
    )
    return str(pda)


class FeeVaultManager:
    def __init__(
        self,
        dl,
        client,
        distributor,
        fee_program_id: str = DEFAULT_FEE_PROGRAM_ID,
        min_claim_sol: Decimal = MIN_VAULT_CLAIM_SOL,
        cooldown_sec: int = FEE_CLAIM_COOLDOWN_SEC,
    ):
        self.dl = dl
        self.client = client
        self.distributor = distributor
        self.fee_program_id = fee_program_id
        self.min_claim_sol = to_sol(min_claim_sol)
        self.cooldown_sec = cooldown_sec
        self._sweep_lock = asyncio.Lock()

    # --------------------------------------------------------------- vaults --

    def create_vault(self, pool_address: str, token_address: str) -> FeeVault:
        existing = self.dl.vaults.get_vault(pool_address)
        if existing is not None:
            return existing
        vault = FeeVault(
            pool_address=pool_address,
            token_address=token_address,
            vault_address=derive_vault_address(pool_address, self.fee_program_id),
        )
        if self.dl.vaults.create_vault(vault):
            log.info(f"🏦 Fee vault registered for pool {pool_address}", source="FeeVaultManager")
        return self.dl.vaults.get_vault(pool_address) or vault

    def register_pool(self, pool: Pool) -> FeeVault:
        """Record ``pool`` and its fee vault together; the entry point for pool creation."""
        parse_pubkey(pool.pool_address)
        with self.dl.transaction():
            self.dl.pools.upsert_pool(pool)
            return self.create_vault(pool.pool_address, pool.token_address)

    # -------------------------------------------------------------- journal --

    def _apply_claim(self, signature: str, pool_address: str, amount: Decimal) -> FeeVault:
        with self.dl.transaction():
            vault = self.dl.vaults.record_claim(pool_address, amount)
            self.distributor.distribute(pool_address, amount)
            self.dl.fee_claims.mark_applied(signature)
        return vault

    def replay_pending_claims(self) -> int:
        """Apply journal entries left pending by an earlier failure."""
        replayed = 0
        for entry in self.dl.fee_claims.list_pending():
            try:
                self._apply_claim(entry.signature, entry.pool_address, entry.amount)
                replayed += 1
                log.info(f"🔁 Replayed fee claim {entry.signature}", source="FeeVaultManager")
            except Exception as exc:
                log.exception(exc, f"Replay of fee claim {entry.signature} failed", source="FeeVaultManager")
        return replayed

    # ---------------------------------------------------------------- claim --

    async def claim_vault_fees(self, vault: FeeVault) -> Optional[Decimal]:
        """Claim one vault; returns the amount or ``None`` when below the minimum."""
        lamports = await self.client.get_balance(vault.vault_address)
        amount = lamports_to_sol(lamports)
        if amount < self.min_claim_sol:
            log.debug(
                f"Vault {vault.pool_address} holds {amount} SOL; below {self.min_claim_sol}",
                source="FeeVaultManager",
            )
            return None

        try:
            signature = await self.client.claim_vault(vault.vault_address, lamports)
        except Exception as exc:
            raise ClaimError(f"claim for pool {vault.pool_address} failed: {exc}") from exc

        self.dl.fee_claims.record_pending(signature, vault.pool_address, amount)
        try:
            self._apply_claim(signature, vault.pool_address, amount)
        except Exception as exc:
            log.exception(
                exc,
                f"Claim {signature} confirmed but ledger update failed; left pending for replay",
                source="FeeVaultManager",
            )
        else:
            log.success(
                f"✅ Claimed {amount} SOL from pool {vault.pool_address}",
                source="FeeVaultManager",
                payload={"signature": signature},
            )
        return amount

    async def collect_all_fees(self) -> Dict[str, Any]:
        async with self._sweep_lock:
            self.replay_pending_claims()
            cutoff = utc_now() - timedelta(seconds=self.cooldown_sec)
            due = self.dl.vaults.list_due_vaults(cutoff)
            log.banner(f"Fee sweep: {len(due)} vault(s) due", source="FeeVaultManager")

            collected = 0
            total = ZERO
            for vault in due:
                try:
                    amount = await self.claim_vault_fees(vault)
                except Exception as exc:
                    log.exception(exc, f"Vault {vault.pool_address} failed", source="FeeVaultManager")
                    continue
                if amount is not None:
                    collected += 1
                    total += amount

            summary = {"collected": collected, "poolsProcessed": len(due), "totalAmount": total}
            log.info("Fee sweep finished", source="FeeVaultManager", payload=summary)
            return summary

    # ---------------------------------------------------------------- stats --

    def get_platform_stats(self) -> Dict[str, Any]:
        vaults = self.dl.vaults.totals()
        rewards = self.dl.rewards.totals()
        return {
            "totalFeesCollected": vaults["total_collected"],
            "totalVaults": vaults["vault_count"],
            "totalBotRewards": rewards["earned"],
            "totalClaimed": rewards["claimed"],
            "totalUnclaimed": rewards["unclaimed"],
        }

    async def log_platform_stats(self) -> Dict[str, Any]:
        stats = self.get_platform_stats()
        log.info("📊 Platform stats", source="FeeVaultManager", payload={k: str(v) for k, v in stats.items()})
        return stats


__all__ = ["FeeVaultManager", "derive_vault_address"]
