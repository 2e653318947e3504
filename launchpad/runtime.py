"""
runtime.py
~~~~~~~~~~

Owns every long-lived object of one ledger process and their lifecycle:

    LaunchpadRuntime.build(settings)  → wire components
    await runtime.start()             → log watcher + scheduled jobs
    await runtime.stop()              → drain, close broadcaster, close RPC, close DB
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from launchpad.config.settings import LaunchpadSettings, load_settings
from launchpad.core.broadcast_core.broadcaster import Broadcaster
from launchpad.core.fee_core.claim_builder import ClaimBuilder
from launchpad.core.fee_core.fee_scheduler import PeriodicJob
from launchpad.core.fee_core.fee_vault_manager import FeeVaultManager
from launchpad.core.fee_core.reward_distributor import RewardDistributor
from launchpad.core.indexer_core.chain_watcher import ChainWatcher
from launchpad.core.indexer_core.event_parser import EventParser
from launchpad.core.indexer_core.reconciler import Reconciler
from launchpad.core.indexer_core.sync_monitor import SyncMonitor
from launchpad.core.logging import log
from launchpad.data.data_locker import DataLocker

FEE_SWEEP_JOB = "fee_sweep"
PLATFORM_STATS_JOB = "platform_stats"
SYNC_MONITOR_JOB = "sync_monitor"


@dataclass
class LaunchpadRuntime:
    settings: LaunchpadSettings
    dl: DataLocker
    client: object
    broadcaster: Broadcaster
    parser: EventParser
    reconciler: Reconciler
    watcher: ChainWatcher
    sync_monitor: SyncMonitor
    distributor: RewardDistributor
    fee_manager: FeeVaultManager
    claims: ClaimBuilder
    jobs: Dict[str, PeriodicJob] = field(default_factory=dict)
    started: bool = False

    @classmethod
    def build(
        cls,
        settings: Optional[LaunchpadSettings] = None,
        client=None,
        dl: Optional[DataLocker] = None,
    ) -> "LaunchpadRuntime":
        settings = settings or load_settings()
        dl = dl or DataLocker.get_instance(settings.db_path)
        if client is None:
            from launchpad.services.solana_rpc import SolanaChainClient

            client = SolanaChainClient.from_settings(settings)

        broadcaster = Broadcaster()
        parser = EventParser()
        reconciler = Reconciler(dl, broadcaster, settings.trade_fee_rate)
        watcher = ChainWatcher(
            client, parser, reconciler, settings.program_id, settings.deployment_config_key
        )
        sync_monitor = SyncMonitor(client, watcher, settings.sync_lag_warn_slots)
        distributor = RewardDistributor(dl)
        fee_manager = FeeVaultManager(
            dl,
            client,
            distributor,
            fee_program_id=settings.fee_program_id,
            min_claim_sol=settings.min_vault_claim_sol,
            cooldown_sec=settings.fee_claim_cooldown_sec,
        )
        claims = ClaimBuilder(
            dl, client, min_payout_sol=settings.min_payout_sol, payout_mode=settings.payout_mode
        )

        runtime = cls(
            settings=settings,
            dl=dl,
            client=client,
            broadcaster=broadcaster,
            parser=parser,
            reconciler=reconciler,
            watcher=watcher,
            sync_monitor=sync_monitor,
            distributor=distributor,
            fee_manager=fee_manager,
            claims=claims,
        )
        runtime.jobs = {
            FEE_SWEEP_JOB: PeriodicJob(
                FEE_SWEEP_JOB, settings.fee_sweep_interval_sec, fee_manager.collect_all_fees, dl.ledger
            ),
            PLATFORM_STATS_JOB: PeriodicJob(
                PLATFORM_STATS_JOB, settings.stats_interval_sec, fee_manager.log_platform_stats, dl.ledger
            ),
            SYNC_MONITOR_JOB: PeriodicJob(
                SYNC_MONITOR_JOB,
                settings.sync_interval_sec,
                sync_monitor.run_scheduled,
                dl.ledger,
                record_success=False,
            ),
        }
        return runtime

    @property
    def job_names(self) -> List[str]:
        return list(self.jobs)

    async def start(self) -> None:
        if self.started:
            return
        log.banner("Launchpad ledger starting", source="Runtime", payload=self.settings.redacted())
        if self.settings.indexer_enabled:
            await self.watcher.start()
        if self.settings.scheduler_enabled:
            for job in self.jobs.values():
                job.start()
        self.started = True

    async def stop(self) -> None:
        if not self.started:
            return
        for job in self.jobs.values():
            await job.stop()
        await self.watcher.stop()
        self.broadcaster.close()
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()
        self.dl.close()
        self.started = False
        log.info("Launchpad ledger stopped", source="Runtime")


__all__ = [
    "LaunchpadRuntime",
    "FEE_SWEEP_JOB",
    "PLATFORM_STATS_JOB",
    "SYNC_MONITOR_JOB",
]
