"""
chain_watcher.py
~~~~~~~~~~~~~~~~

Follows the program log stream and admits only transactions that reference
this deployment's configuration key.

Every notification is handled in its own asyncio task. Admission fetches the
full transaction first; a failed or empty fetch counts as a rejection and
nothing is parsed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Set

from launchpad.core.logging import log
from launchpad.services.solana_rpc import LogNotification


class ChainWatcher:
    def __init__(self, client, parser, reconciler, program_id: str, deployment_key: str):
        self.client = client
        self.parser = parser
        self.reconciler = reconciler
        self.program_id = program_id
        self.deployment_key = deployment_key

        self.is_running = False
        self.last_slot = 0
        self.notifications_seen = 0
        self.notifications_admitted = 0
        self._stream_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------ lifecycle --

    async def start(self) -> bool:
        if self.is_running:
            log.warning("Chain watcher already running", source="ChainWatcher")
            return False
        if not self.deployment_key:
            log.warning("⚠️ No deployment key configured; every transaction will be rejected", source="ChainWatcher")
        self.is_running = True
        self._stream_task = asyncio.create_task(self._consume(), name="chain-watcher-stream")
        log.success(f"👀 Watching program {self.program_id}", source="ChainWatcher")
        return True

    async def stop(self) -> None:
        if not self.is_running:
            return
        self.is_running = False
        task, self._stream_task = self._stream_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        log.info("Chain watcher stopped", source="ChainWatcher")

    async def _consume(self) -> None:
        try:
            async for note in self.client.logs_subscribe(self.program_id):
                if not self.is_running:
                    break
                self.dispatch(note)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.exception(exc, "Log stream terminated", source="ChainWatcher")
            self.is_running = False

    def dispatch(self, note: LogNotification) -> asyncio.Task:
        """Schedule ``note`` for handling as an independent task."""
        task = asyncio.create_task(self.handle_notification(note))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------ admission --

    async def handle_notification(self, note: LogNotification) -> bool:
        """Admit, parse and reconcile one notification. Returns ``True`` when admitted."""
        self.notifications_seen += 1
        self.last_slot = max(self.last_slot, int(note.slot or 0))

        if note.err is not None:
            log.debug(f"Skipping failed transaction {note.signature}", source="ChainWatcher")
            return False

        if not await self._is_admitted(note.signature):
            return False

        self.notifications_admitted += 1
        events = self.parser.parse(note.logs, note.signature)
        if not events:
            log.debug(f"No events in {note.signature}", source="ChainWatcher")
            return True
        counts = self.reconciler.apply_all(events)
        log.debug(f"Reconciled {note.signature}", source="ChainWatcher", payload=counts)
        return True

    async def _is_admitted(self, signature: str) -> bool:
        try:
            accounts = await self.client.get_transaction_accounts(signature)
        except Exception as exc:
            log.debug(f"Rejected {signature}: fetch failed ({exc})", source="ChainWatcher")
            return False
        if not accounts:
            log.debug(f"Rejected {signature}: transaction not found", source="ChainWatcher")
            return False
        if self.deployment_key not in accounts:
            log.debug(f"Rejected {signature}: not this deployment", source="ChainWatcher")
            return False
        return True

    # --------------------------------------------------------------- status --

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "last_processed_slot": self.last_slot,
            "program_id": self.program_id,
            "deployment_key": self.deployment_key,
            "notifications_seen": self.notifications_seen,
            "notifications_admitted": self.notifications_admitted,
            "in_flight": len(self._tasks),
        }


__all__ = ["ChainWatcher"]
