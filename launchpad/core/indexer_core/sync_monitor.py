from __future__ import annotations

from typing import Any, Dict, Optional

from launchpad.core.constants import SYNC_LAG_WARN_SLOTS
from launchpad.core.errors import RpcError
from launchpad.core.logging import log


class SyncMonitor:
    """Compares the cluster's slot with the last slot the watcher observed."""

    def __init__(self, client, watcher, lag_warn_slots: int = SYNC_LAG_WARN_SLOTS):
        self.client = client
        self.watcher = watcher
        self.lag_warn_slots = lag_warn_slots
        self.last_check: Optional[Dict[str, Any]] = None

    async def check_once(self) -> Optional[Dict[str, Any]]:
        try:
            current = await self.client.get_slot()
        except Exception as exc:
            log.error(f"Sync check failed: {exc}", source="SyncMonitor")
            return None

        processed = int(self.watcher.get_status().get("last_processed_slot") or 0)
        lag = max(0, int(current) - processed)
        lagging = lag > self.lag_warn_slots
        result = {
            "current_slot": int(current),
            "last_processed_slot": processed,
            "lag": lag,
            "lagging": lagging,
        }
        if lagging:
            log.warning(f"⚠️ Indexer lag: {lag} slots behind", source="SyncMonitor", payload=result)
        else:
            log.debug(f"Indexer in sync (lag {lag})", source="SyncMonitor")
        self.last_check = result
        return result

    async def run_scheduled(self) -> Dict[str, Any]:
        """Scheduler entry point; a failed slot lookup is raised so the run is booked as an error."""
        result = await self.check_once()
        if result is None:
            raise RpcError("slot lookup failed")
        return result


__all__ = ["SyncMonitor"]
