"""
fee_scheduler.py
~~~~~~~~~~~~~~~~

Periodic runner for the fee sweep, the platform stats log and the sync check.

Each tick starts the job in its own task and tags it with a ``run_id``. A
tick that arrives while the previous run is still in flight is skipped and
logged. Outcomes go to the ``job_ledger`` table.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

from launchpad.core.logging import log
from launchpad.models.job_status import JobState


class PeriodicJob:
    def __init__(
        self,
        name: str,
        interval_sec: float,
        run: Callable[[], Awaitable[Any]],
        ledger=None,
        record_success: bool = True,
        run_immediately: bool = False,
    ):
        self.name = name
        self.interval_sec = interval_sec
        self.run = run
        self.ledger = ledger
        self.record_success = record_success
        self.run_immediately = run_immediately

        self.current_run_id: Optional[str] = None
        self.last_result: Any = None
        self.runs = 0
        self.skipped = 0
        self._loop_task: Optional[asyncio.Task] = None
        self._run_task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self.current_run_id is not None

    async def run_once(self) -> Any:
        """Run the job now unless a previous run is still going."""
        if self.in_flight:
            self.skipped += 1
            log.warning(
                f"⏭️ {self.name} tick skipped; run {self.current_run_id} still in flight",
                source="Scheduler",
            )
            self._record(JobState.SKIPPED, {"in_flight": self.current_run_id})
            return None

        run_id = str(uuid.uuid4())
        self.current_run_id = run_id
        try:
            result = await self.run()
        except Exception as exc:
            log.exception(exc, f"{self.name} run {run_id} failed", source="Scheduler")
            self._record(JobState.ERROR, {"error": str(exc)}, run_id)
            return None
        finally:
            self.current_run_id = None

        self.runs += 1
        self.last_result = result
        if self.record_success:
            self._record(JobState.SUCCESS, result if isinstance(result, dict) else {"result": result}, run_id)
        return result

    def _record(self, status: JobState, metadata: Dict[str, Any], run_id: Optional[str] = None) -> None:
        if self.ledger is None:
            return
        try:
            self.ledger.insert_ledger_entry(self.name, status, metadata, run_id)
        except Exception as exc:
            log.exception(exc, f"Failed to write ledger row for {self.name}", source="Scheduler")

    def tick(self) -> asyncio.Task:
        task = asyncio.create_task(self.run_once(), name=f"job-{self.name}")
        if not self.in_flight:
            self._run_task = task
        return task

    async def _loop(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval_sec)
        while True:
            self.tick()
            await asyncio.sleep(self.interval_sec)

    def start(self) -> None:
        if self._loop_task is not None:
            log.warning(f"{self.name} already scheduled", source="Scheduler")
            return
        self._loop_task = asyncio.create_task(self._loop(), name=f"schedule-{self.name}")
        log.info(f"⏱️ {self.name} scheduled every {self.interval_sec}s", source="Scheduler")

    async def stop(self) -> None:
        for task in (self._loop_task, self._run_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._run_task = None

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "interval_sec": self.interval_sec,
            "in_flight": self.current_run_id,
            "runs": self.runs,
            "skipped": self.skipped,
        }


__all__ = ["PeriodicJob"]
