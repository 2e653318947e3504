import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from launchpad.core.logging import log
from launchpad.models.job_status import JobRun, JobState
from launchpad.utils.time_utils import iso_utc_now, parse_iso


class DLJobLedgerManager:
    def __init__(self, db):
        self.db = db
        self.ensure_table()

    def ensure_table(self):
        cursor = self.db.get_cursor()
        if not cursor:
            log.error("❌ DB unavailable, job ledger table not created", source="DLJobLedger")
            return
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS job_ledger (
                id TEXT PRIMARY KEY,
                run_id TEXT NOT NULL,
                job_name TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                status TEXT NOT NULL,
                metadata TEXT
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_job_ledger_name_ts ON job_ledger(job_name, timestamp)"
        )
        self.db.commit()
        log.debug("job_ledger table ensured", source="DLJobLedger")

    def insert_ledger_entry(
        self,
        job_name: str,
        status: JobState,
        metadata: Optional[dict] = None,
        run_id: Optional[str] = None,
    ) -> Optional[str]:
        entry = {
            "id": str(uuid.uuid4()),
            "run_id": run_id or str(uuid.uuid4()),
            "job_name": job_name,
            "timestamp": iso_utc_now(),
            "status": JobState(status).value,
            "metadata": json.dumps(metadata or {}, default=str),
        }

        cursor = self.db.get_cursor()
        if not cursor:
            log.error("❌ DB unavailable, ledger entry not stored", source="DLJobLedger")
            return None
        cursor.execute("""
            INSERT INTO job_ledger (
                id, run_id, job_name, timestamp, status, metadata
            ) VALUES (
                :id, :run_id, :job_name, :timestamp, :status, :metadata
            )
        """, entry)
        self.db.commit()
        log.debug(f"🧾 Ledger written for {job_name} ({entry['status']})", source="DLJobLedger")
        return entry["id"]

    def get_last_entry(self, job_name: str) -> Optional[JobRun]:
        cursor = self.db.get_cursor()
        if not cursor:
            log.error("❌ DB unavailable, cannot fetch ledger entry", source="DLJobLedger")
            return None
        cursor.execute("""
            SELECT id, run_id, job_name, timestamp, status, metadata
            FROM job_ledger
            WHERE job_name = ?
            ORDER BY timestamp DESC, rowid DESC
            LIMIT 1
        """, (job_name,))

        row = cursor.fetchone()
        if not row:
            return None
        try:
            metadata = json.loads(row["metadata"] or "{}")
        except ValueError:
            metadata = {"_raw": row["metadata"]}
        return JobRun(
            id=row["id"],
            run_id=row["run_id"],
            job_name=row["job_name"],
            timestamp=parse_iso(row["timestamp"]),
            status=JobState(row["status"]),
            metadata=metadata,
        )

    def get_status(self, job_name: str) -> Dict[str, Any]:
        entry = self.get_last_entry(job_name)
        if entry is None:
            return {"last_timestamp": None, "age_seconds": None, "status": None}

        age = (datetime.now(timezone.utc) - entry.timestamp).total_seconds()
        return {
            "last_timestamp": entry.timestamp.isoformat(),
            "age_seconds": round(age),
            "status": entry.status.value,
            "run_id": entry.run_id,
        }

    def get_status_summary(self, job_names: List[str]) -> Dict[str, Dict[str, Any]]:
        return {name: self.get_status(name) for name in job_names}
