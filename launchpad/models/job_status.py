# -*- coding: utf-8 -*-
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class JobState(str, Enum):
    """Normalized outcome of one scheduled run."""
    SUCCESS = "Success"
    ERROR   = "Error"
    SKIPPED = "Skipped"


@dataclass
class JobRun:
    """One row of the job ledger."""

    run_id: str
    job_name: str
    status: JobState
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["timestamp"] = self.timestamp.isoformat()
        return d


__all__ = ["JobState", "JobRun"]
