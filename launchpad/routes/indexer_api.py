from fastapi import APIRouter, Depends

from launchpad.deps import get_runtime

router = APIRouter(prefix="/api/v1/indexer", tags=["indexer"])


@router.get("/status")
def indexer_status(runtime=Depends(get_runtime)):
    """Watcher state, last sync check, broadcaster stats and job ledger snapshot."""
    return {
        "success": True,
        "data": {
            "watcher": runtime.watcher.get_status(),
            "sync": runtime.sync_monitor.last_check,
            "broadcaster": runtime.broadcaster.get_stats(),
            "jobs": runtime.dl.ledger.get_status_summary(runtime.job_names),
        },
    }


__all__ = ["router"]
