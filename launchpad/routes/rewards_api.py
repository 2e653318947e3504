"""Creator reward endpoints: balances, payouts, leaderboard, platform stats, fee sweep."""

from __future__ import annotations

import hmac
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from launchpad.core.constants import DEFAULT_REVENUE_SHARE_PERCENT
from launchpad.core.errors import PayoutError
from launchpad.core.logging import log
from launchpad.deps import get_runtime
from launchpad.models.pool import Pool

router = APIRouter(prefix="/api/v1/rewards", tags=["rewards"])


class ClaimRequest(BaseModel):
    botWallet: str
    poolAddress: Optional[str] = None


class SettlementRequest(BaseModel):
    payoutId: str
    signature: str


class ReleaseRequest(BaseModel):
    payoutId: str


class PoolRegistration(BaseModel):
    poolAddress: str
    tokenAddress: str
    botId: Optional[str] = None
    botWallet: Optional[str] = None
    revenueSharePercent: Decimal = Field(default=DEFAULT_REVENUE_SHARE_PERCENT, ge=0, le=100)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "to_api"):
        return value.to_api()
    return value


def _ok(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True, "data": _jsonable(data)}
    if message:
        body["message"] = message
    return body


def _fail(error: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _admin_denied(runtime, token: Optional[str]) -> Optional[JSONResponse]:
    expected = runtime.settings.admin_token
    if expected and not hmac.compare_digest(expected, token or ""):
        return _fail("Unauthorized", 401)
    return None


@router.get("/leaderboard/top")
def leaderboard(limit: int = Query(10, ge=1, le=100), runtime=Depends(get_runtime)):
    return _ok(runtime.claims.get_leaderboard(limit))


@router.get("/stats/platform")
def platform_stats(runtime=Depends(get_runtime)):
    return _ok(runtime.fee_manager.get_platform_stats())


@router.post("/collect")
async def collect_fees(
    runtime=Depends(get_runtime),
    x_admin_token: Optional[str] = Header(None),
):
    denied = _admin_denied(runtime, x_admin_token)
    if denied is not None:
        return denied
    try:
        summary = await runtime.fee_manager.collect_all_fees()
    except Exception as exc:
        log.exception(exc, "Manual fee collection failed", source="RewardsAPI")
        return _fail(str(exc), 500)
    return _ok(summary, message=f"Collected fees from {summary['collected']} pool(s)")


@router.post("/pools")
def register_pool(
    body: PoolRegistration,
    runtime=Depends(get_runtime),
    x_admin_token: Optional[str] = Header(None),
):
    denied = _admin_denied(runtime, x_admin_token)
    if denied is not None:
        return denied
    pool = Pool(
        pool_address=body.poolAddress,
        token_address=body.tokenAddress,
        creator_id=body.botId,
        creator_wallet=body.botWallet,
        revenue_share_percent=body.revenueSharePercent,
    )
    try:
        vault = runtime.fee_manager.register_pool(pool)
    except ValueError as exc:
        return _fail(str(exc))
    return _ok(vault.model_dump(), message=f"Pool {pool.pool_address} registered")


@router.get("/{bot_id}")
def get_rewards(bot_id: str, runtime=Depends(get_runtime)):
    return _ok(runtime.claims.get_creator_rewards(bot_id))


@router.post("/{bot_id}/claim")
async def claim_rewards(bot_id: str, body: ClaimRequest, runtime=Depends(get_runtime)):
    try:
        result = await runtime.claims.claim(bot_id, body.botWallet, body.poolAddress)
    except PayoutError as exc:
        return _fail(str(exc))
    except ValueError as exc:
        return _fail(str(exc))
    except Exception as exc:
        log.exception(exc, f"Payout for {bot_id} failed", source="RewardsAPI")
        return _fail(str(exc), 500)
    return _ok(result)


@router.post("/{bot_id}/claim/settle")
def settle_claim(
    bot_id: str,
    body: SettlementRequest,
    runtime=Depends(get_runtime),
    x_admin_token: Optional[str] = Header(None),
):
    denied = _admin_denied(runtime, x_admin_token)
    if denied is not None:
        return denied
    count = runtime.claims.record_settlement(body.payoutId, body.signature, creator_id=bot_id)
    if not count:
        return _fail("No reserved rewards for this payout")
    return _ok({"payoutId": body.payoutId, "settled": count, "signature": body.signature})


@router.post("/{bot_id}/claim/release")
def release_claim(
    bot_id: str,
    body: ReleaseRequest,
    runtime=Depends(get_runtime),
    x_admin_token: Optional[str] = Header(None),
):
    denied = _admin_denied(runtime, x_admin_token)
    if denied is not None:
        return denied
    return _ok({"released": runtime.claims.release_reservation(body.payoutId, creator_id=bot_id)})


__all__ = ["router"]
