import asyncio
from decimal import Decimal

import pytest

from launchpad.core.errors import ClaimTooSmallError, NoUnclaimedRewardsError, RpcError
from launchpad.core.fee_core.claim_builder import EXTERNAL_MODE, ClaimBuilder


@pytest.fixture
def builder(dl_tmp, chain):
    return ClaimBuilder(dl_tmp, chain, min_payout_sol=Decimal("0.01"))


@pytest.mark.asyncio
async def test_claim_pays_every_pool(builder, dl_tmp, chain, pool_factory, make_address):
    wallet = make_address()
    p1, p2 = pool_factory(creator_wallet=wallet), pool_factory(creator_wallet=wallet)
    dl_tmp.rewards.accrue(p1, Decimal("0.3"))
    dl_tmp.rewards.accrue(p2, Decimal("0.2"))

    result = await builder.claim("bot-1", wallet)

    assert result["status"] == "settled"
    assert result["amount"] == Decimal("0.5")
    assert result["signature"] == "payout-sig-1"
    assert chain.transfers == [(wallet, 500_000_000)]
    summary = builder.get_creator_rewards("bot-1")
    assert summary["unclaimed"] == 0
    assert summary["claimed"] == Decimal("0.5")
    assert summary["poolCount"] == 2
    for row in summary["rewards"]:
        assert row.claimed is True
        assert row.reserved_amount == 0
        assert row.last_claim_signature == "payout-sig-1"


@pytest.mark.asyncio
async def test_claim_below_minimum_changes_nothing(builder, dl_tmp, chain, pool_factory, make_address):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("0.005"))

    with pytest.raises(ClaimTooSmallError) as excinfo:
        await builder.claim("bot-1", make_address())

    assert "Minimum claim amount is 0.01 SOL" in str(excinfo.value)
    assert chain.transfers == []
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.claimed is False
    assert row.unclaimed == Decimal("0.005")


@pytest.mark.asyncio
async def test_claim_without_rewards(builder, make_address):
    with pytest.raises(NoUnclaimedRewardsError):
        await builder.claim("nobody", make_address())


@pytest.mark.asyncio
async def test_claim_rejects_bad_wallet(builder, dl_tmp, pool_factory):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("1"))
    with pytest.raises(ValueError):
        await builder.claim("bot-1", "not a wallet")
    assert dl_tmp.rewards.get("bot-1", pool.pool_address).unclaimed == Decimal("1")


@pytest.mark.asyncio
async def test_second_claim_finds_nothing(builder, dl_tmp, chain, pool_factory, make_address):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("1"))
    wallet = make_address()

    results = await asyncio.gather(
        builder.claim("bot-1", wallet), builder.claim("bot-1", wallet), return_exceptions=True
    )

    paid = [r for r in results if isinstance(r, dict)]
    refused = [r for r in results if isinstance(r, NoUnclaimedRewardsError)]
    assert len(paid) == 1 and len(refused) == 1
    assert chain.transfers == [(wallet, 1_000_000_000)]


@pytest.mark.asyncio
async def test_failed_transfer_releases_reservation(builder, dl_tmp, chain, pool_factory, make_address):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("1"))
    chain.transfer_error = RpcError("insufficient funds")

    with pytest.raises(RpcError):
        await builder.claim("bot-1", make_address())

    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.claimed is False
    assert row.unclaimed == Decimal("1")
    assert row.claimed_amount == 0

    chain.transfer_error = None
    assert (await builder.claim("bot-1", make_address()))["amount"] == Decimal("1")


@pytest.mark.asyncio
async def test_claim_limited_to_one_pool(builder, dl_tmp, pool_factory, make_address):
    p1, p2 = pool_factory(), pool_factory()
    dl_tmp.rewards.accrue(p1, Decimal("0.3"))
    dl_tmp.rewards.accrue(p2, Decimal("0.2"))

    result = await builder.claim("bot-1", make_address(), pool_address=p2.pool_address)

    assert result["amount"] == Decimal("0.2")
    assert dl_tmp.rewards.get("bot-1", p1.pool_address).unclaimed == Decimal("0.3")


@pytest.mark.asyncio
async def test_external_mode_settle(dl_tmp, chain, pool_factory, make_address):
    builder = ClaimBuilder(dl_tmp, chain, payout_mode=EXTERNAL_MODE)
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("0.4"))

    result = await builder.claim("bot-1", make_address())

    assert result["status"] == "pending_signature"
    assert result["transaction"] == "dW5zaWduZWQtdHJhbnNmZXI="
    assert chain.transfers == []
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.claimed is True
    assert row.reserved_amount == Decimal("0.4")

    assert builder.record_settlement(result["payoutId"], "user-sig") == 1
    assert builder.record_settlement(result["payoutId"], "user-sig") == 0
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.last_claim_signature == "user-sig"
    assert row.reserved_amount == 0
    # settled rows cannot be released
    assert builder.release_reservation(result["payoutId"]) == 0


@pytest.mark.asyncio
async def test_external_mode_release(dl_tmp, chain, pool_factory, make_address):
    builder = ClaimBuilder(dl_tmp, chain, payout_mode=EXTERNAL_MODE)
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("0.4"))
    result = await builder.claim("bot-1", make_address())

    assert builder.release_reservation(result["payoutId"]) == 1
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.claimed is False
    assert row.unclaimed == Decimal("0.4")


@pytest.mark.asyncio
async def test_new_fees_after_payout_are_claimable(builder, dl_tmp, pool_factory, make_address):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("1"))
    await builder.claim("bot-1", make_address())

    dl_tmp.rewards.accrue(pool, Decimal("0.25"))
    result = await builder.claim("bot-1", make_address())

    assert result["amount"] == Decimal("0.25")
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.lifetime_earned == Decimal("1.25")
    assert row.claimed_amount == Decimal("1.25")


def _gate_transfers(chain):
    """Hold every transfer until the test resolves its gate (``None`` pays, an exception fails)."""
    gates = []
    pay = chain.transfer

    async def transfer(recipient, lamports):
        gate = asyncio.get_running_loop().create_future()
        gates.append(gate)
        error = await gate
        if error is not None:
            raise error
        return await pay(recipient, lamports)

    chain.transfer = transfer
    return gates


async def _until(predicate):
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never reached")


@pytest.mark.asyncio
@pytest.mark.parametrize("fail_first", [True, False])
async def test_overlapping_payouts_settle_independently(
    fail_first, builder, dl_tmp, chain, pool_factory, make_address
):
    pool = pool_factory()
    wallet = make_address()
    gates = _gate_transfers(chain)

    dl_tmp.rewards.accrue(pool, Decimal("1"))
    first = asyncio.create_task(builder.claim("bot-1", wallet))
    await _until(lambda: len(gates) == 1)

    dl_tmp.rewards.accrue(pool, Decimal("0.5"))
    second = asyncio.create_task(builder.claim("bot-1", wallet))
    await _until(lambda: len(gates) == 2)
    assert dl_tmp.rewards.get("bot-1", pool.pool_address).reserved_amount == Decimal("1.5")

    if fail_first:
        gates[0].set_result(RpcError("dropped"))
        gates[1].set_result(None)
    else:
        gates[1].set_result(None)
        await _until(second.done)
        gates[0].set_result(RpcError("dropped"))
    first_result, second_result = await asyncio.gather(first, second, return_exceptions=True)

    assert isinstance(first_result, RpcError)
    assert second_result["amount"] == Decimal("0.5")
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.unclaimed == Decimal("1")
    assert row.claimed_amount == Decimal("0.5")
    assert row.reserved_amount == 0
    assert row.claimed is False

    third = asyncio.create_task(builder.claim("bot-1", wallet))
    await _until(lambda: len(gates) == 3)
    gates[2].set_result(None)
    assert (await third)["amount"] == Decimal("1")

    assert sum(lamports for _, lamports in chain.transfers) == 1_500_000_000
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.claimed_amount == row.lifetime_earned == Decimal("1.5")
    assert row.unclaimed == 0


@pytest.mark.asyncio
async def test_external_payouts_are_scoped_to_their_own_amounts(dl_tmp, chain, pool_factory, make_address):
    builder = ClaimBuilder(dl_tmp, chain, payout_mode=EXTERNAL_MODE)
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("1"))
    older = await builder.claim("bot-1", make_address())
    dl_tmp.rewards.accrue(pool, Decimal("0.5"))
    newer = await builder.claim("bot-1", make_address())
    assert older["payoutId"] != newer["payoutId"]

    assert builder.release_reservation(older["payoutId"], creator_id="bot-2") == 0
    assert [line["status"] for line in dl_tmp.rewards.get_payout_lines(older["payoutId"])] == ["reserved"]
    assert builder.release_reservation(older["payoutId"]) == 1
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert (row.unclaimed, row.claimed_amount, row.reserved_amount) == (
        Decimal("1"),
        Decimal("0.5"),
        Decimal("0.5"),
    )

    assert builder.record_settlement(newer["payoutId"], "user-sig") == 1
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.reserved_amount == 0
    assert row.unclaimed == Decimal("1")
    assert [line["status"] for line in dl_tmp.rewards.get_payout_lines(older["payoutId"])] == ["released"]


def test_unknown_payout_mode(dl_tmp, chain):
    with pytest.raises(ValueError):
        ClaimBuilder(dl_tmp, chain, payout_mode="carrier-pigeon")


def test_leaderboard_limit_is_clamped(builder, dl_tmp, pool_factory):
    dl_tmp.rewards.accrue(pool_factory(creator_id="a"), Decimal("1"))
    dl_tmp.rewards.accrue(pool_factory(creator_id="b"), Decimal("2"))
    assert [e["botId"] for e in builder.get_leaderboard(0)] == ["b"]
