from datetime import timedelta
from decimal import Decimal

import pytest

from launchpad.core.errors import ClaimTooSmallError, NoUnclaimedRewardsError
from launchpad.models.fee_vault import FeeVault
from launchpad.models.job_status import JobState
from launchpad.models.token import Token
from launchpad.models.trade import Trade, TradeSide
from launchpad.utils.time_utils import utc_now


def _tables(dl):
    cur = dl.db.get_cursor()
    cur.execute("SELECT name FROM sqlite_master WHERE type='table'")
    return {row[0] for row in cur.fetchall()}


def test_schema_created(dl_tmp):
    assert {
        "tokens",
        "trades",
        "fee_vaults",
        "fee_claims",
        "creator_rewards",
        "reward_payouts",
        "pools",
        "job_ledger",
    } <= _tables(dl_tmp)


def test_get_instance_is_singleton(tmp_path):
    from launchpad.data.data_locker import DataLocker

    path = str(tmp_path / "one.db")
    a = DataLocker.get_instance(path)
    assert DataLocker.get_instance(path) is a
    a.close()


def test_db_cannot_be_reassigned(dl_tmp):
    from launchpad.data.database import DatabaseManager

    other = DatabaseManager(":memory:")
    with pytest.raises(AttributeError):
        dl_tmp.db = other
    with pytest.raises(TypeError):
        dl_tmp.db = object()
    other.close()


def test_transaction_rolls_back_every_statement(dl_tmp, make_address):
    token = Token(address=make_address(), name="A", symbol="A", creator=make_address())
    with pytest.raises(RuntimeError):
        with dl_tmp.transaction():
            dl_tmp.tokens.insert_token(token)
            raise RuntimeError("boom")
    assert dl_tmp.tokens.get_token(token.address) is None


def test_token_insert_is_idempotent(dl_tmp, make_address):
    token = Token(address=make_address(), name="Moon", symbol="MOON", creator=make_address())
    assert dl_tmp.tokens.insert_token(token) is True
    assert dl_tmp.tokens.insert_token(token) is False
    assert dl_tmp.tokens.count() == 1


def test_trade_volume_window(dl_tmp, make_address):
    mint = make_address()
    now = utc_now()
    old = Trade(
        signature="old",
        token_address=mint,
        trader=make_address(),
        side=TradeSide.BUY,
        amount_sol=Decimal("5"),
        amount_tokens=10,
        price=Decimal("0.5"),
        created_at=now - timedelta(hours=25),
    )
    fresh = old.model_copy(update={"signature": "fresh", "amount_sol": Decimal("1.25"), "created_at": now})
    assert dl_tmp.trades.insert_trade(old)
    assert dl_tmp.trades.insert_trade(fresh)
    assert dl_tmp.trades.insert_trade(fresh) is False
    assert dl_tmp.trades.get_24h_volume(mint, now=now) == Decimal("1.25")


def test_record_claim_moves_timestamp_forward(dl_tmp, make_address):
    vault = FeeVault(
        pool_address=make_address(),
        token_address=make_address(),
        vault_address=make_address(),
        total_collected=Decimal("1.5"),
        total_claimed=Decimal("1.0"),
        unclaimed=Decimal("0.5"),
        last_claim_at=utc_now() + timedelta(minutes=5),
    )
    dl_tmp.vaults.create_vault(vault)

    updated = dl_tmp.vaults.record_claim(vault.pool_address, Decimal("0.6"))

    assert updated.total_collected == Decimal("2.1")
    assert updated.total_claimed == Decimal("1.6")
    assert updated.unclaimed == 0
    assert updated.claim_count == 1
    assert updated.last_claim_at > vault.last_claim_at

    stored = dl_tmp.vaults.get_vault(vault.pool_address)
    assert (stored.total_collected, stored.total_claimed, stored.unclaimed) == (
        Decimal("2.1"),
        Decimal("1.6"),
        Decimal("0"),
    )
    assert stored.last_claim_at == updated.last_claim_at


def test_record_claim_unknown_vault(dl_tmp):
    with pytest.raises(LookupError):
        dl_tmp.vaults.record_claim("nope", Decimal("1"))


def test_due_vaults_respect_cooldown(dl_tmp, make_address):
    never = FeeVault(pool_address=make_address(), token_address="t", vault_address="v1")
    recent = FeeVault(
        pool_address=make_address(), token_address="t", vault_address="v2", last_claim_at=utc_now()
    )
    stale = FeeVault(
        pool_address=make_address(),
        token_address="t",
        vault_address="v3",
        last_claim_at=utc_now() - timedelta(hours=2),
    )
    for v in (never, recent, stale):
        dl_tmp.vaults.create_vault(v)

    due = dl_tmp.vaults.list_due_vaults(utc_now() - timedelta(hours=1))
    assert {v.pool_address for v in due} == {never.pool_address, stale.pool_address}


def test_accrue_reserve_release(dl_tmp, pool_factory):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("0.3"))
    dl_tmp.rewards.accrue(pool, Decimal("0.2"))

    payout_id, reserved, total, rows = dl_tmp.rewards.reserve_payable("bot-1", Decimal("0.01"))
    assert total == Decimal("0.5")
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.claimed is True
    assert row.unclaimed == 0
    assert row.claimed_amount == Decimal("0.5")

    with pytest.raises(NoUnclaimedRewardsError):
        dl_tmp.rewards.reserve_payable("bot-1", Decimal("0.01"))

    assert list(reserved) == [row.id]
    assert dl_tmp.rewards.release(payout_id) == 1
    assert dl_tmp.rewards.release(payout_id) == 0
    row = dl_tmp.rewards.get("bot-1", pool.pool_address)
    assert row.claimed is False
    assert row.unclaimed == Decimal("0.5")
    assert row.claimed_amount == 0
    assert row.claimed_amount + row.unclaimed == row.lifetime_earned


def test_reserve_below_minimum_mutates_nothing(dl_tmp, pool_factory):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("0.004"))
    before = dl_tmp.rewards.get("bot-1", pool.pool_address)

    with pytest.raises(ClaimTooSmallError):
        dl_tmp.rewards.reserve_payable("bot-1", Decimal("0.01"))

    assert dl_tmp.rewards.get("bot-1", pool.pool_address) == before


def test_new_accrual_makes_row_payable_again(dl_tmp, pool_factory):
    pool = pool_factory()
    dl_tmp.rewards.accrue(pool, Decimal("1"))
    payout_id, _, _, _ = dl_tmp.rewards.reserve_payable("bot-1", Decimal("0.01"))
    assert dl_tmp.rewards.stamp_settlement(payout_id, "sig-1") == 1

    row = dl_tmp.rewards.accrue(pool, Decimal("0.4"))
    assert row.claimed is False
    _, _, total, _ = dl_tmp.rewards.reserve_payable("bot-1", Decimal("0.01"))
    assert total == Decimal("0.4")


def test_leaderboard_orders_by_total(dl_tmp, pool_factory, make_address):
    wallet = make_address()
    a1 = pool_factory(creator_id="a", creator_wallet=wallet)
    a2 = pool_factory(creator_id="a", creator_wallet=wallet)
    b = pool_factory(creator_id="b")
    dl_tmp.rewards.accrue(a1, Decimal("1"))
    dl_tmp.rewards.accrue(a2, Decimal("1"))
    dl_tmp.rewards.accrue(b, Decimal("1.5"))

    board = dl_tmp.rewards.leaderboard(10)
    assert [e["botId"] for e in board] == ["a", "b"]
    assert board[0]["totalEarned"] == Decimal("2")
    assert board[0]["poolCount"] == 2


def test_fee_claim_journal(dl_tmp):
    assert dl_tmp.fee_claims.record_pending("s1", "pool", Decimal("0.6"))
    assert dl_tmp.fee_claims.record_pending("s1", "pool", Decimal("0.6")) is False
    assert [e.signature for e in dl_tmp.fee_claims.list_pending()] == ["s1"]
    assert dl_tmp.fee_claims.mark_applied("s1") is True
    assert dl_tmp.fee_claims.mark_applied("s1") is False
    assert dl_tmp.fee_claims.list_pending() == []


def test_job_ledger_last_entry(dl_tmp):
    dl_tmp.ledger.insert_ledger_entry("fee_sweep", JobState.ERROR, {"error": "x"})
    dl_tmp.ledger.insert_ledger_entry("fee_sweep", JobState.SUCCESS, {"collected": 2}, run_id="r-2")

    last = dl_tmp.ledger.get_last_entry("fee_sweep")
    assert last.status is JobState.SUCCESS
    assert last.run_id == "r-2"
    assert last.metadata == {"collected": 2}

    status = dl_tmp.ledger.get_status("fee_sweep")
    assert status["status"] == "Success"
    assert status["age_seconds"] >= 0
    assert dl_tmp.ledger.get_status("never")["status"] is None


def test_token_and_trade_listings(dl_tmp, make_address):
    creator, trader = make_address(), make_address()
    mints = [make_address(), make_address()]
    for mint in mints:
        dl_tmp.tokens.insert_token(Token(address=mint, name="T", symbol="T", creator=creator))
    dl_tmp.tokens.insert_token(Token(address=make_address(), name="O", symbol="O", creator=make_address()))

    assert {t.address for t in dl_tmp.tokens.list_tokens(creator=creator)} == set(mints)
    assert len(dl_tmp.tokens.list_tokens(limit=2)) == 2

    for i, mint in enumerate(mints):
        dl_tmp.trades.insert_trade(
            Trade(
                signature=f"sig-{i}",
                token_address=mint,
                trader=trader,
                side=TradeSide.SELL,
                amount_sol=Decimal("0.1"),
                amount_tokens=5,
                price=Decimal("0.02"),
            )
        )
    assert [t.signature for t in dl_tmp.trades.list_by_token(mints[0])] == ["sig-0"]
    assert {t.signature for t in dl_tmp.trades.list_by_trader(trader)} == {"sig-0", "sig-1"}
    assert dl_tmp.trades.count() == 2
