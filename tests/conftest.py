import asyncio

import pytest
from solders.keypair import Keypair

from launchpad.data.data_locker import DataLocker
from launchpad.models.pool import Pool
from launchpad.services.solana_rpc import LogNotification


def new_address() -> str:
    return str(Keypair().pubkey())


class FakeChainClient:
    """In-memory stand-in for SolanaChainClient."""

    def __init__(self):
        self.accounts = {}        # signature -> account list | Exception
        self.balances = {}        # address -> lamports | Exception
        self.claim_errors = {}    # vault -> Exception
        self.claims = []
        self.transfers = []
        self.transfer_error = None
        self.slot = 0
        self.fetches = []
        self.notifications = []
        self.closed = False
        self._counter = 0

    def _signature(self, prefix):
        self._counter += 1
        return f"{prefix}-sig-{self._counter}"

    async def get_transaction_accounts(self, signature):
        self.fetches.append(signature)
        value = self.accounts.get(signature)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_balance(self, address):
        value = self.balances.get(address, 0)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_slot(self):
        if isinstance(self.slot, Exception):
            raise self.slot
        return self.slot

    async def get_latest_blockhash(self):
        return "blockhash"

    async def claim_vault(self, vault_address, lamports):
        if vault_address in self.claim_errors:
            raise self.claim_errors[vault_address]
        self.claims.append((vault_address, lamports))
        self.balances[vault_address] = 0
        return self._signature("claim")

    async def transfer(self, recipient, lamports):
        if self.transfer_error is not None:
            raise self.transfer_error
        self.transfers.append((recipient, lamports))
        return self._signature("payout")

    async def build_unsigned_transfer(self, recipient, lamports):
        return "dW5zaWduZWQtdHJhbnNmZXI="

    async def logs_subscribe(self, program_id):
        for note in self.notifications:
            yield note
        await asyncio.Event().wait()

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_locker_singleton():
    DataLocker._instance = None
    yield
    DataLocker._instance = None


@pytest.fixture
def dl_tmp(tmp_path):
    dl = DataLocker(str(tmp_path / "ledger.db"))
    yield dl
    dl.close()


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def make_address():
    return new_address


@pytest.fixture
def pool_factory(dl_tmp):
    def _make(creator_id="bot-1", share="50", creator_wallet=None, with_creator=True):
        pool = Pool(
            pool_address=new_address(),
            token_address=new_address(),
            creator_id=creator_id if with_creator else None,
            creator_wallet=(creator_wallet or new_address()) if with_creator else None,
            revenue_share_percent=share,
        )
        dl_tmp.pools.upsert_pool(pool)
        return pool

    return _make


@pytest.fixture
def note_factory():
    def _make(signature, logs=(), slot=1, err=None):
        return LogNotification(signature=signature, logs=list(logs), slot=slot, err=err)

    return _make
