"""In-memory stand-ins for the node and the wallet."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from yds_vault.address_book import AddressBook, load_address_book
from yds_vault.constants import LOCAL_CHAIN_ID
from yds_vault.exceptions import ChainSwitchRejected, SubmissionRejected
from yds_vault.operations import VaultOperations
from yds_vault.queries import track_vault_queries
from yds_vault.reader import ContractReader
from yds_vault.reconciliation import ReconciliationScheduler
from yds_vault.transactions import build_trackers
from yds_vault.wallet import BaseWallet

ACCOUNT = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class FakeFunction:
    def __init__(self, chain: "FakeChain", address: str, name: str, args: tuple):
        self._chain = chain
        self.address = address
        self.fn_name = name
        self.args = args

    async def call(self) -> Any:
        self._chain.calls.append((self.address, self.fn_name, self.args))
        value = self._chain.values.get((self.address, self.fn_name, self.args), 0)
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return await value()
        return value


class FakeFunctions:
    def __init__(self, chain: "FakeChain", address: str):
        self._chain = chain
        self._address = address

    def __getattr__(self, name: str):
        def _build(*args: Any) -> FakeFunction:
            error = self._chain.build_errors.get(name)
            if error is not None:
                raise error
            return FakeFunction(self._chain, self._address, name, args)

        return _build


class FakeContract:
    def __init__(self, chain: "FakeChain", address: str):
        self.address = address
        self.functions = FakeFunctions(chain, address)


class FakeChain:
    """Contract reads served from ``values`` keyed by ``(address, function, args)``.

    ``build_errors`` maps a function name to the error raised when a call to
    it is built, the way web3 rejects arguments that do not match the ABI.
    """

    def __init__(self) -> None:
        self.values: dict[tuple, Any] = {}
        self.calls: list[tuple] = []
        self.build_errors: dict[str, Exception] = {}
        self.w3 = MagicMock()
        self.w3.to_checksum_address = lambda address: address
        self.w3.eth.contract = lambda address, abi: FakeContract(self, address)
        self.w3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 1, "blockNumber": 7}
        )
        self.w3.provider = MagicMock(spec=[])

    def set(self, address: str, function: str, *args: Any, value: Any) -> None:
        self.values[(address, function, args)] = value

    def seed(
        self,
        book: AddressBook,
        *,
        account: str = ACCOUNT,
        asset_balance: int = 0,
        share_balance: int = 0,
        allowance: int = 0,
        total_assets: int = 0,
        total_supply: int = 0,
        watermark: int = 0,
    ) -> None:
        self.set(book.usdc_mock, "balanceOf", account, value=asset_balance)
        self.set(book.usdc_mock, "allowance", account, book.yds_vault, value=allowance)
        self.set(book.yds_vault, "balanceOf", account, value=share_balance)
        self.set(book.yds_vault, "totalAssets", value=total_assets)
        self.set(book.yds_vault, "totalSupply", value=total_supply)
        self.set(book.yds_vault, "lastRecordedAssets", value=watermark)


class FakeWallet(BaseWallet):
    """Wallet that records sent calls and returns sequential hashes."""

    def __init__(
        self,
        address: str | None = ACCOUNT,
        chain_id: int = LOCAL_CHAIN_ID,
        *,
        known_chains: tuple[int, ...] = (LOCAL_CHAIN_ID,),
    ) -> None:
        super().__init__()
        self._address = address
        self._chain_id = chain_id
        self.known_chains = known_chains
        self.sent: list[tuple[str, tuple, int | None]] = []
        self.switch_requests: list[int] = []
        self.reject_sends = False

    @property
    def address(self) -> str | None:
        return self._address

    async def chain_id(self) -> int:
        return self._chain_id

    async def switch_chain(self, chain_id: int) -> None:
        self.switch_requests.append(chain_id)
        if chain_id not in self.known_chains:
            raise ChainSwitchRejected(f"Unknown chain {chain_id}", chain_id=chain_id)
        self._chain_id = chain_id
        self._emit_chain(chain_id)

    def emit(self, chain_id: int) -> None:
        self._chain_id = chain_id
        self._emit_chain(chain_id)

    async def send(self, function: Any, *, gas: int | None = None) -> bytes:
        if self.reject_sends:
            raise SubmissionRejected("User rejected the request", action=function.fn_name)
        self.sent.append((function.fn_name, function.args, gas))
        return len(self.sent).to_bytes(32, "big")


@pytest.fixture
def book():
    return load_address_book(None)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def make_operations(chain, wallet, book):
    """Build ``VaultOperations`` over the fake chain inside a running scheduler."""

    def _make(scheduler, *, grace_period: float = 5.0, offsets=(0.01, 0.02)) -> VaultOperations:
        reader = ContractReader(chain.w3, scheduler, poll_interval=1.0)
        queries = track_vault_queries(reader, book, wallet.address)
        trackers = build_trackers(
            chain.w3,
            scheduler,
            receipt_timeout=1.0,
            poll_latency=0.01,
            grace_period=grace_period,
        )
        return VaultOperations(
            wallet=wallet,
            reader=reader,
            queries=queries,
            book=book,
            trackers=trackers,
            reconciler=ReconciliationScheduler(reader, scheduler, offsets),
        )

    return _make
