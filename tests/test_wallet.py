from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account

from yds_vault.exceptions import ChainSwitchRejected, SubmissionRejected
from yds_vault.wallet import Web3Wallet, build_wallet

# Anvil's first dev account
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.fixture
def w3():
    w3 = MagicMock()
    w3.to_checksum_address = lambda address: address
    return w3


def _function(name="deposit"):
    function = MagicMock()
    function.fn_name = name
    function.transact = AsyncMock(return_value=b"\x02" * 32)
    function.build_transaction = AsyncMock(
        return_value={
            "to": "0xCf7Ed3AccA5a467e9e704C703E8D87F634fB0Fc9",
            "value": 0,
            "gas": 100_000,
            "gasPrice": 1_000_000_000,
            "nonce": 4,
            "chainId": 31337,
            "data": "0x",
        }
    )
    return function


def test_build_wallet_from_private_key(w3):
    wallet = build_wallet(w3, private_key=DEV_KEY)
    assert wallet.address == DEV_ADDRESS
    assert wallet.is_connected


def test_build_wallet_rejects_mismatched_address(w3):
    with pytest.raises(ValueError, match="does not match"):
        build_wallet(w3, private_key=DEV_KEY, address="0x70997970C51812dc3A010C7d01b50e0d17dc79C8")


def test_build_wallet_without_account(w3):
    assert not build_wallet(w3).is_connected


@pytest.mark.asyncio
async def test_unlocked_account_uses_transact(w3):
    wallet = Web3Wallet(w3, address=DEV_ADDRESS)
    function = _function()

    tx_hash = await wallet.send(function, gas=150_000)

    assert tx_hash == b"\x02" * 32
    function.transact.assert_awaited_once_with({"from": DEV_ADDRESS, "gas": 150_000})


@pytest.mark.asyncio
async def test_local_account_signs_and_sends_raw(w3):
    w3.eth.get_transaction_count = AsyncMock(return_value=4)
    w3.eth.send_raw_transaction = AsyncMock(return_value=b"\x03" * 32)
    wallet = Web3Wallet(w3, account=Account.from_key(DEV_KEY))
    function = _function()

    assert await wallet.send(function) == b"\x03" * 32

    function.build_transaction.assert_awaited_once_with({"from": DEV_ADDRESS, "nonce": 4})
    raw = w3.eth.send_raw_transaction.await_args.args[0]
    assert bytes(raw)


@pytest.mark.asyncio
async def test_send_failure_becomes_submission_rejected(w3):
    wallet = Web3Wallet(w3, address=DEV_ADDRESS)
    function = _function("approve")
    function.transact = AsyncMock(side_effect=ValueError("insufficient funds for gas"))

    with pytest.raises(SubmissionRejected) as exc_info:
        await wallet.send(function)

    assert exc_info.value.action == "approve"


class _Eth:
    """``eth`` namespace whose ``chain_id`` is awaitable like AsyncWeb3's."""

    def __init__(self, chain_id: int):
        self._chain_id = chain_id

    @property
    def chain_id(self):
        async def _get():
            return self._chain_id

        return _get()


@pytest.mark.asyncio
async def test_switch_only_confirms_served_chain(w3):
    w3.eth = _Eth(31337)
    wallet = Web3Wallet(w3, address=DEV_ADDRESS)
    seen = []
    wallet.on_chain_changed(seen.append)

    await wallet.switch_chain(31337)
    assert seen == [31337]
    assert await wallet.chain_id() == 31337

    with pytest.raises(ChainSwitchRejected):
        await wallet.switch_chain(1)
    assert seen == [31337]
