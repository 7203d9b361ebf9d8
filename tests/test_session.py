from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
import requests

from conftest import FakeWallet
from yds_vault.domain import NOT_YET_LOADED, LifecycleState, NetworkStatus, NodeStatus, OperationKind
from yds_vault.exceptions import VaultClientError
from yds_vault.orchestrator import DepositFlowState
from yds_vault.session import VaultSession
from yds_vault.settings import VaultSettings
from yds_vault.units import asset_amount, share_amount

USDC = 10**6
SHARE = 10**18


@pytest.fixture(autouse=True)
def node_down():
    with patch(
        "yds_vault.checks.node_probe.requests.post",
        side_effect=requests.exceptions.ConnectionError("refused"),
    ):
        yield


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("YDS_VAULT_CONFIG", raising=False)
    return VaultSettings(
        poll_interval=0.01,
        reconcile_offsets=(0.01, 0.02),
        approve_settle_delay=0.01,
        deposit_clear_delay=0.01,
        network_switch_delay=0.01,
        terminal_grace_period=0.05,
    )


@pytest.mark.asyncio
async def test_snapshot_after_first_read(settings, chain, wallet, book):
    chain.seed(
        book,
        asset_balance=400 * USDC,
        share_balance=100 * SHARE,
        allowance=0,
        total_assets=1_050 * USDC,
        total_supply=1_000 * SHARE,
        watermark=1_000 * USDC,
    )

    async with VaultSession(settings, w3=chain.w3, wallet=wallet, poll=False) as session:
        snapshot = session.snapshot()

    assert snapshot.account == wallet.address
    assert snapshot.position.asset_balance == asset_amount(400 * USDC)
    assert snapshot.vault.total_supply == share_amount(1_000 * SHARE)
    assert str(snapshot.share_price.value) == "1.0500"
    assert snapshot.position_value == asset_amount(105 * USDC)
    assert snapshot.available_profit == asset_amount(50 * USDC)
    assert snapshot.donations.current_profit == asset_amount(50 * USDC)
    assert snapshot.network.status is NetworkStatus.CORRECT
    assert snapshot.node_status is NodeStatus.CHECKING
    assert snapshot.deposit_flow.state is DepositFlowState.READY
    assert all(op.state is LifecycleState.IDLE for op in snapshot.operations.values())


@pytest.mark.asyncio
async def test_disconnected_session_shows_not_loaded_position(settings, chain):
    async with VaultSession(settings, w3=chain.w3, wallet=FakeWallet(address=None), poll=False) as session:
        snapshot = session.snapshot()

    assert snapshot.account is None
    assert snapshot.position.share_balance is NOT_YET_LOADED
    assert snapshot.position_value is NOT_YET_LOADED


@pytest.mark.asyncio
async def test_deposit_flow_through_session(settings, chain, wallet, book):
    chain.seed(book, asset_balance=400 * USDC, allowance=0)

    async with VaultSession(settings, w3=chain.w3, wallet=wallet) as session:
        assert session.reader.is_polling
        state = await session.deposit(asset_amount(100 * USDC))
        assert session.snapshot().operations[OperationKind.DEPOSIT].state is LifecycleState.CONFIRMED

    assert state is DepositFlowState.DEPOSIT_CONFIRMED
    assert [name for name, _, _ in wallet.sent] == ["approve", "deposit"]


@pytest.mark.asyncio
async def test_exit_cancels_every_timer(settings, chain, wallet):
    session = VaultSession(settings, w3=chain.w3, wallet=wallet)
    with pytest.raises(RuntimeError):
        async with session:
            await session.mint_usdc(asset_amount(USDC))
            assert session.scheduler.active_count > 0
            raise RuntimeError("presentation crashed")

    assert session.scheduler.closed
    assert session.scheduler.active_count == 0
    reads = len(chain.calls)
    await asyncio.sleep(0.05)
    assert len(chain.calls) == reads


@pytest.mark.asyncio
async def test_wrong_network_auto_switch_on_open(settings, chain):
    wallet = FakeWallet(chain_id=1)
    async with VaultSession(settings, w3=chain.w3, wallet=wallet, poll=False) as session:
        assert session.snapshot().network.status is NetworkStatus.WRONG
        await asyncio.sleep(0.03)
        assert session.snapshot().network.status is NetworkStatus.CORRECT

    assert wallet.switch_requests == [31337]


@pytest.mark.asyncio
async def test_simulate_yield_defaults_to_ten_percent_of_position(settings, chain, wallet, book):
    chain.seed(book, share_balance=100 * SHARE, total_assets=1_000 * USDC, total_supply=1_000 * SHARE)

    async with VaultSession(settings, w3=chain.w3, wallet=wallet, poll=False) as session:
        assert session.suggested_yield() == asset_amount(10 * USDC)
        await session.simulate_yield()

    assert wallet.sent[0][:2] == ("simulateYield", (10 * USDC,))


@pytest.mark.asyncio
async def test_suggested_yield_needs_a_position(settings, chain, wallet):
    async with VaultSession(settings, w3=chain.w3, wallet=wallet, poll=False) as session:
        with pytest.raises(VaultClientError):
            session.suggested_yield()
