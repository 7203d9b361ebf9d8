from __future__ import annotations

import asyncio

import pytest

from conftest import FakeWallet
from yds_vault.constants import LOCAL_CHAIN_ID
from yds_vault.domain import NetworkStatus
from yds_vault.network import NetworkReconciler
from yds_vault.scheduler import Scheduler

MAINNET = 1


def _reconciler(wallet, scheduler) -> NetworkReconciler:
    return NetworkReconciler(
        wallet, scheduler, target_chain_id=LOCAL_CHAIN_ID, switch_delay=0.01
    )


@pytest.mark.asyncio
async def test_correct_network_needs_no_switch():
    wallet = FakeWallet(chain_id=LOCAL_CHAIN_ID)
    async with Scheduler() as scheduler:
        network = _reconciler(wallet, scheduler)
        await network.on_connected()
        await asyncio.sleep(0.03)

    assert network.status is NetworkStatus.CORRECT
    assert wallet.switch_requests == []


@pytest.mark.asyncio
async def test_wrong_network_switches_once():
    wallet = FakeWallet(chain_id=MAINNET)
    async with Scheduler() as scheduler:
        network = _reconciler(wallet, scheduler)
        await network.on_connected()
        assert network.status is NetworkStatus.WRONG

        # Repeated events for the same chain before the timer fires
        wallet.emit(MAINNET)
        wallet.emit(MAINNET)
        await asyncio.sleep(0.03)

    assert wallet.switch_requests == [LOCAL_CHAIN_ID]
    assert network.is_correct_network
    assert network.status is NetworkStatus.CORRECT


@pytest.mark.asyncio
async def test_rejected_switch_is_not_retried_for_same_chain():
    wallet = FakeWallet(chain_id=MAINNET, known_chains=())
    async with Scheduler() as scheduler:
        network = _reconciler(wallet, scheduler)
        await network.on_connected()
        await asyncio.sleep(0.03)

        assert network.status is NetworkStatus.WRONG
        assert network.last_error is not None

        wallet.emit(MAINNET)
        await asyncio.sleep(0.03)
        assert wallet.switch_requests == [LOCAL_CHAIN_ID]

        # A different wrong chain is a new mismatch
        wallet.emit(137)
        await asyncio.sleep(0.03)

    assert wallet.switch_requests == [LOCAL_CHAIN_ID, LOCAL_CHAIN_ID]


@pytest.mark.asyncio
async def test_returning_to_target_cancels_pending_switch():
    wallet = FakeWallet(chain_id=MAINNET)
    async with Scheduler() as scheduler:
        network = NetworkReconciler(
            wallet, scheduler, target_chain_id=LOCAL_CHAIN_ID, switch_delay=0.05
        )
        await network.on_connected()
        wallet.emit(LOCAL_CHAIN_ID)
        assert network.is_correct_network
        await asyncio.sleep(0.08)

    assert wallet.switch_requests == []


@pytest.mark.asyncio
async def test_manual_switch_reports_failure():
    wallet = FakeWallet(chain_id=MAINNET, known_chains=())
    async with Scheduler() as scheduler:
        network = _reconciler(wallet, scheduler)
        network.on_chain_changed(MAINNET)

        assert await network.switch_to_local() is False
        assert network.status is NetworkStatus.WRONG
        assert network.current_network_name == "Ethereum Mainnet"
