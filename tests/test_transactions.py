from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from web3.exceptions import ContractLogicError, TimeExhausted

from yds_vault.domain import LifecycleState, OperationKind
from yds_vault.exceptions import OperationInFlightError, SubmissionRejected, TransactionFailed
from yds_vault.scheduler import Scheduler
from yds_vault.transactions import TransactionTracker, build_trackers

TX_HASH = b"\x01" * 32


def _tracker(chain, scheduler, grace_period=5.0) -> TransactionTracker:
    return TransactionTracker(
        OperationKind.DEPOSIT,
        chain.w3,
        scheduler,
        receipt_timeout=1.0,
        poll_latency=0.01,
        grace_period=grace_period,
    )


@pytest.mark.asyncio
async def test_confirmed_submission(chain):
    async with Scheduler() as scheduler:
        tracker = _tracker(chain, scheduler)
        seen = []
        tracker.add_listener(lambda op: seen.append(op.state))

        result = await tracker.submit(AsyncMock(return_value=TX_HASH))

    assert result.state is LifecycleState.CONFIRMED
    assert result.tx_hash == "0x" + "01" * 32
    assert result.block_number == 7
    assert seen == [
        LifecycleState.SUBMITTING,
        LifecycleState.AWAITING_CONFIRMATION,
        LifecycleState.CONFIRMED,
    ]


@pytest.mark.asyncio
async def test_rejected_submission_fails_without_hash(chain):
    async with Scheduler() as scheduler:
        tracker = _tracker(chain, scheduler)
        result = await tracker.submit(AsyncMock(side_effect=ValueError("user denied")))

    assert result.state is LifecycleState.FAILED
    assert result.tx_hash is None
    assert isinstance(result.error, SubmissionRejected)
    chain.w3.eth.wait_for_transaction_receipt.assert_not_called()


@pytest.mark.asyncio
async def test_reverted_receipt_reports_reason(chain):
    chain.w3.eth.wait_for_transaction_receipt = AsyncMock(
        return_value={"status": 0, "blockNumber": 9}
    )
    chain.w3.eth.get_transaction = AsyncMock(
        return_value={"from": "0xA", "to": "0xB", "input": "0x", "value": 0}
    )
    chain.w3.eth.call = AsyncMock(
        side_effect=ContractLogicError("execution reverted: ERC4626: withdraw more than max")
    )

    async with Scheduler() as scheduler:
        tracker = _tracker(chain, scheduler)
        result = await tracker.submit(AsyncMock(return_value=TX_HASH))

    assert result.state is LifecycleState.FAILED
    assert isinstance(result.error, TransactionFailed)
    assert "withdraw more than max" in result.error_message
    assert result.block_number == 9


@pytest.mark.asyncio
async def test_dropped_transaction_fails_after_timeout(chain):
    chain.w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=TimeExhausted("gone"))

    async with Scheduler() as scheduler:
        tracker = _tracker(chain, scheduler)
        result = await tracker.submit(AsyncMock(return_value=TX_HASH))

    assert result.state is LifecycleState.FAILED
    assert "dropped" in result.error_message


@pytest.mark.asyncio
async def test_second_submit_while_pending_is_rejected(chain):
    release = asyncio.Event()

    async def slow_receipt(*args, **kwargs):
        await release.wait()
        return {"status": 1, "blockNumber": 1}

    chain.w3.eth.wait_for_transaction_receipt = slow_receipt
    send = AsyncMock(return_value=TX_HASH)

    async with Scheduler() as scheduler:
        tracker = _tracker(chain, scheduler)
        first = asyncio.create_task(tracker.submit(send))
        await asyncio.sleep(0.01)
        assert tracker.state is LifecycleState.AWAITING_CONFIRMATION

        with pytest.raises(OperationInFlightError):
            await tracker.submit(send)

        release.set()
        result = await first

    assert result.state is LifecycleState.CONFIRMED
    assert send.await_count == 1


@pytest.mark.asyncio
async def test_terminal_state_resets_after_grace_period(chain):
    async with Scheduler() as scheduler:
        tracker = _tracker(chain, scheduler, grace_period=0.01)
        await tracker.submit(AsyncMock(return_value=TX_HASH))
        assert tracker.state is LifecycleState.CONFIRMED

        await asyncio.sleep(0.05)

        assert tracker.state is LifecycleState.IDLE
        assert tracker.snapshot.tx_hash is None


@pytest.mark.asyncio
async def test_trackers_are_independent_per_kind(chain):
    release = asyncio.Event()

    async def slow_receipt(*args, **kwargs):
        await release.wait()
        return {"status": 1, "blockNumber": 1}

    chain.w3.eth.wait_for_transaction_receipt = slow_receipt

    async with Scheduler() as scheduler:
        trackers = build_trackers(
            chain.w3, scheduler, receipt_timeout=1, poll_latency=0.01, grace_period=1
        )
        approve = asyncio.create_task(
            trackers[OperationKind.APPROVE].submit(AsyncMock(return_value=TX_HASH))
        )
        await asyncio.sleep(0.01)

        assert trackers[OperationKind.APPROVE].is_busy
        assert not trackers[OperationKind.DEPOSIT].is_busy

        release.set()
        await approve
