"""Liveness probe for the local node behind the configured RPC endpoint."""

from __future__ import annotations

import asyncio
from typing import Any

import requests

from ..constants import LOCAL_CHAIN_ID, LOCAL_RPC_URL
from ..domain import NodeStatus
from ..exceptions import RpcUnreachable
from ..logger import get_logger
from ..scheduler import RetryPolicy, Scheduler, Subscription
from .base import CheckResult

logger = get_logger(__name__)


class NodeProbe:
    """Poll ``eth_chainId`` to tell whether the expected node is up.

    Each probe retries its request under ``retry_policy``. A probe that still
    fails is treated as transient: the status only becomes ``UNREACHABLE``
    after ``failure_threshold`` consecutive failed probes.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        rpc_url: str = LOCAL_RPC_URL,
        expected_chain_id: int = LOCAL_CHAIN_ID,
        interval: float = 10.0,
        failure_threshold: int = 3,
        timeout: float = 10.0,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._scheduler = scheduler
        self.rpc_url = rpc_url
        self.expected_chain_id = expected_chain_id
        self._interval = interval
        self._failure_threshold = failure_threshold
        self._timeout = timeout
        self.status = NodeStatus.CHECKING
        self.last_chain_id: int | None = None
        self.consecutive_failures = 0
        self._subscription: Subscription | None = None

        policy = retry_policy or RetryPolicy()
        self._fetch = policy.retrying(RpcUnreachable, on_backoff=self._log_backoff)(
            self._fetch_chain_id
        )

    def _log_backoff(self, details: dict[str, Any]) -> None:
        logger.debug(
            "Retrying probe of %s (attempt %d): %s",
            self.rpc_url,
            details["tries"],
            details.get("exception"),
        )

    @property
    def name(self) -> str:
        return "Node Liveness Check"

    async def _fetch_chain_id(self) -> int:
        payload = {"jsonrpc": "2.0", "method": "eth_chainId", "params": [], "id": 1}
        try:
            response = await asyncio.to_thread(
                requests.post, self.rpc_url, json=payload, timeout=self._timeout
            )
            response.raise_for_status()
            body = response.json()
            return int(body["result"], 16)
        except (requests.exceptions.RequestException, ValueError, KeyError, TypeError) as e:
            raise RpcUnreachable(
                f"eth_chainId probe failed: {e}", endpoint=self.rpc_url
            ) from e

    async def run_check(self) -> CheckResult:
        """Probe once and update ``status``."""
        try:
            chain_id = await self._fetch()
        except RpcUnreachable as e:
            self.consecutive_failures += 1
            if self.consecutive_failures >= self._failure_threshold:
                if self.status is not NodeStatus.UNREACHABLE:
                    logger.warning(
                        "Node at %s unreachable after %d attempts",
                        self.rpc_url,
                        self.consecutive_failures,
                    )
                self.status = NodeStatus.UNREACHABLE
            else:
                logger.debug(
                    "Probe failed (%d/%d): %s",
                    self.consecutive_failures,
                    self._failure_threshold,
                    e.message,
                )
            return CheckResult(
                passed=False,
                message=e.message,
                retry_recommended=True,
                error=e,
            )

        self.consecutive_failures = 0
        self.last_chain_id = chain_id
        if chain_id != self.expected_chain_id:
            self.status = NodeStatus.WRONG_CHAIN
            return CheckResult(
                passed=False,
                message=f"Node at {self.rpc_url} serves chain {chain_id}, expected {self.expected_chain_id}",
            )

        self.status = NodeStatus.RUNNING
        return CheckResult(
            passed=True,
            message=f"Local blockchain connected • Chain ID: {chain_id} • RPC: {self.rpc_url}",
        )

    def subscribe(self) -> Subscription:
        if self._subscription is None or not self._subscription.active:
            self._subscription = self._scheduler.every(
                self._interval, self.run_check, name="node-probe"
            )
        return self._subscription

    def unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
