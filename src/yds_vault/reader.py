"""Polled, cached view of read-only contract state."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from eth_typing import ChecksumAddress
from web3 import AsyncWeb3
from web3.exceptions import ProviderConnectionError

from .domain import NOT_YET_LOADED, Loadable
from .logger import get_logger
from .scheduler import RetryPolicy, Scheduler, Subscription
from .units import DecimalAmount

logger = get_logger(__name__)

TRANSIENT_RPC_ERRORS: tuple[type[Exception], ...] = (
    ProviderConnectionError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class QueryKey:
    """Identity of one contract read: ``(contract address, function, args)``."""

    contract: str
    function: str
    args: tuple[Any, ...] = ()

    @property
    def enabled(self) -> bool:
        """A read with a missing address argument is never issued."""
        return all(arg is not None for arg in self.args)

    def __str__(self) -> str:
        args = ", ".join(str(arg) for arg in self.args)
        return f"{self.contract[:10]}.{self.function}({args})"


class ContractReader:
    """Cache of contract reads refreshed on an interval and on demand.

    Each tracked ``QueryKey`` holds its last successful value. A failed read
    leaves that value in place and is retried on the next tick; callers see
    ``NOT_YET_LOADED`` until a first read succeeds.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        scheduler: Scheduler,
        *,
        poll_interval: float,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.w3 = w3
        self._scheduler = scheduler
        self._poll_interval = poll_interval
        self._contracts: dict[str, Any] = {}
        self._scales: dict[QueryKey, int] = {}
        self._values: dict[QueryKey, int] = {}
        self._failures: dict[QueryKey, int] = {}
        self._issued: dict[QueryKey, int] = {}
        self._applied: dict[QueryKey, int] = {}
        self._subscription: Subscription | None = None

        policy = retry_policy or RetryPolicy()
        self._call = policy.retrying(
            TRANSIENT_RPC_ERRORS, on_backoff=self._log_backoff
        )(self._raw_call)

    @staticmethod
    def _log_backoff(details: dict[str, Any]) -> None:
        logger.debug(
            "Retrying read %s (attempt %d): %s",
            details["args"][0] if details.get("args") else "?",
            details["tries"],
            details.get("exception"),
        )

    def register_contract(self, address: str, abi: list[dict]) -> ChecksumAddress:
        """Make ``address`` readable with ``abi``. Returns the checksum address."""
        checksum = self.w3.to_checksum_address(address)
        if checksum not in self._contracts:
            self._contracts[checksum] = self.w3.eth.contract(address=checksum, abi=abi)
        return checksum

    def track(self, contract: str, function: str, *args: Any, scale: int) -> QueryKey:
        """Start tracking a read whose integer result is an amount at ``scale``."""
        checksum = self.w3.to_checksum_address(contract)
        if checksum not in self._contracts:
            raise KeyError(f"Contract {checksum} is not registered")
        key = QueryKey(contract=checksum, function=function, args=tuple(args))
        self._scales[key] = scale
        return key

    @property
    def keys(self) -> list[QueryKey]:
        return list(self._scales)

    def current_value(self, key: QueryKey) -> Loadable[DecimalAmount]:
        if not key.enabled or key not in self._values:
            return NOT_YET_LOADED
        return DecimalAmount(self._values[key], self._scales[key])

    def failures(self, key: QueryKey) -> int:
        """Consecutive failed reads for ``key`` since its last success."""
        return self._failures.get(key, 0)

    async def _raw_call(self, key: QueryKey) -> int:
        contract = self._contracts[key.contract]
        function = getattr(contract.functions, key.function)(*key.args)
        return await function.call()

    async def _refresh(self, key: QueryKey) -> None:
        seq = self._issued.get(key, 0) + 1
        self._issued[key] = seq
        try:
            value = await self._call(key)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failures[key] = self._failures.get(key, 0) + 1
            logger.warning(
                "Read %s failed (%d consecutive): %s", key, self._failures[key], e
            )
            return

        # A slower, older read must not overwrite a newer result
        if seq < self._applied.get(key, 0):
            logger.debug("Discarding stale result for %s", key)
            return
        self._applied[key] = seq
        self._failures[key] = 0
        self._values[key] = int(value)

    async def refetch(self, keys: Iterable[QueryKey] | None = None) -> None:
        """Re-read ``keys`` (all tracked keys by default) concurrently.

        Disabled keys are skipped. Never raises for read failures.
        """
        targets = self.keys if keys is None else list(keys)
        unknown = [key for key in targets if key not in self._scales]
        if unknown:
            raise KeyError(f"Untracked queries: {', '.join(map(str, unknown))}")

        enabled = [key for key in targets if key.enabled]
        if not enabled:
            return
        await asyncio.gather(*(self._refresh(key) for key in enabled))

    @property
    def is_polling(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def subscribe(self) -> Subscription:
        """Start interval polling of every tracked key."""
        if self._subscription is None or not self._subscription.active:
            logger.debug("Polling %d queries every %.1fs", len(self._scales), self._poll_interval)
            self._subscription = self._scheduler.every(
                self._poll_interval, self.refetch, name="contract-reader-poll"
            )
        return self._subscription

    def unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
