"""Wallet/session provider boundary: account identity, chain identity, signing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from .exceptions import ChainSwitchRejected, SubmissionRejected
from .logger import get_logger

logger = get_logger(__name__)

ChainListener = Callable[[int], None]


class BaseWallet(ABC):
    """Abstract wallet. Subclasses report chain changes through ``_emit_chain``."""

    def __init__(self) -> None:
        self._chain_listeners: list[ChainListener] = []

    @property
    @abstractmethod
    def address(self) -> str | None:
        """Connected account, or None when no account is connected."""
        ...

    @property
    def is_connected(self) -> bool:
        return self.address is not None

    @abstractmethod
    async def chain_id(self) -> int:
        """Chain the wallet is currently on."""
        ...

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to move to ``chain_id``.

        Raises:
            ChainSwitchRejected: If the switch is refused or the chain is unknown.
        """
        ...

    @abstractmethod
    async def send(self, function: Any, *, gas: int | None = None) -> bytes:
        """Sign and submit a prepared contract function call.

        Returns:
            The transaction hash.

        Raises:
            SubmissionRejected: If signing or submission fails.
        """
        ...

    def on_chain_changed(self, listener: ChainListener) -> Callable[[], None]:
        self._chain_listeners.append(listener)

        def _remove() -> None:
            if listener in self._chain_listeners:
                self._chain_listeners.remove(listener)

        return _remove

    def _emit_chain(self, chain_id: int) -> None:
        for listener in list(self._chain_listeners):
            try:
                listener(chain_id)
            except Exception:
                logger.exception("Chain listener raised")


class Web3Wallet(BaseWallet):
    """Wallet backed by the configured RPC endpoint.

    With a ``LocalAccount`` transactions are signed locally and sent raw.
    With only an address they are sent with ``eth_sendTransaction``, which
    works against nodes holding unlocked dev accounts such as Anvil.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        *,
        account: LocalAccount | None = None,
        address: str | None = None,
    ) -> None:
        super().__init__()
        self.w3 = w3
        self._account = account
        if account is not None:
            self._address: str | None = account.address
        elif address is not None:
            self._address = w3.to_checksum_address(address)
        else:
            self._address = None

    @property
    def address(self) -> str | None:
        return self._address

    async def chain_id(self) -> int:
        return await self.w3.eth.chain_id

    async def switch_chain(self, chain_id: int) -> None:
        # An RPC-backed wallet cannot hop networks; it can only confirm the
        # endpoint already serves the requested chain.
        try:
            current = await self.w3.eth.chain_id
        except Exception as e:
            raise ChainSwitchRejected(
                f"Could not query chain id: {e}", chain_id=chain_id
            ) from e
        if current != chain_id:
            raise ChainSwitchRejected(
                f"Chain {chain_id} is unknown to this wallet (endpoint serves {current})",
                chain_id=chain_id,
            )
        self._emit_chain(current)

    async def send(self, function: Any, *, gas: int | None = None) -> bytes:
        if self._address is None:
            raise SubmissionRejected("No connected account")

        params: dict[str, Any] = {"from": self._address}
        if gas is not None:
            params["gas"] = gas

        try:
            if self._account is None:
                return await function.transact(params)

            params["nonce"] = await self.w3.eth.get_transaction_count(
                self._address, "pending"
            )
            tx = await function.build_transaction(params)
            signed = self._account.sign_transaction(tx)
            return await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except SubmissionRejected:
            raise
        except Exception as e:
            raise SubmissionRejected(
                f"Failed to submit transaction: {e}",
                action=getattr(function, "fn_name", None),
                details={"error": str(e)},
            ) from e


def build_wallet(
    w3: AsyncWeb3,
    *,
    private_key: str | None = None,
    address: str | None = None,
) -> Web3Wallet:
    """Wallet for a private key, a bare (node-unlocked) address, or no account."""
    if private_key:
        account: LocalAccount = Account.from_key(private_key)
        if address and w3.to_checksum_address(address) != account.address:
            raise ValueError(
                f"account_address {address} does not match the private key's address {account.address}"
            )
        return Web3Wallet(w3, account=account)
    return Web3Wallet(w3, address=address)
