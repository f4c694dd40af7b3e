"""
Abstract Base Classes for Chain Adapters

Defines the interfaces every chain-facing collaborator must implement, so the
payment engine never depends on the shape of a particular wallet provider or
indexing service.

Core Classes:
    - WalletSession: A connected signer able to read contract state and send transactions
    - UnavailableWallet: Explicit "no wallet present" variant of WalletSession
    - TransactionIndexer: Read-only service that reports transaction receipts

Concrete implementations live in the chain-specific subpackages
(e.g. ``chainpay.adapters.evm``).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from ..engine.exceptions import WalletUnavailable
from ..schemas.payments import WalletConnection


class WalletSession(ABC):
    """
    Abstract Base Class for wallet sessions.

    A wallet session abstracts the account that pays: it connects to the
    provider, checks the network, and exposes the two primitives every
    higher component uses to talk to the chain.

    Key Responsibilities:
    1. connect: Obtain the account and the signer handle
    2. assert_network: Refuse to continue on the wrong network
    3. read_contract_view: Read-only contract calls
    4. send_contract_transaction: State-changing contract calls

    All operations are coroutines; the caller awaits each one before
    issuing the next.
    """

    @abstractmethod
    async def connect(self) -> WalletConnection:
        """
        Connect to the wallet provider and return the active account.

        Prompts the user when the provider supports interactive connect.

        Returns:
            WalletConnection: The connected account and its signer handle.

        Raises:
            WalletUnavailable: If no provider is present or reachable.
            WalletLocked: If the provider exposes no unlocked account.
        """
        pass

    @abstractmethod
    async def assert_network(self, signer: Any, expected_network: Optional[str]) -> None:
        """
        Check that the connected endpoint is on ``expected_network``.

        A no-op when ``expected_network`` is unset.

        Raises:
            WrongNetwork: If the endpoint is on a different network.
        """
        pass

    @abstractmethod
    async def read_contract_view(
        self,
        address: str,
        abi_entry: Dict[str, Any],
        args: Sequence[Any],
    ) -> Any:
        """
        Call a read-only contract function.

        Args:
            address: Contract address.
            abi_entry: ABI entry of the function to call.
            args: Positional arguments in canonical string/int form.

        Returns:
            The decoded return value.

        Raises:
            ChainCallFailed: With the provider's error message.
        """
        pass

    @abstractmethod
    async def send_contract_transaction(
        self,
        address: str,
        abi_entry: Dict[str, Any],
        args: Sequence[Any],
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Submit a state-changing contract call.

        Returns as soon as the transaction is accepted; does not wait for it
        to be mined.

        Args:
            address: Contract address.
            abi_entry: ABI entry of the function to call.
            args: Positional arguments in canonical string/int form.
            options: Chain-specific transaction options (gas limit, fees, ...).

        Returns:
            str: Chain-assigned transaction identifier.

        Raises:
            ChainCallFailed: On rejection (revert, insufficient funds, user rejection).
        """
        pass

    def get_account(self) -> Optional[str]:
        """Account of the last successful :meth:`connect`, if any."""
        return None


class UnavailableWallet(WalletSession):
    """
    Wallet session used when no wallet provider is installed or configured.

    Every operation raises :class:`WalletUnavailable`, so the orchestrator
    fails at CONNECTING_WALLET without touching the chain.
    """

    def __init__(self, reason: str = "No wallet provider detected. Install or configure a wallet."):
        self.reason = reason

    async def connect(self) -> WalletConnection:
        raise WalletUnavailable(self.reason)

    async def assert_network(self, signer: Any, expected_network: Optional[str]) -> None:
        raise WalletUnavailable(self.reason)

    async def read_contract_view(self, address, abi_entry, args) -> Any:
        raise WalletUnavailable(self.reason)

    async def send_contract_transaction(self, address, abi_entry, args, options=None) -> str:
        raise WalletUnavailable(self.reason)


class TransactionIndexer(ABC):
    """
    Abstract Base Class for chain-indexing services.

    An indexer answers one question: what is known about a transaction id.
    The returned mapping carries ``receipt.result``, which is absent while
    the transaction is not yet indexed, ``"SUCCESS"`` on success, and any
    other non-empty string (the failure reason) otherwise.
    """

    @abstractmethod
    async def get_transaction_info(self, transaction_id: str) -> Dict[str, Any]:
        """
        Fetch the indexed information for ``transaction_id``.

        Returns:
            Dict[str, Any]: Possibly empty mapping, e.g. ``{"receipt": {"result": "SUCCESS"}}``.

        Raises:
            IndexerError: If the service cannot be queried.
        """
        pass
