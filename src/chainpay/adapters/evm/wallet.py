"""
EVM Wallet Session

Provides the EVM implementation of WalletSession on top of web3.py.

Key Features:
    - Local signing with a private key (eth_account), or node-managed accounts
    - Network check against a chain id, a CAIP-2 id or a well-known network name
    - Argument coercion from canonical strings using the ABI input types
    - Transactions are broadcast and returned immediately, never awaited

Dependencies:
    - web3.py: For JSON-RPC interaction
    - eth_account: For local transaction signing
"""

import logging
from typing import Any, Dict, Optional, Sequence

from eth_account import Account
from web3 import AsyncWeb3, Web3

from ...engine.exceptions import (
    ChainCallFailed,
    ChainPayError,
    ConfigurationError,
    WalletLocked,
    WalletUnavailable,
    WrongNetwork,
)
from ...schemas.payments import WalletConnection
from ..bases import WalletSession

logger = logging.getLogger(__name__)

#: Well-known EVM network names accepted by :meth:`Web3WalletSession.assert_network`.
#: Anything else must be given as a chain id.
NETWORK_CHAIN_IDS: Dict[str, int] = {
    "mainnet": 1,
    "ethereum": 1,
    "sepolia": 11155111,
    "holesky": 17000,
    "base": 8453,
    "base-sepolia": 84532,
    "polygon": 137,
    "arbitrum": 42161,
    "optimism": 10,
    "bsc": 56,
}

#: Gas limit used when estimation fails and the caller gave none.
DEFAULT_GAS_LIMIT: int = 300_000

_FEE_KEYS = ("gasPrice", "maxFeePerGas", "maxPriorityFeePerGas")


def resolve_chain_id(network: Any) -> int:
    """
    Resolve a network identifier to an EVM chain id.

    Accepts an int, a digit string, a CAIP-2 id (``"eip155:11155111"``) or a
    name from :data:`NETWORK_CHAIN_IDS`.

    Raises:
        ConfigurationError: If the identifier is not recognised.
    """
    if isinstance(network, int) and not isinstance(network, bool):
        return network

    value = str(network).strip().lower()
    if value.startswith("eip155:"):
        value = value.split(":", 1)[1]
    if value.isdigit():
        return int(value)
    if value in NETWORK_CHAIN_IDS:
        return NETWORK_CHAIN_IDS[value]

    raise ConfigurationError(
        f"Unknown network {network!r}. Use a chain id or one of: {', '.join(sorted(NETWORK_CHAIN_IDS))}"
    )


def coerce_argument(abi_type: str, value: Any) -> Any:
    """
    Convert a canonical string argument into the Python type web3 encodes.

    ``address`` -> checksum address, ``uintN``/``intN`` -> int,
    ``bytesN``/``bytes`` hex strings -> bytes. Everything else passes through.
    """
    if abi_type == "address":
        return AsyncWeb3.to_checksum_address(value)
    if abi_type.startswith(("uint", "int")) and not abi_type.endswith("]"):
        return int(value)
    if abi_type.startswith("bytes") and isinstance(value, str):
        return Web3.to_bytes(hexstr=value)
    return value


class Web3WalletSession(WalletSession):
    """
    EVM wallet session backed by an ``AsyncWeb3`` instance.

    Two signing modes are supported:

    * **Local key**: when ``private_key`` is given, transactions are built,
      signed in-process with eth_account and broadcast as raw transactions.
    * **Node-managed**: otherwise the node's first unlocked account
      (``eth_accounts``) is used and transactions go through ``eth_sendTransaction``.

    Args:
        rpc_url: JSON-RPC endpoint. Ignored when ``web3`` is given.
        private_key: Optional 0x-prefixed key for local signing.
        request_timeout: HTTP timeout for RPC calls, in seconds.
        web3: Pre-built ``AsyncWeb3`` instance (tests, custom providers).
        default_gas_limit: Gas limit used when estimation fails.

    Example:
        wallet = Web3WalletSession(rpc_url="https://sepolia.example/rpc", private_key="0x...")
        connection = await wallet.connect()
        await wallet.assert_network(connection.signer, "sepolia")
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        private_key: Optional[str] = None,
        request_timeout: int = 60,
        web3: Optional[AsyncWeb3] = None,
        default_gas_limit: int = DEFAULT_GAS_LIMIT,
    ):
        self._account = None
        if private_key:
            try:
                self._account = Account.from_key(private_key)
            except Exception as e:
                raise ConfigurationError(f"Invalid wallet private key: {e}") from e

        if web3 is None and rpc_url:
            web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": request_timeout}
            ))

        self._web3 = web3
        self._default_gas_limit = default_gas_limit
        self._address: Optional[str] = None

    @property
    def web3(self) -> Optional[AsyncWeb3]:
        return self._web3

    def get_account(self) -> Optional[str]:
        return self._address

    async def connect(self) -> WalletConnection:
        if self._web3 is None:
            raise WalletUnavailable("No wallet provider configured. Set an RPC URL or provide a Web3 instance.")

        try:
            connected = await self._web3.is_connected()
        except Exception as e:
            raise WalletUnavailable(f"Wallet provider unreachable: {e}") from e
        if not connected:
            raise WalletUnavailable("Wallet provider unreachable.")

        if self._account is not None:
            address = self._account.address
        else:
            try:
                accounts = await self._web3.eth.accounts
            except Exception as e:
                raise WalletLocked(f"Wallet not connected/unlocked: {e}") from e
            if not accounts:
                raise WalletLocked("Wallet not connected/unlocked.")
            address = accounts[0]

        self._address = AsyncWeb3.to_checksum_address(address)
        logger.debug("wallet connected: %s", self._address)
        return WalletConnection(account=self._address, signer=self._web3)

    async def assert_network(self, signer: Any, expected_network: Optional[str]) -> None:
        if expected_network is None or str(expected_network).strip() == "":
            return

        expected_id = resolve_chain_id(expected_network)
        web3 = signer if signer is not None else self._web3
        try:
            actual_id = int(await web3.eth.chain_id)
        except Exception as e:
            raise ChainCallFailed(f"Failed to read chain id: {e}", method="eth_chainId", reason=str(e)) from e

        if actual_id != expected_id:
            raise WrongNetwork(
                f"Wrong network. Please switch to {expected_network} (chain id {expected_id}) in your wallet.",
                expected=str(expected_id),
                actual=str(actual_id),
            )

    def _contract_function(self, address: str, abi_entry: Dict[str, Any], args: Sequence[Any]):
        if self._web3 is None:
            raise WalletUnavailable("No wallet provider configured.")

        inputs = abi_entry.get("inputs", [])
        if len(inputs) != len(args):
            raise ChainCallFailed(
                f"{abi_entry.get('name')} expects {len(inputs)} arguments, got {len(args)}",
                method=abi_entry.get("name"),
            )

        coerced = [coerce_argument(item["type"], value) for item, value in zip(inputs, args)]
        contract = self._web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address),
            abi=[abi_entry],
        )
        return getattr(contract.functions, abi_entry["name"])(*coerced)

    async def read_contract_view(self, address: str, abi_entry: Dict[str, Any], args: Sequence[Any]) -> Any:
        name = abi_entry.get("name")
        try:
            fn = self._contract_function(address, abi_entry, args)
            return await fn.call()
        except ChainPayError:
            raise
        except Exception as e:
            raise ChainCallFailed(f"{name}() call failed: {e}", method=name, reason=str(e)) from e

    async def send_contract_transaction(
        self,
        address: str,
        abi_entry: Dict[str, Any],
        args: Sequence[Any],
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        name = abi_entry.get("name")
        if self._address is None:
            raise WalletLocked("Wallet not connected. Call connect() first.")

        try:
            fn = self._contract_function(address, abi_entry, args)
            tx_params = await self._build_tx_params(fn, options)

            if self._account is not None:
                transaction = await fn.build_transaction(tx_params)
                signed_tx = self._account.sign_transaction(transaction)
                tx_hash = await self._web3.eth.send_raw_transaction(signed_tx.raw_transaction)
            else:
                tx_hash = await fn.transact(tx_params)
        except ChainPayError:
            raise
        except Exception as e:
            raise ChainCallFailed(f"{name}() transaction failed: {e}", method=name, reason=str(e)) from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.debug("%s() sent: %s", name, tx_hex)
        return tx_hex

    async def _build_tx_params(self, fn, options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Assemble sender, gas and (for local signing) nonce, chain id and fees.

        An explicit ``gas`` option wins. Otherwise gas is estimated with a 10%
        buffer, falling back to the default limit when estimation fails (an
        approval submitted just before may not be mined yet).
        """
        params: Dict[str, Any] = {"from": self._address}
        params.update(options or {})

        if "gas" not in params:
            try:
                gas_estimate = await fn.estimate_gas({"from": self._address})
                params["gas"] = int(gas_estimate * 1.1)
            except Exception as e:
                logger.debug("gas estimation failed, using default limit: %s", e)
                params["gas"] = self._default_gas_limit

        if self._account is None:
            return params

        # Pending nonce so that back-to-back submissions do not collide.
        params["nonce"] = await self._web3.eth.get_transaction_count(self._address, "pending")
        params["chainId"] = await self._web3.eth.chain_id

        if not any(key in params for key in _FEE_KEYS):
            try:
                fee_history = await self._web3.eth.fee_history(1, "latest", [25.0])
                base_fee = fee_history["baseFeePerGas"][-1]
                priority_fee = fee_history["reward"][0][0]
                params["maxPriorityFeePerGas"] = priority_fee
                params["maxFeePerGas"] = (base_fee * 2) + priority_fee
            except Exception:
                params["gasPrice"] = await self._web3.eth.gas_price

        return params
