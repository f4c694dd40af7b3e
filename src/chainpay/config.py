"""
Runtime configuration.

Settings come from ``CHAINPAY_*`` environment variables, optionally seeded
from a ``.env`` file through python-dotenv:

    CHAINPAY_PAYMENT_CONTRACT_ADDRESS=0x...
    CHAINPAY_DEFAULT_TOKEN_ADDRESS=0x...
    CHAINPAY_EXPECTED_NETWORK=sepolia
    CHAINPAY_RPC_URL=https://ethereum-sepolia-rpc.publicnode.com
    CHAINPAY_PRIVATE_KEY=0x...
    CHAINPAY_INDEXER_URL=https://nile.trongrid.io
    CHAINPAY_BACKEND_URL=https://merchant.example.com
    CHAINPAY_ORDERS_API_URL=https://merchant.example.com/api/orders
    CHAINPAY_POLL_TIMEOUT_MS=90000
    CHAINPAY_POLL_INTERVAL_MS=3000
    CHAINPAY_PAYMENT_ABI_VARIANT=signed
    CHAINPAY_GAS_LIMIT=300000
    CHAINPAY_CACHE_DIR=.chainpay/payments
"""

import os
from typing import Any, Dict, Mapping, Optional

import dotenv
from pydantic import Field, ValidationError as PydanticValidationError, field_validator

from .adapters.evm.wallet import DEFAULT_GAS_LIMIT
from .engine.exceptions import ConfigurationError
from .engine.poller import DEFAULT_INTERVAL_MS, DEFAULT_TIMEOUT_MS
from .engine.submitter import PaymentAbiVariant
from .schemas.bases import CanonicalModel

ENV_PREFIX = "CHAINPAY_"


class PaymentSettings(CanonicalModel):
    """
    Settings shared by the orchestrator and the adapters it is built from.

    Attributes:
        payment_contract_address: Settlement contract (spender of the allowance)
        default_token_address: Token used when a request source carries none
        expected_network: Network the wallet must be on; None skips the check
        rpc_url: JSON-RPC endpoint for the web3 wallet session
        private_key: Local signing key; None uses the node's unlocked accounts
        indexer_url: Base URL of the HTTP transaction indexer
        backend_url: Base URL of the order backend
        orders_api_url: Orders endpoint used to fetch a payment by reference
        poll_timeout_ms: Confirmation poll budget
        poll_interval_ms: Delay between confirmation polls
        payment_abi_variant: ``payTx`` shape of the deployed contract
        gas_limit: Gas limit used when estimation fails
        cache_dir: Directory of the local payment cache; None disables it
    """

    payment_contract_address: str
    default_token_address: str = ""
    expected_network: Optional[str] = None
    rpc_url: Optional[str] = None
    private_key: Optional[str] = Field(default=None, repr=False, exclude=True)
    indexer_url: Optional[str] = None
    backend_url: Optional[str] = None
    orders_api_url: Optional[str] = None
    poll_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    poll_interval_ms: int = Field(default=DEFAULT_INTERVAL_MS, gt=0)
    payment_abi_variant: PaymentAbiVariant = PaymentAbiVariant.SIGNED
    gas_limit: int = Field(default=DEFAULT_GAS_LIMIT, gt=0)
    cache_dir: Optional[str] = None

    @field_validator("payment_contract_address")
    @classmethod
    def _require_contract(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("payment contract address is required")
        return value

    @field_validator("payment_abi_variant", mode="before")
    @classmethod
    def _normalize_variant(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


def _collect_env(environ: Mapping[str, str]) -> Dict[str, str]:
    values = {}
    for field_name in PaymentSettings.model_fields:
        raw = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw is not None and raw.strip() != "":
            values[field_name] = raw.strip()
    return values


def load_settings(env_file: Optional[str] = None, **overrides: Any) -> PaymentSettings:
    """
    Build PaymentSettings from the environment.

    Args:
        env_file: Optional ``.env`` path; the default lookup is used when omitted.
            Variables already set in the process environment win.
        **overrides: Explicit values taking precedence over the environment.

    Returns:
        PaymentSettings: Validated settings.

    Raises:
        ConfigurationError: If a value is missing or malformed, most commonly
            an unset ``CHAINPAY_PAYMENT_CONTRACT_ADDRESS``.
    """
    if env_file:
        dotenv.load_dotenv(env_file)
    else:
        dotenv.load_dotenv()

    values = _collect_env(os.environ)
    values.update({key: value for key, value in overrides.items() if value is not None})

    if not values.get("payment_contract_address"):
        raise ConfigurationError(f"{ENV_PREFIX}PAYMENT_CONTRACT_ADDRESS is not set")

    try:
        return PaymentSettings(**values)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid payment settings: {e}") from e
