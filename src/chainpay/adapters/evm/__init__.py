from .abis import get_decimals_abi, get_allowance_abi, get_approve_abi, get_pay_tx_abi
from .indexer import Web3ReceiptIndexer
from .wallet import Web3WalletSession, NETWORK_CHAIN_IDS, resolve_chain_id, coerce_argument

__all__ = [
    "get_decimals_abi",
    "get_allowance_abi",
    "get_approve_abi",
    "get_pay_tx_abi",
    "Web3ReceiptIndexer",
    "Web3WalletSession",
    "NETWORK_CHAIN_IDS",
    "resolve_chain_id",
    "coerce_argument",
]
