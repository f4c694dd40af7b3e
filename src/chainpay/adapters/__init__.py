from .bases import WalletSession, UnavailableWallet, TransactionIndexer
from .indexers import HttpTransactionIndexer
from .evm import (
    Web3WalletSession,
    Web3ReceiptIndexer,
    get_decimals_abi,
    get_allowance_abi,
    get_approve_abi,
    get_pay_tx_abi,
)

__all__ = [
    "WalletSession",
    "UnavailableWallet",
    "TransactionIndexer",
    "HttpTransactionIndexer",
    "Web3WalletSession",
    "Web3ReceiptIndexer",
    "get_decimals_abi",
    "get_allowance_abi",
    "get_approve_abi",
    "get_pay_tx_abi",
]
