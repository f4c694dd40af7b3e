"""
EVM Receipt Indexer

Adapts ``eth_getTransactionReceipt`` to the TransactionIndexer interface, so
EVM chains can be polled without a separate indexing service.
"""

import logging
from typing import Any, Dict

from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from ...engine.exceptions import IndexerError
from ..bases import TransactionIndexer

logger = logging.getLogger(__name__)

#: Result reported for receipts whose ``status`` is not 1.
REVERTED_RESULT = "REVERT"


class Web3ReceiptIndexer(TransactionIndexer):
    """
    TransactionIndexer reading receipts straight from an EVM node.

    Receipts are mapped to the indexer shape:

    * not yet mined -> ``{}``
    * ``status == 1`` -> ``{"receipt": {"result": "SUCCESS"}, ...}``
    * anything else -> ``{"receipt": {"result": "REVERT"}, ...}``
    """

    def __init__(self, web3: AsyncWeb3):
        self._web3 = web3

    async def get_transaction_info(self, transaction_id: str) -> Dict[str, Any]:
        try:
            receipt = await self._web3.eth.get_transaction_receipt(transaction_id)
        except TransactionNotFound:
            return {}
        except Exception as e:
            raise IndexerError(
                f"Receipt lookup failed for {transaction_id}: {e}",
                method="eth_getTransactionReceipt",
                reason=str(e),
            ) from e

        if not receipt:
            return {}

        result = "SUCCESS" if receipt.get("status") == 1 else REVERTED_RESULT
        return {
            "id": transaction_id,
            "blockNumber": receipt.get("blockNumber"),
            "receipt": {
                "result": result,
                "gas_used": receipt.get("gasUsed"),
            },
        }
