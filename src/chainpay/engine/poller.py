"""
Confirmation Polling

Polls an indexing service until a submitted transaction has a definite
result or the timeout runs out. Running out of time is not a failure: the
poller answers PENDING and the caller checks back later.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from ..adapters.bases import TransactionIndexer
from ..schemas.bases import ConfirmationStatus

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 90_000
DEFAULT_INTERVAL_MS = 3_000


def extract_receipt_result(info: Any) -> Optional[str]:
    """
    Return ``info["receipt"]["result"]``, or None for empty or partial responses.
    """
    if not isinstance(info, dict):
        return None
    receipt = info.get("receipt")
    if not isinstance(receipt, dict):
        return None
    result = receipt.get("result")
    if result is None or result == "":
        return None
    return str(result)


class ConfirmationPoller:
    """
    Bounded poll of a TransactionIndexer.

    Args:
        indexer: Service answering transaction info lookups.
        clock: Monotonic clock in seconds.
        sleep: Coroutine used to wait between polls.
    """

    def __init__(
        self,
        indexer: TransactionIndexer,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.indexer = indexer
        self._clock = clock
        self._sleep = sleep

    async def wait_for_result(
        self,
        transaction_id: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ) -> ConfirmationStatus:
        """
        Poll until the transaction resolves or ``timeout_ms`` elapses.

        Returns:
            ConfirmationStatus: SUCCESS on a ``"SUCCESS"`` receipt, FAILED on
            any other non-empty result, PENDING when time runs out.

        Raises:
            IndexerError: If the indexer cannot be queried.
        """
        start = self._clock()
        attempts = 0

        while (self._clock() - start) * 1000 < timeout_ms:
            attempts += 1
            info = await self.indexer.get_transaction_info(transaction_id)
            result = extract_receipt_result(info)

            if result == "SUCCESS":
                return ConfirmationStatus.SUCCESS
            if result is not None:
                logger.debug("transaction %s failed on-chain: %s", transaction_id, result)
                return ConfirmationStatus.FAILED

            await self._sleep(interval_ms / 1000)

        logger.debug("transaction %s still pending after %d polls", transaction_id, attempts)
        return ConfirmationStatus.PENDING
