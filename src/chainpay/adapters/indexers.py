"""
HTTP Transaction Indexer

TransactionIndexer backed by a TronGrid-style HTTP API exposing
``POST /wallet/gettransactioninfobyid`` with body ``{"value": <txid>}``.
Unknown or not-yet-indexed transactions come back as an empty object.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..engine.exceptions import IndexerError
from .bases import TransactionIndexer

logger = logging.getLogger(__name__)

DEFAULT_INDEXER_PATH = "/wallet/gettransactioninfobyid"


class HttpTransactionIndexer(TransactionIndexer):
    """
    Query transaction info from an HTTP indexing service.

    Usable as an async context manager; a client created here is closed on
    exit, a client passed in is left to its owner.

    Usage:
        ```python
        async with HttpTransactionIndexer("https://nile.trongrid.io") as indexer:
            info = await indexer.get_transaction_info(txid)
        ```
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        path: str = DEFAULT_INDEXER_PATH,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._path = path
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def get_transaction_info(self, transaction_id: str) -> Dict[str, Any]:
        url = f"{self._base_url}{self._path}"
        try:
            response = await self._client.post(
                url,
                json={"value": transaction_id},
                headers={"content-type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise IndexerError(f"Indexer request failed: {e}", method=self._path, reason=str(e)) from e

        if not response.is_success:
            raise IndexerError(f"Indexer error ({response.status_code})", method=self._path)

        try:
            payload = response.json()
        except ValueError as e:
            raise IndexerError(f"Indexer returned invalid JSON: {e}", method=self._path, reason=str(e)) from e

        return payload if isinstance(payload, dict) else {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpTransactionIndexer":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
