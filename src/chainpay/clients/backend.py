"""
Merchant Order Backend Client

Talks to the merchant's order service over JSON/HTTP:

    POST {backend_url}/api/orders/update-status   {txid, status, order_id, invoice_id}
    POST {backend_url}/api/orders/confirm         {txid, order_id, invoice_id}
    POST {orders_url}/{order_ref}                 -> {"data": {...order...}}

Responses of the first two follow the ``{"ok": bool, "data": ..., "error": str}``
envelope; ``ok: false`` is treated like a non-2xx status.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..engine.exceptions import BackendNotifyFailed, ConfigurationError, RequestSourceError
from ..schemas.payments import OrderStatusUpdate

logger = logging.getLogger(__name__)

UPDATE_STATUS_PATH = "/api/orders/update-status"
CONFIRM_PATH = "/api/orders/confirm"


class OrderBackendClient:
    """
    Async client for the merchant order backend.

    Usage:
        ```python
        async with OrderBackendClient("http://localhost:3000") as backend:
            orchestrator = PaymentOrchestrator(wallet, indexer, settings, notifier=backend.notify)
            session = await orchestrator.run(request)
        ```

    Args:
        base_url: Backend root used for status updates and confirmations.
        orders_url: Orders endpoint used by :meth:`fetch_order`.
        client: Existing ``httpx.AsyncClient``; left open on exit when given.
        timeout: Request timeout in seconds for a client created here.
    """

    def __init__(
        self,
        base_url: str,
        orders_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.orders_url = orders_url.rstrip("/") if orders_url else None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "OrderBackendClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post_envelope(self, path: str, body: Dict[str, Any], failure: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.post(url, json=body, headers={"content-type": "application/json"})
        except httpx.HTTPError as e:
            raise BackendNotifyFailed(f"{failure}: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        envelope = payload if isinstance(payload, dict) else {}
        if not response.is_success or envelope.get("ok") is False:
            raise BackendNotifyFailed(envelope.get("error") or f"{failure} ({response.status_code})")

        return envelope.get("data")

    async def update_order_status(self, update: OrderStatusUpdate) -> Any:
        """
        Report a payment result for an order.

        Returns:
            The ``data`` member of the response envelope.

        Raises:
            BackendNotifyFailed: On transport errors, non-2xx statuses or ``ok: false``.
        """
        return await self._post_envelope(UPDATE_STATUS_PATH, update.to_dict(), "Update failed")

    async def confirm_order(self, txid: str, order_id: str, invoice_id: str) -> Any:
        """Mark an order as paid by ``txid``. Same error policy as :meth:`update_order_status`."""
        body = {"txid": txid, "order_id": order_id, "invoice_id": invoice_id}
        return await self._post_envelope(CONFIRM_PATH, body, "Confirm failed")

    async def fetch_order(self, order_ref: str) -> Dict[str, Any]:
        """
        Load an order record by reference.

        Raises:
            ConfigurationError: If no orders URL was configured.
            RequestSourceError: If the request fails or the response is not a JSON object.
        """
        if not self.orders_url:
            raise ConfigurationError("Orders API URL is not configured")

        url = f"{self.orders_url}/{order_ref}"
        try:
            response = await self._client.post(url, headers={"accept": "application/json"})
        except httpx.HTTPError as e:
            raise RequestSourceError(f"Order fetch failed: {e}") from e

        if not response.is_success:
            detail = response.text or response.reason_phrase
            raise RequestSourceError(f"Order fetch failed ({response.status_code}): {detail}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RequestSourceError(f"Order fetch returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise RequestSourceError("Order fetch returned an unexpected payload")
        return payload

    async def notify(self, update: OrderStatusUpdate) -> None:
        """Notifier hook for :class:`PaymentOrchestrator`."""
        await self.update_order_status(update)
        logger.debug("order %s updated to %s", update.order_id, update.status)
