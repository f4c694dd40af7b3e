"""
Payment Request Sources

A payment request reaches the orchestrator from one of several places: a
deep link's query string, the text decoded from a QR code, a manually filled
form, or an order record held by the merchant backend. Each of them is a
RequestSource that produces a PaymentRequest; the orchestrator does not care
which one was used.

Keys are accepted in snake_case, camelCase and upper case
(``merchant_id`` / ``merchantId`` / ``MERCHANT_ID``), ``price`` is accepted
for ``amount``, and every value is trimmed.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional
from urllib.parse import parse_qs

from .engine.exceptions import RequestSourceError
from .schemas.payments import PaymentRequest

if TYPE_CHECKING:
    from .clients.backend import OrderBackendClient

logger = logging.getLogger(__name__)

# PaymentRequest field -> accepted keys, in lookup order
_FIELD_KEYS = {
    "merchant_id": ("merchant_id", "merchantId"),
    "order_id": ("order_id", "orderId"),
    "invoice_id": ("invoice_id", "invoiceId"),
    "amount": ("amount", "price"),
    "token_address": ("token", "token_address", "tokenAddress"),
    "deadline": ("deadline",),
    "signature": ("signature",),
    "merchant_name": ("merchant_name", "merchantName"),
    "merchant_address": ("merchant_address", "merchantAddress"),
    "token_symbol": ("token_symbol", "tokenSymbol"),
}


def _safe_trim(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _lookup(mapping: Mapping[str, Any], keys) -> Optional[str]:
    for key in keys:
        for candidate in (key, key.upper()):
            value = _safe_trim(mapping.get(candidate))
            if value:
                return value
    return None


def request_from_mapping(mapping: Mapping[str, Any], default_token: str = "") -> PaymentRequest:
    """
    Build a PaymentRequest from a loosely keyed mapping.

    Args:
        mapping: Decoded JSON object or query parameters.
        default_token: Token address used when the mapping names none.

    Returns:
        PaymentRequest: Unvalidated request; a missing deadline becomes ``"0"``.
    """
    values = {field: _lookup(mapping, keys) or "" for field, keys in _FIELD_KEYS.items()}

    deadline_present = any(key in mapping or key.upper() in mapping for key in _FIELD_KEYS["deadline"])
    if not values["deadline"] and not deadline_present:
        values["deadline"] = "0"
    if not values["token_address"]:
        values["token_address"] = _safe_trim(default_token)

    return PaymentRequest(**values)


def _parse_query(query: str) -> Dict[str, str]:
    parsed = parse_qs(query, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items() if values}


def _query_part(text: str) -> str:
    return text.split("?", 1)[1] if "?" in text else text


def parse_payment_payload(text: Optional[str]) -> Dict[str, Any]:
    """
    Decode QR or deep-link text into a flat mapping.

    Accepted formats:
        - JSON object: ``{"merchantId": "0x..", "amount": "15.00", ...}``
        - Query string or URL: ``merchant_id=0x..&amount=15.00&token=0x..``

    Raises:
        RequestSourceError: If the text is empty, is malformed JSON, or is
            neither of the accepted formats.
    """
    raw = _safe_trim(text)
    if not raw:
        raise RequestSourceError("Empty QR data")

    if raw.startswith("{") and raw.endswith("}"):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RequestSourceError(f"Invalid QR JSON: {e}") from e
        if not isinstance(payload, dict):
            raise RequestSourceError("Unsupported QR format. Use JSON or querystring.")
        return payload

    query = _query_part(raw)
    if "=" in query:
        return _parse_query(query)

    raise RequestSourceError("Unsupported QR format. Use JSON or querystring.")


class RequestSource(ABC):
    """Something a PaymentRequest can be loaded from."""

    @abstractmethod
    async def load(self) -> PaymentRequest:
        """
        Produce the payment request.

        Raises:
            RequestSourceError: If the request cannot be obtained or decoded.
        """
        pass


class QueryStringSource(RequestSource):
    """
    Request carried in a deep link, e.g. ``https://pay.example/?merchant_id=0x..&amount=15.00``.

    Args:
        query: Full URL or bare query string.
        default_token: Token address used when the link names none.
    """

    def __init__(self, query: str, default_token: str = ""):
        self.query = query or ""
        self.default_token = default_token

    async def load(self) -> PaymentRequest:
        params = _parse_query(_query_part(self.query.strip()))
        known = [key for keys in _FIELD_KEYS.values() for key in keys]
        if not any(_lookup(params, (key,)) for key in known):
            raise RequestSourceError("No payment parameters in query string")
        return request_from_mapping(params, self.default_token)


class QRPayloadSource(RequestSource):
    """Request decoded from QR code text (JSON or query string)."""

    def __init__(self, text: str, default_token: str = ""):
        self.text = text
        self.default_token = default_token

    async def load(self) -> PaymentRequest:
        payload = parse_payment_payload(self.text)
        return request_from_mapping(payload, self.default_token)


class ManualFormSource(RequestSource):
    """Request typed in by hand. Every field is trimmed; nothing else is changed."""

    def __init__(
        self,
        merchant_id: str = "",
        order_id: str = "",
        invoice_id: str = "",
        amount: str = "",
        token_address: str = "",
        deadline: str = "0",
        signature: str = "",
        default_token: str = "",
        **display: str,
    ):
        self.fields = {
            "merchant_id": merchant_id,
            "order_id": order_id,
            "invoice_id": invoice_id,
            "amount": amount,
            "token_address": token_address or default_token,
            "deadline": deadline,
            "signature": signature,
        }
        self.display = display

    async def load(self) -> PaymentRequest:
        values = {key: _safe_trim(value) for key, value in self.fields.items()}
        values.update({key: _safe_trim(value) for key, value in self.display.items()})
        return PaymentRequest(**values)


class BackendOrderSource(RequestSource):
    """
    Request stored by the merchant backend under an order reference.

    The orders API answers ``{"data": {...}}`` with snake_case keys. A missing
    token falls back to ``default_token``; the token symbol defaults to USDT.

    Args:
        client: Backend client used to fetch the order.
        order_ref: Order reference from the payment link route.
        default_token: Token address used when the order names none.
    """

    def __init__(self, client: "OrderBackendClient", order_ref: str, default_token: str = ""):
        self.client = client
        self.order_ref = _safe_trim(order_ref)
        self.default_token = default_token

    async def load(self) -> PaymentRequest:
        if not self.order_ref:
            raise RequestSourceError("Missing order reference")

        logger.debug("fetching order %s", self.order_ref)
        response = await self.client.fetch_order(self.order_ref)
        data = response.get("data") if isinstance(response.get("data"), dict) else response

        request = request_from_mapping(data, self.default_token)
        symbol = (request.token_symbol or "USDT").upper()
        return request.model_copy(update={"token_symbol": symbol})
