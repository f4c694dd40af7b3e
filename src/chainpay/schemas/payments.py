"""
Payment Schema Models

Pydantic models exchanged between the request sources, the validator, the
chain-facing components and the external collaborators.

Classes:
    - PaymentRequest: Merchant/order/invoice triple plus amount, token and authorization
    - ValidationResult: "valid" or the first failing reason
    - WalletConnection: Connected account and its chain handle
    - AllowanceResult: Outcome of allowance reconciliation
    - OrderStatusUpdate: Payload for the order backend notification
    - PaymentRecord: Best-effort local cache entry
"""

import time
from typing import Any, Optional

from pydantic import ConfigDict, Field

from .bases import CanonicalModel


class PaymentRequest(CanonicalModel):
    """
    A payment to be made against the settlement contract.

    Every field is kept in its canonical string form; shape checks are the
    job of :func:`chainpay.engine.validators.validate_payment_request`, so a
    malformed request can still be constructed and reported on.

    Attributes:
        merchant_id: bytes32 hex (``0x`` + 64 hex digits)
        order_id: bytes32 hex
        invoice_id: bytes32 hex
        amount: Human-readable decimal amount, e.g. ``"15.00"``
        token_address: Token contract address used for payment
        deadline: Non-negative integer string, ``"0"`` disables the deadline
        signature: Off-chain authorization as ``0x`` hex bytes
        merchant_name: Display only
        merchant_address: Display only
        token_symbol: Display only
    """

    merchant_id: str = Field(default="", alias="merchantId")
    order_id: str = Field(default="", alias="orderId")
    invoice_id: str = Field(default="", alias="invoiceId")
    amount: str = Field(default="")
    token_address: str = Field(default="", alias="token")
    deadline: str = Field(default="0")
    signature: str = Field(default="")

    merchant_name: str = Field(default="", alias="merchantName")
    merchant_address: str = Field(default="", alias="merchantAddress")
    token_symbol: str = Field(default="", alias="tokenSymbol")

    def signature_preview(self, length: int = 14) -> str:
        """Shortened signature for log output."""
        if len(self.signature) <= length:
            return self.signature
        return f"{self.signature[:length]}..."


class ValidationResult(CanonicalModel):
    """
    Result of validating a :class:`PaymentRequest`.

    Attributes:
        is_valid: Whether every rule passed
        reason: Human-readable reason of the first failing rule
    """

    is_valid: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(is_valid=False, reason=reason)

    def __bool__(self) -> bool:
        return self.is_valid


class WalletConnection(CanonicalModel):
    """
    A connected wallet account.

    Attributes:
        account: Account address used to sign and send transactions
        signer: Chain handle behind the account (e.g. an ``AsyncWeb3`` instance)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    account: str
    signer: Any = Field(default=None, exclude=True)


class AllowanceResult(CanonicalModel):
    """
    Outcome of :meth:`TokenAllowanceManager.ensure_allowance`.

    Attributes:
        approved: True when the existing allowance already covered the amount
        approve_transaction_id: Set when an approval transaction was submitted
        current_allowance: Allowance read before any approval, in base units
    """

    approved: bool
    approve_transaction_id: Optional[str] = None
    current_allowance: str = "0"


class OrderStatusUpdate(CanonicalModel):
    """Payload of the order backend ``update-status`` call."""

    txid: str
    status: str
    order_id: str
    invoice_id: str


class PaymentRecord(CanonicalModel):
    """
    Local cache entry for a submitted payment.

    Written for display and debugging only; nothing in the payment flow
    reads it back.
    """

    merchant_id: str
    order_id: str
    invoice_id: str
    amount: str
    token_address: str
    deadline: str
    signature: str
    merchant_name: str = ""
    merchant_address: str = ""
    transaction_id: str
    status: str
    wallet: Optional[str] = None
    amount_base_units: Optional[str] = None
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    @property
    def cache_key(self) -> str:
        return f"payment:{self.transaction_id}"
