"""
Payment Request Validation

Pure shape checks for a PaymentRequest. Rules run in a fixed order and the
first failing rule is reported, so the same request always yields the same
reason:

    1. amount      - present, plain decimal, strictly positive
    2. deadline    - present, integer, non-negative
    3. signature   - present, 0x-prefixed hex bytes
    4. identifiers - merchant/order/invoice ids are bytes32 hex
    5. token       - present, and accepted by the chain's address check

Cryptographic correctness of the signature is verified on-chain, not here.
"""

import re
from typing import Callable, Optional

from ..schemas.payments import PaymentRequest, ValidationResult

_BYTES32_RE = re.compile(r"0x[0-9a-fA-F]{64}")
_BYTES_RE = re.compile(r"0x(?:[0-9a-fA-F]{2})+")
_DECIMAL_RE = re.compile(r"[0-9]+(\.[0-9]+)?")
_INTEGER_RE = re.compile(r"-?[0-9]+")


def is_bytes32_hex(value: object) -> bool:
    """True for ``0x`` followed by exactly 64 hex digits (either case)."""
    return isinstance(value, str) and _BYTES32_RE.fullmatch(value) is not None


def is_bytes_hex(value: object) -> bool:
    """True for ``0x`` followed by a non-empty, even number of hex digits."""
    return isinstance(value, str) and _BYTES_RE.fullmatch(value) is not None


def is_decimal_amount(value: object) -> bool:
    return isinstance(value, str) and _DECIMAL_RE.fullmatch(value) is not None


def _is_positive_decimal(value: str) -> bool:
    return any(ch not in "0." for ch in value)


def _check_amount(amount: Optional[str]) -> Optional[str]:
    if not amount or not is_decimal_amount(amount) or not _is_positive_decimal(amount):
        return "Invalid amount"
    return None


def _check_deadline(deadline: Optional[str]) -> Optional[str]:
    if deadline is None or deadline == "":
        return "Deadline is required (use 0 to disable)"
    if not _INTEGER_RE.fullmatch(deadline):
        return "Invalid deadline (must be integer)"
    if int(deadline) < 0:
        return "Deadline must be >= 0"
    return None


def _check_signature(signature: Optional[str]) -> Optional[str]:
    if not signature:
        return "Signature is required"
    if not is_bytes_hex(signature):
        return "Invalid signature (must be 0x hex bytes)"
    return None


def _check_identifiers(request: PaymentRequest) -> Optional[str]:
    for label, value in (
        ("merchantId", request.merchant_id),
        ("orderId", request.order_id),
        ("invoiceId", request.invoice_id),
    ):
        if not is_bytes32_hex(value):
            return f"Invalid {label} (bytes32 hex 0x + 64 chars)"
    return None


def _check_token(token_address: Optional[str], address_validator: Optional[Callable[[str], bool]]) -> Optional[str]:
    if not token_address:
        return "Token address is required"
    if address_validator is not None and not address_validator(token_address):
        return "Invalid token address"
    return None


def validate_payment_request(
    request: PaymentRequest,
    *,
    require_authorization: bool = True,
    address_validator: Optional[Callable[[str], bool]] = None,
) -> ValidationResult:
    """
    Validate the shape of a payment request.

    Args:
        request: Request to check.
        require_authorization: When False (contract variants without an
            off-chain authorization) the deadline and signature rules are skipped.
        address_validator: Optional chain-specific address check for the token,
            e.g. ``Web3.is_address``.

    Returns:
        ValidationResult: ``ok()`` or ``fail(reason)`` for the first failing rule.
    """
    checks = [lambda: _check_amount(request.amount)]
    if require_authorization:
        checks.append(lambda: _check_deadline(request.deadline))
        checks.append(lambda: _check_signature(request.signature))
    checks.append(lambda: _check_identifiers(request))
    checks.append(lambda: _check_token(request.token_address, address_validator))

    for check in checks:
        reason = check()
        if reason:
            return ValidationResult.fail(reason)
    return ValidationResult.ok()
