"""
Exception and Error Definitions Module

Defines the exception hierarchy for payment request handling, wallet access,
chain interaction and the post-payment notification step. All exceptions
inherit from ChainPayError for unified exception handling.

Exception Hierarchy:
    ChainPayError (root)
    ├── ValidationError
    │   └── InvalidAmount
    ├── RequestSourceError
    ├── WalletError
    │   ├── WalletUnavailable
    │   ├── WalletLocked
    │   └── WrongNetwork
    ├── ChainCallFailed
    │   └── IndexerError
    ├── BackendNotifyFailed
    ├── ConfigurationError
    ├── AttemptInProgressError
    └── InvalidTransition

A confirmation poll that runs out of time is not an exception: the poller
returns ``ConfirmationStatus.PENDING`` instead.
"""

from typing import Optional


class ChainPayError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class so that the orchestrator
    can turn any of them into a FAILED session with a readable log line.
    """
    pass


class ValidationError(ChainPayError):
    """
    Raised when a payment request has the wrong shape.

    Validation errors never reach the chain: they are detected before any
    wallet interaction and surfaced verbatim to the caller.
    """
    pass


class InvalidAmount(ValidationError):
    """
    Raised when an amount string cannot be converted to or from base units.

    This includes scenarios such as:
    - Missing or empty amount
    - Negative, exponential or otherwise non-decimal notation
    - Amounts that scale to zero base units at the token's precision
    - Base-unit strings that are not plain non-negative integers
    """
    pass


class RequestSourceError(ChainPayError):
    """
    Raised when a payment request cannot be acquired from its source.

    This includes scenarios such as:
    - Empty or unsupported QR payload
    - Malformed JSON payload
    - Order lookup failures against the orders API
    """
    pass


class WalletError(ChainPayError):
    """
    Base exception for wallet environment preconditions.

    Wallet errors abort the current attempt and move it to FAILED.
    """
    pass


class WalletUnavailable(WalletError):
    """
    Raised when no wallet provider is present or reachable.
    """
    pass


class WalletLocked(WalletError):
    """
    Raised when the wallet provider is reachable but exposes no unlocked account.
    """
    pass


class WrongNetwork(WalletError):
    """
    Raised when the connected endpoint is not on the expected network.

    Attributes:
        expected: Expected network identifier
        actual: Network identifier reported by the wallet
    """

    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ChainCallFailed(ChainPayError):
    """
    Raised when a contract read or a transaction submission is rejected.

    This includes scenarios such as:
    - RPC call timeout or connectivity issues
    - Reverted preconditions or insufficient balance
    - User rejection in the wallet

    Attributes:
        method: Contract function or RPC method that was called
        reason: Error message reported by the underlying provider
    """

    def __init__(self, message: str, method: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.method = method
        self.reason = reason if reason is not None else message


class IndexerError(ChainCallFailed):
    """
    Raised when the chain-indexing service cannot be queried.
    """
    pass


class BackendNotifyFailed(ChainPayError):
    """
    Raised when the order backend rejects a status update.

    Non-fatal: a notification failure never changes a status already
    determined from the chain.
    """
    pass


class ConfigurationError(ChainPayError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing payment contract address
    - Unknown expected network name
    - Missing orders API URL for backend order lookups
    """
    pass


class AttemptInProgressError(ChainPayError):
    """
    Raised when a payment attempt is started while another one is still running.
    """
    pass


class InvalidTransition(ChainPayError):
    """
    Raised when a payment session is asked to move backwards in its state machine.

    Attributes:
        current_state: Status the session is in
        requested_state: Status the caller tried to move to
    """

    def __init__(self, message: str, current_state: Optional[str] = None, requested_state: Optional[str] = None):
        super().__init__(message)
        self.current_state = current_state
        self.requested_state = requested_state
