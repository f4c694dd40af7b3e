from .bases import CanonicalModel, PaymentStatus, ConfirmationStatus, LogLevel, TERMINAL_STATUSES
from .payments import (
    PaymentRequest,
    ValidationResult,
    WalletConnection,
    AllowanceResult,
    OrderStatusUpdate,
    PaymentRecord,
)
from .sessions import LogEntry, PaymentSession

__all__ = [
    "CanonicalModel",
    "PaymentStatus",
    "ConfirmationStatus",
    "LogLevel",
    "TERMINAL_STATUSES",
    "PaymentRequest",
    "ValidationResult",
    "WalletConnection",
    "AllowanceResult",
    "OrderStatusUpdate",
    "PaymentRecord",
    "LogEntry",
    "PaymentSession",
]
