"""
Base Schema Models for chainpay

This module defines the base model and the status enumerations shared by the
rest of the schema package.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization
    - PaymentStatus: States of the payment orchestration state machine
    - ConfirmationStatus: Outcome of a confirmation poll
    - LogLevel: Severity of a session log entry

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Produces a deterministic JSON representation (sorted keys, compact
    separators) suitable for persistence, logging and comparison in tests.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        ``model_dump(mode="json")`` converts enums and datetimes to plain
        types, then ``json.dumps`` sorts keys and strips whitespace.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class PaymentStatus(str, Enum):
    """
    States of a payment attempt.

    Attributes:
        IDLE: Session created, nothing attempted yet
        VALIDATING: Checking the request shape
        CONNECTING_WALLET: Connecting the wallet and checking its network
        CHECKING_ALLOWANCE: Reading token precision and current allowance
        APPROVING: Submitting an approval for the exact payment amount
        SUBMITTING_PAYMENT: Calling the settlement contract
        CONFIRMING: Polling the indexer for the transaction result
        SUCCESS: Transaction confirmed successful on-chain
        FAILED: Attempt aborted, or transaction failed on-chain
        PENDING: Submitted, but no definite result within the poll timeout
    """
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    CONNECTING_WALLET = "CONNECTING_WALLET"
    CHECKING_ALLOWANCE = "CHECKING_ALLOWANCE"
    APPROVING = "APPROVING"
    SUBMITTING_PAYMENT = "SUBMITTING_PAYMENT"
    CONFIRMING = "CONFIRMING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({PaymentStatus.SUCCESS, PaymentStatus.FAILED, PaymentStatus.PENDING})

# Rank of every non-terminal state; transitions must strictly increase it.
STATUS_ORDER: Dict[PaymentStatus, int] = {
    PaymentStatus.IDLE: 0,
    PaymentStatus.VALIDATING: 1,
    PaymentStatus.CONNECTING_WALLET: 2,
    PaymentStatus.CHECKING_ALLOWANCE: 3,
    PaymentStatus.APPROVING: 4,
    PaymentStatus.SUBMITTING_PAYMENT: 5,
    PaymentStatus.CONFIRMING: 6,
}


class ConfirmationStatus(str, Enum):
    """
    Outcome of polling the indexer for a submitted transaction.

    Attributes:
        SUCCESS: Receipt reports success
        FAILED: Receipt reports any other definite result
        PENDING: No definite result within the timeout; check back later
    """
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
