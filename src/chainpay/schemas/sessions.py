"""
Payment Session Model

A PaymentSession is the single-owner, mutable record of one payment attempt:
the validated request, the connected wallet, the current status, an ordered
append-only log and, once submission succeeds, the transaction id.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field

from ..engine.exceptions import InvalidTransition
from .bases import CanonicalModel, LogLevel, PaymentStatus, STATUS_ORDER
from .payments import PaymentRequest


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LogEntry(CanonicalModel):
    """
    One timestamped, human-readable session log line.

    Attributes:
        timestamp: When the entry was appended (UTC)
        level: Severity used by UIs to style the line
        message: Human-readable text
    """

    timestamp: datetime = Field(default_factory=_utcnow)
    level: LogLevel = LogLevel.INFO
    message: str

    def format(self) -> str:
        return f"[{self.timestamp.isoformat(timespec='seconds')}] {self.message}"


class PaymentSession(CanonicalModel):
    """
    Mutable state of one payment attempt.

    Only the orchestrator mutates a session, through :meth:`transition` and
    :meth:`append_log`. A retried payment gets a new session.

    Attributes:
        session_id: Random identifier of the attempt
        request: The payment request being processed
        wallet_address: Account connected for this attempt
        status: Current state (see :class:`PaymentStatus`)
        log: Ordered, append-only list of log entries
        transaction_id: Payment transaction id once submitted
        approve_transaction_id: Approval transaction id, if one was needed
        decimals: Token precision read from the token contract
        amount_base_units: ``request.amount`` scaled to base units
        error: Reason of the failure that ended the attempt
        started_at: Session creation time
        finished_at: Time the session reached a terminal status
    """

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    request: PaymentRequest
    wallet_address: Optional[str] = None
    status: PaymentStatus = PaymentStatus.IDLE
    log: List[LogEntry] = Field(default_factory=list)
    transaction_id: Optional[str] = None
    approve_transaction_id: Optional[str] = None
    decimals: Optional[int] = None
    amount_base_units: Optional[str] = None
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def can_transition(self, new_status: PaymentStatus) -> bool:
        """
        Check whether moving to ``new_status`` respects the state machine.

        Rules:
            - Nothing leaves a terminal status
            - FAILED is reachable from every non-terminal status
            - SUCCESS and PENDING are reachable only from CONFIRMING
            - Any other move goes to the next status, except that
              CHECKING_ALLOWANCE may skip APPROVING
        """
        if self.status.is_terminal:
            return False
        if new_status == PaymentStatus.FAILED:
            return True
        if new_status in (PaymentStatus.SUCCESS, PaymentStatus.PENDING):
            return self.status == PaymentStatus.CONFIRMING
        if self.status == PaymentStatus.CHECKING_ALLOWANCE and new_status == PaymentStatus.SUBMITTING_PAYMENT:
            return True
        return STATUS_ORDER[new_status] == STATUS_ORDER[self.status] + 1

    def transition(self, new_status: PaymentStatus) -> PaymentStatus:
        """
        Move the session to ``new_status``.

        Returns:
            PaymentStatus: The previous status.

        Raises:
            InvalidTransition: If the move is not allowed.
        """
        if not self.can_transition(new_status):
            raise InvalidTransition(
                f"Cannot move payment session from {self.status.value} to {new_status.value}",
                current_state=self.status.value,
                requested_state=new_status.value,
            )
        previous = self.status
        self.status = new_status
        if new_status.is_terminal:
            self.finished_at = _utcnow()
        return previous

    def append_log(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        entry = LogEntry(message=message, level=level)
        self.log.append(entry)
        return entry

    def log_text(self) -> str:
        """All log lines joined by newlines, the way a UI log pane shows them."""
        return "\n".join(entry.format() for entry in self.log)
