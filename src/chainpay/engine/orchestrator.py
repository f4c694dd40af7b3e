"""
Payment Orchestration

Drives one payment attempt through the state machine

    IDLE -> VALIDATING -> CONNECTING_WALLET -> CHECKING_ALLOWANCE -> (APPROVING)
         -> SUBMITTING_PAYMENT -> CONFIRMING -> SUCCESS | FAILED | PENDING

Each step is awaited before the next one starts. Any error moves the session
straight to FAILED; a confirmation poll that runs out of time ends in PENDING.
Callers never see exceptions from a payment attempt: they follow the
session's status and log, either on the returned session or through the
event bus.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Union

from ..adapters.bases import TransactionIndexer, WalletSession
from ..config import PaymentSettings
from ..schemas.bases import ConfirmationStatus, LogLevel, PaymentStatus
from ..schemas.payments import OrderStatusUpdate, PaymentRecord, PaymentRequest
from ..schemas.sessions import PaymentSession
from ..sources import RequestSource
from ..storage import LocalPaymentCache
from ..units import to_base_units
from .allowance import TokenAllowanceManager
from .events import EventBus, LogAppendedEvent, PaymentFinishedEvent, StatusChangedEvent
from .exceptions import AttemptInProgressError, BackendNotifyFailed, ChainPayError, InvalidAmount, ValidationError
from .poller import ConfirmationPoller
from .submitter import PaymentSubmitter
from .validators import validate_payment_request

logger = logging.getLogger(__name__)

Notifier = Callable[[OrderStatusUpdate], Awaitable[Any]]

_CHAIN_STATUS_LEVELS = {
    ConfirmationStatus.SUCCESS: LogLevel.SUCCESS,
    ConfirmationStatus.FAILED: LogLevel.ERROR,
    ConfirmationStatus.PENDING: LogLevel.WARNING,
}


class PaymentOrchestrator:
    """
    Compose validation, wallet access, allowance, submission and polling.

    Args:
        wallet: Wallet session used for every chain interaction.
        indexer: Transaction indexer polled for confirmation.
        settings: Contract address, network and polling parameters.
        event_bus: Bus receiving status, log and completion events.
        notifier: Coroutine told about definite chain results (order backend).
        cache: Local cache receiving a record of every submitted payment.
        poller: Pre-built poller; one over ``indexer`` is created otherwise.
        address_validator: Optional token address check forwarded to the validator.

    Example:
        orchestrator = PaymentOrchestrator(wallet, indexer, load_settings())
        orchestrator.event_bus.subscribe(LogAppendedEvent, print_log_line)
        session = await orchestrator.run(QRPayloadSource(scanned_text))
        print(session.status, session.transaction_id)
    """

    def __init__(
        self,
        wallet: WalletSession,
        indexer: Optional[TransactionIndexer],
        settings: PaymentSettings,
        *,
        event_bus: Optional[EventBus] = None,
        notifier: Optional[Notifier] = None,
        cache: Optional[LocalPaymentCache] = None,
        poller: Optional[ConfirmationPoller] = None,
        address_validator: Optional[Callable[[str], bool]] = None,
    ):
        if poller is None and indexer is None:
            raise ValueError("Either an indexer or a poller is required")

        self.wallet = wallet
        self.settings = settings
        self.event_bus = event_bus or EventBus()
        self.notifier = notifier
        self.cache = cache
        self.poller = poller or ConfirmationPoller(indexer)
        self.address_validator = address_validator
        self.allowance_manager = TokenAllowanceManager(wallet)
        self.submitter = PaymentSubmitter(wallet, settings.payment_abi_variant)

        self._busy = False
        self._current_session: Optional[PaymentSession] = None

    @property
    def busy(self) -> bool:
        """True while an attempt is running; a second ``run()`` is refused."""
        return self._busy

    @property
    def current_session(self) -> Optional[PaymentSession]:
        """Session of the running attempt, or of the last finished one."""
        return self._current_session

    async def run(self, request_or_source: Union[PaymentRequest, RequestSource]) -> PaymentSession:
        """
        Execute one payment attempt end to end.

        Args:
            request_or_source: A request, or a source to load it from. A source
                that fails to load yields a FAILED session.

        Returns:
            PaymentSession: The session in a terminal status.

        Raises:
            AttemptInProgressError: If another attempt is still running.
        """
        if self._busy:
            raise AttemptInProgressError("A payment attempt is already in progress")

        self._busy = True
        try:
            session = PaymentSession(
                request=request_or_source if isinstance(request_or_source, PaymentRequest) else PaymentRequest()
            )
            self._current_session = session
            logger.debug("payment session %s started", session.session_id)

            chain_status = None
            try:
                if isinstance(request_or_source, RequestSource):
                    await self._log(session, "Loading payment request...")
                    session.request = await request_or_source.load()
                session.request = self._apply_defaults(session.request)
                chain_status = await self._execute(session)
            except Exception as e:
                await self._fail(session, e)

            await self._finish(session, chain_status)
            return session
        finally:
            self._busy = False

    def _apply_defaults(self, request: PaymentRequest) -> PaymentRequest:
        if not request.token_address and self.settings.default_token_address:
            return request.model_copy(update={"token_address": self.settings.default_token_address})
        return request

    async def _execute(self, session: PaymentSession) -> ConfirmationStatus:
        request = session.request
        spender = self.settings.payment_contract_address

        # Validate
        await self._advance(session, PaymentStatus.VALIDATING)
        await self._log(session, "Validating payment request...")
        result = validate_payment_request(
            request,
            require_authorization=self.submitter.abi_variant.requires_authorization,
            address_validator=self.address_validator,
        )
        if not result:
            raise ValidationError(result.reason)
        await self._log(session, f"Payment request valid (signature {request.signature_preview()})")

        # Connect wallet
        await self._advance(session, PaymentStatus.CONNECTING_WALLET)
        await self._log(session, "Connecting to wallet...")
        connection = await self.wallet.connect()
        await self.wallet.assert_network(connection.signer, self.settings.expected_network)
        session.wallet_address = connection.account
        await self._log(session, f"Wallet connected: {connection.account}", LogLevel.SUCCESS)

        # Check allowance
        await self._advance(session, PaymentStatus.CHECKING_ALLOWANCE)
        await self._log(session, "Checking token allowance...")
        decimals = await self.allowance_manager.read_decimals(request.token_address)
        amount_units = to_base_units(request.amount, decimals)
        if amount_units == "0":
            raise InvalidAmount(f"Amount {request.amount} is below the token's smallest unit (decimals {decimals})")
        session.decimals = decimals
        session.amount_base_units = amount_units
        await self._log(session, f"Amount: {request.amount} (decimals {decimals}, {amount_units} base units)")

        async def before_approve(current_allowance: int) -> None:
            await self._log(session, f"Current allowance: {current_allowance}")
            await self._advance(session, PaymentStatus.APPROVING)
            await self._log(session, f"Approval required. Approving {amount_units}...", LogLevel.WARNING)

        allowance = await self.allowance_manager.ensure_allowance(
            request.token_address,
            connection.account,
            spender,
            amount_units,
            before_approve=before_approve,
        )
        if allowance.approved:
            await self._log(session, f"Current allowance: {allowance.current_allowance}")
            await self._log(session, "Sufficient allowance. Skipping approve.", LogLevel.SUCCESS)
        else:
            session.approve_transaction_id = allowance.approve_transaction_id
            await self._log(session, f"Approve txid: {allowance.approve_transaction_id}")

        # Submit payment
        await self._advance(session, PaymentStatus.SUBMITTING_PAYMENT)
        await self._log(session, "Calling payTx()...")
        transaction_id = await self.submitter.submit(spender, request, amount_units)
        session.transaction_id = transaction_id
        await self._log(session, f"Payment txid: {transaction_id}", LogLevel.SUCCESS)

        # Confirm
        await self._advance(session, PaymentStatus.CONFIRMING)
        await self._log(session, "Waiting for chain confirmation...")
        chain_status = await self.poller.wait_for_result(
            transaction_id,
            timeout_ms=self.settings.poll_timeout_ms,
            interval_ms=self.settings.poll_interval_ms,
        )
        await self._log(session, f"Chain status: {chain_status.value}", _CHAIN_STATUS_LEVELS[chain_status])

        if chain_status == ConfirmationStatus.FAILED:
            session.error = "Transaction failed on-chain"
        elif chain_status == ConfirmationStatus.PENDING:
            await self._log(session, "Confirmation timed out. Check the transaction later.", LogLevel.WARNING)
        await self._advance(session, PaymentStatus(chain_status.value))
        return chain_status

    async def _advance(self, session: PaymentSession, status: PaymentStatus) -> None:
        previous = session.transition(status)
        logger.debug("session %s: %s -> %s", session.session_id, previous.value, status.value)
        await self.event_bus.publish(
            StatusChangedEvent(session_id=session.session_id, previous=previous, current=status)
        )

    async def _log(self, session: PaymentSession, message: str, level: LogLevel = LogLevel.INFO) -> None:
        entry = session.append_log(message, level)
        await self.event_bus.publish(LogAppendedEvent(session_id=session.session_id, entry=entry))

    async def _fail(self, session: PaymentSession, error: Exception) -> None:
        if not isinstance(error, ChainPayError):
            logger.error("unexpected error in payment session %s", session.session_id, exc_info=error)
        session.error = str(error)
        await self._log(session, f"{type(error).__name__}: {error}", LogLevel.ERROR)
        if not session.is_terminal:
            await self._advance(session, PaymentStatus.FAILED)

    async def _finish(self, session: PaymentSession, chain_status: Optional[ConfirmationStatus]) -> None:
        definite = chain_status in (ConfirmationStatus.SUCCESS, ConfirmationStatus.FAILED)
        if definite and self.notifier is not None:
            await self._notify(session)

        if session.transaction_id and self.cache is not None:
            self._store(session)

        await self.event_bus.publish(PaymentFinishedEvent(session=session))

    async def _notify(self, session: PaymentSession) -> None:
        update = OrderStatusUpdate(
            txid=session.transaction_id,
            status=session.status.value,
            order_id=session.request.order_id,
            invoice_id=session.request.invoice_id,
        )
        try:
            await self.notifier(update)
        except Exception as e:
            logger.warning("order backend notification failed for %s: %s", update.txid, e)
            await self._log(session, f"{BackendNotifyFailed.__name__}: {e}", LogLevel.WARNING)
            return
        await self._log(session, "Order backend notified.", LogLevel.SUCCESS)

    def _store(self, session: PaymentSession) -> None:
        request = session.request
        record = PaymentRecord(
            merchant_id=request.merchant_id,
            order_id=request.order_id,
            invoice_id=request.invoice_id,
            amount=request.amount,
            token_address=request.token_address,
            deadline=request.deadline,
            signature=request.signature,
            merchant_name=request.merchant_name,
            merchant_address=request.merchant_address,
            transaction_id=session.transaction_id,
            status=session.status.value,
            wallet=session.wallet_address,
            amount_base_units=session.amount_base_units,
        )
        try:
            self.cache.save(record)
        except OSError as e:
            logger.warning("could not cache payment %s: %s", record.cache_key, e)
