"""
Payment Orchestrator Test Suite

End-to-end runs of the payment state machine against in-memory fakes:

- Happy paths with and without an approval
- Validation, wallet, network and chain failures
- Confirmation outcomes (SUCCESS, FAILED, PENDING)
- Notifier, cache and event bus side effects
- Request sources and the single-attempt guard

Usage:
    pytest tests/test_engine/test_orchestrator.py -v
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from chainpay.engine.events import EventBus, LogAppendedEvent, PaymentFinishedEvent, StatusChangedEvent
from chainpay.engine.exceptions import (
    AttemptInProgressError,
    BackendNotifyFailed,
    ChainCallFailed,
    IndexerError,
    RequestSourceError,
    WalletLocked,
    WalletUnavailable,
    WrongNetwork,
)
from chainpay.engine.orchestrator import PaymentOrchestrator
from chainpay.engine.poller import ConfirmationPoller
from chainpay.engine.submitter import PaymentAbiVariant
from chainpay.adapters.bases import UnavailableWallet
from chainpay.schemas.bases import PaymentStatus
from chainpay.schemas.payments import OrderStatusUpdate
from chainpay.sources import QRPayloadSource, RequestSource
from chainpay.storage import LocalPaymentCache

from test_mocks import (
    MOCK_ACCOUNT,
    MOCK_APPROVE_TX,
    MOCK_INVOICE_ID,
    MOCK_ORDER_ID,
    MOCK_PAY_TX,
    MOCK_PAYMENT_CONTRACT,
    MOCK_TOKEN,
    FakeClock,
    FakeIndexer,
    FakeWallet,
    create_payment_request,
    create_settings,
    receipt_info,
)

S = PaymentStatus


def make_orchestrator(wallet=None, responses=None, settings=None, **kwargs):
    clock = FakeClock()
    indexer = FakeIndexer(responses or [receipt_info("SUCCESS")])
    poller = ConfirmationPoller(indexer, clock=clock, sleep=clock.sleep)
    orchestrator = PaymentOrchestrator(
        wallet or FakeWallet(),
        indexer,
        settings or create_settings(),
        poller=poller,
        **kwargs,
    )
    statuses = []

    async def record_status(event):
        statuses.append(event.current)

    orchestrator.event_bus.subscribe(StatusChangedEvent, record_status)
    return orchestrator, indexer, statuses


def messages(session):
    return [entry.message for entry in session.log]


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_payment_with_approval(self):
        wallet = FakeWallet(decimals=6, allowance="0")
        orchestrator, indexer, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request(amount="15.00"))

        assert statuses == [
            S.VALIDATING,
            S.CONNECTING_WALLET,
            S.CHECKING_ALLOWANCE,
            S.APPROVING,
            S.SUBMITTING_PAYMENT,
            S.CONFIRMING,
            S.SUCCESS,
        ]
        assert session.status == S.SUCCESS
        assert session.amount_base_units == "15000000"
        assert session.decimals == 6
        assert session.wallet_address == MOCK_ACCOUNT
        assert session.approve_transaction_id == MOCK_APPROVE_TX
        assert session.transaction_id == MOCK_PAY_TX
        assert session.error is None

        assert [call[0] for call in wallet.sent] == ["approve", "payTx"]
        assert wallet.sent[0][2] == [MOCK_PAYMENT_CONTRACT, "15000000"]
        assert wallet.sent[1][1] == MOCK_PAYMENT_CONTRACT
        assert wallet.sent[1][2][4] == "15000000"
        assert indexer.calls == [MOCK_PAY_TX]

    @pytest.mark.asyncio
    async def test_sufficient_allowance_skips_approving(self):
        wallet = FakeWallet(decimals=6, allowance=20_000_000)
        orchestrator, _, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request(amount="15.00"))

        assert S.APPROVING not in statuses
        assert session.status == S.SUCCESS
        assert session.approve_transaction_id is None
        assert [call[0] for call in wallet.sent] == ["payTx"]
        assert "Sufficient allowance. Skipping approve." in messages(session)

    @pytest.mark.asyncio
    async def test_log_tells_the_story(self):
        orchestrator, _, _ = make_orchestrator(FakeWallet(allowance=0))
        session = await orchestrator.run(create_payment_request())
        log = messages(session)

        assert f"Wallet connected: {MOCK_ACCOUNT}" in log
        assert "Current allowance: 0" in log
        assert f"Approve txid: {MOCK_APPROVE_TX}" in log
        assert "Calling payTx()..." in log
        assert f"Payment txid: {MOCK_PAY_TX}" in log
        assert "Waiting for chain confirmation..." in log
        assert log[-1] == "Chain status: SUCCESS"

    @pytest.mark.asyncio
    async def test_network_checked_against_settings(self):
        wallet = FakeWallet()
        orchestrator, _, _ = make_orchestrator(wallet, settings=create_settings(expected_network="sepolia"))
        await orchestrator.run(create_payment_request())
        assert wallet.network_checks == ["sepolia"]

    @pytest.mark.asyncio
    async def test_default_token_filled_from_settings(self):
        wallet = FakeWallet(allowance=10**30)
        settings = create_settings(default_token_address=MOCK_TOKEN)
        orchestrator, _, _ = make_orchestrator(wallet, settings=settings)

        session = await orchestrator.run(create_payment_request(token_address=""))

        assert session.status == S.SUCCESS
        assert session.request.token_address == MOCK_TOKEN
        assert wallet.views[0] == ("decimals", MOCK_TOKEN, [])

    @pytest.mark.asyncio
    async def test_basic_variant_skips_authorization(self):
        wallet = FakeWallet(allowance=10**30)
        settings = create_settings(payment_abi_variant=PaymentAbiVariant.BASIC)
        orchestrator, _, _ = make_orchestrator(wallet, settings=settings)

        session = await orchestrator.run(create_payment_request(signature="", deadline=""))

        assert session.status == S.SUCCESS
        assert len(wallet.sent[0][2]) == 5


class TestFailures:

    @pytest.mark.asyncio
    async def test_invalid_request_never_touches_wallet(self):
        wallet = FakeWallet()
        orchestrator, _, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request(amount="0"))

        assert statuses == [S.VALIDATING, S.FAILED]
        assert session.error == "Invalid amount"
        assert "ValidationError: Invalid amount" in messages(session)
        assert not wallet.connected
        assert wallet.chain_calls == []

    @pytest.mark.asyncio
    async def test_missing_wallet(self):
        wallet = UnavailableWallet()
        orchestrator, indexer, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request())

        assert statuses == [S.VALIDATING, S.CONNECTING_WALLET, S.FAILED]
        assert session.status == S.FAILED
        assert messages(session)[-1].startswith("WalletUnavailable: ")
        assert session.transaction_id is None
        assert indexer.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "wallet, name",
        [
            (FakeWallet(connect_error=WalletLocked("Wallet not connected/unlocked.")), "WalletLocked"),
            (FakeWallet(network_error=WrongNetwork("Wrong network.")), "WrongNetwork"),
        ],
    )
    async def test_wallet_preconditions(self, wallet, name):
        orchestrator, _, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request())

        assert statuses[-2:] == [S.CONNECTING_WALLET, S.FAILED]
        assert messages(session)[-1].startswith(f"{name}: ")
        assert wallet.chain_calls == []

    @pytest.mark.asyncio
    async def test_approval_rejected(self):
        wallet = FakeWallet(allowance=0, send_errors={"approve": ChainCallFailed("user rejected")})
        orchestrator, _, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request())

        assert statuses[-2:] == [S.APPROVING, S.FAILED]
        assert "ChainCallFailed: user rejected" in messages(session)
        assert [call[0] for call in wallet.sent] == ["approve"]

    @pytest.mark.asyncio
    async def test_payment_rejected(self):
        wallet = FakeWallet(allowance=10**30, send_errors={"payTx": ChainCallFailed("insufficient balance")})
        orchestrator, indexer, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request())

        assert statuses[-2:] == [S.SUBMITTING_PAYMENT, S.FAILED]
        assert session.transaction_id is None
        assert session.error == "insufficient balance"
        assert indexer.calls == []

    @pytest.mark.asyncio
    async def test_bad_decimals_fail(self):
        orchestrator, _, statuses = make_orchestrator(FakeWallet(decimals="many"))
        session = await orchestrator.run(create_payment_request())
        assert statuses[-2:] == [S.CHECKING_ALLOWANCE, S.FAILED]
        assert session.status == S.FAILED

    @pytest.mark.asyncio
    async def test_amount_below_smallest_unit_never_pays(self):
        wallet = FakeWallet(decimals=6, allowance=0)
        orchestrator, indexer, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(create_payment_request(amount="0.0000001"))

        assert statuses[-2:] == [S.CHECKING_ALLOWANCE, S.FAILED]
        assert session.status == S.FAILED
        assert "smallest unit" in session.error
        assert messages(session)[-1].startswith("InvalidAmount: ")
        assert wallet.sent == []
        assert session.transaction_id is None
        assert indexer.calls == []

    @pytest.mark.asyncio
    async def test_reverted_transaction(self):
        orchestrator, _, statuses = make_orchestrator(responses=[{}, receipt_info("REVERT")])

        session = await orchestrator.run(create_payment_request())

        assert statuses[-2:] == [S.CONFIRMING, S.FAILED]
        assert session.transaction_id == MOCK_PAY_TX
        assert session.error == "Transaction failed on-chain"
        assert "Chain status: FAILED" in messages(session)

    @pytest.mark.asyncio
    async def test_poll_timeout_is_pending(self):
        orchestrator, indexer, statuses = make_orchestrator(responses=[{}])

        session = await orchestrator.run(create_payment_request())

        assert statuses[-2:] == [S.CONFIRMING, S.PENDING]
        assert session.status == S.PENDING
        assert session.transaction_id == MOCK_PAY_TX
        assert len(indexer.calls) == 30

    @pytest.mark.asyncio
    async def test_indexer_error_fails_attempt(self):
        notifier = AsyncMock()
        orchestrator, _, statuses = make_orchestrator(
            responses=[IndexerError("Indexer error (500)")], notifier=notifier
        )

        session = await orchestrator.run(create_payment_request())

        assert statuses[-1] == S.FAILED
        assert session.transaction_id == MOCK_PAY_TX
        assert "IndexerError: Indexer error (500)" in messages(session)
        notifier.assert_not_awaited()


class TestSideEffects:

    @pytest.mark.asyncio
    async def test_notifier_called_on_success(self):
        notifier = AsyncMock()
        orchestrator, _, _ = make_orchestrator(notifier=notifier)

        session = await orchestrator.run(create_payment_request())

        notifier.assert_awaited_once_with(
            OrderStatusUpdate(txid=MOCK_PAY_TX, status="SUCCESS", order_id=MOCK_ORDER_ID, invoice_id=MOCK_INVOICE_ID)
        )
        assert "Order backend notified." in messages(session)

    @pytest.mark.asyncio
    async def test_notifier_called_on_chain_failure(self):
        notifier = AsyncMock()
        orchestrator, _, _ = make_orchestrator(responses=[receipt_info("REVERT")], notifier=notifier)
        await orchestrator.run(create_payment_request())
        assert notifier.await_args.args[0].status == "FAILED"

    @pytest.mark.asyncio
    async def test_notifier_skipped_without_definite_result(self):
        notifier = AsyncMock()
        orchestrator, _, _ = make_orchestrator(responses=[{}], notifier=notifier)
        await orchestrator.run(create_payment_request())

        orchestrator_2, _, _ = make_orchestrator(wallet=UnavailableWallet(), notifier=notifier)
        await orchestrator_2.run(create_payment_request())

        notifier.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_success(self):
        notifier = AsyncMock(side_effect=BackendNotifyFailed("Update failed (500)"))
        orchestrator, _, _ = make_orchestrator(notifier=notifier)

        session = await orchestrator.run(create_payment_request())

        assert session.status == S.SUCCESS
        assert "BackendNotifyFailed: Update failed (500)" in messages(session)

    @pytest.mark.asyncio
    async def test_cache_written_after_submission(self, tmp_path):
        cache = LocalPaymentCache(tmp_path)
        orchestrator, _, _ = make_orchestrator(cache=cache)

        await orchestrator.run(create_payment_request())

        record = cache.load(MOCK_PAY_TX)
        assert record is not None
        assert record.status == "SUCCESS"
        assert record.amount_base_units == "15000000"
        assert record.wallet == MOCK_ACCOUNT

    @pytest.mark.asyncio
    async def test_cache_untouched_without_transaction(self, tmp_path):
        cache = LocalPaymentCache(tmp_path)
        orchestrator, _, _ = make_orchestrator(wallet=UnavailableWallet(), cache=cache)
        await orchestrator.run(create_payment_request())
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_log_and_finish_events(self):
        bus = EventBus()
        logged, finished = [], []

        async def on_log(event):
            logged.append(event.entry.message)

        async def on_finish(event):
            finished.append(event.session)

        bus.subscribe(LogAppendedEvent, on_log)
        bus.subscribe(PaymentFinishedEvent, on_finish)
        orchestrator, _, _ = make_orchestrator(event_bus=bus)

        session = await orchestrator.run(create_payment_request())

        assert logged == messages(session)
        assert finished == [session]

    @pytest.mark.asyncio
    async def test_broken_ui_handler_does_not_fail_payment(self):
        bus = EventBus()

        async def broken(event):
            raise RuntimeError("render failed")

        bus.subscribe(LogAppendedEvent, broken)
        orchestrator, _, _ = make_orchestrator(event_bus=bus)

        session = await orchestrator.run(create_payment_request())

        assert session.status == S.SUCCESS


class TestSourcesAndGuards:

    @pytest.mark.asyncio
    async def test_runs_from_source(self):
        orchestrator, _, _ = make_orchestrator()
        text = create_payment_request().model_dump_json(by_alias=True)

        session = await orchestrator.run(QRPayloadSource(text))

        assert session.status == S.SUCCESS
        assert session.request.amount == "15.00"

    @pytest.mark.asyncio
    async def test_source_failure_yields_failed_session(self):
        wallet = FakeWallet()
        orchestrator, _, statuses = make_orchestrator(wallet)

        session = await orchestrator.run(QRPayloadSource(""))

        assert statuses == [S.FAILED]
        assert "RequestSourceError: Empty QR data" in messages(session)
        assert wallet.chain_calls == []

    @pytest.mark.asyncio
    async def test_second_run_while_busy_is_refused(self):
        release = asyncio.Event()

        class SlowSource(RequestSource):
            async def load(self):
                await release.wait()
                return create_payment_request()

        orchestrator, _, _ = make_orchestrator()
        first = asyncio.create_task(orchestrator.run(SlowSource()))
        await asyncio.sleep(0)

        assert orchestrator.busy
        with pytest.raises(AttemptInProgressError):
            await orchestrator.run(create_payment_request())

        release.set()
        session = await first
        assert session.status == S.SUCCESS
        assert not orchestrator.busy
        assert orchestrator.current_session is session

    @pytest.mark.asyncio
    async def test_retry_creates_new_session(self):
        orchestrator, _, _ = make_orchestrator()
        first = await orchestrator.run(create_payment_request(amount="0"))
        second = await orchestrator.run(create_payment_request())

        assert first.status == S.FAILED
        assert second.status == S.SUCCESS
        assert first.session_id != second.session_id

    def test_requires_indexer_or_poller(self):
        with pytest.raises(ValueError):
            PaymentOrchestrator(FakeWallet(), None, create_settings())
