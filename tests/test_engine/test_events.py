"""
Test suite for the payment EventBus.
Tests: 1) Subscription rules 2) Delivery by event class 3) Handler failures stay isolated
"""

import asyncio

import pytest

from chainpay.engine.events import (
    EventBus,
    LogAppendedEvent,
    PaymentFinishedEvent,
    StatusChangedEvent,
)
from chainpay.schemas.bases import PaymentStatus
from chainpay.schemas.sessions import LogEntry, PaymentSession

from test_mocks import create_payment_request


def status_event(current=PaymentStatus.VALIDATING):
    return StatusChangedEvent(session_id="abc", previous=PaymentStatus.IDLE, current=current)


def test_subscribe_rejects_sync_handlers():
    bus = EventBus()
    with pytest.raises(TypeError):
        bus.subscribe(StatusChangedEvent, lambda event: None)


@pytest.mark.asyncio
async def test_publish_without_subscribers():
    await EventBus().publish(status_event())


@pytest.mark.asyncio
async def test_handlers_receive_only_their_event_class():
    bus = EventBus()
    statuses, logs = [], []

    async def on_status(event):
        statuses.append(event)

    async def on_log(event):
        logs.append(event)

    bus.subscribe(StatusChangedEvent, on_status)
    bus.subscribe(LogAppendedEvent, on_log)

    await bus.publish(status_event())
    await bus.publish(LogAppendedEvent(session_id="abc", entry=LogEntry(message="hi")))

    assert [e.current for e in statuses] == [PaymentStatus.VALIDATING]
    assert [e.entry.message for e in logs] == ["hi"]


@pytest.mark.asyncio
async def test_handlers_run_concurrently_and_are_awaited():
    bus = EventBus()
    finished = []

    async def slow(event):
        await asyncio.sleep(0.01)
        finished.append("slow")

    async def fast(event):
        finished.append("fast")

    bus.subscribe(StatusChangedEvent, slow)
    bus.subscribe(StatusChangedEvent, fast)
    await bus.publish(status_event())

    assert finished == ["fast", "slow"]


@pytest.mark.asyncio
async def test_failing_handler_does_not_break_others():
    bus = EventBus()
    received = []

    async def broken(event):
        raise RuntimeError("ui crashed")

    async def healthy(event):
        received.append(event)

    bus.subscribe(StatusChangedEvent, broken)
    bus.subscribe(StatusChangedEvent, healthy)
    await bus.publish(status_event())

    assert len(received) == 1


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event)

    bus.subscribe(StatusChangedEvent, handler)
    bus.unsubscribe(StatusChangedEvent, handler)
    bus.unsubscribe(StatusChangedEvent, handler)
    await bus.publish(status_event())

    assert received == []


def test_event_repr():
    session = PaymentSession(request=create_payment_request())
    assert repr(status_event()) == "StatusChangedEvent(IDLE -> VALIDATING)"
    assert repr(PaymentFinishedEvent(session=session)) == "PaymentFinishedEvent(status=IDLE)"
