"""
Payment events and the bus that delivers them.

The orchestrator publishes one event per state change and per log line so a
UI or a notifier can follow an attempt without polling the session object.
Handlers are observers: a failing handler is logged and the payment carries on.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..schemas.bases import PaymentStatus
from ..schemas.sessions import LogEntry, PaymentSession

logger = logging.getLogger(__name__)


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Payment Events ====================

class StatusChangedEvent(BaseModel, BaseEvent):
    """A session moved from one status to the next."""
    session_id: str
    previous: Optional[PaymentStatus] = None
    current: PaymentStatus

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        previous = self.previous.value if self.previous else None
        return f"StatusChangedEvent({previous} -> {self.current.value})"


class LogAppendedEvent(BaseModel, BaseEvent):
    """A line was appended to the session log."""
    session_id: str
    entry: LogEntry

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"LogAppendedEvent(level={self.entry.level.value})"


class PaymentFinishedEvent(BaseModel, BaseEvent):
    """The attempt reached SUCCESS, FAILED or PENDING."""
    session: PaymentSession

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"PaymentFinishedEvent(status={self.session.status.value})"


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers."""
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.
        Multiple handlers can be subscribed to the same event type and run in parallel.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        if event_class not in self._subscribers:
            self._subscribers[event_class] = []
        self._subscribers[event_class].append(handler)

    def unsubscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """Remove a previously registered handler; unknown handlers are ignored."""
        handlers = self._subscribers.get(event_class, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: BaseEvent) -> None:
        """
        Deliver an event to every handler subscribed to its class.

        Handlers run concurrently and are all awaited before this returns.
        Exceptions raised by handlers are logged, never re-raised.
        """
        handlers = list(self._subscribers.get(type(event), []))
        if not handlers:
            return

        results = await asyncio.gather(*(handler(event) for handler in handlers), return_exceptions=True)
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.warning(
                    "event handler %s failed for %r: %s",
                    getattr(handler, "__qualname__", handler), event, result,
                )
