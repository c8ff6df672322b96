#!/usr/bin/env python3
"""
In-process event bus for orchestrator notifications
"""

import asyncio
import inspect
import logging
import time
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

from .base import Event, EventHandler, EventType
from .event_metrics import event_metrics

logger = logging.getLogger(__name__)

Callback = Callable[[Event], Union[None, bool, Awaitable[Any]]]


class CallbackHandler(EventHandler):
    """Wraps a plain function or coroutine function as an EventHandler"""

    def __init__(self, callback: Callback, name: Optional[str] = None):
        super().__init__(name or getattr(callback, "__name__", type(callback).__name__))
        self.callback = callback

    async def handle(self, event: Event) -> bool:
        result = self.callback(event)
        if inspect.isawaitable(result):
            result = await result
        return result is not False


class EventBus:
    """
    Dispatches published events to the handlers subscribed to their type

    Handlers of one event run concurrently, each bounded by ``handler_timeout``.
    A failing or slow handler is logged and never affects the publisher or the
    other handlers. There is no retry or acknowledgement.
    """

    def __init__(self, handler_timeout: float = 5.0, history_size: int = 100):
        self.handler_timeout = handler_timeout
        self.subscribers: Dict[EventType, List[EventHandler]] = defaultdict(list)
        self._recent: Deque[Event] = deque(maxlen=history_size)

    async def subscribe(self, event_type: EventType, handler: Union[EventHandler, Callback]) -> EventHandler:
        """
        Subscribe a handler, or a callable wrapped in a CallbackHandler

        Returns:
            The registered handler, to pass to unsubscribe()
        """
        if not isinstance(handler, EventHandler):
            handler = CallbackHandler(handler)
        handlers = self.subscribers[event_type]
        if handler not in handlers:
            handlers.append(handler)
            event_metrics.set_subscribers(event_type.value, len(handlers))
            logger.debug(f"{handler.name} subscribed to {event_type.value}")
        return handler

    async def subscribe_all(self, handler: Union[EventHandler, Callback]) -> EventHandler:
        if not isinstance(handler, EventHandler):
            handler = CallbackHandler(handler)
        for event_type in EventType:
            await self.subscribe(event_type, handler)
        return handler

    async def unsubscribe(self, event_type: EventType, handler: EventHandler):
        handlers = self.subscribers[event_type]
        if handler in handlers:
            handlers.remove(handler)
            event_metrics.set_subscribers(event_type.value, len(handlers))
            logger.debug(f"{handler.name} unsubscribed from {event_type.value}")

    async def _dispatch(self, handler: EventHandler, event: Event) -> bool:
        event_type = event.event_type.value
        started = time.monotonic()
        try:
            handled = await asyncio.wait_for(handler.handle(event), timeout=self.handler_timeout)
        except asyncio.TimeoutError:
            outcome = "timeout"
            logger.error(f"Handler {handler.name} timed out after {self.handler_timeout}s on {event_type}")
        except Exception as e:
            outcome = "failed"
            logger.error(f"Handler {handler.name} failed on {event_type}: {e}", exc_info=True)
        else:
            outcome = "ok" if handled else "rejected"
        event_metrics.record_outcome(event_type, outcome, time.monotonic() - started)
        return outcome == "ok"

    async def publish(self, event: Event) -> bool:
        """
        Deliver an event to every subscribed handler

        Returns:
            True when every handler handled the event
        """
        self._recent.append(event)
        event_metrics.record_published(event.event_type.value)
        logger.debug(f"Publishing {event.event_type.value} ({event.event_id})")

        handlers = list(self.subscribers.get(event.event_type, ()))
        if not handlers:
            return True
        results = await asyncio.gather(*(self._dispatch(handler, event) for handler in handlers))
        return all(results)

    def get_recent_events(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Recently published events as dictionaries, newest first"""
        if limit <= 0:
            return []
        return [event.to_dict() for event in reversed(list(self._recent)[-limit:])]

    def get_events_by_type(self, event_type: EventType, limit: int = 100) -> List[Dict[str, Any]]:
        matching = [event for event in reversed(self._recent) if event.event_type == event_type]
        return [event.to_dict() for event in matching[:limit]]
