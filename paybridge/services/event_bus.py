"""
In-process event notifier.

Listeners are plain callables invoked synchronously, in registration order.
A listener that raises stops the emit and the exception reaches the emitter.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from paybridge.core.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[Any], None]


class SDKEvent(str, Enum):
    PAY = "pay"
    VERIFY = "verify"
    REFUND = "refund"
    SUBSCRIBE = "subscribe"
    CREATE_INVOICE = "createInvoice"
    WALLET = "wallet"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class DispatchEvent:
    """Payload delivered to listeners after a successful dispatch."""
    operation: str
    gateway: str
    request: Any
    result: Any


def _event_name(event: Union[SDKEvent, str]) -> str:
    return event.value if isinstance(event, Enum) else event


class EventBus:
    def __init__(self) -> None:
        self._listeners: Dict[str, List[EventHandler]] = defaultdict(list)
        self._lock = threading.RLock()

    def on(self, event: Union[SDKEvent, str], handler: EventHandler) -> None:
        with self._lock:
            self._listeners[_event_name(event)].append(handler)

    def off(self, event: Union[SDKEvent, str], handler: EventHandler) -> None:
        name = _event_name(event)
        with self._lock:
            if name not in self._listeners:
                return
            self._listeners[name] = [h for h in self._listeners[name] if h != handler]

    def emit(self, event: Union[SDKEvent, str], payload: Any = None) -> int:
        """Call every listener for ``event``. Returns how many were called."""
        name = _event_name(event)
        with self._lock:
            handlers = list(self._listeners.get(name, ()))
        for handler in handlers:
            handler(payload)
        if handlers:
            logger.debug("event_bus.emitted", event_name=name, listeners=len(handlers))
        return len(handlers)

    def listener_count(self, event: Union[SDKEvent, str]) -> int:
        with self._lock:
            return len(self._listeners.get(_event_name(event), ()))

    def clear(self, event: Optional[Union[SDKEvent, str]] = None) -> None:
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(_event_name(event), None)
