"""
Listener registration for controller and model events

    controller.connection_status_changed += on_status
    controller.data_received.add(on_message)
"""

import logging
import threading
from typing import Callable, Tuple

logger = logging.getLogger(__name__)


class EventSource:
    """
    Ordered list of handlers fired with the same arguments

    A handler that raises is logged and skipped; the remaining handlers
    still run. Handlers are called on the firing thread.
    """

    def __init__(self, name: str = ''):
        self.name = name
        self._handlers = []
        self._lock = threading.Lock()

    def __iadd__(self, handler: Callable) -> 'EventSource':
        return self.add(handler)

    def __isub__(self, handler: Callable) -> 'EventSource':
        return self.remove(handler)

    def __len__(self) -> int:
        return len(self._handlers)

    def add(self, handler: Callable) -> 'EventSource':
        with self._lock:
            self._handlers.append(handler)
        return self

    def remove(self, handler: Callable) -> 'EventSource':
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)
        return self

    def handlers(self) -> Tuple[Callable, ...]:
        with self._lock:
            return tuple(self._handlers)

    def fire(self, *args, **kwargs) -> None:
        for handler in self.handlers():
            try:
                handler(*args, **kwargs)
            except Exception:
                logger.exception(f"Handler {handler!r} for '{self.name}' raised")
