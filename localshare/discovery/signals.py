"""Listener lists used to notify collaborators of discovery events."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Signal:
    """A named list of callbacks invoked synchronously on emit."""

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[..., Any]] = []

    def connect(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Register a listener. Returns it so this can be used as a decorator."""
        self._listeners.append(listener)
        return listener

    def disconnect(self, listener: Callable[..., Any]) -> None:
        """Remove a listener, ignoring unknown ones."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, *args: Any) -> None:
        """Call every listener in connection order.

        A failing listener is logged and does not prevent delivery to the
        remaining listeners.
        """
        for listener in list(self._listeners):
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for '{self.name}' failed")

    def __len__(self) -> int:
        return len(self._listeners)
