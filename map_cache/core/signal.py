"""
A minimal synchronous observer registry used for lifecycle notifications.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class Signal(Generic[T]):
    """
    Fans a value out to every registered callback, in registration order.

    Callbacks run synchronously inside `dispatch`. A failing callback is logged
    and does not prevent delivery to the remaining subscribers.
    """

    def __init__(self, name: str = "signal"):
        self.name = name
        self._callbacks: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Registers a callback and returns a handle that unregisters it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def once(self, callback: Callable[[T], bool | None]) -> Callable[[], None]:
        """
        Registers a callback that is removed after the first dispatch for which
        it returns a value other than False.
        """
        unsubscribe: Callable[[], None]

        def wrapper(value: T) -> None:
            if callback(value) is not False:
                unsubscribe()

        unsubscribe = self.subscribe(wrapper)
        return unsubscribe

    def dispatch(self, value: T) -> None:
        """Delivers a value to a snapshot of the current subscribers."""
        for callback in list(self._callbacks):
            try:
                callback(value)
            except Exception as e:
                log.warning(f"Subscriber of '{self.name}' raised: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._callbacks)
