"""Synchronous publish/subscribe with per-subscriber fault isolation."""
import logging
import threading
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventHub(Generic[T]):
    """List of callbacks invoked in subscription order on the publisher's thread.

    A subscriber that raises is logged and skipped; the remaining subscribers
    still receive the event and the exception never reaches the publisher.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            A function that removes the subscription when called.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Callable[[T], None]) -> None:
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: T) -> None:
        # Copy so callbacks may (un)subscribe while being delivered
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.exception(f"{self.name} subscriber {callback!r} failed: {e}")
