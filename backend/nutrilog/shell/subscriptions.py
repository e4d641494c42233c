"""Live Subscriptions - Caller-owned handles on store listeners.

Firestore delivers snapshots on a background thread. A Subscription keeps
the most recent one, fans it out to listeners, and releases the underlying
watch when the caller unsubscribes.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Generic, Optional, Protocol, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Watch(Protocol):
    """Anything that can stop a store listener (e.g. a Firestore Watch)."""

    def unsubscribe(self) -> None: ...


class Subscription(Generic[T]):
    """A live feed of snapshots with an explicit lifetime.

    Only the latest snapshot is kept; each new one replaces it. Use as a
    context manager or call unsubscribe() when updates are no longer needed.
    """

    def __init__(self, description: str = "") -> None:
        self.description = description
        self.latest: Optional[T] = None
        self._watch: Optional[Watch] = None
        self._listeners: list[Callable[[T], None]] = []
        self._on_close: list[Callable[[], None]] = []
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed

    def bind(self, watch: Watch) -> None:
        """Attach the store watch that feeds this subscription."""
        if self._closed:
            watch.unsubscribe()
            return
        self._watch = watch

    def publish(self, value: T) -> None:
        """Replace the latest snapshot and notify listeners."""
        if self._closed:
            return
        self.latest = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                logger.error("Listener failed on %s: %s", self.description, str(e))

    def add_listener(
        self,
        listener: Callable[[T], None],
        on_close: Optional[Callable[[], None]] = None,
    ) -> Callable[[], None]:
        """Register a listener; it receives the latest snapshot right away.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)
        if on_close is not None:
            self._on_close.append(on_close)
        if self.latest is not None:
            listener(self.latest)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
            if on_close is not None and on_close in self._on_close:
                self._on_close.remove(on_close)

        return remove

    async def updates(self) -> AsyncIterator[T]:
        """Yield snapshots on the running event loop until unsubscribed."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Any] = asyncio.Queue()

        def enqueue(value: Any) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(queue.put_nowait, value)

        if self._closed:
            return
        remove = self.add_listener(enqueue, on_close=lambda: enqueue(_CLOSED))
        if self._closed:
            enqueue(_CLOSED)
        try:
            while True:
                value = await queue.get()
                if value is _CLOSED:
                    return
                yield value
        finally:
            remove()

    def unsubscribe(self) -> None:
        """Release the store watch and end all update streams. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._watch is not None:
            try:
                self._watch.unsubscribe()
            except Exception as e:
                logger.warning("Failed to release %s: %s", self.description, str(e))
            self._watch = None
        for on_close in list(self._on_close):
            on_close()
        self._listeners.clear()
        self._on_close.clear()
        logger.debug("Released subscription %s", self.description)

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()
