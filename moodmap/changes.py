"""
Change notification for the moodmap state containers.

The sentiment cache and the location tracker are plain state containers with
synchronous query methods. Each owns a ChangeFeed and publishes to it after
every successful mutation; subscribers receive a fresh snapshot per change.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Generic, TypeVar

T = TypeVar("T")


class ChangeFeed(Generic[T]):
    """
    Broadcasts state snapshots to any number of subscribers.

    Uses a condition variable and an update counter instead of per-subscriber
    queues, so slow subscribers skip intermediate states rather than buffering
    them. Callbacks registered with subscribe() are invoked synchronously on
    every publish.
    """

    def __init__(self, snapshot: Callable[[], T]) -> None:
        self._snapshot = snapshot
        self._condition = asyncio.Condition()
        self._update_counter = 0
        self._callbacks: list[Callable[[T], None]] = []

    @property
    def version(self) -> int:
        """Number of changes published so far."""
        return self._update_counter

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a callback invoked with the new snapshot after each change.

        Returns:
            A function that removes the callback
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def publish(self) -> None:
        """Notify all subscribers that the state changed."""
        async with self._condition:
            self._update_counter += 1
            self._condition.notify_all()

        if self._callbacks:
            current = self._snapshot()
            for callback in list(self._callbacks):
                callback(current)

    @asynccontextmanager
    async def stream(self) -> AsyncGenerator[AsyncGenerator[T, None], None]:
        """
        Stream state snapshots to a subscriber.

        The yielded async generator produces the current snapshot immediately
        and then one snapshot per published change.

        Yields:
            An async generator of snapshots
        """

        async def snapshot_generator() -> AsyncGenerator[T, None]:
            async with self._condition:
                last_seen_counter = self._update_counter
                current = self._snapshot()
            yield current

            try:
                while True:
                    # Never yield with the lock held; publishers would block
                    async with self._condition:
                        await self._condition.wait_for(
                            lambda: self._update_counter > last_seen_counter
                        )

                        last_seen_counter = self._update_counter
                        current = self._snapshot()
                    yield current

            except (asyncio.CancelledError, GeneratorExit):
                # Subscriber went away
                return

        snapshots = snapshot_generator()
        try:
            yield snapshots
        finally:
            await snapshots.aclose()
