"""Minimal push-based streams used to wire the telemetry bus together.

A :class:`Stream` is a lazily evaluated description of a value source.
Nothing happens until :meth:`Stream.subscribe` is called; every subscriber
gets its own chain of upstream subscriptions (and its own operator state),
and the returned :class:`Unsubscribe` tears that chain down again.

:class:`Bus` is the only hot source: values pushed into it are delivered
synchronously to every current subscriber.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Iterable
from typing import Generic, Protocol, TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Callback = Callable[[T], None]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock and timer facility owned by the surrounding process."""

    def now(self) -> float:
        """Monotonic time in seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class LoopScheduler:
    """:class:`Scheduler` backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        return self.loop.call_later(delay, callback)


class Unsubscribe:
    """Idempotent detach handle."""

    __slots__ = ("_action",)

    def __init__(self, action: Callable[[], None] | None = None) -> None:
        self._action = action

    def __call__(self) -> None:
        action = self._action
        self._action = None
        if action is not None:
            action()


class Stream(Generic[T]):
    """A cold stream defined by its subscribe function."""

    def __init__(self, subscribe_fn: Callable[[Callback[T]], Unsubscribe]) -> None:
        self._subscribe_fn = subscribe_fn

    def subscribe(self, callback: Callback[T]) -> Unsubscribe:
        return self._subscribe_fn(callback)

    def filter(self, predicate: Callable[[T], bool]) -> Stream[T]:
        def _subscribe(callback: Callback[T]) -> Unsubscribe:
            def _on_value(value: T) -> None:
                if predicate(value):
                    callback(value)

            return self.subscribe(_on_value)

        return Stream(_subscribe)

    def map(self, fn: Callable[[T], U]) -> Stream[U]:
        def _subscribe(callback: Callback[U]) -> Unsubscribe:
            return self.subscribe(lambda value: callback(fn(value)))

        return Stream(_subscribe)

    def flat_map(self, fn: Callable[[T], Iterable[U]]) -> Stream[U]:
        def _subscribe(callback: Callback[U]) -> Unsubscribe:
            def _on_value(value: T) -> None:
                for item in fn(value):
                    callback(item)

            return self.subscribe(_on_value)

        return Stream(_subscribe)

    def debounce_immediate(self, delay: float, scheduler: Scheduler) -> Stream[T]:
        """Pass a value through, then drop values until *delay* seconds have
        passed since the last value that was passed through."""

        def _subscribe(callback: Callback[T]) -> Unsubscribe:
            last_emitted: float | None = None

            def _on_value(value: T) -> None:
                nonlocal last_emitted
                now = scheduler.now()
                if last_emitted is not None and now - last_emitted < delay:
                    return
                last_emitted = now
                callback(value)

            return self.subscribe(_on_value)

        return Stream(_subscribe)

    def buffer_with_time(self, interval: float, scheduler: Scheduler) -> Stream[list[T]]:
        """Collect values into non-overlapping windows of *interval* seconds.

        A window opens with the first value buffered after the previous flush
        and is emitted as one list when it closes. No timer is pending while
        the buffer is empty.
        """

        def _subscribe(callback: Callback[list[T]]) -> Unsubscribe:
            buffer: list[T] = []
            timer: Cancellable | None = None
            closed = False

            def _flush() -> None:
                nonlocal buffer, timer
                timer = None
                if closed or not buffer:
                    return
                batch, buffer = buffer, []
                callback(batch)

            def _on_value(value: T) -> None:
                nonlocal timer
                buffer.append(value)
                if timer is None:
                    timer = scheduler.call_later(interval, _flush)

            upstream = self.subscribe(_on_value)

            def _release() -> None:
                nonlocal closed
                closed = True
                upstream()
                if timer is not None:
                    timer.cancel()
                buffer.clear()

            return Unsubscribe(_release)

        return Stream(_subscribe)


class Bus(Stream[T]):
    """Hot stream that fans pushed values out to its subscribers."""

    def __init__(self, name: str = "") -> None:
        super().__init__(self._add)
        self.name = name
        self._ids = itertools.count()
        self._subscribers: dict[int, Callback[T]] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _add(self, callback: Callback[T]) -> Unsubscribe:
        token = next(self._ids)
        self._subscribers[token] = callback
        return Unsubscribe(lambda: self._subscribers.pop(token, None))

    def push(self, value: T) -> None:
        # Subscribers may detach (or attach) while we deliver.
        for token, callback in list(self._subscribers.items()):
            if token not in self._subscribers:
                continue
            try:
                callback(value)
            except Exception:
                _logger.debug("Subscriber on bus %r failed", self.name, exc_info=True)


__all__ = [
    "Bus",
    "Cancellable",
    "LoopScheduler",
    "Scheduler",
    "Stream",
    "Unsubscribe",
]
