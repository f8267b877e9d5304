"""Coalescing of rapid calls into one deferred call."""

from __future__ import annotations

import threading
from typing import Any, Callable, Protocol


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def thread_timer(interval: float, fn: Callable[[], None]) -> Timer:
    t = threading.Timer(interval, fn)
    t.daemon = True
    return t


class Debouncer:
    """Run ``func`` once, ``wait_seconds`` after the last ``call``.

    Every ``call`` restarts the window and replaces the pending arguments, so only
    the latest arguments are ever used. ``flush`` runs a pending call right away
    (e.g. on shutdown) and ``cancel`` drops it.

    Timers may fire on another thread, so pending state is guarded by a lock and
    ``func`` itself runs under a second lock; at most one run is active.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        wait_seconds: float,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self._func = func
        self._wait = wait_seconds
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._run_lock = threading.RLock()
        self._timer: Timer | None = None
        self._pending: tuple[tuple[Any, ...], dict[str, Any]] | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def call(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (args, kwargs)
            self._generation += 1
            generation = self._generation
            self._timer = self._timer_factory(self._wait, lambda: self._fire(generation))
            self._timer.start()

    def _take(self, generation: int | None) -> tuple[tuple[Any, ...], dict[str, Any]] | None:
        with self._lock:
            if generation is not None and generation != self._generation:
                # superseded by a later call
                return None
            pending = self._pending
            self._pending = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self, generation: int) -> None:
        with self._run_lock:
            pending = self._take(generation)
            if pending is not None:
                args, kwargs = pending
                self._func(*args, **kwargs)

    def flush(self) -> Any:
        """Run the pending call now and return its result (None if nothing pending)."""

        with self._run_lock:
            pending = self._take(None)
            if pending is None:
                return None
            args, kwargs = pending
            return self._func(*args, **kwargs)

    def cancel(self) -> None:
        self._take(None)
