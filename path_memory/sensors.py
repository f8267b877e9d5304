"""Fix sources: the sensor side of tracking.

The core only needs something that can push fixes and errors to a listener and
answer a one-shot position request. ``QueueFixSource`` lets producers on any
thread enqueue fixes while dispatch happens on the consumer's thread.
"""

from __future__ import annotations

import logging
import queue
from typing import Callable, Iterable, Protocol, Union

from path_memory.errors import SensorError, SensorErrorCode
from path_memory.models import Fix

logger = logging.getLogger(__name__)

FixListener = Callable[[Fix], None]
ErrorListener = Callable[[SensorError], None]


class FixSource(Protocol):
    def watch(self, on_fix: FixListener, on_error: ErrorListener) -> None: ...

    def clear_watch(self) -> None: ...

    def get_current_position(self, timeout_s: float) -> Fix: ...


class QueueFixSource:
    """Thread-safe fix queue with synchronous dispatch.

    ``put_fix``/``put_error`` may be called from any thread. ``pump`` delivers
    queued items to the watcher on the calling thread, one at a time.
    """

    def __init__(self, fixes: Iterable[Fix] = ()) -> None:
        self._queue: queue.Queue[Union[Fix, SensorError]] = queue.Queue()
        self._on_fix: FixListener | None = None
        self._on_error: ErrorListener | None = None
        for fix in fixes:
            self._queue.put(fix)

    @property
    def watching(self) -> bool:
        return self._on_fix is not None

    def put_fix(self, fix: Fix) -> None:
        self._queue.put(fix)

    def put_error(self, error: SensorError) -> None:
        self._queue.put(error)

    def watch(self, on_fix: FixListener, on_error: ErrorListener) -> None:
        self._on_fix = on_fix
        self._on_error = on_error

    def clear_watch(self) -> None:
        self._on_fix = None
        self._on_error = None

    def pump(self, max_items: int | None = None) -> int:
        """Dispatch queued items to the watcher.

        Stops early when the watch is cleared (for example by a listener that
        stopped tracking). Returns the number of items delivered.
        """

        delivered = 0
        while self._on_fix is not None and (max_items is None or delivered < max_items):
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            delivered += 1
            if isinstance(item, SensorError):
                if self._on_error is not None:
                    self._on_error(item)
            else:
                self._on_fix(item)
        return delivered

    def get_current_position(self, timeout_s: float) -> Fix:
        """Take the next queued fix, waiting up to ``timeout_s`` seconds.

        Raises:
            SensorError: TIMEOUT when nothing arrives in time, or the queued error.
        """

        try:
            item = self._queue.get(timeout=timeout_s)
        except queue.Empty:
            raise SensorError(SensorErrorCode.TIMEOUT, f"no fix within {timeout_s:g}s") from None
        if isinstance(item, SensorError):
            raise item
        return item
