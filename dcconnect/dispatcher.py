"""A thread-safe queue of work to be run later on the script thread."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable


class Dispatcher:
    """Collects callables from any thread and runs them, in order, on ``process``."""

    def __init__(self) -> None:
        self._queue: deque[Callable[[], object]] = deque()
        self._lock = threading.Lock()

    def dispatch(self, func: Callable[[], object]) -> None:
        """Queue ``func`` to run on the next call to :meth:`process`."""
        with self._lock:
            self._queue.append(func)

    def process(self) -> None:
        """Run queued callables in order until the queue is empty."""
        while True:
            with self._lock:
                if not self._queue:
                    return
                func = self._queue.popleft()
            func()

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)