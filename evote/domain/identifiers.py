import threading
import time


class TimeOrderedIdGenerator:
    """Millisecond wall-clock ids that never repeat and never go backwards."""

    def __init__(self, clock=None):
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = self._clock()
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


id_generator = TimeOrderedIdGenerator()
