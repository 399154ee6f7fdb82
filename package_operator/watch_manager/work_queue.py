"""
De-duplicating work queue feeding the reconcile workers of one controller
"""

# Standard
from collections import deque
from typing import Deque, Hashable, Optional, Set
import threading

# First Party
import alog

log = alog.use_channel("WRKQ")


class WorkQueue:
    """A FIFO queue of object keys with two guarantees:

    1. A key is queued at most once no matter how often it is added
    2. A key is never handed to two workers at the same time. A key added
       while it is being processed is queued again once the worker calls
       done().
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._condition = threading.Condition()
        self._shutting_down = False

    def add(self, key: Hashable):
        """Queue a key unless it is already waiting"""
        with self._condition:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                log.debug3("Deferring %s in %s until processed", key, self.name)
                return
            log.debug3("Queueing %s in %s", key, self.name)
            self._queue.append(key)
            self._condition.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """Take the next key for processing

        Args:
            timeout:  Optional[float]
                Seconds to wait for a key

        Returns:
            key:  Optional[Hashable]
                The key or None if the timeout expired or the queue shut down
        """
        with self._condition:
            self._condition.wait_for(
                lambda: self._queue or self._shutting_down, timeout=timeout
            )
            if self._shutting_down or not self._queue:
                return None
            key = self._queue.popleft()
            self._dirty.discard(key)
            self._processing.add(key)
            return key

    def done(self, key: Hashable):
        """Mark a key as processed, queueing it again if it was added meanwhile"""
        with self._condition:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                self._condition.notify()

    def shut_down(self):
        """Wake all waiting workers and reject further keys"""
        with self._condition:
            self._shutting_down = True
            self._condition.notify_all()

    def processing(self, key: Hashable) -> bool:
        with self._condition:
            return key in self._processing

    def __len__(self):
        with self._condition:
            return len(self._queue)
