"""
The ReconcileThread takes keys from the work queue of a controller and runs
its reconcile. Requeues and failures are scheduled on the shared TimerThread.
"""

# Standard
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
import threading

# First Party
import alog

# Local
from ... import config
from ...reconcile import ObjectKey, ReconciliationResult
from ..work_queue import WorkQueue
from .base import ThreadBase
from .timer import TimerThread

log = alog.use_channel("RCLTHRD")

# How long a worker waits on the queue before checking for shutdown
QUEUE_POLL_TIME = 0.5


class Backoff:
    """Per-key exponential backoff shared by the workers of one controller"""

    def __init__(
        self,
        base_seconds: Optional[float] = None,
        max_seconds: Optional[float] = None,
    ):
        self.base_seconds = float(
            base_seconds
            if base_seconds is not None
            else config.manager.backoff_base_seconds
        )
        self.max_seconds = float(
            max_seconds if max_seconds is not None else config.manager.backoff_max_seconds
        )
        self._failures: Dict[ObjectKey, int] = {}
        self._lock = threading.Lock()

    def next_delay(self, key: ObjectKey) -> timedelta:
        """Record a failure and return the delay before the next attempt"""
        with self._lock:
            failures = self._failures.get(key, 0) + 1
            self._failures[key] = failures
        delay = min(self.base_seconds * 2 ** (failures - 1), self.max_seconds)
        return timedelta(seconds=delay)

    def forget(self, key: ObjectKey):
        with self._lock:
            self._failures.pop(key, None)

    def failures(self, key: ObjectKey) -> int:
        with self._lock:
            return self._failures.get(key, 0)


class ReconcileThread(ThreadBase):
    """Worker running reconciles for one controller. Several workers share
    the same queue, which guarantees that a key is never reconciled by two
    workers at once.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        name: str,
        reconcile: Callable[[ObjectKey], ReconciliationResult],
        work_queue: WorkQueue,
        timer_thread: TimerThread,
        backoff: Backoff,
    ):
        """
        Args:
            name:  str
                The name of the thread
            reconcile:  Callable[[ObjectKey], ReconciliationResult]
                The reconcile entrypoint of the controller
            work_queue:  WorkQueue
                The queue of keys of the controller
            timer_thread:  TimerThread
                Schedules requeued and backed off keys
            backoff:  Backoff
                Failure tracking of the controller
        """
        super().__init__(name=name, daemon=True)
        self.reconcile = reconcile
        self.work_queue = work_queue
        self.timer_thread = timer_thread
        self.backoff = backoff

    def run(self):
        while not self.should_stop():
            key = self.work_queue.get(timeout=QUEUE_POLL_TIME)
            if key is None:
                continue
            try:
                self._reconcile_key(key)
            finally:
                self.work_queue.done(key)

    ## Implementation Details ##################################################

    def _reconcile_key(self, key: ObjectKey):
        log.debug("Starting reconcile of %s in %s", key, self.name)
        try:
            result = self.reconcile(key)
        except Exception as err:  # pylint: disable=broad-exception-caught
            delay = self.backoff.next_delay(key)
            log.warning(
                "Reconcile of %s failed, retrying in %s: %s",
                key,
                delay,
                err,
                exc_info=True,
            )
            self._schedule(key, delay)
            return

        self.backoff.forget(key)
        if result is not None and result.requeue:
            log.debug2(
                "Requeueing %s after %s", key, result.requeue_params.requeue_after
            )
            self._schedule(key, result.requeue_params.requeue_after)

    def _schedule(self, key: ObjectKey, delay: timedelta):
        self.timer_thread.put_event(datetime.now() + delay, self.work_queue.add, key)
