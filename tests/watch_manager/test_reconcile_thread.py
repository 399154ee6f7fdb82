"""
Tests for the ReconcileThread and its Backoff
"""
# Standard
from datetime import timedelta
from unittest import mock
import threading

# Third Party
import pytest

# Local
from package_operator.reconcile import ObjectKey, ReconciliationResult, RequeueParams
from package_operator.test_helpers.helpers import library_config
from package_operator.watch_manager import Backoff, ReconcileThread, WorkQueue

KEY = ObjectKey("pkg", "test")

## Backoff #####################################################################


def test_backoff_grows_exponentially_and_caps():
    backoff = Backoff(base_seconds=1, max_seconds=5)
    delays = [backoff.next_delay(KEY).total_seconds() for _ in range(5)]
    assert delays == [1, 2, 4, 5, 5]
    assert backoff.failures(KEY) == 5


def test_backoff_forget_resets():
    backoff = Backoff(base_seconds=1, max_seconds=5)
    backoff.next_delay(KEY)
    backoff.next_delay(KEY)
    backoff.forget(KEY)
    assert backoff.failures(KEY) == 0
    assert backoff.next_delay(KEY) == timedelta(seconds=1)


def test_backoff_keys_independent():
    backoff = Backoff(base_seconds=1, max_seconds=60)
    backoff.next_delay(KEY)
    backoff.next_delay(KEY)
    assert backoff.next_delay(ObjectKey("other")) == timedelta(seconds=1)


def test_backoff_defaults_from_config():
    with library_config(manager={"backoff_base_seconds": 3, "backoff_max_seconds": 9}):
        backoff = Backoff()
    assert backoff.base_seconds == 3.0
    assert backoff.max_seconds == 9.0


## ReconcileThread #############################################################


class ScriptedReconcile:
    """Reconcile function that plays back a list of results or errors"""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.keys = []
        self.called = threading.Event()

    def __call__(self, key):
        self.keys.append(key)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        self.called.set()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def run_once(reconcile, backoff=None):
    """Run a worker until it has reconciled a single key"""
    queue = WorkQueue()
    timer = mock.Mock()
    backoff = backoff or Backoff(base_seconds=1, max_seconds=10)
    worker = ReconcileThread("test_worker", reconcile, queue, timer, backoff)
    worker.start_thread()
    queue.add(KEY)
    assert reconcile.called.wait(5)
    worker.stop_thread()
    worker.join(5)
    return queue, timer, backoff


@pytest.mark.timeout(10)
def test_success_forgets_failures():
    backoff = Backoff(base_seconds=1, max_seconds=10)
    backoff.next_delay(KEY)
    queue, timer, _ = run_once(
        ScriptedReconcile(ReconciliationResult(requeue=False)), backoff
    )
    assert backoff.failures(KEY) == 0
    timer.put_event.assert_not_called()
    assert not queue.processing(KEY)


@pytest.mark.timeout(10)
def test_requeue_scheduled():
    delay = timedelta(seconds=7)
    queue, timer, _ = run_once(
        ScriptedReconcile(
            ReconciliationResult(requeue=True, requeue_params=RequeueParams(delay))
        )
    )
    timer.put_event.assert_called_once()
    _, action, key = timer.put_event.call_args[0]
    assert action == queue.add
    assert key == KEY


@pytest.mark.timeout(10)
def test_failure_backs_off():
    """Make sure a failing reconcile is retried with backoff"""
    queue, timer, backoff = run_once(ScriptedReconcile(RuntimeError("boom")))
    assert backoff.failures(KEY) == 1
    timer.put_event.assert_called_once()
    _, action, key = timer.put_event.call_args[0]
    assert action == queue.add
    assert key == KEY
