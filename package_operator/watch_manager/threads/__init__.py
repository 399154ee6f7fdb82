"""
Threads used by the ControllerManager
"""
# Local
from .base import ThreadBase
from .reconcile import Backoff, ReconcileThread
from .timer import TimerEvent, TimerThread
from .watch import WatchThread
