"""
Hosting of the package controllers
"""

# Local
from .controller_manager import ControllerManager, owner_keys, own_keys
from .threads import Backoff, ReconcileThread, TimerThread, WatchThread
from .work_queue import WorkQueue
