"""
The ControllerManager hosts the package controllers. It watches the kinds of
every controller and the kinds they own, feeds the keys of changed objects
into a de-duplicating queue per controller and runs a bounded pool of
reconcile workers for each of them.
"""

# Standard
from typing import List, Optional
import threading

# First Party
import alog

# Local
from .. import config
from ..context import RunContext
from ..controllers import GenericPackageController
from ..deploy_manager import DeployManagerBase
from ..managed_object import ManagedObject
from ..reconcile import ObjectKey
from .threads import Backoff, ReconcileThread, TimerThread, WatchThread
from .work_queue import WorkQueue

log = alog.use_channel("CTRLMGR")


## Key Mapping #################################################################


def own_keys(controller: GenericPackageController, resource: ManagedObject) -> List[ObjectKey]:
    """Key of an object watched by its own controller"""
    namespace = resource.namespace if controller.namespaced else None
    return [ObjectKey(resource.name, namespace)]


def owner_keys(
    controller: GenericPackageController, resource: ManagedObject
) -> List[ObjectKey]:
    """Keys of the objects of the controller's kind that control the given
    owned object
    """
    namespace = resource.namespace if controller.namespaced else None
    return [
        ObjectKey(ref.get("name"), namespace)
        for ref in resource.owner_references
        if ref.get("controller")
        and ref.get("kind") == controller.kind
        and ref.get("apiVersion") == controller.api_version
    ]


## ControllerManager ###########################################################


class _ControllerRuntime:
    """The queue and threads serving one controller"""

    def __init__(  # pylint: disable=too-many-arguments
        self,
        controller: GenericPackageController,
        deploy_manager: DeployManagerBase,
        timer_thread: TimerThread,
        max_concurrent_reconciles: int,
        namespace: Optional[str],
    ):
        self.controller = controller
        self.work_queue = WorkQueue(name=controller.kind)
        self.backoff = Backoff()
        watch_namespace = namespace if controller.namespaced else None
        self.watch_threads = [
            WatchThread(
                deploy_manager,
                controller.kind,
                controller.api_version,
                lambda resource: own_keys(controller, resource),
                self.work_queue,
                namespace=watch_namespace,
            ),
            WatchThread(
                deploy_manager,
                controller.owned_kind,
                controller.owned_api_version,
                lambda resource: owner_keys(controller, resource),
                self.work_queue,
                namespace=watch_namespace,
            ),
        ]
        self.reconcile_threads = [
            ReconcileThread(
                name=f"reconcile_thread_{controller.kind}_{i}",
                reconcile=controller.reconcile,
                work_queue=self.work_queue,
                timer_thread=timer_thread,
                backoff=self.backoff,
            )
            for i in range(max_concurrent_reconciles)
        ]

    def start(self):
        for thread in self.reconcile_threads + self.watch_threads:
            thread.start_thread()

    def stop(self):
        for thread in self.watch_threads + self.reconcile_threads:
            thread.stop_thread()
        self.work_queue.shut_down()

    def join(self, timeout: Optional[float] = None):
        for thread in self.reconcile_threads:
            if thread.is_alive():
                thread.join(timeout)


class ControllerManager:
    """Runs a set of controllers until its context is cancelled"""

    def __init__(
        self,
        deploy_manager: DeployManagerBase,
        max_concurrent_reconciles: Optional[int] = None,
        namespace: Optional[str] = None,
    ):
        """
        Args:
            deploy_manager:  DeployManagerBase
                Access to the cluster shared by all controllers
            max_concurrent_reconciles:  Optional[int]
                Number of workers per controller. Defaults to
                manager.max_concurrent_reconciles
            namespace:  Optional[str]
                Restrict watches of namespaced kinds to a namespace
        """
        self.deploy_manager = deploy_manager
        self.max_concurrent_reconciles = (
            max_concurrent_reconciles or config.manager.max_concurrent_reconciles
        )
        self.namespace = namespace
        self.timer_thread = TimerThread()
        self._runtimes: List[_ControllerRuntime] = []
        self._started = threading.Event()

    def add_controller(self, controller: GenericPackageController):
        """Register a controller. All controllers must be added before the
        manager starts.
        """
        assert not self._started.is_set(), "Cannot add controllers after start"
        log.debug(
            "Adding controller for %s with %d workers",
            controller.kind,
            self.max_concurrent_reconciles,
        )
        self._runtimes.append(
            _ControllerRuntime(
                controller,
                self.deploy_manager,
                self.timer_thread,
                self.max_concurrent_reconciles,
                self.namespace,
            )
        )

    @property
    def controllers(self) -> List[GenericPackageController]:
        return [runtime.controller for runtime in self._runtimes]

    def start(self):
        """Start the timer, workers and watches of every controller"""
        log.info("Starting ControllerManager with %d controllers", len(self._runtimes))
        self._started.set()
        self.timer_thread.start_thread()
        for runtime in self._runtimes:
            runtime.start()

    def stop(self, timeout: Optional[float] = None):
        """Stop all threads, waiting for running reconciles to finish"""
        log.info("Stopping ControllerManager")
        for runtime in self._runtimes:
            runtime.stop()
        self.timer_thread.stop_thread()
        for runtime in self._runtimes:
            runtime.join(timeout)

    def run(self, ctx: RunContext):
        """Run all controllers until the context is cancelled

        Args:
            ctx:  RunContext
                Cancelling this context stops the manager
        """
        self.start()
        try:
            ctx.wait()
        finally:
            self.stop()
        log.info("ControllerManager stopped")
