"""The WatchThread Class is responsible for monitoring the cluster for
resource events and turning them into reconcile keys
"""
# Standard
from typing import Callable, List, Optional
import os

# Third Party
from kubernetes import watch

# First Party
import alog

# Local
from ... import config
from ...deploy_manager import DeployManagerBase
from ...managed_object import ManagedObject
from ...reconcile import ObjectKey
from ..work_queue import WorkQueue
from .base import ThreadBase

log = alog.use_channel("WTCHTHRD")

KeyMapper = Callable[[ManagedObject], List[ObjectKey]]


class WatchThread(ThreadBase):  # pylint: disable=too-many-instance-attributes
    """The WatchThread monitors the cluster for changes to a single kind
    either cluster-wide or for a particular namespace. Every event is mapped
    to the keys of the objects to reconcile, which are pushed to the work
    queue of the controller.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        deploy_manager: DeployManagerBase,
        kind: str,
        api_version: str,
        key_mapper: KeyMapper,
        work_queue: WorkQueue,
        namespace: Optional[str] = None,
    ):
        """
        Args:
            deploy_manager:  DeployManagerBase
                The deploy_manager to watch events
            kind:  str
                The kind to watch
            api_version:  str
                The api_version to watch
            key_mapper:  KeyMapper
                Maps a watched object to the keys to reconcile
            work_queue:  WorkQueue
                The queue to push keys to
            namespace:  Optional[str]
                The namespace to watch. If none then cluster-wide
        """
        self.deploy_manager = deploy_manager
        self.kind = kind
        self.api_version = api_version
        self.key_mapper = key_mapper
        self.work_queue = work_queue
        self.namespace = namespace

        name = f"watch_thread_{self.api_version}_{self.kind}"
        if self.namespace:
            name = name + f"_{self.namespace}"
        super().__init__(name=name, daemon=True)

        self.kubernetes_watch = watch.Watch()
        self.attempts_left = config.manager.watch_retry_count
        self.retry_delay = float(config.manager.watch_retry_delay_seconds)

    def run(self):
        """Continuously watch the DeployManager and queue the keys of every
        event. A watch that keeps failing aborts the process.
        """
        list_resource_version = None
        while not self.should_stop():
            try:
                for event in self.deploy_manager.watch_objects(
                    self.kind,
                    self.api_version,
                    namespace=self.namespace,
                    resource_version=list_resource_version,
                    watch_manager=self.kubernetes_watch,
                ):
                    if self.should_stop():
                        log.debug("Watch %s shutting down", self.name)
                        return
                    for key in self.key_mapper(event.resource):
                        log.debug2(
                            "Queueing %s for %s event of %s",
                            key,
                            event.type.value,
                            event.resource,
                        )
                        self.work_queue.add(key)

                # Update the resource version to only get new events
                list_resource_version = self.kubernetes_watch.resource_version
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log.info(
                    "Exception raised when attempting to watch %s",
                    repr(exc),
                    exc_info=exc,
                )
                if self.attempts_left <= 0:
                    log.error(
                        "Unable to start watch within %d attempts",
                        config.manager.watch_retry_count,
                    )
                    os._exit(1)

                if not self.wait_on_shutdown(self.retry_delay):
                    log.debug("Shut down during watch retry")
                    return
                self.attempts_left = self.attempts_left - 1
                log.info("Restarting watch with %d attempts left", self.attempts_left)

    ## Class Interface #########################################################

    def stop_thread(self):
        """Override stop_thread to stop the kubernetes client's Watch as well"""
        super().stop_thread()
        self.kubernetes_watch.stop()
