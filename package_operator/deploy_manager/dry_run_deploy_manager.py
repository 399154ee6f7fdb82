"""
The DryRunDeployManager implements the DeployManager interface but does not
actually interact with the cluster and instead holds the state of the cluster in
a local map.
"""

# Standard
from datetime import datetime, timedelta
from queue import Empty, Queue
from threading import RLock
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import copy
import itertools
import uuid

# First Party
import alog

# Local
from ..exceptions import AlreadyExistsError, ConflictError, NotFoundError
from ..managed_object import ManagedObject
from ..utils import get_finalizers, is_deleting, labels_match, merge_patch
from .base import DeployManagerBase
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("DRY-RUN")

# Lock to ensure writes are thread safe
DRY_RUN_CLUSTER_LOCK = RLock()

# Metadata fields owned by the store that writers cannot change
_SERVER_METADATA = ("uid", "creationTimestamp", "deletionTimestamp")


class DryRunDeployManager(DeployManagerBase):
    """
    Deploy manager which doesn't actually deploy!
    """

    def __init__(self, resources: Optional[List[dict]] = None):
        """Construct with an optional list of objects that already exist in
        the cluster
        """
        self._cluster_content = {}
        self._watches = {}
        self._resource_versions = itertools.count(1)

        with DRY_RUN_CLUSTER_LOCK:
            for resource in resources or []:
                self._store(self._with_server_metadata(copy.deepcopy(resource)))

    ## Interface ###############################################################

    def get(self, kind, api_version, name, namespace=None):
        log.debug2("DRY RUN get of [%s/%s] in [%s]", kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            return copy.deepcopy(self._fetch(kind, api_version, name, namespace))

    def list(self, kind, api_version, namespace=None, label_selector=None):
        log.debug2("DRY RUN list of [%s] in [%s]", kind, namespace)
        namespaces = (
            [namespace] if namespace is not None else list(self._cluster_content)
        )
        matches = []
        with DRY_RUN_CLUSTER_LOCK:
            for nspace in namespaces:
                entries = (
                    self._cluster_content.get(nspace, {})
                    .get(kind, {})
                    .get(api_version, {})
                )
                for resource in entries.values():
                    if labels_match(resource, label_selector):
                        matches.append(copy.deepcopy(resource))
        log.debug3("Found %d matches for [%s] in %s", len(matches), kind, namespace)
        return matches

    def create(self, resource_definition):
        kind, api_version, name, namespace = self._identifiers(resource_definition)
        log.debug("DRY RUN create of [%s/%s] in [%s]", kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            if self._lookup(kind, api_version, name, namespace) is not None:
                raise AlreadyExistsError(
                    f"{kind}/{name} already exists in namespace {namespace}"
                )
            resource = self._with_server_metadata(copy.deepcopy(resource_definition))
            self._store(resource)
            self._notify(KubeEventType.ADDED, resource)
            return copy.deepcopy(resource)

    def update(self, resource_definition):
        kind, api_version, name, namespace = self._identifiers(resource_definition)
        log.debug("DRY RUN update of [%s/%s] in [%s]", kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._fetch(kind, api_version, name, namespace)
            self._check_resource_version(current, resource_definition)
            resource = copy.deepcopy(resource_definition)
            resource.pop("status", None)
            if "status" in current:
                resource["status"] = copy.deepcopy(current["status"])
            return self._write(current, resource)

    def patch(self, kind, api_version, name, patch, namespace=None):
        log.debug("DRY RUN patch of [%s/%s] in [%s]", kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._fetch(kind, api_version, name, namespace)
            patch = {key: val for key, val in patch.items() if key != "status"}
            return self._write(current, merge_patch(current, patch))

    def update_status(self, resource_definition):
        kind, api_version, name, namespace = self._identifiers(resource_definition)
        log.debug("DRY RUN update_status of [%s/%s] in [%s]", kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._fetch(kind, api_version, name, namespace)
            self._check_resource_version(current, resource_definition)
            resource = copy.deepcopy(current)
            resource["status"] = copy.deepcopy(resource_definition.get("status", {}))
            return self._write(current, resource)

    def patch_status(self, kind, api_version, name, patch, namespace=None):
        log.debug("DRY RUN patch_status of [%s/%s] in [%s]", kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._fetch(kind, api_version, name, namespace)
            resource = copy.deepcopy(current)
            resource["status"] = merge_patch(
                current.get("status", {}), patch.get("status", {})
            )
            return self._write(current, resource)

    def delete(self, kind, api_version, name, namespace=None):
        log.debug("DRY RUN delete of [%s/%s] in [%s]", kind, name, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            current = self._fetch(kind, api_version, name, namespace)
            if not get_finalizers(current):
                self._delete_key(namespace, kind, api_version, name)
                self._notify(KubeEventType.DELETED, current)
                return
            if is_deleting(current):
                log.debug3("Object already marked for deletion")
                return
            resource = copy.deepcopy(current)
            resource["metadata"]["deletionTimestamp"] = datetime.now().strftime(
                "%Y-%m-%dT%H:%M:%SZ"
            )
            resource["metadata"]["deletionGracePeriodSeconds"] = 0
            self._write(current, resource, keep_metadata=True)

    def watch_objects(  # pylint: disable=too-many-arguments,unused-argument
        self,
        kind: str,
        api_version: str,
        namespace: Optional[str] = None,
        label_selector: Optional[Dict[str, str]] = None,
        resource_version: Optional[str] = None,
        watch_manager=None,
        timeout: Optional[float] = 15,
    ) -> Iterator[KubeWatchEvent]:
        """Watch the DryRunDeployManager for resource changes by registering
        a callback. The stream starts with an ADDED event for every existing
        object and ends after the timeout or when the watch_manager is stopped.
        """
        event_queue = Queue()

        def add_event(event_type: KubeEventType, manifest: dict):
            if labels_match(manifest, label_selector):
                event_queue.put(KubeWatchEvent(event_type, ManagedObject(manifest)))

        watch_key = self._watch_key(api_version, kind, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            self.register_watch(api_version, kind, add_event, namespace=namespace)
            for manifest in self.list(kind, api_version, namespace, label_selector):
                event_queue.put(
                    KubeWatchEvent(KubeEventType.ADDED, ManagedObject(manifest))
                )

        end_time = datetime.max
        if timeout:
            end_time = datetime.now() + timedelta(seconds=timeout)

        try:
            while datetime.now() < end_time:
                if watch_manager is not None and getattr(watch_manager, "_stop", False):
                    log.debug("Dry run watch stopped for %s", watch_key)
                    return
                try:
                    event = event_queue.get(timeout=0.1)
                except Empty:
                    continue
                log.debug2("Yielding event %s", event)
                yield event
        finally:
            self.unregister_watch(api_version, kind, add_event, namespace=namespace)

    ## Dry Run Methods #########################################################

    def register_watch(
        self,
        api_version: str,
        kind: str,
        callback: Callable[[KubeEventType, dict], None],
        namespace: Optional[str] = None,
    ):
        """Register a callback for write events on a given api_version/kind.
        A namespace of None receives events from all namespaces.
        """
        watch_key = self._watch_key(api_version, kind, namespace)
        log.debug("Registering watch for %s", watch_key)
        with DRY_RUN_CLUSTER_LOCK:
            self._watches.setdefault(watch_key, []).append(callback)

    def unregister_watch(
        self,
        api_version: str,
        kind: str,
        callback: Callable[[KubeEventType, dict], None],
        namespace: Optional[str] = None,
    ):
        """Remove a previously registered callback"""
        watch_key = self._watch_key(api_version, kind, namespace)
        with DRY_RUN_CLUSTER_LOCK:
            callbacks = self._watches.get(watch_key, [])
            if callback in callbacks:
                callbacks.remove(callback)

    ## Implementation Details ##################################################

    @staticmethod
    def _watch_key(api_version="", kind="", namespace=None):
        return ":".join([api_version or "", kind or "", namespace or ""])

    @staticmethod
    def _identifiers(resource: dict) -> Tuple[str, str, str, Optional[str]]:
        metadata = resource.get("metadata", {})
        return (
            resource.get("kind"),
            resource.get("apiVersion"),
            metadata.get("name"),
            metadata.get("namespace"),
        )

    def _lookup(self, kind, api_version, name, namespace) -> Optional[dict]:
        return (
            self._cluster_content.get(namespace, {})
            .get(kind, {})
            .get(api_version, {})
            .get(name)
        )

    def _fetch(self, kind, api_version, name, namespace) -> dict:
        current = self._lookup(kind, api_version, name, namespace)
        if current is None:
            raise NotFoundError(f"{kind}/{name} not found in namespace {namespace}")
        return current

    @staticmethod
    def _check_resource_version(current: dict, desired: dict):
        desired_version = desired.get("metadata", {}).get("resourceVersion")
        current_version = current.get("metadata", {}).get("resourceVersion")
        if desired_version and desired_version != current_version:
            raise ConflictError(
                f"resourceVersion {desired_version} of "
                f"{desired.get('kind')}/{desired['metadata'].get('name')} "
                f"is out of date ({current_version})"
            )

    def _with_server_metadata(self, resource: dict) -> dict:
        metadata = resource.setdefault("metadata", {})
        if metadata.get("namespace") is None:
            metadata.pop("namespace", None)
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata.setdefault("creationTimestamp", datetime.now().isoformat())
        metadata["resourceVersion"] = str(next(self._resource_versions))
        return resource

    def _store(self, resource: dict):
        kind, api_version, name, namespace = self._identifiers(resource)
        (
            self._cluster_content.setdefault(namespace, {})
            .setdefault(kind, {})
            .setdefault(api_version, {})
        )[name] = resource

    def _write(self, current: dict, resource: dict, keep_metadata=False) -> dict:
        """Persist a new version of an existing object. The store owned
        metadata is carried over unless keep_metadata is set and an object in
        deletion without finalizers is removed.
        """
        metadata = resource.setdefault("metadata", {})
        for key in [] if keep_metadata else _SERVER_METADATA:
            metadata.pop(key, None)
            if key in current.get("metadata", {}):
                metadata[key] = current["metadata"][key]
        metadata["resourceVersion"] = str(next(self._resource_versions))

        kind, api_version, name, namespace = self._identifiers(current)
        if is_deleting(resource) and not get_finalizers(resource):
            log.debug2("Finalizers cleared, removing %s/%s", kind, name)
            self._delete_key(namespace, kind, api_version, name)
            self._notify(KubeEventType.DELETED, resource)
        else:
            self._store(resource)
            self._notify(KubeEventType.MODIFIED, resource)
        return copy.deepcopy(resource)

    def _notify(self, event_type: KubeEventType, resource: dict):
        kind, api_version, _, namespace = self._identifiers(resource)
        keys = {
            self._watch_key(api_version, kind, namespace),
            self._watch_key(api_version, kind),
        }
        for key in keys:
            for callback in list(self._watches.get(key, [])):
                log.debug3("Calling registered watch [%s] for [%s]", callback, key)
                callback(event_type, copy.deepcopy(resource))

    def _delete_key(self, namespace, kind, api_version, name):
        del self._cluster_content[namespace][kind][api_version][name]
        if not self._cluster_content[namespace][kind][api_version]:
            del self._cluster_content[namespace][kind][api_version]
        if not self._cluster_content[namespace][kind]:
            del self._cluster_content[namespace][kind]
        if not self._cluster_content[namespace]:
            del self._cluster_content[namespace]
