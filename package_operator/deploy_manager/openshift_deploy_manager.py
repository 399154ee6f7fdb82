"""
This DeployManager is responsible for delegating cluster operations to the
openshift library. It is the one that will be used when the operator is running
in the cluster or outside the cluster making live changes.
"""
# Standard
from typing import Dict, Iterator, List, Optional
import json

# Third Party
from kubernetes import client
from kubernetes.watch import Watch
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import (
    ConflictError as ApiConflictError,
    DynamicApiError,
    NotFoundError as ApiNotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from ..exceptions import (
    AlreadyExistsError,
    ClusterError,
    ConflictError,
    NoMatchError,
    NotFoundError,
)
from ..utils import selector_string
from .base import DeployManagerBase
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("OSFTD")

## Deploy Manager ##############################################################


# See this document for value reasonings
# https://github.com/kubernetes-client/python/blob/master/examples/watch/timeout-settings.md
SERVER_WATCH_TIMEOUT = 3600
CLIENT_WATCH_TIMEOUT = 30

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


class OpenshiftDeployManager(DeployManagerBase):
    """This DeployManager uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self):
        log.debug("Initializing openshift client")
        self._client = None

    @property
    def client(self):
        """Lazy property access to the client"""
        if self._client is None:
            self._client = self._setup_client()
        return self._client

    ## Interface ###############################################################

    def get(self, kind, api_version, name, namespace=None):
        resource_handle = self._get_resource_handle(kind, api_version)
        with self._translated_errors(f"get {kind}/{name}"):
            return resource_handle.get(name=name, namespace=namespace).to_dict()

    def list(self, kind, api_version, namespace=None, label_selector=None):
        resource_handle = self._get_resource_handle(kind, api_version)
        try:
            with self._translated_errors(f"list {kind}"):
                list_obj = resource_handle.get(
                    namespace=namespace,
                    label_selector=selector_string(label_selector),
                )
        except NotFoundError:
            log.debug(
                "No objects of kind [%s] found in namespace [%s]", kind, namespace
            )
            return []
        return list_obj.to_dict().get("items", [])

    @alog.logged_function(log.debug2)
    def create(self, resource_definition):
        kind, api_version, name, namespace = self._get_resource_identifiers(
            resource_definition
        )
        resource_handle = self._get_resource_handle(kind, api_version)
        with self._translated_errors(f"create {kind}/{name}"):
            return resource_handle.create(
                body=resource_definition, namespace=namespace
            ).to_dict()

    @alog.logged_function(log.debug2)
    def update(self, resource_definition):
        kind, api_version, name, namespace = self._get_resource_identifiers(
            resource_definition
        )
        resource_handle = self._get_resource_handle(kind, api_version)
        with self._translated_errors(f"update {kind}/{name}"):
            return resource_handle.replace(
                body=resource_definition, namespace=namespace
            ).to_dict()

    @alog.logged_function(log.debug2)
    def patch(self, kind, api_version, name, patch, namespace=None):
        resource_handle = self._get_resource_handle(kind, api_version)
        with self._translated_errors(f"patch {kind}/{name}"):
            return resource_handle.patch(
                body=patch,
                name=name,
                namespace=namespace,
                content_type=MERGE_PATCH_CONTENT_TYPE,
            ).to_dict()

    @alog.logged_function(log.debug2)
    def update_status(self, resource_definition):
        kind, api_version, name, namespace = self._get_resource_identifiers(
            resource_definition
        )
        resource_handle = self._get_resource_handle(kind, api_version)
        with self._translated_errors(f"update status of {kind}/{name}"):
            return resource_handle.status.replace(
                body=resource_definition, namespace=namespace
            ).to_dict()

    @alog.logged_function(log.debug2)
    def patch_status(self, kind, api_version, name, patch, namespace=None):
        resource_handle = self._get_resource_handle(kind, api_version)
        with self._translated_errors(f"patch status of {kind}/{name}"):
            return resource_handle.status.patch(
                body=patch,
                name=name,
                namespace=namespace,
                content_type=MERGE_PATCH_CONTENT_TYPE,
            ).to_dict()

    @alog.logged_function(log.debug2)
    def delete(self, kind, api_version, name, namespace=None):
        resource_handle = self._get_resource_handle(kind, api_version)
        with self._translated_errors(f"delete {kind}/{name}"):
            resource_handle.delete(name=name, namespace=namespace)

    def watch_objects(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: str,
        namespace: Optional[str] = None,
        label_selector: Optional[Dict[str, str]] = None,
        resource_version: Optional[str] = None,
        watch_manager: Optional[Watch] = None,
    ) -> Iterator[KubeWatchEvent]:
        watch_manager = watch_manager if watch_manager else Watch()
        resource_handle = self._get_resource_handle(kind, api_version)
        resource_version = resource_version if resource_version else 0

        while True:
            try:
                for event_obj in watch_manager.stream(
                    resource_handle.get,
                    resource_version=resource_version,
                    namespace=namespace,
                    label_selector=selector_string(label_selector),
                    serialize=False,
                    timeout_seconds=SERVER_WATCH_TIMEOUT,
                    _request_timeout=CLIENT_WATCH_TIMEOUT,
                ):
                    if event_obj.get("type") not in KubeEventType.__members__:
                        log.debug2("Skipping watch event %s", event_obj.get("type"))
                        continue
                    yield KubeWatchEvent.from_raw(event_obj)
            except client.exceptions.ApiException as exception:
                if exception.status == 410:
                    log.debug2(
                        "Resource age expired, restarting watch %s/%s",
                        kind,
                        api_version,
                    )
                    resource_version = None
                else:
                    log.info("Unknown ApiException received, re-raising")
                    raise
            except urllib3.exceptions.ReadTimeoutError:
                log.debug4("Watch Socket closed, restarting watch %s/%s", kind, api_version)
            except urllib3.exceptions.ProtocolError:
                log.debug2(
                    "Invalid Chunk from server, restarting watch %s/%s",
                    kind,
                    api_version,
                )

            # This is hidden attribute so probably not best to check
            if watch_manager._stop:  # pylint: disable=protected-access
                log.debug(
                    "Internal watch stopped. Stopping deploy manager watch for %s/%s",
                    kind,
                    api_version,
                )
                return

    ## Implementation Helpers ##################################################

    @staticmethod
    def _setup_client():
        """Create a DynamicClient that will work based on where the operator is
        running
        """
        # Try in-cluster config
        try:
            log.debug2("Running with in-cluster config")
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            api_client = kubernetes.client.ApiClient(kube_config)
            return DynamicClient(api_client)

        # Fall back to out-of-cluster config
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(self, kind: str, api_version: str) -> Resource:
        """Get the openshift resource handle for a specified kind and api_version"""
        try:
            return self.client.resources.get(kind=kind, api_version=api_version)
        except ResourceNotFoundError as err:
            raise NoMatchError(
                f"No resource of kind [{kind}] in [{api_version}]"
            ) from err
        except ResourceNotUniqueError as err:
            raise ClusterError(
                f"No unique resource of kind [{kind}] in [{api_version}]"
            ) from err

    @staticmethod
    def _get_resource_identifiers(resource_definition: dict) -> List[Optional[str]]:
        metadata = resource_definition.get("metadata", {})
        return [
            resource_definition.get("kind"),
            resource_definition.get("apiVersion"),
            metadata.get("name"),
            metadata.get("namespace"),
        ]

    @staticmethod
    def _translated_errors(operation: str):
        return _ApiErrorTranslator(operation)


class _ApiErrorTranslator:
    """Context manager that raises the typed cluster errors in place of the
    errors of the kubernetes client
    """

    def __init__(self, operation: str):
        self.operation = operation

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_value is None:
            return False
        message = f"Failed to {self.operation}: {exc_value}"
        if isinstance(exc_value, ApiNotFoundError):
            raise NotFoundError(message) from exc_value
        if isinstance(exc_value, ApiConflictError):
            if _api_error_reason(exc_value) == "AlreadyExists":
                raise AlreadyExistsError(message) from exc_value
            raise ConflictError(message) from exc_value
        if isinstance(
            exc_value,
            (DynamicApiError, client.exceptions.ApiException, urllib3.exceptions.HTTPError),
        ):
            log.debug("Cluster operation failed: %s", message)
            raise ClusterError(message) from exc_value
        return False


def _api_error_reason(err: DynamicApiError) -> Optional[str]:
    """Pull the status reason out of an api error body"""
    try:
        return json.loads(err.body).get("reason")
    except (TypeError, ValueError, AttributeError):
        return None
