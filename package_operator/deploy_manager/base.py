"""
This defines the base class for all DeployManager types.
"""

# Standard
from typing import Dict, Iterator, List, Optional
import abc

# Local
from .kube_event import KubeWatchEvent


class DeployManagerBase(abc.ABC):
    """
    Base class for deploy managers which are responsible for all reads and
    writes against the cluster object store.

    Every operation raises a typed error on failure: NotFoundError,
    AlreadyExistsError, ConflictError or a generic ClusterError.
    """

    @abc.abstractmethod
    def get(
        self,
        kind: str,
        api_version: str,
        name: str,
        namespace: Optional[str] = None,
    ) -> dict:
        """Fetch a single object by name

        Args:
            kind:  str
                The kind of the object to fetch
            api_version:  str
                The api_version of the resource kind to fetch
            name:  str
                The name of the object to fetch
            namespace:  Optional[str]
                The namespace of the object or None for cluster-scoped objects

        Returns:
            current_state:  dict
                The dict representation of the object

        Raises:
            NotFoundError:  If the object does not exist
        """

    @abc.abstractmethod
    def list(
        self,
        kind: str,
        api_version: str,
        namespace: Optional[str] = None,
        label_selector: Optional[Dict[str, str]] = None,
    ) -> List[dict]:
        """List all objects of a kind that carry all of the given labels

        Args:
            kind:  str
                The kind of the objects to list
            api_version:  str
                The api_version of the resource kind to list
            namespace:  Optional[str]
                The namespace to list in or None for all namespaces
            label_selector:  Optional[Dict[str, str]]
                Labels which must all be present with the given values

        Returns:
            current_state:  List[dict]
                The matching objects. Empty if there are none.
        """

    @abc.abstractmethod
    def create(self, resource_definition: dict) -> dict:
        """Create a new object

        Raises:
            AlreadyExistsError:  If an object with the same name exists
        """

    @abc.abstractmethod
    def update(self, resource_definition: dict) -> dict:
        """Replace an existing object. If the definition carries a
        resourceVersion, the write is rejected when it is out of date.

        Raises:
            NotFoundError:  If the object does not exist
            ConflictError:  If the resourceVersion is out of date
        """

    @abc.abstractmethod
    def patch(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: str,
        name: str,
        patch: dict,
        namespace: Optional[str] = None,
    ) -> dict:
        """Apply a JSON merge patch to an existing object

        Raises:
            NotFoundError:  If the object does not exist
        """

    @abc.abstractmethod
    def update_status(self, resource_definition: dict) -> dict:
        """Replace the status subresource of an existing object

        Raises:
            NotFoundError:  If the object does not exist
            ConflictError:  If the resourceVersion is out of date
        """

    @abc.abstractmethod
    def patch_status(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: str,
        name: str,
        patch: dict,
        namespace: Optional[str] = None,
    ) -> dict:
        """Apply a JSON merge patch to the status subresource of an object. The
        patch is the full object shape, e.g. {"status": {...}}.

        Raises:
            NotFoundError:  If the object does not exist
        """

    @abc.abstractmethod
    def delete(
        self,
        kind: str,
        api_version: str,
        name: str,
        namespace: Optional[str] = None,
    ):
        """Request deletion of an object. An object with finalizers is only
        marked for deletion and is removed once its finalizers are cleared.

        Raises:
            NotFoundError:  If the object does not exist
        """

    @abc.abstractmethod
    def watch_objects(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: str,
        namespace: Optional[str] = None,
        label_selector: Optional[Dict[str, str]] = None,
        resource_version: Optional[str] = None,
        watch_manager=None,
    ) -> Iterator[KubeWatchEvent]:
        """The watch_objects function listens for changes in the cluster and
        returns a stream of KubeWatchEvents

        Args:
            kind:  str
                The kind of the objects to watch
            api_version:  str
                The api_version of the resource kind to watch
            namespace:  Optional[str]
                The namespace to watch or None for all namespaces
            label_selector:  Optional[Dict[str, str]]
                Labels which must all be present with the given values
            resource_version:  Optional[str]
                The resource_version the events must be newer than
            watch_manager:  Optional[kubernetes.watch.Watch]
                Handle used to stop the stream from another thread

        Returns:
            watch_stream: Iterator[KubeWatchEvent]
                A stream of KubeWatchEvents generated while watching
        """
