"""
Scope adapters for the package operator kinds. Packages and ObjectDeployments
exist in a namespaced and a cluster-scoped variant with the same structure.
The controllers are written once against the generic accessors here and the
variant only decides kinds and scoping.
"""

# Standard
from typing import List, Optional, Type
import copy

# First Party
import alog

# Local
from . import constants
from .status import package_phase
from .utils import get_finalizers, is_deleting

log = alog.use_channel("ADPTR")


## Generic Object ##############################################################


class _GenericObject:
    """Shared accessors over the manifest of a kubernetes object"""

    KIND = None
    API_VERSION = constants.API_VERSION
    NAMESPACED = True

    def __init__(self, manifest: dict):
        self._manifest = manifest

    @classmethod
    def new(cls, name: str, namespace: Optional[str] = None):
        """Create an empty object of this variant"""
        metadata = {"name": name}
        if cls.NAMESPACED:
            metadata["namespace"] = namespace
        return cls(
            {
                "apiVersion": cls.API_VERSION,
                "kind": cls.KIND,
                "metadata": metadata,
                "spec": {},
            }
        )

    ## Properties ##############################################################

    @property
    def manifest(self) -> dict:
        """The underlying client object"""
        return self._manifest

    @manifest.setter
    def manifest(self, manifest: dict):
        self._manifest = manifest

    @property
    def metadata(self) -> dict:
        return self._manifest.setdefault("metadata", {})

    @property
    def name(self) -> str:
        return self.metadata.get("name")

    @property
    def namespace(self) -> Optional[str]:
        return self.metadata.get("namespace") if self.NAMESPACED else None

    @property
    def uid(self) -> Optional[str]:
        return self.metadata.get("uid")

    @property
    def labels(self) -> dict:
        return self.metadata.setdefault("labels", {})

    @property
    def finalizers(self) -> List[str]:
        return get_finalizers(self._manifest)

    @property
    def generation(self) -> Optional[int]:
        return self.metadata.get("generation")

    @property
    def deleting(self) -> bool:
        return is_deleting(self._manifest)

    @property
    def spec(self) -> dict:
        return self._manifest.setdefault("spec", {})

    @property
    def status(self) -> dict:
        return self._manifest.setdefault("status", {})

    def get_conditions(self) -> List[dict]:
        """The condition list of the object"""
        return self.status.get("conditions") or []

    def copy(self):
        """Deep copy of this object in the same variant"""
        return type(self)(copy.deepcopy(self._manifest))

    def __str__(self):
        if self.namespace:
            return f"{self.KIND}/{self.namespace}/{self.name}"
        return f"{self.KIND}/{self.name}"


## Packages ####################################################################


class GenericPackage(_GenericObject):
    """Accessor capability shared by Package and ClusterPackage"""

    OBJECT_DEPLOYMENT_TYPE: Type["GenericObjectDeployment"] = None

    @property
    def image(self) -> Optional[str]:
        return self.spec.get("image")

    @property
    def config(self) -> Optional[dict]:
        return self.spec.get("config")

    @property
    def unpacked_hash(self) -> Optional[str]:
        return self.status.get("unpackedHash")

    @unpacked_hash.setter
    def unpacked_hash(self, value: str):
        self.status["unpackedHash"] = value

    @property
    def phase(self) -> Optional[str]:
        return self.status.get("phase")

    def update_phase(self):
        """Recompute status.phase from the current conditions"""
        phase = package_phase(self.status)
        if phase != self.phase:
            log.debug2("Phase of %s: %s -> %s", self, self.phase, phase)
        self.status["phase"] = phase

    def new_object_deployment(self) -> "GenericObjectDeployment":
        """An empty ObjectDeployment of the matching variant for this package"""
        return self.OBJECT_DEPLOYMENT_TYPE.new(self.name, self.namespace)


## ObjectDeployments ###########################################################


class GenericObjectDeployment(_GenericObject):
    """Accessor capability shared by ObjectDeployment and
    ClusterObjectDeployment
    """

    @property
    def template_spec(self) -> dict:
        return self.spec.get("template", {}).get("spec", {})

    @template_spec.setter
    def template_spec(self, value: dict):
        self.spec.setdefault("template", {})["spec"] = value

    @property
    def selector(self) -> dict:
        return self.spec.get("selector", {}).get("matchLabels", {})

    @selector.setter
    def selector(self, match_labels: dict):
        self.spec["selector"] = {"matchLabels": dict(match_labels)}
        self.spec.setdefault("template", {}).setdefault("metadata", {})[
            "labels"
        ] = dict(match_labels)


class ObjectDeploymentAdapter(GenericObjectDeployment):
    KIND = constants.OBJECT_DEPLOYMENT_KIND
    NAMESPACED = True


class ClusterObjectDeploymentAdapter(GenericObjectDeployment):
    KIND = constants.CLUSTER_OBJECT_DEPLOYMENT_KIND
    NAMESPACED = False


class PackageAdapter(GenericPackage):
    KIND = constants.PACKAGE_KIND
    NAMESPACED = True
    OBJECT_DEPLOYMENT_TYPE = ObjectDeploymentAdapter


class ClusterPackageAdapter(GenericPackage):
    KIND = constants.CLUSTER_PACKAGE_KIND
    NAMESPACED = False
    OBJECT_DEPLOYMENT_TYPE = ClusterObjectDeploymentAdapter
