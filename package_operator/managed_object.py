"""
Helper object to represent a kubernetes object seen by the operator
"""
# Standard
from typing import List
import uuid


class ManagedObject:  # pylint: disable=too-many-instance-attributes
    """Basic struct to represent a kubernetes object read from the cluster"""

    def __init__(self, definition: dict):
        self.kind = definition.get("kind")
        self.metadata = definition.get("metadata", {})
        self.name = self.metadata.get("name")
        self.namespace = self.metadata.get("namespace")
        self.uid = self.metadata.get("uid", str(uuid.uuid4()))
        self.resource_version = self.metadata.get("resourceVersion")
        self.api_version = definition.get("apiVersion")
        self.definition = definition

        assert self.kind is not None, "No kind found"
        assert self.api_version is not None, "No apiVersion found"
        assert self.name is not None, "No name found"

    @property
    def owner_references(self) -> List[dict]:
        """The ownerReferences of the object"""
        return self.metadata.get("ownerReferences") or []

    def get(self, *args, **kwargs):
        """Pass get calls to the objects definition"""
        return self.definition.get(*args, **kwargs)

    def __str__(self):
        if self.namespace:
            return f"{self.api_version}/{self.kind}/{self.namespace}/{self.name}"
        return f"{self.api_version}/{self.kind}/{self.name}"

    def __repr__(self):
        return str(self)

    def __hash__(self):
        """Hash on the cluster uid when present so the identity of the object
        does not depend on its content
        """
        return hash(self.metadata.get("uid", str(self)))

    def __eq__(self, other):
        return hash(self) == hash(other)
