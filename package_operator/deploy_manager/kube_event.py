"""
Helper module to define shared types related to Kube Events
"""

# Standard
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Local
from ..managed_object import ManagedObject


class KubeEventType(Enum):
    """Enum for the kubernetes watch event types the operator acts on"""

    DELETED = "DELETED"
    MODIFIED = "MODIFIED"
    ADDED = "ADDED"


@dataclass
class KubeWatchEvent:
    """DataClass containing the type, resource, and timestamp of a
    particular event"""

    type: KubeEventType
    resource: ManagedObject
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_raw(cls, raw_event: dict) -> "KubeWatchEvent":
        """Build an event from the raw dict streamed by the watch api"""
        return cls(
            type=KubeEventType(raw_event["type"]),
            resource=ManagedObject(raw_event["object"]),
        )
