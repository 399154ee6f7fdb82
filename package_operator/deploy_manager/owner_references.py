"""
This module holds common functionality to manage the controller ownerReference
that ties generated objects to the package that owns them
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from ..exceptions import AdoptionError

log = alog.use_channel("OWNRF")


def make_owner_reference(owner: dict) -> dict:
    """Make a controller owner reference for the given owner instance

    Args:
        owner:  dict
            The full manifest for the owning resource

    Returns:
        owner_reference:  dict
            The dict entry for the `metadata.ownerReferences` entry of the owned
            object
    """
    metadata = owner.get("metadata", {})
    return {
        "apiVersion": owner.get("apiVersion"),
        "kind": owner.get("kind"),
        "name": metadata.get("name"),
        "uid": metadata.get("uid"),
        "controller": True,
        # The owner will not be deleted until this object completes its
        # deletion
        "blockOwnerDeletion": True,
    }


def get_controller_reference(obj: dict) -> Optional[dict]:
    """Get the ownerReference marked as controller, if any"""
    for ref in obj.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None


def is_controlled_by(obj: dict, owner: dict) -> bool:
    """Whether the object's controller reference points at the owner"""
    ref = get_controller_reference(obj)
    return bool(ref) and ref.get("uid") == owner.get("metadata", {}).get("uid")


def set_controller_reference(obj: dict, owner: dict, force_adoption: bool = False):
    """Set the owner as controller of the object in place

    An object that already has a different controller is never taken over.
    An existing object without any controller is only claimed when adoption
    is forced.

    Args:
        obj:  dict
            The manifest of the owned object. If it carries a uid, it is
            treated as an object that already exists in the cluster.
        owner:  dict
            The manifest of the owner
        force_adoption:  bool
            Allow claiming existing objects that have no controller
    """
    if is_controlled_by(obj, owner):
        log.debug3("Object already controlled by owner")
        return

    name = obj.get("metadata", {}).get("name")
    current = get_controller_reference(obj)
    if current is not None:
        raise AdoptionError(
            f"{obj.get('kind')}/{name} is controlled by "
            f"{current.get('kind')}/{current.get('name')}"
        )

    exists = bool(obj.get("metadata", {}).get("uid"))
    if exists and not force_adoption:
        raise AdoptionError(
            f"{obj.get('kind')}/{name} already exists and is not owned by "
            f"{owner.get('kind')}/{owner.get('metadata', {}).get('name')}"
        )
    if exists:
        log.info("Adopting existing %s/%s", obj.get("kind"), name)

    owner_refs = [
        ref
        for ref in obj.setdefault("metadata", {}).get("ownerReferences") or []
        if ref.get("uid") != owner.get("metadata", {}).get("uid")
    ]
    owner_refs.append(make_owner_reference(owner))
    obj["metadata"]["ownerReferences"] = owner_refs
