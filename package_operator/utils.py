"""
Common utilities shared across the operator
"""

# Standard
from typing import Any, Dict, List, Optional
import copy
import hashlib
import json

# First Party
import alog

# Local
from . import constants

log = alog.use_channel("OPUTL")

# Sentinel for missing dict values
__MISSING__ = "__MISSING__"

## Dicts #######################################################################


def merge_configs(base, overrides) -> dict:
    """Helper to perform a deep merge of the overrides into the base. The merge
    is done in place, but the resulting dict is also returned for convenience.

    If both the base and overrides have a key and the type of the key for both
    is a dict, recursively merge, otherwise set the base value to the override
    value.

    Args:
        base:  dict
            The base config that will be updated with the overrides
        overrides:  dict
            The override config

    Returns:
        merged:  dict
            The merged results of overrides merged onto base
    """
    for key, value in overrides.items():
        if (
            key not in base
            or not isinstance(base[key], dict)
            or not isinstance(value, dict)
        ):
            base[key] = value
        else:
            base[key] = merge_configs(base[key], value)

    return base


def merge_patch(target: Any, patch: Any) -> Any:
    """Apply a JSON merge patch (RFC 7386) to the target and return the result.
    The target is not modified.

    Args:
        target:  Any
            The document to patch
        patch:  Any
            The merge patch. A None value in a dict removes the key.

    Returns:
        patched:  Any
            The patched copy of the target
    """
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_patch(result.get(key), value)
    return result


def nested_set(dct: dict, key: str, val: Any):
    """Helper to set values in a dict using 'foo.bar' key notation

    Args:
        dct:  dict
            The dict into which the key will be set
        key:  str
            Key that may contain '.' notation indicating dict nesting
        val:  Any
            The value to place at the nested key
    """
    parts = key.split(constants.NESTED_DICT_DELIM)
    for i, part in enumerate(parts[:-1]):
        dct = dct.setdefault(part, {})
        if not isinstance(dct, dict):
            raise TypeError(
                "Intermediate key {} is not a dict".format(  # pylint: disable=consider-using-f-string
                    constants.NESTED_DICT_DELIM.join(parts[:i])
                )
            )
    dct[parts[-1]] = val


def nested_get(dct: dict, key: str, dflt=None) -> Any:
    """Helper to get values from a dict using 'foo.bar' key notation

    Args:
        dct:  dict
            The dict to read from
        key:  str
            Key that may contain '.' notation indicating dict nesting

    Returns:
        val:  Any
            Whatever is found at the given key or dflt if the key is not found.
            This includes missing intermediate dicts.
    """
    parts = key.split(constants.NESTED_DICT_DELIM)
    for i, part in enumerate(parts[:-1]):
        dct = dct.get(part, __MISSING__)
        if dct is __MISSING__ or dct is None:
            return dflt
        if not isinstance(dct, dict):
            raise TypeError(
                "Intermediate key {} is not a dict".format(  # pylint: disable=consider-using-f-string
                    constants.NESTED_DICT_DELIM.join(parts[:i])
                )
            )
    return dct.get(parts[-1], dflt)


def stable_hash(*values: Any) -> str:
    """Compute a stable hex digest over json-serializable values"""
    digest = hashlib.sha256()
    for value in values:
        digest.update(json.dumps(value, sort_keys=True, default=str).encode("utf-8"))
    return digest.hexdigest()[:16]


## Manifests ###################################################################


def split_api_version(api_version: str) -> List[str]:
    """Split an apiVersion into [group, version]. The core group is ''."""
    if "/" in api_version:
        return api_version.split("/", 1)
    return ["", api_version]


def get_finalizers(manifest: dict) -> List[str]:
    """Get the finalizer list of a manifest"""
    return manifest.get("metadata", {}).get("finalizers") or []


def remove_finalizer(manifest: dict, finalizer: str) -> bool:
    """Remove a finalizer from the manifest in place

    Args:
        manifest:  dict
            The manifest to update
        finalizer:  str
            The finalizer to remove

    Returns:
        changed:  bool
            Whether or not the finalizer was present
    """
    finalizers = get_finalizers(manifest)
    if finalizer not in finalizers:
        return False
    log.debug("Removing finalizer: %s", finalizer)
    manifest["metadata"]["finalizers"] = [
        entry for entry in finalizers if entry != finalizer
    ]
    return True


def is_deleting(manifest: dict) -> bool:
    """Whether or not the object is in the process of being deleted"""
    return bool(manifest.get("metadata", {}).get("deletionTimestamp"))


def labels_match(manifest: dict, label_selector: Optional[Dict[str, str]]) -> bool:
    """Check whether all selector labels are present with equal values"""
    if not label_selector:
        return True
    labels = manifest.get("metadata", {}).get("labels") or {}
    return all(labels.get(key) == val for key, val in label_selector.items())


def selector_string(label_selector: Optional[Dict[str, str]]) -> Optional[str]:
    """Convert an equality label selector dict to its string form"""
    if not label_selector:
        return None
    return ",".join(f"{key}={val}" for key, val in sorted(label_selector.items()))
