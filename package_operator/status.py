"""
This module holds the common functionality used to represent the status of
packages and the objects generated for them

Packages report the following conditions:

* Unpacked: True once the bundle of the current image and config is deployed
* Progressing: Mirrors the rollout state of the owned ObjectDeployment
* Available: Mirrors the availability of the owned ObjectDeployment
* Invalid: True if the bundle content cannot be loaded

The aggregate phase in status.phase is recomputed from these conditions on
every reconcile.
"""

# Standard
from datetime import datetime, timezone
from typing import List, Optional

# Third Party
from deepdiff import DeepDiff

# First Party
import alog

# Local
from . import constants

log = alog.use_channel("STTUS")

## Public ######################################################################

# The key in the condition used for the timestamp
TIMESTAMP_KEY = "lastTransitionTime"


def get_condition(type_name: str, current_status: Optional[dict]) -> dict:
    """Extract the given condition type from a status object

    Args:
        type_name:  str
            The condition type to fetch
        current_status:  Optional[dict]
            The dict representation of the status of an object

    Returns:
        condition:  dict
            The condition object if found, empty dict otherwise
    """
    cond = [
        cond
        for cond in (current_status or {}).get("conditions") or []
        if cond.get("type") == type_name
    ]
    if cond:
        assert len(cond) == 1, f"Found multiple condition entries for {type_name}"
        return cond[0]
    return {}


def is_condition_true(type_name: str, current_status: Optional[dict]) -> bool:
    """Whether the given condition is present with status True"""
    return (
        get_condition(type_name, current_status).get("status")
        == constants.CONDITION_TRUE
    )


def is_condition_false(type_name: str, current_status: Optional[dict]) -> bool:
    """Whether the given condition is present with status False"""
    return (
        get_condition(type_name, current_status).get("status")
        == constants.CONDITION_FALSE
    )


def set_condition(  # pylint: disable=too-many-arguments
    current_status: dict,
    type_name: str,
    status: str,
    reason: str,
    message: str = "",
    observed_generation: Optional[int] = None,
):
    """Set a condition in the status in place. The transition timestamp is only
    moved when the condition status value changes.

    Args:
        current_status:  dict
            The status dict to update
        type_name:  str
            The condition type
        status:  str
            One of True, False or Unknown
        reason:  str
            CamelCase reason for the condition value
        message:  str
            Human readable explanation of the condition value
        observed_generation:  Optional[int]
            The metadata.generation of the object the condition was computed for
    """
    conditions: List[dict] = current_status.setdefault("conditions", [])
    previous = get_condition(type_name, current_status)
    condition = {
        "type": type_name,
        "status": status,
        "reason": reason,
        "message": message,
        TIMESTAMP_KEY: previous.get(TIMESTAMP_KEY)
        if previous.get("status") == status
        else None,
    }
    if not condition[TIMESTAMP_KEY]:
        condition[TIMESTAMP_KEY] = datetime.now(timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )
    if observed_generation is not None:
        condition["observedGeneration"] = observed_generation

    if previous:
        conditions[conditions.index(previous)] = condition
    else:
        conditions.append(condition)
    log.debug3("Set condition %s=%s (%s)", type_name, status, reason)


def remove_condition(current_status: dict, type_name: str) -> bool:
    """Remove a condition from the status in place, returning whether it was
    present
    """
    conditions = current_status.get("conditions") or []
    remaining = [cond for cond in conditions if cond.get("type") != type_name]
    if len(remaining) == len(conditions):
        return False
    current_status["conditions"] = remaining
    return True


def package_phase(current_status: Optional[dict]) -> str:
    """Compute the aggregate phase of a package from its conditions

    Args:
        current_status:  Optional[dict]
            The status of the package

    Returns:
        phase:  str
            Invalid, Unpacking, Progressing, Available or NotReady
    """
    if is_condition_true(constants.PACKAGE_INVALID, current_status):
        return constants.PACKAGE_PHASE_INVALID
    if not get_condition(constants.PACKAGE_UNPACKED, current_status):
        return constants.PACKAGE_PHASE_UNPACKING
    if is_condition_true(constants.PACKAGE_PROGRESSING, current_status):
        return constants.PACKAGE_PHASE_PROGRESSING
    if is_condition_true(constants.PACKAGE_AVAILABLE, current_status):
        return constants.PACKAGE_PHASE_AVAILABLE
    return constants.PACKAGE_PHASE_NOT_READY


def status_changed(current_status: dict, new_status: dict) -> bool:
    """Compare two status objects to determine if there is a meaningful change
    between the current status and the proposed new status. A meaningful change
    is defined as any change besides a timestamp.

    Args:
        current_status:  dict
            The raw status dict from the current object
        new_status:  dict
            The proposed new status

    Returns:
        status_changed:  bool
            True if there is a meaningful change between the current status and
            the new status
    """
    # Status objects must be dicts
    if not isinstance(current_status, dict) or not isinstance(new_status, dict):
        return True

    # Perform a deep diff, excluding timestamps
    return bool(
        DeepDiff(
            current_status,
            new_status,
            exclude_obj_callback=lambda _, path: path.endswith(f"{TIMESTAMP_KEY}']"),
        )
    )
