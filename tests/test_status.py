"""
Test the construction and management of status objects
"""

# Standard
import copy

# Local
from package_operator import constants, status
from package_operator.test_helpers.helpers import make_condition

## set_condition ###############################################################


def test_set_condition_adds_and_replaces():
    """Make sure a condition is appended once and then replaced in place"""
    current = {}
    status.set_condition(current, "Unpacked", "True", "UnpackSuccess", "done", 3)
    assert len(current["conditions"]) == 1
    cond = current["conditions"][0]
    assert cond["status"] == "True"
    assert cond["observedGeneration"] == 3
    assert status.TIMESTAMP_KEY in cond

    status.set_condition(current, "Unpacked", "False", "Failed")
    assert len(current["conditions"]) == 1
    assert current["conditions"][0]["reason"] == "Failed"


def test_set_condition_keeps_timestamp_for_same_status():
    """The transition time only moves when the status value changes"""
    current = {
        "conditions": [
            dict(make_condition("Available", "True"), lastTransitionTime="then")
        ]
    }
    status.set_condition(current, "Available", "True", "StillTrue")
    assert current["conditions"][0]["lastTransitionTime"] == "then"
    status.set_condition(current, "Available", "False", "Broken")
    assert current["conditions"][0]["lastTransitionTime"] != "then"


def test_remove_condition():
    current = {"conditions": [make_condition("Invalid", "True")]}
    assert status.remove_condition(current, "Invalid")
    assert current["conditions"] == []
    assert not status.remove_condition(current, "Invalid")


def test_condition_predicates():
    current = {
        "conditions": [
            make_condition("Available", "True"),
            make_condition("Progressing", "False"),
        ]
    }
    assert status.is_condition_true("Available", current)
    assert status.is_condition_false("Progressing", current)
    assert not status.is_condition_false("Available", current)
    assert not status.is_condition_true("Missing", current)
    assert not status.is_condition_false("Missing", None)


## package_phase ###############################################################


def test_package_phase_projection():
    """Make sure the phase is derived with the right precedence"""
    assert status.package_phase({}) == constants.PACKAGE_PHASE_UNPACKING

    unpacked = make_condition(constants.PACKAGE_UNPACKED, "True")
    assert (
        status.package_phase({"conditions": [unpacked]})
        == constants.PACKAGE_PHASE_NOT_READY
    )
    assert (
        status.package_phase(
            {
                "conditions": [
                    unpacked,
                    make_condition(constants.PACKAGE_AVAILABLE, "True"),
                ]
            }
        )
        == constants.PACKAGE_PHASE_AVAILABLE
    )
    assert (
        status.package_phase(
            {
                "conditions": [
                    unpacked,
                    make_condition(constants.PACKAGE_AVAILABLE, "True"),
                    make_condition(constants.PACKAGE_PROGRESSING, "True"),
                ]
            }
        )
        == constants.PACKAGE_PHASE_PROGRESSING
    )
    assert (
        status.package_phase(
            {
                "conditions": [
                    make_condition(constants.PACKAGE_INVALID, "True"),
                    make_condition(constants.PACKAGE_AVAILABLE, "True"),
                ]
            }
        )
        == constants.PACKAGE_PHASE_INVALID
    )


## status_changed ##############################################################


def test_status_changed_ignores_timestamps():
    """Make sure that only the timestamp changing does not count as a change"""
    current = {}
    status.set_condition(current, "Available", "True", "Ok")
    new = copy.deepcopy(current)
    new["conditions"][0][status.TIMESTAMP_KEY] = "later"
    assert not status.status_changed(current, new)

    new["conditions"][0]["reason"] = "Changed"
    assert status.status_changed(current, new)


def test_status_changed_non_dict():
    assert status.status_changed(None, {})
