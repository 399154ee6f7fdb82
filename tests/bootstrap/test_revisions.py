"""
Tests for the repair of missing ObjectSet revision numbers
"""

# Third Party
import pytest

# Local
from package_operator import constants
from package_operator.bootstrap import (
    compute_revision_repairs,
    fix_missing_revision_numbers,
)
from package_operator.exceptions import ClusterError
from package_operator.test_helpers.helpers import MockDeployManager, make_object_set

## compute_revision_repairs ####################################################


def test_stuck_set_gets_next_revision():
    """Make sure a pending set without a revision supersedes its previous one"""
    repairs = compute_revision_repairs(
        [
            make_object_set("a", revision=1, phase=constants.OBJECT_SET_PHASE_ARCHIVED),
            make_object_set("b", previous=["a"]),
        ]
    )
    assert repairs == {"b": 2}


def test_highest_previous_revision_wins():
    repairs = compute_revision_repairs(
        [
            make_object_set("a", revision=3),
            make_object_set("b", revision=7),
            make_object_set("c", previous=["a", "b"]),
        ]
    )
    assert repairs == {"c": 8}


def test_unknown_previous_counts_as_zero():
    repairs = compute_revision_repairs([make_object_set("b", previous=["gone"])])
    assert repairs == {"b": 1}


@pytest.mark.parametrize(
    "object_set",
    [
        make_object_set("numbered", revision=2, previous=["a"]),
        make_object_set("first", previous=[]),
        make_object_set(
            "available", previous=["a"], phase=constants.OBJECT_SET_PHASE_AVAILABLE
        ),
    ],
)
def test_healthy_sets_untouched(object_set):
    assert compute_revision_repairs([make_object_set("a", revision=1), object_set]) == {}


@pytest.mark.parametrize("reverse", [False, True])
def test_chained_stuck_sets_numbered_in_order(reverse):
    """Make sure a stuck set whose predecessor is also stuck is numbered
    after the repaired predecessor regardless of listing order
    """
    object_sets = [
        make_object_set("a", revision=1),
        make_object_set("b", previous=["a"]),
        make_object_set("c", previous=["b"]),
    ]
    if reverse:
        object_sets.reverse()
    repairs = compute_revision_repairs(object_sets)
    assert repairs == {"b": 2, "c": 3}


def test_stuck_sets_referencing_each_other():
    """Make sure a reference loop between stuck sets terminates"""
    repairs = compute_revision_repairs(
        [
            make_object_set("a", previous=["b"]),
            make_object_set("b", previous=["a"]),
        ]
    )
    assert repairs == {"a": 2, "b": 1}


## fix_missing_revision_numbers ################################################


def test_fix_patches_only_stuck_sets():
    """Make sure only the stuck set of the instance gets its status patched"""
    dm = MockDeployManager(
        resources=[
            make_object_set("a", revision=1),
            make_object_set("b", previous=["a"]),
            make_object_set("other", previous=["a"], instance="someone-else"),
        ]
    )
    repairs = fix_missing_revision_numbers(dm)
    assert repairs == {"b": 2}
    dm.patch_status.assert_called_once()
    assert dm.get_obj(constants.CLUSTER_OBJECT_SET_KIND, "b")["status"]["revision"] == 2
    assert dm.get_obj(constants.CLUSTER_OBJECT_SET_KIND, "a")["status"]["revision"] == 1
    assert (
        dm.get_obj(constants.CLUSTER_OBJECT_SET_KIND, "other")["status"]["revision"]
        == 0
    )


def test_fix_nothing_to_do():
    dm = MockDeployManager(resources=[make_object_set("a", revision=1)])
    assert fix_missing_revision_numbers(dm) == {}
    dm.patch_status.assert_not_called()


def test_fix_list_error_propagates():
    dm = MockDeployManager(list_fail=ClusterError("no list for you"))
    with pytest.raises(ClusterError, match="list"):
        fix_missing_revision_numbers(dm)


def test_fix_patch_error_propagates():
    dm = MockDeployManager(
        resources=[make_object_set("a", revision=1), make_object_set("b", previous=["a"])],
        patch_status_fail=ClusterError("no patch for you"),
    )
    with pytest.raises(ClusterError, match="missing revision number of b"):
        fix_missing_revision_numbers(dm)
