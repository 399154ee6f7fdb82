"""
Tests for the forced cleanup of a stuck self-managed installation
"""

# Third Party
import pytest

# Local
from package_operator import constants
from package_operator.bootstrap import (
    delete_and_verify,
    forced_cleanup,
    needs_forced_cleanup,
)
from package_operator.exceptions import ClusterError
from package_operator.test_helpers.helpers import (
    MockDeployManager,
    make_cluster_package,
    make_deployment,
    make_object_set,
)

NAMESPACE = "package-operator-system"

## needs_forced_cleanup ########################################################


@pytest.mark.parametrize(
    ["deployment", "expected"],
    [
        (None, True),
        (make_deployment(available="False"), True),
        (make_deployment(available="True"), False),
        (make_deployment(), False),
    ],
)
def test_needs_forced_cleanup(deployment, expected):
    dm = MockDeployManager(resources=[deployment] if deployment else [])
    assert needs_forced_cleanup(dm, NAMESPACE) is expected


def test_needs_forced_cleanup_other_namespace():
    dm = MockDeployManager(resources=[make_deployment(available="True")])
    assert needs_forced_cleanup(dm, "elsewhere")


def test_needs_forced_cleanup_error_propagates():
    dm = MockDeployManager(get_fail=ClusterError("unreachable"))
    with pytest.raises(ClusterError):
        needs_forced_cleanup(dm, NAMESPACE)


## delete_and_verify ###########################################################


def test_delete_missing_object_is_noop():
    dm = MockDeployManager()
    delete_and_verify(dm, constants.CLUSTER_PACKAGE_KIND, "missing")
    dm.update.assert_not_called()


def test_delete_strips_finalizers():
    """Make sure finalizers are released so the object goes away"""
    dm = MockDeployManager(
        resources=[make_cluster_package(finalizers=["a/one", "b/two"])]
    )
    delete_and_verify(dm, constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME)
    assert not dm.has_obj(constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME)
    dm.update.assert_called_once()
    assert dm.update.call_args[0][0]["metadata"]["finalizers"] == []


def test_delete_without_finalizers_skips_update():
    dm = MockDeployManager(resources=[make_cluster_package()])
    delete_and_verify(dm, constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME)
    assert not dm.has_obj(constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME)
    dm.update.assert_not_called()


def test_delete_object_that_stays_raises():
    """Make sure an object still present after deletion is reported"""
    lingering = make_cluster_package()
    dm = MockDeployManager(resources=[make_cluster_package()], get_fail=lambda *_: lingering)
    with pytest.raises(ClusterError, match="is gone"):
        delete_and_verify(
            dm, constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME
        )


def test_delete_error_propagates():
    dm = MockDeployManager(
        resources=[make_cluster_package()], delete_fail=ClusterError("forbidden")
    )
    with pytest.raises(ClusterError, match="deleting stuck"):
        delete_and_verify(
            dm, constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME
        )


## forced_cleanup ##############################################################


def stuck_installation():
    """The package of a stuck installation with its generated objects and an
    ObjectSet of another instance
    """
    object_deployment = {
        "apiVersion": constants.API_VERSION,
        "kind": constants.CLUSTER_OBJECT_DEPLOYMENT_KIND,
        "metadata": {
            "name": constants.SELF_PACKAGE_NAME,
            "labels": {
                constants.INSTANCE_LABEL: constants.SELF_PACKAGE_NAME,
                constants.PACKAGE_LABEL: constants.SELF_PACKAGE_NAME,
            },
            "finalizers": ["a/one"],
        },
    }
    return [
        make_cluster_package(finalizers=[constants.LOADER_JOB_FINALIZER]),
        object_deployment,
        make_object_set("rev-1", revision=1),
        make_object_set("rev-2", revision=2, previous=["rev-1"]),
        make_object_set("unrelated", instance="other"),
    ]


def test_forced_cleanup_removes_generated_objects():
    """Make sure the package and all its generated objects are removed while
    objects of other instances stay
    """
    dm = MockDeployManager(resources=stuck_installation())
    forced_cleanup(dm)

    assert not dm.has_obj(constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME)
    assert not dm.has_obj(
        constants.CLUSTER_OBJECT_DEPLOYMENT_KIND, constants.SELF_PACKAGE_NAME
    )
    assert not dm.has_obj(constants.CLUSTER_OBJECT_SET_KIND, "rev-1")
    assert not dm.has_obj(constants.CLUSTER_OBJECT_SET_KIND, "rev-2")
    assert dm.has_obj(constants.CLUSTER_OBJECT_SET_KIND, "unrelated")


def test_forced_cleanup_order():
    """Make sure the package goes first, then its ObjectDeployments and then
    its ObjectSets
    """
    dm = MockDeployManager(resources=stuck_installation())
    forced_cleanup(dm)

    deleted = [(call.args[0], call.args[2]) for call in dm.delete.call_args_list]
    assert deleted[:2] == [
        (constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME),
        (constants.CLUSTER_OBJECT_DEPLOYMENT_KIND, constants.SELF_PACKAGE_NAME),
    ]
    assert sorted(deleted[2:]) == [
        (constants.CLUSTER_OBJECT_SET_KIND, "rev-1"),
        (constants.CLUSTER_OBJECT_SET_KIND, "rev-2"),
    ]


def test_forced_cleanup_is_idempotent():
    dm = MockDeployManager()
    forced_cleanup(dm)
    forced_cleanup(dm)
    dm.update.assert_not_called()


def test_forced_cleanup_list_error_aborts():
    dm = MockDeployManager(
        resources=[make_cluster_package()], list_fail=ClusterError("no list")
    )
    with pytest.raises(ClusterError, match="listing stuck"):
        forced_cleanup(dm)
    assert not dm.has_obj(constants.CLUSTER_PACKAGE_KIND, constants.SELF_PACKAGE_NAME)
