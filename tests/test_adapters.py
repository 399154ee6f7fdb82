"""
Tests for the scope adapters of packages and ObjectDeployments
"""

# Third Party
import pytest

# Local
from package_operator import constants
from package_operator.adapters import (
    ClusterObjectDeploymentAdapter,
    ClusterPackageAdapter,
    ObjectDeploymentAdapter,
    PackageAdapter,
)
from package_operator.test_helpers.helpers import (
    TEST_IMAGE,
    TEST_NAMESPACE,
    make_cluster_package,
    make_condition,
    make_package,
)


def test_package_accessors():
    package = PackageAdapter(make_package(config={"replicas": 2}))
    assert package.image == TEST_IMAGE
    assert package.config == {"replicas": 2}
    assert package.namespace == TEST_NAMESPACE
    assert not package.deleting
    assert str(package) == f"Package/{TEST_NAMESPACE}/test-package"


def test_cluster_package_has_no_namespace():
    manifest = make_cluster_package()
    manifest["metadata"]["namespace"] = "ignored"
    package = ClusterPackageAdapter(manifest)
    assert package.namespace is None
    assert str(package) == f"ClusterPackage/{constants.SELF_PACKAGE_NAME}"


@pytest.mark.parametrize(
    ["package", "od_type", "namespace"],
    [
        (PackageAdapter(make_package()), ObjectDeploymentAdapter, TEST_NAMESPACE),
        (ClusterPackageAdapter(make_cluster_package()), ClusterObjectDeploymentAdapter, None),
    ],
)
def test_new_object_deployment_matches_scope(package, od_type, namespace):
    object_deployment = package.new_object_deployment()
    assert isinstance(object_deployment, od_type)
    assert object_deployment.name == package.name
    assert object_deployment.namespace == namespace
    assert object_deployment.manifest["kind"] == od_type.KIND
    if namespace is None:
        assert "namespace" not in object_deployment.metadata


def test_update_phase_from_conditions():
    package = PackageAdapter(make_package())
    package.update_phase()
    assert package.phase == constants.PACKAGE_PHASE_UNPACKING
    package.status["conditions"] = [
        make_condition(constants.PACKAGE_UNPACKED, "True"),
        make_condition(constants.PACKAGE_AVAILABLE, "True"),
    ]
    package.update_phase()
    assert package.phase == constants.PACKAGE_PHASE_AVAILABLE


def test_selector_mirrored_to_template():
    object_deployment = ObjectDeploymentAdapter.new("od", TEST_NAMESPACE)
    object_deployment.selector = {"a": "b"}
    object_deployment.template_spec = {"phases": []}
    assert object_deployment.selector == {"a": "b"}
    assert object_deployment.spec["template"]["metadata"]["labels"] == {"a": "b"}
    assert object_deployment.template_spec == {"phases": []}


def test_copy_is_deep():
    package = PackageAdapter(make_package())
    copied = package.copy()
    copied.spec["image"] = "other"
    assert package.image == TEST_IMAGE
    assert isinstance(copied, PackageAdapter)


def test_get_conditions():
    """Make sure objects without a status report no conditions"""
    object_deployment = ClusterObjectDeploymentAdapter.new("od")
    assert object_deployment.get_conditions() == []
    available = make_condition(constants.PACKAGE_AVAILABLE, "True")
    object_deployment.status["conditions"] = [available]
    assert object_deployment.get_conditions() == [available]
