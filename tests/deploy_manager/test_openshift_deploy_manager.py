"""
Tests for the error translation of the OpenshiftDeployManager
"""

# Standard
from unittest import mock

# Third Party
from openshift.dynamic.exceptions import ResourceNotFoundError, ResourceNotUniqueError
import pytest

# Local
from package_operator import constants
from package_operator.bootstrap import Bootstrapper, BootstrapState
from package_operator.context import RunContext
from package_operator.deploy_manager import OpenshiftDeployManager
from package_operator.exceptions import ClusterError, NoMatchError, NotFoundError
from package_operator.test_helpers.helpers import make_bundle_files

## Helpers #####################################################################


def make_deploy_manager(unserved_kinds=(), ambiguous_kinds=()):
    """Create an OpenshiftDeployManager on a mocked client whose discovery
    does not know the given kinds
    """
    handle = mock.Mock()

    def get_resource(kind, api_version):
        if kind in unserved_kinds:
            raise ResourceNotFoundError(f"No matches found for {kind}")
        if kind in ambiguous_kinds:
            raise ResourceNotUniqueError(f"Multiple matches found for {kind}")
        return handle

    dm = OpenshiftDeployManager()
    dm._client = mock.Mock()  # pylint: disable=protected-access
    dm.client.resources.get.side_effect = get_resource
    return dm, handle


## Tests #######################################################################


def test_unserved_kind_is_no_match():
    dm, _ = make_deploy_manager(unserved_kinds=[constants.CLUSTER_PACKAGE_KIND])
    with pytest.raises(NoMatchError):
        dm.get(
            constants.CLUSTER_PACKAGE_KIND,
            constants.API_VERSION,
            constants.SELF_PACKAGE_NAME,
        )


def test_unserved_kind_is_not_found():
    """Make sure callers handling missing objects also handle unserved kinds"""
    dm, _ = make_deploy_manager(unserved_kinds=[constants.PACKAGE_KIND])
    with pytest.raises(NotFoundError):
        dm.delete(constants.PACKAGE_KIND, constants.API_VERSION, "pkg", "default")


def test_ambiguous_kind_is_cluster_error():
    dm, _ = make_deploy_manager(ambiguous_kinds=[constants.PACKAGE_KIND])
    with pytest.raises(ClusterError) as err_info:
        dm.get(constants.PACKAGE_KIND, constants.API_VERSION, "pkg", "default")
    assert not isinstance(err_info.value, NotFoundError)


def test_served_kind_passes_through():
    dm, handle = make_deploy_manager()
    handle.get.return_value.to_dict.return_value = {"metadata": {"name": "pkg"}}
    assert dm.get(constants.PACKAGE_KIND, constants.API_VERSION, "pkg", "default") == {
        "metadata": {"name": "pkg"}
    }
    handle.get.assert_called_once_with(name="pkg", namespace="default")


def test_bootstrap_self_installs_when_kind_unserved():
    """Make sure a cluster without the ClusterPackage CRD goes down the
    self-install path and installs the CRDs first
    """
    dm, handle = make_deploy_manager(unserved_kinds=[constants.CLUSTER_PACKAGE_KIND])
    bootstrapper = Bootstrapper(
        dm,
        mock.Mock(),
        image="quay.io/package-operator/package-operator-package:v1.0.0",
        namespace="package-operator-system",
        package_config={},
        check_interval=0.01,
        discovery_timeout=0,
        file_loader=lambda _: make_bundle_files(),
    )

    # The kind never becomes served here, so the package create gives up
    with pytest.raises(NoMatchError, match="creating ClusterPackage"):
        bootstrapper.bootstrap(RunContext())

    assert bootstrapper.state == BootstrapState.SELF_INSTALLING
    created = [call.kwargs["body"] for call in handle.create.call_args_list]
    assert [obj["kind"] for obj in created] == [constants.CRD_KIND]
