"""
Shared test config
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from package_operator.deploy_manager.dry_run_deploy_manager import DryRunDeployManager
from package_operator.test_helpers.helpers import configure_logging

configure_logging()


@pytest.fixture(autouse=True)
def no_local_kubeconfig():
    """This fixture makes sure the tests run as if KUBECONFIG is not exported in
    the environment, even if it is
    """
    with mock.patch(
        "kubernetes.config.new_client_from_config", side_effect=RuntimeError
    ):
        yield


@pytest.fixture
def deploy_manager():
    """An empty in-memory cluster"""
    return DryRunDeployManager()


@pytest.fixture(autouse=True)
def metrics_server():
    """Keep the run command from binding the metrics port"""
    with mock.patch("package_operator.metrics.start_http_server") as start_server:
        yield start_server
