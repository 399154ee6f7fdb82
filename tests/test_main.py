"""
Tests for the __main__.py entrypoint to the library as an executable
"""

# Standard
from unittest import mock
import os
import tempfile

# Third Party
import pytest
import yaml

# Local
from package_operator import config, constants
from package_operator.__main__ import main
from package_operator.context import RunContext
from package_operator.deploy_manager import DryRunDeployManager
from package_operator.exceptions import BootstrapError
from package_operator.test_helpers.helpers import library_config, make_package

RUN_CMD = "package_operator.cmd.run_operator_cmd"
BOOTSTRAP_CMD = "package_operator.cmd.bootstrap_cmd"

## Helpers #####################################################################


@pytest.fixture
def manager_class():
    """Replace the ControllerManager so the run command returns immediately"""
    with mock.patch(f"{RUN_CMD}.ControllerManager") as manager_class:
        yield manager_class


@pytest.fixture
def captured_run():
    """Capture the deploy manager and context handed to the run manager"""
    captured = {}

    def fake_make_run_manager(deploy_manager, *_, **__):
        captured["deploy_manager"] = deploy_manager

        def run_manager(ctx):
            captured["ctx"] = ctx

        return run_manager

    with mock.patch(f"{RUN_CMD}.make_run_manager", fake_make_run_manager):
        yield captured


## Run Command #################################################################


def test_run_starts_both_controllers(manager_class):
    """Make sure the run command hosts the Package and ClusterPackage
    controllers
    """
    with library_config(dry_run=True):
        main(["run"])
    manager = manager_class.return_value
    kinds = [call.args[0].kind for call in manager.add_controller.call_args_list]
    assert kinds == [constants.PACKAGE_KIND, constants.CLUSTER_PACKAGE_KIND]
    manager.run.assert_called_once()
    assert isinstance(manager.run.call_args.args[0], RunContext)


def test_run_is_default_command(captured_run):
    with library_config(dry_run=True):
        main([])
    assert isinstance(captured_run["deploy_manager"], DryRunDeployManager)
    assert not captured_run["ctx"].force_adoption


def test_run_force_adoption_flag(captured_run):
    with library_config(dry_run=True, manager={}):
        main(["run", "--manager.force_adoption"])
        assert config.manager.force_adoption
    assert captured_run["ctx"].force_adoption


def test_run_with_resource_dir(captured_run):
    """Make sure yaml files in the resource dir populate the dry run cluster"""
    with tempfile.TemporaryDirectory() as workdir:
        with open(os.path.join(workdir, "pkg.yaml"), "w", encoding="utf-8") as handle:
            yaml.safe_dump_all([make_package(), make_package(name="other")], handle)
        with open(os.path.join(workdir, "notes.txt"), "w", encoding="utf-8") as handle:
            handle.write("not a resource")
        with library_config(dry_run=True):
            main(["run", "--resource_dir", workdir])

    dm = captured_run["deploy_manager"]
    names = [
        obj["metadata"]["name"]
        for obj in dm.list(constants.PACKAGE_KIND, constants.API_VERSION)
    ]
    assert sorted(names) == ["other", "test-package"]


def test_run_resource_dir_requires_dry_run():
    with tempfile.TemporaryDirectory() as workdir:
        with library_config(dry_run=False):
            with pytest.raises(AssertionError):
                main(["run", "--resource_dir", workdir])


## Bootstrap Command ###########################################################


def test_bootstrap_command_runs_bootstrapper():
    with mock.patch(f"{BOOTSTRAP_CMD}.Bootstrapper") as bootstrapper_class:
        with library_config(dry_run=True):
            main(["bootstrap"])
    bootstrapper_class.assert_called_once()
    deploy_manager, run_manager = bootstrapper_class.call_args.args
    assert isinstance(deploy_manager, DryRunDeployManager)
    assert callable(run_manager)
    ctx = bootstrapper_class.return_value.bootstrap.call_args.args[0]
    assert isinstance(ctx, RunContext)


def test_bootstrap_command_failure_exits():
    with mock.patch(f"{BOOTSTRAP_CMD}.Bootstrapper") as bootstrapper_class:
        bootstrapper_class.return_value.bootstrap.side_effect = BootstrapError("no")
        with library_config(dry_run=True):
            with pytest.raises(SystemExit) as exit_info:
                main(["bootstrap"])
    assert exit_info.value.code == 1


def test_bootstrap_command_config_args():
    """Make sure bootstrap settings can be given on the command line"""
    with mock.patch(f"{BOOTSTRAP_CMD}.Bootstrapper"):
        with library_config(dry_run=True, bootstrap={}):
            main(["bootstrap", "--bootstrap.image", "quay.io/pko:v2"])
            assert config.bootstrap.image == "quay.io/pko:v2"


def test_run_serves_metrics(captured_run, metrics_server):
    """Make sure the run command serves the recorder it hands to the manager"""
    with library_config(dry_run=True, metrics={"port": 9100}):
        main(["run"])
    metrics_server.assert_called_once()
    assert metrics_server.call_args.args == (9100,)
    assert "registry" in metrics_server.call_args.kwargs


def test_run_metrics_disabled(captured_run, metrics_server):
    with library_config(dry_run=True, metrics={"port": 0}):
        main(["run"])
    metrics_server.assert_not_called()
