"""
Tests for the package controllers
"""

# Standard
from unittest import mock
import datetime

# Third Party
import pytest

# Local
from package_operator import constants
from package_operator.controllers import ClusterPackageController, PackageController
from package_operator.controllers.reconcilers import SubReconcilerBase
from package_operator.exceptions import ConflictError, ImagePullError
from package_operator.reconcile import ObjectKey, StepResult
from package_operator.test_helpers.helpers import (
    TEST_NAMESPACE,
    TEST_PACKAGE_NAME,
    MockDeployManager,
    make_cluster_package,
    make_condition,
    make_package,
)

KEY = ObjectKey(TEST_PACKAGE_NAME, TEST_NAMESPACE)

## Helpers #####################################################################


class RecordingReconciler(SubReconcilerBase):
    """Step that records calls and returns a fixed result"""

    def __init__(self, result=None, condition=None):
        self.result = result or StepResult.proceed()
        self.condition = condition
        self.calls = []

    def reconcile(self, package):
        self.calls.append(package.name)
        if self.condition:
            package.status.setdefault("conditions", []).append(self.condition)
        return self.result


def make_controller(dm, reconcilers, controller_type=PackageController, **kwargs):
    return controller_type(
        deploy_manager=dm,
        image_puller=mock.Mock(),
        reconcilers=reconcilers,
        **kwargs,
    )


## Tests #######################################################################


def test_reconcile_missing_package_is_noop():
    dm = MockDeployManager()
    step = RecordingReconciler()
    result = make_controller(dm, [step]).reconcile(KEY)
    assert not result.requeue
    assert not step.calls


def test_reconcile_runs_chain_and_writes_status():
    """Make sure all steps run in order and the projected phase is stored"""
    dm = MockDeployManager()
    dm.create(make_package())
    first = RecordingReconciler(
        condition=make_condition(constants.PACKAGE_UNPACKED, "True")
    )
    second = RecordingReconciler(
        condition=make_condition(constants.PACKAGE_AVAILABLE, "True")
    )
    recorder = mock.Mock()
    result = make_controller(dm, [first, second], metrics_recorder=recorder).reconcile(
        KEY
    )

    assert not result.requeue
    assert first.calls == second.calls == [TEST_PACKAGE_NAME]
    stored = dm.get_obj(constants.PACKAGE_KIND, TEST_PACKAGE_NAME, TEST_NAMESPACE)
    assert stored["status"]["phase"] == constants.PACKAGE_PHASE_AVAILABLE
    recorder.record_package_metrics.assert_called_once()


def test_reconcile_stop_skips_rest_and_status():
    """Make sure a stopping step ends the chain without a status write"""
    dm = MockDeployManager()
    dm.create(make_package())
    delay = datetime.timedelta(seconds=5)
    stop = RecordingReconciler(result=StepResult.halt(delay))
    after = RecordingReconciler()
    result = make_controller(dm, [stop, after]).reconcile(KEY)
    assert result.requeue
    assert result.requeue_params.requeue_after == delay
    assert not after.calls
    dm.update_status.assert_not_called()


def test_reconcile_unchanged_status_not_written():
    dm = MockDeployManager()
    package = make_package()
    package["status"] = {"phase": constants.PACKAGE_PHASE_UNPACKING}
    dm.create(package)
    make_controller(dm, [RecordingReconciler()]).reconcile(KEY)
    dm.update_status.assert_not_called()


def test_reconcile_deleting_removes_legacy_finalizer():
    """Make sure a package in deletion never runs the chain and only has its
    legacy finalizer removed
    """
    dm = MockDeployManager()
    package = make_package()
    package["metadata"]["finalizers"] = [constants.LOADER_JOB_FINALIZER]
    dm.create(package)
    dm.delete(constants.PACKAGE_KIND, constants.API_VERSION, TEST_PACKAGE_NAME, TEST_NAMESPACE)

    step = RecordingReconciler()
    recorder = mock.Mock()
    result = make_controller(dm, [step], metrics_recorder=recorder).reconcile(KEY)
    assert not result.requeue
    assert not step.calls
    assert not dm.has_obj(constants.PACKAGE_KIND, TEST_PACKAGE_NAME, TEST_NAMESPACE)
    recorder.record_package_metrics.assert_called_once()


def test_reconcile_deleting_without_legacy_finalizer():
    dm = MockDeployManager()
    package = make_package()
    package["metadata"]["finalizers"] = ["other/finalizer"]
    dm.create(package)
    dm.delete(constants.PACKAGE_KIND, constants.API_VERSION, TEST_PACKAGE_NAME, TEST_NAMESPACE)

    step = RecordingReconciler()
    make_controller(dm, [step]).reconcile(KEY)
    assert not step.calls
    dm.update.assert_not_called()


def test_reconcile_step_error_propagates():
    dm = MockDeployManager()
    dm.create(make_package())
    step = mock.Mock(spec=SubReconcilerBase)
    step.reconcile.side_effect = ImagePullError("boom")
    with pytest.raises(ImagePullError):
        make_controller(dm, [step]).reconcile(KEY)


def test_reconcile_status_conflict_propagates():
    dm = MockDeployManager(update_status_fail=ConflictError("changed"))
    dm.create(make_package())
    step = RecordingReconciler(
        condition=make_condition(constants.PACKAGE_UNPACKED, "True")
    )
    with pytest.raises(ConflictError):
        make_controller(dm, [step]).reconcile(KEY)


def test_cluster_controller_kinds():
    """Make sure the cluster variant binds the cluster kinds"""
    dm = MockDeployManager()
    dm.create(make_cluster_package(name="cluster-pkg"))
    controller = make_controller(
        dm, [RecordingReconciler()], controller_type=ClusterPackageController
    )
    assert controller.kind == constants.CLUSTER_PACKAGE_KIND
    assert controller.owned_kind == constants.CLUSTER_OBJECT_DEPLOYMENT_KIND
    assert not controller.namespaced
    controller.reconcile(ObjectKey("cluster-pkg"))
    stored = dm.get_obj(constants.CLUSTER_PACKAGE_KIND, "cluster-pkg")
    assert stored["status"]["phase"] == constants.PACKAGE_PHASE_UNPACKING


def test_default_chain():
    controller = PackageController(MockDeployManager(), image_puller=mock.Mock())
    assert [type(step).__name__ for step in controller.reconcilers] == [
        "UnpackReconciler",
        "ObjectDeploymentStatusReconciler",
    ]
