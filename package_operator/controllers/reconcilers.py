"""
The ordered sub-reconcilers run by the package controllers. Each one works on
the generic package accessor so it serves both scopes.
"""

# Standard
from typing import Optional
import abc
import datetime
import time

# First Party
import alog

# Local
from .. import config, constants
from ..adapters import GenericPackage
from ..deploy_manager import DeployManagerBase
from ..exceptions import NotFoundError, PackageInvalidError
from ..metrics import MetricsRecorderBase
from ..packages import ImagePullerBase, PackageDeployer, PackageLoader
from ..reconcile import StepResult
from ..status import get_condition, remove_condition, set_condition
from ..utils import stable_hash

log = alog.use_channel("RCNCL")


class SubReconcilerBase(abc.ABC):
    """Base class for a single step of the package reconcile chain"""

    @abc.abstractmethod
    def reconcile(self, package: GenericPackage) -> StepResult:
        """Run the step against the package. The package status may be updated
        in place for the following steps to see.
        """


## Unpack ######################################################################


class UnpackReconciler(SubReconcilerBase):
    """Pulls the image of the package, loads the bundle and deploys it as the
    ObjectDeployment of the package whenever image or config changed
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        deploy_manager: DeployManagerBase,
        image_puller: ImagePullerBase,
        package_deployer: PackageDeployer,
        package_loader: Optional[PackageLoader] = None,
        metrics_recorder: Optional[MetricsRecorderBase] = None,
        force_adoption: bool = False,
    ):
        self.deploy_manager = deploy_manager
        self.image_puller = image_puller
        self.package_deployer = package_deployer
        self.package_loader = package_loader or PackageLoader()
        self.metrics_recorder = metrics_recorder
        self.force_adoption = force_adoption

    def reconcile(self, package: GenericPackage) -> StepResult:
        spec_hash = stable_hash(package.image, package.config)
        unpacked = get_condition(constants.PACKAGE_UNPACKED, package.status)
        if package.unpacked_hash == spec_hash and unpacked:
            log.debug2("%s already unpacked", package)
            return StepResult.proceed()

        log.info("Unpacking image %s for %s", package.image, package)
        start = time.monotonic()
        files = self.image_puller.pull(package.image)
        try:
            content = self.package_loader.from_files(
                files, scope="Namespaced" if package.NAMESPACED else "Cluster"
            )
        except PackageInvalidError as err:
            self._report_invalid(package, str(err))
            raise

        self.package_deployer.deploy(package, content, self.force_adoption)
        remove_condition(package.status, constants.PACKAGE_INVALID)
        set_condition(
            package.status,
            constants.PACKAGE_UNPACKED,
            constants.CONDITION_TRUE,
            "UnpackSuccess",
            "Unpack job succeeded",
            observed_generation=package.generation,
        )
        package.unpacked_hash = spec_hash

        if not unpacked and self.metrics_recorder is not None:
            self.metrics_recorder.record_package_load_metric(
                package, time.monotonic() - start
            )
        return StepResult.proceed()

    def _report_invalid(self, package: GenericPackage, message: str):
        """Persist the Invalid condition before the load error propagates"""
        log.warning("Package %s is invalid: %s", package, message)
        set_condition(
            package.status,
            constants.PACKAGE_INVALID,
            constants.CONDITION_TRUE,
            "LoadError",
            message,
            observed_generation=package.generation,
        )
        package.update_phase()
        self.deploy_manager.update_status(package.manifest)


## ObjectDeployment Status #####################################################


class ObjectDeploymentStatusReconciler(SubReconcilerBase):
    """Projects the conditions of the owned ObjectDeployment onto the package"""

    PROJECTED_CONDITIONS = (
        (constants.PACKAGE_AVAILABLE, constants.PACKAGE_AVAILABLE),
        (constants.PACKAGE_PROGRESSING, constants.PACKAGE_PROGRESSING),
    )

    def __init__(
        self,
        deploy_manager: DeployManagerBase,
        requeue_after: Optional[datetime.timedelta] = None,
    ):
        self.deploy_manager = deploy_manager
        self.requeue_after = requeue_after

    def reconcile(self, package: GenericPackage) -> StepResult:
        object_deployment = package.new_object_deployment()
        try:
            object_deployment = type(object_deployment)(
                self.deploy_manager.get(
                    object_deployment.KIND,
                    object_deployment.API_VERSION,
                    object_deployment.name,
                    object_deployment.namespace,
                )
            )
        except NotFoundError:
            requeue_after = self.requeue_after or datetime.timedelta(
                seconds=float(config.requeue_after_seconds)
            )
            log.debug("%s not found, requeue after %s", object_deployment, requeue_after)
            return StepResult.halt(requeue_after)

        conditions = {
            cond.get("type"): cond for cond in object_deployment.get_conditions()
        }
        for source_type, target_type in self.PROJECTED_CONDITIONS:
            condition = conditions.get(source_type)
            if not condition:
                remove_condition(package.status, target_type)
                continue
            set_condition(
                package.status,
                target_type,
                condition.get("status", constants.CONDITION_UNKNOWN),
                condition.get("reason", ""),
                condition.get("message", ""),
                observed_generation=package.generation,
            )

        revision = object_deployment.status.get("revision")
        if revision is not None:
            package.status["revision"] = revision
        return StepResult.proceed()
