"""
The GenericPackageController reconciles a single Package or ClusterPackage.

A reconcile fetches the object, tears down the legacy finalizer of objects in
deletion and otherwise runs the ordered sub-reconciler chain. The status of
the package is written at the end of the chain only if no step stopped it.
"""

# Standard
from typing import List, Optional, Type
import datetime

# First Party
import alog

# Local
from .. import constants
from ..adapters import ClusterPackageAdapter, GenericPackage, PackageAdapter
from ..deploy_manager import DeployManagerBase
from ..exceptions import NotFoundError
from ..metrics import MetricsRecorderBase
from ..packages import ImagePullerBase, PackageDeployer, PackageLoader
from ..reconcile import ObjectKey, ReconciliationResult
from ..status import status_changed
from ..utils import remove_finalizer
from .reconcilers import (
    ObjectDeploymentStatusReconciler,
    SubReconcilerBase,
    UnpackReconciler,
)

log = alog.use_channel("PKGCT")


class GenericPackageController:
    """Controller for one scope variant of packages. Children only bind the
    package type.
    """

    PACKAGE_TYPE: Type[GenericPackage] = None

    def __init__(  # pylint: disable=too-many-arguments
        self,
        deploy_manager: DeployManagerBase,
        image_puller: ImagePullerBase,
        metrics_recorder: Optional[MetricsRecorderBase] = None,
        package_loader: Optional[PackageLoader] = None,
        force_adoption: bool = False,
        requeue_after: Optional[datetime.timedelta] = None,
        reconcilers: Optional[List[SubReconcilerBase]] = None,
    ):
        """
        Args:
            deploy_manager:  DeployManagerBase
                Access to the cluster
            image_puller:  ImagePullerBase
                Resolves package images to bundle files
            metrics_recorder:  Optional[MetricsRecorderBase]
                Receives the package after each successful reconcile
            package_loader:  Optional[PackageLoader]
                Parses bundle files
            force_adoption:  bool
                Claim pre-existing ObjectDeployments that have no controller
            requeue_after:  Optional[datetime.timedelta]
                Delay before checking again for a missing ObjectDeployment
            reconcilers:  Optional[List[SubReconcilerBase]]
                Override of the ordered sub-reconciler chain
        """
        assert self.PACKAGE_TYPE is not None, "Controllers must bind PACKAGE_TYPE"
        self.deploy_manager = deploy_manager
        self.metrics_recorder = metrics_recorder
        self.reconcilers = reconcilers or [
            UnpackReconciler(
                deploy_manager=deploy_manager,
                image_puller=image_puller,
                package_deployer=PackageDeployer(deploy_manager),
                package_loader=package_loader,
                metrics_recorder=metrics_recorder,
                force_adoption=force_adoption,
            ),
            ObjectDeploymentStatusReconciler(
                deploy_manager=deploy_manager,
                requeue_after=requeue_after,
            ),
        ]

    ## Properties ##############################################################

    @property
    def kind(self) -> str:
        return self.PACKAGE_TYPE.KIND

    @property
    def api_version(self) -> str:
        return self.PACKAGE_TYPE.API_VERSION

    @property
    def namespaced(self) -> bool:
        return self.PACKAGE_TYPE.NAMESPACED

    @property
    def owned_kind(self) -> str:
        """The kind of the generated objects owned by the packages"""
        return self.PACKAGE_TYPE.OBJECT_DEPLOYMENT_TYPE.KIND

    @property
    def owned_api_version(self) -> str:
        return self.PACKAGE_TYPE.OBJECT_DEPLOYMENT_TYPE.API_VERSION

    ## Reconcile ###############################################################

    def reconcile(self, key: ObjectKey) -> ReconciliationResult:
        """Reconcile the package with the given key. Errors are raised to the
        caller, which is responsible for retrying with backoff.

        Args:
            key:  ObjectKey
                Name and namespace of the package

        Returns:
            result:  ReconciliationResult
                Whether and when the package should be reconciled again
        """
        try:
            manifest = self.deploy_manager.get(
                self.kind, self.api_version, key.name, key.namespace
            )
        except NotFoundError:
            log.debug("%s %s not found, nothing to do", self.kind, key)
            return ReconciliationResult(requeue=False)

        package = self.PACKAGE_TYPE(manifest)
        log.debug("Reconciling %s", package, extra={"resource": package.manifest})

        if package.deleting:
            self._handle_deletion(package)
            self._record_metrics(package)
            return ReconciliationResult(requeue=False)

        original_status = package.copy().status
        for reconciler in self.reconcilers:
            step = reconciler.reconcile(package)
            if step.stop:
                log.debug2(
                    "%s stopped by %s", package, reconciler.__class__.__name__
                )
                self._record_metrics(package)
                return step.to_reconciliation_result()

        self._update_status(package, original_status)
        self._record_metrics(package)
        log.info("Reconciled %s", package)
        return ReconciliationResult(requeue=False)

    ## Implementation Details ##################################################

    def _handle_deletion(self, package: GenericPackage):
        """Remove the legacy finalizer of an object in deletion"""
        if not remove_finalizer(package.manifest, constants.LOADER_JOB_FINALIZER):
            log.debug2("No legacy finalizer on %s", package)
            return
        log.info("Removing legacy finalizer from %s", package)
        package.manifest = self.deploy_manager.update(package.manifest)

    def _update_status(self, package: GenericPackage, original_status: dict):
        """Project the phase and persist the status if it changed"""
        package.update_phase()
        if not status_changed(original_status, package.status):
            log.debug2("Status of %s unchanged", package)
            return
        log.debug("Updating status of %s to phase %s", package, package.phase)
        self.deploy_manager.update_status(package.manifest)

    def _record_metrics(self, package: GenericPackage):
        if self.metrics_recorder is not None:
            self.metrics_recorder.record_package_metrics(package)


class PackageController(GenericPackageController):
    """Controller for namespaced Packages"""

    PACKAGE_TYPE = PackageAdapter


class ClusterPackageController(GenericPackageController):
    """Controller for ClusterPackages"""

    PACKAGE_TYPE = ClusterPackageAdapter
