"""
The PackageDeployer applies the content of a package bundle to the cluster as
the ObjectDeployment owned by the package
"""

# Standard
import copy

# First Party
import alog

# Local
from .. import constants
from ..adapters import GenericObjectDeployment, GenericPackage
from ..deploy_manager import DeployManagerBase
from ..deploy_manager.owner_references import set_controller_reference
from ..exceptions import AlreadyExistsError, NotFoundError
from .loader import PackageContent, template_spec_from_package

log = alog.use_channel("DPLYR")


class PackageDeployer:
    """Create or update the ObjectDeployment generated for a package"""

    def __init__(self, deploy_manager: DeployManagerBase):
        self.deploy_manager = deploy_manager

    def deploy(
        self,
        package: GenericPackage,
        content: PackageContent,
        force_adoption: bool = False,
    ) -> GenericObjectDeployment:
        """Apply the package content as the ObjectDeployment of the package

        Args:
            package:  GenericPackage
                The package the content belongs to
            content:  PackageContent
                The loaded bundle of the package
            force_adoption:  bool
                Claim an existing ObjectDeployment that has no controller

        Returns:
            object_deployment:  GenericObjectDeployment
                The ObjectDeployment as stored in the cluster
        """
        desired = package.new_object_deployment()
        labels = {
            constants.INSTANCE_LABEL: package.name,
            constants.PACKAGE_LABEL: content.name or package.name,
        }
        desired.labels.update(labels)
        desired.selector = labels
        desired.template_spec = template_spec_from_package(content)

        try:
            current = self.deploy_manager.get(
                desired.KIND, desired.API_VERSION, desired.name, desired.namespace
            )
        except NotFoundError:
            set_controller_reference(desired.manifest, package.manifest)
            log.info("Creating %s for %s", desired, package)
            try:
                return type(desired)(self.deploy_manager.create(desired.manifest))
            except AlreadyExistsError:
                log.debug("%s created concurrently, updating instead", desired)
                current = self.deploy_manager.get(
                    desired.KIND, desired.API_VERSION, desired.name, desired.namespace
                )

        existing = type(desired)(copy.deepcopy(current))
        set_controller_reference(existing.manifest, package.manifest, force_adoption)
        existing.labels.update(labels)
        existing.spec.update(desired.spec)
        if existing.manifest == current:
            log.debug2("%s is up to date", existing)
            return existing

        log.info("Updating %s for %s", existing, package)
        return type(desired)(self.deploy_manager.update(existing.manifest))
