"""
The Bootstrapper installs the package operator into a cluster using the
operator itself. It installs the CRDs of the operator's own bundle, creates
the self-managed ClusterPackage and runs the manager in the foreground until
the package reports Available, at which point the regular deployment of the
operator takes over.
"""

# Standard
from enum import Enum
from typing import Callable, Dict, List, Optional
import os
import threading
import time

# First Party
import alog

# Local
from .. import config, constants
from ..context import RunContext
from ..deploy_manager import DeployManagerBase
from ..exceptions import (
    AlreadyExistsError,
    BootstrapError,
    ClusterError,
    NoMatchError,
    NotFoundError,
    assert_config,
    with_context,
)
from ..packages import (
    PackageLoader,
    crds_from_template_spec,
    load_files,
    template_spec_from_package,
)
from ..status import is_condition_true
from .cleanup import forced_cleanup, needs_forced_cleanup
from .revisions import fix_missing_revision_numbers

log = alog.use_channel("BTSTP")


class BootstrapState(Enum):
    """The states a bootstrap run moves through"""

    UNINITIALIZED = "Uninitialized"
    CHECKING_INSTALLATION = "CheckingInstallation"
    ALREADY_AVAILABLE = "AlreadyAvailable"
    NEEDS_CLEANUP_THEN_CONTINUE = "NeedsCleanupThenContinue"
    SELF_INSTALLING = "SelfInstalling"
    POLLING = "Polling"
    CONVERGED = "Converged"


## Checks ######################################################################


def needs_bootstrap(
    deploy_manager: DeployManagerBase,
    namespace: str,
    deployment_name: str = constants.SELF_DEPLOYMENT_NAME,
) -> bool:
    """Check whether the operator still needs the bootstrap manager. This is
    true until the Deployment backing the operator reports Available=True.

    Args:
        deploy_manager:  DeployManagerBase
            Access to the cluster
        namespace:  str
            Namespace of the operator Deployment
        deployment_name:  str
            Name of the operator Deployment

    Returns:
        needs_bootstrap:  bool
            False only if the Deployment exists and is Available
    """
    try:
        deployment = deploy_manager.get(
            constants.DEPLOYMENT_KIND,
            constants.DEPLOYMENT_API_VERSION,
            deployment_name,
            namespace,
        )
    except NotFoundError:
        log.debug2("Deployment %s/%s not found", namespace, deployment_name)
        return True
    return not is_condition_true(
        constants.DEPLOYMENT_AVAILABLE, deployment.get("status")
    )


def is_package_available(
    deploy_manager: DeployManagerBase,
    package_name: str = constants.SELF_PACKAGE_NAME,
) -> bool:
    """Check whether the self-managed ClusterPackage reports Available=True.
    Errors reading the package, including NotFoundError, are raised.
    """
    package = deploy_manager.get(
        constants.CLUSTER_PACKAGE_KIND, constants.API_VERSION, package_name
    )
    return is_condition_true(constants.PACKAGE_AVAILABLE, package.get("status"))


## Poller ######################################################################


class AvailabilityPoller(threading.Thread):
    """Background thread that checks the self-managed package on a fixed
    interval and cancels the given context once it is Available. A failure
    to read the package aborts the process. The ClusterPackage kind may stay
    unserved for up to discovery_timeout seconds while its new CRD is
    discovered.
    """

    def __init__(
        self,
        deploy_manager: DeployManagerBase,
        ctx: RunContext,
        interval: float,
        package_name: str = constants.SELF_PACKAGE_NAME,
        discovery_timeout: float = 0,
    ):
        self.deploy_manager = deploy_manager
        self.ctx = ctx
        self.interval = interval
        self.discovery_timeout = discovery_timeout
        self.package_name = package_name
        self.polls = 0
        self.available = False
        super().__init__(name="bootstrap-availability-poller", daemon=True)

    def run(self):
        unserved_since = None
        while not self.ctx.cancelled():
            self.polls += 1
            try:
                available = is_package_available(
                    self.deploy_manager, self.package_name
                )
                unserved_since = None
            except NoMatchError as err:
                now = time.monotonic()
                if unserved_since is None:
                    unserved_since = now
                if now - unserved_since >= self.discovery_timeout:
                    self._abort(err)
                    return
                log.debug("ClusterPackage kind not served yet: %s", err)
                available = False
            except ClusterError as err:
                self._abort(err)
                return
            if available:
                log.info(
                    "ClusterPackage %s is available after %d checks",
                    self.package_name,
                    self.polls,
                )
                self.available = True
                self.ctx.cancel()
                return
            log.debug2("ClusterPackage %s not available yet", self.package_name)
            if self.ctx.wait(self.interval):
                break
        log.debug(
            "Poller stopped before ClusterPackage %s became available",
            self.package_name,
        )

    def _abort(self, err: ClusterError):
        log.error("Unable to check ClusterPackage %s: %s", self.package_name, err)
        os._exit(1)


## Bootstrapper ################################################################


class Bootstrapper:
    """State machine that brings the operator into the cluster"""

    def __init__(  # pylint: disable=too-many-arguments
        self,
        deploy_manager: DeployManagerBase,
        run_manager: Callable[[RunContext], None],
        image: Optional[str] = None,
        namespace: Optional[str] = None,
        package_folder: Optional[str] = None,
        package_config: Optional[dict] = None,
        check_interval: Optional[float] = None,
        discovery_timeout: Optional[float] = None,
        file_loader: Callable[[str], Dict[str, bytes]] = load_files,
        package_loader: Optional[PackageLoader] = None,
        package_name: str = constants.SELF_PACKAGE_NAME,
    ):
        """
        Args:
            deploy_manager:  DeployManagerBase
                Access to the cluster
            run_manager:  Callable[[RunContext], None]
                Runs the manager in the foreground until the context is
                cancelled
            image:  Optional[str]
                Image of the operator. Defaults to bootstrap.image
            namespace:  Optional[str]
                Namespace of the operator. Defaults to namespace
            package_folder:  Optional[str]
                Folder holding the operator's own bundle. Defaults to
                bootstrap.package_folder
            package_config:  Optional[dict]
                Config of the self-managed package. Defaults to the JSON in
                the variable named by bootstrap.config_env_var
            check_interval:  Optional[float]
                Seconds between availability checks. Defaults to
                bootstrap.package_check_interval_seconds
            discovery_timeout:  Optional[float]
                Seconds the ClusterPackage kind may stay unserved after its
                CRD was created. Defaults to
                bootstrap.discovery_timeout_seconds
            file_loader:  Callable[[str], Dict[str, bytes]]
                Reads the bundle folder
            package_loader:  Optional[PackageLoader]
                Parses the bundle files
            package_name:  str
                Name of the self-managed ClusterPackage
        """
        self.deploy_manager = deploy_manager
        self.run_manager = run_manager
        self.image = image or config.bootstrap.image
        self.namespace = namespace or config.namespace
        self.package_folder = package_folder or config.bootstrap.package_folder
        self.package_config = (
            package_config
            if package_config is not None
            else config.get_environment_package_config()
        )
        self.check_interval = float(
            check_interval
            if check_interval is not None
            else config.bootstrap.package_check_interval_seconds
        )
        self.discovery_timeout = float(
            discovery_timeout
            if discovery_timeout is not None
            else config.bootstrap.discovery_timeout_seconds
        )
        self.file_loader = file_loader
        self.package_loader = package_loader or PackageLoader()
        self.package_name = package_name
        self.state = BootstrapState.UNINITIALIZED
        assert_config(bool(self.image), "No image configured for bootstrap")

    ## Public ##################################################################

    def bootstrap(self, ctx: RunContext):
        """Run the bootstrap until the self-managed package is Available or
        the operator is already installed

        Args:
            ctx:  RunContext
                Context of the whole bootstrap run. Cancelling it stops the
                foreground manager.
        """
        self._transition(BootstrapState.CHECKING_INSTALLATION)
        try:
            self.deploy_manager.get(
                constants.CLUSTER_PACKAGE_KIND,
                constants.API_VERSION,
                self.package_name,
            )
        except NotFoundError as err:
            log.info("ClusterPackage %s not found, installing: %s", self.package_name, err)
            self._self_install()
            self._run_until_available(ctx)
            return

        if needs_forced_cleanup(self.deploy_manager, self.namespace):
            self._transition(BootstrapState.NEEDS_CLEANUP_THEN_CONTINUE)
            forced_cleanup(self.deploy_manager, self.package_name)
            self._self_install()
            self._run_until_available(ctx)
            return

        fix_missing_revision_numbers(self.deploy_manager, self.package_name)
        self._update_package()
        if not needs_bootstrap(self.deploy_manager, self.namespace):
            self._transition(BootstrapState.ALREADY_AVAILABLE)
            return
        self._run_until_available(ctx)

    def ensure_crds(self) -> List[dict]:
        """Install the CRDs of the operator's own bundle, ignoring those that
        already exist

        Returns:
            crds:  List[dict]
                The CRDs found in the bundle
        """
        files = self.file_loader(self.package_folder)
        content = self.package_loader.from_files(files, scope="Cluster")
        crds = crds_from_template_spec(template_spec_from_package(content))
        for crd in crds:
            crd.setdefault("metadata", {}).setdefault("labels", {})[
                constants.DYNAMIC_CACHE_LABEL
            ] = "True"
            name = crd["metadata"].get("name")
            try:
                self.deploy_manager.create(crd)
                log.info("Created CRD %s", name)
            except AlreadyExistsError:
                log.debug("CRD %s already exists", name)
            except ClusterError as err:
                raise with_context(err, f"creating CRD {name}") from err
        return crds

    ## Implementation Details ##################################################

    def _transition(self, state: BootstrapState):
        log.info("Bootstrap state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _package_spec(self) -> dict:
        spec = {"image": self.image}
        if self.package_config is not None:
            spec["config"] = self.package_config
        return spec

    def _self_install(self):
        """Install CRDs and create the self-managed package"""
        self._transition(BootstrapState.SELF_INSTALLING)
        self.ensure_crds()
        package = {
            "apiVersion": constants.API_VERSION,
            "kind": constants.CLUSTER_PACKAGE_KIND,
            "metadata": {"name": self.package_name},
            "spec": self._package_spec(),
        }
        deadline = time.monotonic() + self.discovery_timeout
        while True:
            try:
                self.deploy_manager.create(package)
                log.info("Created ClusterPackage %s", self.package_name)
                return
            except AlreadyExistsError:
                log.info("ClusterPackage %s was created concurrently", self.package_name)
                return
            except NoMatchError as err:
                if time.monotonic() >= deadline:
                    raise with_context(
                        err, f"creating ClusterPackage {self.package_name}"
                    ) from err
                log.debug("ClusterPackage kind not served yet: %s", err)
                time.sleep(self.check_interval)
            except ClusterError as err:
                raise with_context(
                    err, f"creating ClusterPackage {self.package_name}"
                ) from err

    def _update_package(self):
        """Point the existing self-managed package to this image and config"""
        patch = {"spec": {"image": self.image, "config": self.package_config}}
        log.debug("Updating ClusterPackage %s to image %s", self.package_name, self.image)
        try:
            self.deploy_manager.patch(
                constants.CLUSTER_PACKAGE_KIND,
                constants.API_VERSION,
                self.package_name,
                patch,
            )
        except ClusterError as err:
            raise with_context(err, f"updating ClusterPackage {self.package_name}") from err

    def _run_until_available(self, ctx: RunContext):
        """Run the manager with adoption forced until the poller sees the
        self-managed package Available
        """
        self._transition(BootstrapState.POLLING)
        run_ctx = ctx.child(force_adoption=True, name="bootstrap")
        poller = AvailabilityPoller(
            self.deploy_manager,
            run_ctx,
            self.check_interval,
            self.package_name,
            self.discovery_timeout,
        )
        poller.start()
        try:
            self.run_manager(run_ctx)
        except Exception as err:
            raise BootstrapError(f"running manager during bootstrap: {err}") from err
        finally:
            run_ctx.cancel()
            poller.join()

        if not poller.available:
            raise BootstrapError(
                f"manager stopped before ClusterPackage {self.package_name} became available"
            )
        self._transition(BootstrapState.CONVERGED)
