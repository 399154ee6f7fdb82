"""
Forced cleanup of a stuck self-managed installation. The self-managed
ClusterPackage and every ClusterObjectDeployment and ClusterObjectSet generated
for it are deleted one by one. Finalizers are stripped instead of waited on,
since a finalizer whose controller is gone never clears by itself.
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from .. import constants
from ..deploy_manager import DeployManagerBase
from ..exceptions import ClusterError, NotFoundError, with_context
from ..status import is_condition_false
from ..utils import get_finalizers

log = alog.use_channel("CLNUP")


def needs_forced_cleanup(
    deploy_manager: DeployManagerBase,
    namespace: str,
    deployment_name: str = constants.SELF_DEPLOYMENT_NAME,
) -> bool:
    """Check whether the workload backing the operator is missing or reports
    Available=False

    Args:
        deploy_manager:  DeployManagerBase
            Access to the cluster
        namespace:  str
            Namespace of the operator Deployment
        deployment_name:  str
            Name of the operator Deployment

    Returns:
        needs_cleanup:  bool
            True if the Deployment is absent or explicitly unavailable
    """
    try:
        deployment = deploy_manager.get(
            constants.DEPLOYMENT_KIND,
            constants.DEPLOYMENT_API_VERSION,
            deployment_name,
            namespace,
        )
    except NotFoundError:
        log.debug("Deployment %s/%s not found", namespace, deployment_name)
        return True

    unavailable = is_condition_false(
        constants.DEPLOYMENT_AVAILABLE, deployment.get("status")
    )
    log.debug2("Deployment %s/%s unavailable: %s", namespace, deployment_name, unavailable)
    return unavailable


def delete_and_verify(
    deploy_manager: DeployManagerBase,
    kind: str,
    name: str,
    api_version: str = constants.API_VERSION,
    namespace: Optional[str] = None,
):
    """Delete a single object, strip its finalizers and verify it is gone.
    Deleting an object that does not exist is a no-op.
    """
    # Delete
    try:
        deploy_manager.delete(kind, api_version, name, namespace)
    except NotFoundError:
        log.debug2("%s/%s already gone", kind, name)
        return
    except ClusterError as err:
        raise with_context(err, f"deleting stuck {kind} {name}") from err

    # Strip finalizers
    try:
        current = deploy_manager.get(kind, api_version, name, namespace)
        if get_finalizers(current):
            log.debug("Releasing finalizers %s of %s/%s", get_finalizers(current), kind, name)
            current["metadata"]["finalizers"] = []
            deploy_manager.update(current)
    except NotFoundError:
        log.debug3("%s/%s removed without finalizers", kind, name)
    except ClusterError as err:
        raise with_context(err, f"releasing finalizers on stuck {kind} {name}") from err

    # Verify absence
    try:
        deploy_manager.get(kind, api_version, name, namespace)
    except NotFoundError:
        log.info("Deleted %s %s", kind, name)
        return
    except ClusterError as err:
        raise with_context(err, f"ensuring {kind} {name} is gone") from err
    raise ClusterError(f"ensuring {kind} {name} is gone: object still exists")


def forced_cleanup(
    deploy_manager: DeployManagerBase,
    package_name: str = constants.SELF_PACKAGE_NAME,
):
    """Delete the stuck self-managed ClusterPackage and everything generated
    for it. Each step completes before the next starts and any error aborts
    the cascade. Re-running it is safe.

    Args:
        deploy_manager:  DeployManagerBase
            Access to the cluster
        package_name:  str
            Name of the self-managed ClusterPackage
    """
    log.info("Forcing cleanup of ClusterPackage %s", package_name)
    delete_and_verify(deploy_manager, constants.CLUSTER_PACKAGE_KIND, package_name)

    owned_selector = {
        constants.INSTANCE_LABEL: package_name,
        constants.PACKAGE_LABEL: package_name,
    }
    for kind in (
        constants.CLUSTER_OBJECT_DEPLOYMENT_KIND,
        constants.CLUSTER_OBJECT_SET_KIND,
    ):
        try:
            owned = deploy_manager.list(
                kind, constants.API_VERSION, label_selector=owned_selector
            )
        except ClusterError as err:
            raise with_context(err, f"listing stuck {kind}s") from err
        log.debug("Found %d %s to clean up", len(owned), kind)
        for obj in owned:
            delete_and_verify(deploy_manager, kind, obj["metadata"]["name"])
