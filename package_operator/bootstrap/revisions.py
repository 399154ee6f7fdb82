"""
Repair of revision numbers left unassigned by a crash between creating an
ObjectSet and numbering it
"""

# Standard
from typing import Dict, Iterable, List, Optional

# First Party
import alog

# Local
from .. import constants
from ..deploy_manager import DeployManagerBase
from ..exceptions import ClusterError, with_context
from ..utils import nested_get

log = alog.use_channel("RVSNS")


def looks_stuck(object_set: dict) -> bool:
    """An ObjectSet is stuck if it is Pending without a revision number even
    though it supersedes previous revisions
    """
    return (
        (nested_get(object_set, "status.revision") or 0) == 0
        and bool(nested_get(object_set, "spec.previous"))
        and nested_get(object_set, "status.phase") == constants.OBJECT_SET_PHASE_PENDING
    )


def highest_revision(revisions: Dict[str, int], previous: Iterable[dict]) -> int:
    """The highest revision number among the referenced previous ObjectSets.
    References to ObjectSets missing from the lookup count as revision 0.
    """
    max_revision = 0
    for prev in previous:
        max_revision = max(max_revision, revisions.get(prev.get("name"), 0))
    return max_revision


def compute_revision_repairs(object_sets: List[dict]) -> Dict[str, int]:
    """Compute the new revision numbers of all stuck ObjectSets of a single
    snapshot. A stuck ObjectSet that supersedes another stuck one is numbered
    after the repaired revision of its predecessor.

    Args:
        object_sets:  List[dict]
            The snapshot of all ObjectSets of one instance

    Returns:
        repairs:  Dict[str, int]
            Mapping from the name of each stuck ObjectSet to its new revision
    """
    by_name = {obj["metadata"]["name"]: obj for obj in object_sets}
    revisions = {
        name: nested_get(obj, "status.revision") or 0 for name, obj in by_name.items()
    }
    stuck = {name for name, obj in by_name.items() if looks_stuck(obj)}
    repairs = {}

    def repair(name: str, resolving: frozenset):
        if name in repairs or name not in stuck or name in resolving:
            return
        previous = nested_get(by_name[name], "spec.previous")
        for prev in previous:
            repair(prev.get("name"), resolving | {name})
        repairs[name] = revisions[name] = highest_revision(revisions, previous) + 1
        log.debug2("ObjectSet %s looks stuck, new revision %d", name, repairs[name])

    for object_set in object_sets:
        repair(object_set["metadata"]["name"], frozenset())
    return repairs


def fix_missing_revision_numbers(
    deploy_manager: DeployManagerBase,
    instance: str = constants.SELF_PACKAGE_NAME,
    kind: str = constants.CLUSTER_OBJECT_SET_KIND,
    namespace: Optional[str] = None,
) -> Dict[str, int]:
    """List the ObjectSets of an instance and patch the status of all stuck
    ones with their computed revision number

    Args:
        deploy_manager:  DeployManagerBase
            Access to the cluster
        instance:  str
            Value of the instance label of the ObjectSets to repair
        kind:  str
            ClusterObjectSet or ObjectSet
        namespace:  Optional[str]
            Namespace of namespaced ObjectSets

    Returns:
        repairs:  Dict[str, int]
            The applied revision numbers by ObjectSet name
    """
    try:
        object_sets = deploy_manager.list(
            kind,
            constants.API_VERSION,
            namespace=namespace,
            label_selector={constants.INSTANCE_LABEL: instance},
        )
    except ClusterError as err:
        raise with_context(err, f"list {kind} of {instance}") from err

    repairs = compute_revision_repairs(object_sets)
    for name, revision in repairs.items():
        log.info("Setting missing revision number of %s %s to %d", kind, name, revision)
        try:
            deploy_manager.patch_status(
                kind,
                constants.API_VERSION,
                name,
                {"status": {"revision": revision}},
                namespace=namespace,
            )
        except ClusterError as err:
            raise with_context(
                err, f"patch for missing revision number of {name}"
            ) from err
    return repairs
