"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from typing import Dict, List, Optional
from unittest import mock
import copy
import inspect
import os

# Third Party
import yaml

# First Party
import aconfig
import alog

# Local
from package_operator import constants
from package_operator.config import library_config as config_detail_dict
from package_operator.deploy_manager.dry_run_deploy_manager import DryRunDeployManager
from package_operator.utils import merge_configs

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_NAMESPACE = "test"
TEST_IMAGE = "quay.io/package-operator/package-operator-package:v1.0.0"
TEST_PACKAGE_NAME = "test-package"


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion. Nested sections are merged with the current values.
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
            if isinstance(val, dict) and isinstance(old_vals[key], dict):
                val = aconfig.Config(
                    merge_configs(copy.deepcopy(dict(old_vals[key])), val),
                    override_env_vars=False,
                )
        config_detail_dict[key] = val

    # Yield to the context
    try:
        yield
    finally:
        # Revert to the old values
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


def get_failable_method(fail_flag, method, failure_return=None):
    """Wrap a method so that it raises, returns a canned value or passes
    through depending on the fail flag
    """
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        if callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag(*args, **kwargs)
            if res is not None:
                return res
        elif fail_flag:
            log.debug4("Returning %s", failure_return)
            return failure_return
        return method(*args, **kwargs)

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            if isinstance(self.fail_val, Exception):
                raise self.fail_val
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return None


class MockDeployManager(DryRunDeployManager):
    """The MockDeployManager wraps a standard DryRunDeployManager and adds
    configuration options to simulate failures in each of its operations.
    Each operation is a mock.Mock so tests can inspect the calls.
    """

    OPERATIONS = (
        "get",
        "list",
        "create",
        "update",
        "patch",
        "update_status",
        "patch_status",
        "delete",
    )

    def __init__(
        self,
        resources: Optional[List[dict]] = None,
        auto_enable: bool = True,
        **fail_flags,
    ):
        """
        Args:
            resources:  Optional[List[dict]]
                Objects that exist in the cluster up front
            auto_enable:  bool
                Turn the mocks on immediately
            **fail_flags:
                <operation>_fail flags passed to get_failable_method
        """
        unknown = set(fail_flags) - {f"{op}_fail" for op in self.OPERATIONS}
        assert not unknown, f"Unknown fail flags: {unknown}"
        super().__init__(resources=resources)
        self.fail_flags: Dict[str, object] = {
            op: fail_flags.get(f"{op}_fail", False) for op in self.OPERATIONS
        }
        if auto_enable:
            self.enable_mocks()

    #######################
    ## Helpers for Tests ##
    #######################

    def enable_mocks(self):
        """Turn the mocks on"""
        for operation in self.OPERATIONS:
            setattr(
                self,
                operation,
                mock.Mock(
                    side_effect=get_failable_method(
                        self.fail_flags[operation],
                        getattr(super(), operation),
                    )
                ),
            )

    def get_obj(self, kind, name, namespace=None, api_version=constants.API_VERSION):
        """Get an object bypassing the mocks, None if it does not exist"""
        objs = [
            obj
            for obj in DryRunDeployManager.list(self, kind, api_version, namespace)
            if obj["metadata"]["name"] == name
        ]
        return objs[0] if objs else None

    def has_obj(self, *args, **kwargs):
        return self.get_obj(*args, **kwargs) is not None


## Object factories ############################################################


def make_condition(type_name: str, status: str, reason: str = "Test") -> dict:
    return {"type": type_name, "status": status, "reason": reason, "message": ""}


def make_cluster_package(
    name: str = constants.SELF_PACKAGE_NAME,
    image: str = TEST_IMAGE,
    conditions: Optional[List[dict]] = None,
    finalizers: Optional[List[str]] = None,
    **status,
) -> dict:
    manifest = {
        "apiVersion": constants.API_VERSION,
        "kind": constants.CLUSTER_PACKAGE_KIND,
        "metadata": {"name": name},
        "spec": {"image": image},
    }
    if finalizers:
        manifest["metadata"]["finalizers"] = list(finalizers)
    if conditions is not None or status:
        manifest["status"] = dict(status, conditions=conditions or [])
    return manifest


def make_package(
    name: str = TEST_PACKAGE_NAME,
    namespace: str = TEST_NAMESPACE,
    image: str = TEST_IMAGE,
    config: Optional[dict] = None,
) -> dict:
    manifest = {
        "apiVersion": constants.API_VERSION,
        "kind": constants.PACKAGE_KIND,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"image": image},
    }
    if config is not None:
        manifest["spec"]["config"] = config
    return manifest


def make_deployment(
    available: Optional[str] = None,
    name: str = constants.SELF_DEPLOYMENT_NAME,
    namespace: str = "package-operator-system",
) -> dict:
    manifest = {
        "apiVersion": constants.DEPLOYMENT_API_VERSION,
        "kind": constants.DEPLOYMENT_KIND,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {},
    }
    if available is not None:
        manifest["status"] = {
            "conditions": [make_condition(constants.DEPLOYMENT_AVAILABLE, available)]
        }
    return manifest


def make_object_set(
    name: str,
    revision: int = 0,
    previous: Optional[List[str]] = None,
    phase: str = constants.OBJECT_SET_PHASE_PENDING,
    instance: str = constants.SELF_PACKAGE_NAME,
    kind: str = constants.CLUSTER_OBJECT_SET_KIND,
) -> dict:
    return {
        "apiVersion": constants.API_VERSION,
        "kind": kind,
        "metadata": {
            "name": name,
            "labels": {
                constants.INSTANCE_LABEL: instance,
                constants.PACKAGE_LABEL: instance,
            },
        },
        "spec": {"previous": [{"name": prev} for prev in previous or []]},
        "status": {"revision": revision, "phase": phase},
    }


def make_crd(name: str = "packages.package-operator.run") -> dict:
    return {
        "apiVersion": constants.CRD_API_VERSION,
        "kind": constants.CRD_KIND,
        "metadata": {
            "name": name,
            "annotations": {constants.PHASE_ANNOTATION: "crds"},
        },
        "spec": {"group": constants.API_GROUP},
    }


def make_bundle_files(
    objects_by_phase: Optional[Dict[str, List[dict]]] = None,
    name: str = "package-operator",
    scopes: Optional[List[str]] = None,
) -> Dict[str, bytes]:
    """Build the files of a bundle with one yaml file per phase"""
    objects_by_phase = (
        objects_by_phase
        if objects_by_phase is not None
        else {"crds": [make_crd()], "deploy": []}
    )
    manifest = {
        "apiVersion": "manifests.package-operator.run/v1alpha1",
        "kind": constants.PACKAGE_MANIFEST_KIND,
        "metadata": {"name": name},
        "spec": {
            "scopes": scopes or ["Cluster", "Namespaced"],
            "phases": [{"name": phase} for phase in objects_by_phase],
        },
    }
    files = {"manifest.yaml": yaml.safe_dump(manifest).encode("utf-8")}
    for phase, objects in objects_by_phase.items():
        for obj in objects:
            obj.setdefault("metadata", {}).setdefault("annotations", {})[
                constants.PHASE_ANNOTATION
            ] = phase
        if objects:
            files[f"{phase}.yaml"] = yaml.safe_dump_all(objects).encode("utf-8")
    return files


def write_bundle(path: str, files: Dict[str, bytes]):
    """Write bundle files below the given folder"""
    for rel_path, content in files.items():
        full_path = os.path.join(path, rel_path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "wb") as handle:
            handle.write(content)
