"""
Package exports
"""

# Local
from . import config, constants, reconcile, status, watch_manager
from .bootstrap import Bootstrapper, BootstrapState, needs_bootstrap
from .context import RunContext
from .controllers import ClusterPackageController, PackageController
from .deploy_manager import DeployManagerBase
from .exceptions import assert_cluster, assert_config
from .reconcile import ObjectKey, ReconciliationResult
from .watch_manager import ControllerManager
