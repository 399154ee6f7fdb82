"""
Controllers driving Package and ClusterPackage objects
"""

# Local
from .package_controller import (
    ClusterPackageController,
    GenericPackageController,
    PackageController,
)
from .reconcilers import ObjectDeploymentStatusReconciler, UnpackReconciler
