"""
Loading, resolving and deploying package bundles
"""

# Local
from .deployer import PackageDeployer
from .image_puller import FolderImagePuller, ImagePullerBase
from .loader import (
    PackageContent,
    PackageLoader,
    PackagePhase,
    crds_from_template_spec,
    load_files,
    template_spec_from_package,
)
