"""
Self-installation of the package operator
"""

# Local
from .bootstrapper import (
    AvailabilityPoller,
    Bootstrapper,
    BootstrapState,
    is_package_available,
    needs_bootstrap,
)
from .cleanup import delete_and_verify, forced_cleanup, needs_forced_cleanup
from .revisions import compute_revision_repairs, fix_missing_revision_numbers
