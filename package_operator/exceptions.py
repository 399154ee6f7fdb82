"""
This module implements custom exceptions
"""

## Base Error ##################################################################


class PackageOperatorError(Exception):
    """Base class for all package operator exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error should abort the
        current attempt rather than be retried in place
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class PackageOperatorFatalError(PackageOperatorError):
    """A PackageOperatorFatalError is one that indicates an unexpected, and
    likely unrecoverable, failure of the current attempt.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(PackageOperatorFatalError):
    """Exception caused during usage of user-provided configuration"""


class ClusterError(PackageOperatorFatalError):
    """Exception caused when a cluster operation fails in an unexpected way.
    This covers transport errors and any API error without a more specific
    type below.
    """


class BootstrapError(PackageOperatorFatalError):
    """Exception raised when the self-bootstrap cannot be completed"""


## Typed Cluster Errors ########################################################


class NotFoundError(ClusterError):
    """The requested object does not exist in the cluster"""


class NoMatchError(NotFoundError):
    """The kind of the requested object is not served by the cluster. This is
    the case until its CRD is installed and discovered.
    """


class AlreadyExistsError(ClusterError):
    """The object to create already exists in the cluster"""


class ConflictError(ClusterError):
    """The write was rejected because the object changed since it was read"""


## Expected Errors #############################################################


class PackageOperatorExpectedError(PackageOperatorError):
    """A PackageOperatorExpectedError is one that indicates an expected failure
    condition that should cause a reconciliation to terminate, but is expected
    to resolve in a subsequent reconciliation.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class PackageInvalidError(PackageOperatorExpectedError):
    """Exception raised when the content of a package bundle cannot be loaded"""


class ImagePullError(PackageOperatorExpectedError):
    """Exception raised when the image of a package cannot be resolved"""


class AdoptionError(PackageOperatorExpectedError):
    """Exception raised when an object that should be managed by a package
    already exists, is not owned by it, and adoption is not forced
    """


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when a configuration value does not allow the operator to continue.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when the cluster is found in a state that does not allow the
    current operation to continue.
    """
    if not condition:
        raise ClusterError(message)


def with_context(err: PackageOperatorError, context: str) -> PackageOperatorError:
    """Create an error of the same type with a contextual message prefix. Use
    as `raise with_context(err, "doing x") from err`.
    """
    return type(err)(f"{context}: {err}")
