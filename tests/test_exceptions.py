"""
Tests for the exception hierarchy and its helpers
"""

# Third Party
import pytest

# Local
from package_operator import exceptions


def test_fatal_and_expected_errors():
    """Make sure that the fatal flag is set by the hierarchy"""
    assert exceptions.NotFoundError("x").is_fatal_error
    assert exceptions.BootstrapError().is_fatal_error
    assert not exceptions.PackageInvalidError().is_fatal_error
    assert not exceptions.AdoptionError().is_fatal_error


def test_typed_cluster_errors():
    """All typed cluster errors are ClusterErrors"""
    for error_type in (
        exceptions.NotFoundError,
        exceptions.AlreadyExistsError,
        exceptions.ConflictError,
    ):
        assert issubclass(error_type, exceptions.ClusterError)


def test_no_match_is_not_found():
    """An unserved kind is handled wherever a missing object is"""
    assert issubclass(exceptions.NoMatchError, exceptions.NotFoundError)


def test_assert_helpers():
    exceptions.assert_config(True)
    exceptions.assert_cluster(True)
    with pytest.raises(exceptions.ConfigError):
        exceptions.assert_config(False, "bad config")
    with pytest.raises(exceptions.ClusterError):
        exceptions.assert_cluster(False, "bad cluster")


def test_with_context_keeps_type():
    """Adding context keeps the typed error so callers can still match it"""
    err = exceptions.ConflictError("object changed")
    wrapped = exceptions.with_context(err, "patching foo")
    assert isinstance(wrapped, exceptions.ConflictError)
    assert str(wrapped) == "patching foo: object changed"
