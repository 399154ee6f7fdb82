"""
Metrics hooks called by the package controllers and the prometheus recorder
served by the run command
"""

# Standard
from typing import Dict, Optional, Tuple
import abc

# Third Party
from prometheus_client import CollectorRegistry, Gauge, Histogram, start_http_server

# First Party
import alog

# Local
from . import constants
from .adapters import GenericPackage
from .status import is_condition_true

log = alog.use_channel("METRC")

PACKAGE_LABELS = ("kind", "namespace", "name")


class MetricsRecorderBase(abc.ABC):
    """Base class for recorders receiving package metrics"""

    @abc.abstractmethod
    def record_package_metrics(self, package: GenericPackage):
        """Called with the fully loaded package after every reconcile that
        completes without error
        """

    @abc.abstractmethod
    def record_package_load_metric(self, package: GenericPackage, duration: float):
        """Called with the end-to-end load duration in seconds on the first
        successful unpack of a package
        """


class PackageMetricsRecorder(MetricsRecorderBase):
    """Prometheus gauges for packages. Each package exports its current phase
    and availability and the duration of its first load.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Args:
            registry:  Optional[CollectorRegistry]
                Registry holding the collectors. Each recorder gets its own
                registry unless one is given.
        """
        self.registry = registry or CollectorRegistry()
        self.package_phase = Gauge(
            "package_operator_package_phase",
            "Current phase of a package, 1 for the active phase",
            PACKAGE_LABELS + ("phase",),
            registry=self.registry,
        )
        self.package_available = Gauge(
            "package_operator_package_available",
            "Whether a package reports Available=True",
            PACKAGE_LABELS,
            registry=self.registry,
        )
        self.package_load_duration = Gauge(
            "package_operator_package_load_duration_seconds",
            "Seconds from creation of a package until its first successful unpack",
            PACKAGE_LABELS,
            registry=self.registry,
        )
        self.load_durations = Histogram(
            "package_operator_package_load_seconds",
            "Distribution of package load durations",
            registry=self.registry,
        )

        # Label values currently exported per package so stale series can be
        # removed
        self._phases: Dict[Tuple[str, str, str], str] = {}
        self._loaded = set()

    def record_package_metrics(self, package: GenericPackage):
        key = self._key(package)
        if package.deleting:
            self._drop(key)
            log.debug2("Dropped metrics of deleted %s", package)
            return

        phase = package.phase or ""
        previous = self._phases.get(key)
        if previous is not None and previous != phase:
            self.package_phase.remove(*key, previous)
        self.package_phase.labels(*key, phase).set(1)
        self._phases[key] = phase

        available = is_condition_true(constants.PACKAGE_AVAILABLE, package.status)
        self.package_available.labels(*key).set(1 if available else 0)
        log.debug2("Recorded %s phase=%s available=%s", package, phase, available)

    def record_package_load_metric(self, package: GenericPackage, duration: float):
        key = self._key(package)
        self.package_load_duration.labels(*key).set(duration)
        self.load_durations.observe(duration)
        self._loaded.add(key)
        log.debug("Package %s loaded in %.3fs", package, duration)

    ## Implementation Details ##################################################

    def _drop(self, key: Tuple[str, str, str]):
        phase = self._phases.pop(key, None)
        if phase is not None:
            self.package_phase.remove(*key, phase)
            self.package_available.remove(*key)
        if key in self._loaded:
            self._loaded.discard(key)
            self.package_load_duration.remove(*key)

    @staticmethod
    def _key(package: GenericPackage) -> Tuple[str, str, str]:
        return (package.KIND, package.namespace or "", package.name)


def serve_metrics(recorder: PackageMetricsRecorder, port: int) -> bool:
    """Serve the recorder's registry over http on the given port. A port of 0
    disables serving.

    Returns:
        serving:  bool
            Whether the metrics server was started
    """
    if not port:
        log.debug("Metrics server disabled")
        return False
    try:
        start_http_server(port, registry=recorder.registry)
    except OSError as err:
        log.warning("Failed to start metrics server on port %d: %s", port, err)
        return False
    log.info("Metrics server started on port %d", port)
    return True
