"""
Data models shared by the controllers and the manager that runs them
"""

# Standard
from dataclasses import dataclass, field
from typing import Optional
import datetime

# Local
from . import config

## Data models #################################################################


@dataclass
class RequeueParams:
    """RequeueParams holds parameters for requeue request"""

    requeue_after: datetime.timedelta = field(
        default_factory=lambda: datetime.timedelta(
            seconds=float(config.requeue_after_seconds)
        )
    )


@dataclass
class ReconciliationResult:
    """ReconciliationResult is the result of a single reconcile of an object"""

    # Flag to control requeue of current reconcile request
    requeue: bool
    # Parameters for requeue request
    requeue_params: RequeueParams = field(default_factory=RequeueParams)


@dataclass(frozen=True)
class StepResult:
    """Result of a single step in an ordered reconcile chain. A step either
    lets the chain continue or stops it, optionally asking for a requeue.
    """

    stop: bool = False
    requeue_after: Optional[datetime.timedelta] = None

    @classmethod
    def proceed(cls) -> "StepResult":
        """Let the chain run the next step"""
        return cls()

    @classmethod
    def halt(
        cls, requeue_after: Optional[datetime.timedelta] = None
    ) -> "StepResult":
        """Stop the chain, requeueing after the given delay if set"""
        return cls(stop=True, requeue_after=requeue_after)

    def to_reconciliation_result(self) -> ReconciliationResult:
        """Convert a chain result into the result of the reconcile"""
        if self.requeue_after is None:
            return ReconciliationResult(requeue=False)
        return ReconciliationResult(
            requeue=True, requeue_params=RequeueParams(self.requeue_after)
        )


@dataclass(frozen=True)
class ObjectKey:
    """Identifies one object handled by a controller"""

    name: str
    namespace: Optional[str] = None

    def __str__(self):
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name
