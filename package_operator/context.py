"""
Cancellable run context shared by the long running parts of the operator
"""

# Standard
from typing import List, Optional
import threading

# First Party
import alog

log = alog.use_channel("CTX")


class RunContext:
    """A RunContext scopes a unit of work that can be cancelled from another
    thread. Cancelling a context also cancels every context derived from it.
    Each context carries the force_adoption flag that object application reads
    to decide whether unowned objects may be claimed.
    """

    def __init__(
        self,
        parent: Optional["RunContext"] = None,
        force_adoption: Optional[bool] = None,
        name: str = "",
    ):
        """
        Args:
            parent:  Optional[RunContext]
                The context this one is derived from
            force_adoption:  Optional[bool]
                Explicit adoption flag. If None, the parent's value is used.
            name:  str
                Name used in logs
        """
        self.name = name or (parent.name if parent else "root")
        self._parent = parent
        self._cancelled = threading.Event()
        self._children: List["RunContext"] = []
        self._lock = threading.Lock()
        if force_adoption is None:
            force_adoption = parent.force_adoption if parent else False
        self._force_adoption = force_adoption
        if parent:
            parent._add_child(self)

    @property
    def force_adoption(self) -> bool:
        """Whether pre-existing unowned objects may be claimed"""
        return self._force_adoption

    def child(
        self, force_adoption: Optional[bool] = None, name: str = ""
    ) -> "RunContext":
        """Derive a new context that is cancelled together with this one"""
        return RunContext(parent=self, force_adoption=force_adoption, name=name)

    def cancel(self):
        """Cancel this context and every context derived from it"""
        if self._cancelled.is_set():
            return
        log.debug("Cancelling context %s", self.name)
        self._cancelled.set()
        with self._lock:
            children = list(self._children)
        for child in children:
            child.cancel()

    def cancelled(self) -> bool:
        """Whether the context has been cancelled"""
        return self._cancelled.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the context is cancelled or the timeout expires

        Returns:
            cancelled:  bool
                True if the context was cancelled
        """
        return self._cancelled.wait(timeout)

    def _add_child(self, child: "RunContext"):
        with self._lock:
            self._children.append(child)
        if self.cancelled():
            child.cancel()
