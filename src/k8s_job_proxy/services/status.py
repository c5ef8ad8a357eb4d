"""Registry of the watchers currently active in this process."""

import logging
import threading

from k8s_job_proxy.models.k8s import WatcherKind

logger = logging.getLogger(__name__)


class WatchStatusRegistry:
    """Thread-safe record of which watcher kinds are active.

    Watchers run on separate threads and consult the registry before spawning
    a dependent watcher. ``claim`` is an atomic test-and-set, so at most one
    watcher of each kind is active at any time.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: dict[WatcherKind, bool] = {kind: False for kind in WatcherKind}

    def is_active(self, kind: WatcherKind) -> bool:
        with self._lock:
            return self._active[kind]

    def claim(self, kind: WatcherKind) -> bool:
        """Mark a watcher kind active unless it already is.

        Returns:
            True if the caller now owns the kind, False if it was already active
        """
        with self._lock:
            if self._active[kind]:
                return False
            self._active[kind] = True
        logger.debug("Switching on watching status for: [ %s ]", kind.value)
        return True

    def activate(self, kind: WatcherKind) -> None:
        with self._lock:
            self._active[kind] = True
        logger.debug("Switching on watching status for: [ %s ]", kind.value)

    def release(self, kind: WatcherKind) -> None:
        with self._lock:
            self._active[kind] = False
        logger.debug("Switching off watching status for: [ %s ]", kind.value)

    def snapshot(self) -> dict[WatcherKind, bool]:
        with self._lock:
            return dict(self._active)
