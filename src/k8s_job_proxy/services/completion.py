"""Tracking of background tasks spawned during a run."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def spawn_detached(name: str, target: Callable[..., Any], *args: Any) -> threading.Thread:
    """Start a task whose failures are only logged.

    The task runs on a daemon thread; its outcome never reaches the caller.

    Args:
        name: Thread name, used in log messages
        target: Callable to run
        *args: Arguments for the callable

    Returns:
        The started thread
    """

    def _run() -> None:
        try:
            target(*args)
        except Exception:
            logger.exception("task [ %s ] failed", name)

    thread = threading.Thread(target=_run, name=name, daemon=True)
    thread.start()
    return thread


class CompletionTracker:
    """Counter of outstanding tracked tasks that a run waits on.

    The counter is incremented before a task starts and decremented when the
    task ends, whether it returned or raised.

    Example:
        ```python
        tracker = CompletionTracker()
        tracker.spawn("log-stream", streamer.stream, pod_name)
        tracker.wait()  # returns once every spawned task has ended
        ```
    """

    def __init__(self) -> None:
        self._count = 0
        self._condition = threading.Condition()

    @property
    def outstanding(self) -> int:
        with self._condition:
            return self._count

    def add(self) -> None:
        with self._condition:
            self._count += 1

    def done(self) -> None:
        with self._condition:
            if self._count == 0:
                raise RuntimeError("CompletionTracker.done() called more often than add()")
            self._count -= 1
            if self._count == 0:
                self._condition.notify_all()

    def spawn(self, name: str, target: Callable[..., Any], *args: Any) -> threading.Thread:
        """Start a tracked task on a daemon thread.

        Failures of the task are logged; the counter is decremented regardless.
        """
        self.add()

        def _run() -> None:
            try:
                target(*args)
            except Exception:
                logger.exception("task [ %s ] failed", name)
            finally:
                self.done()

        thread = threading.Thread(target=_run, name=name, daemon=True)
        try:
            thread.start()
        except RuntimeError:
            self.done()
            raise
        return thread

    def wait(self) -> None:
        """Block until no tracked task is outstanding."""
        with self._condition:
            if self._count:
                logger.debug("waiting for [ %d ] outstanding task(s)", self._count)
            self._condition.wait_for(lambda: self._count == 0)
