"""Kubernetes-related models for watching the workload."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubernetes.client import V1Job, V1Pod


class ResourceKind(str, Enum):
    """Kind of resource a subscription delivers events for."""

    JOB = "job"
    POD = "pod"


class WatcherKind(str, Enum):
    """Kinds of watchers tracked in the status registry."""

    JOB = "job"
    POD = "pod"
    LOG = "log"


class EventType(str, Enum):
    """Type of a watch event as reported by the cluster."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> EventType:
        """Map a raw event type string, BOOKMARK and unknown types included."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


class JobPhase(str, Enum):
    """State of the job watcher's state machine."""

    PENDING = "pending"  # Subscription opened, job not yet running
    RUNNING = "running"  # Modified without a terminal condition
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DELETED = "deleted"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.SUCCEEDED, JobPhase.FAILED, JobPhase.DELETED)


@dataclass(frozen=True)
class JobEvent:
    """A lifecycle notification for the submitted job."""

    type: EventType
    job: V1Job | None
    error: str | None = None

    kind = ResourceKind.JOB

    @property
    def name(self) -> str | None:
        if self.job is None or self.job.metadata is None:
            return None
        return self.job.metadata.name

    @property
    def failed(self) -> int:
        """Number of failed pods reported by the job status."""
        if self.job is None or self.job.status is None:
            return 0
        return self.job.status.failed or 0

    @property
    def succeeded(self) -> int:
        """Number of succeeded pods reported by the job status."""
        if self.job is None or self.job.status is None:
            return 0
        return self.job.status.succeeded or 0


@dataclass(frozen=True)
class PodEvent:
    """A lifecycle notification for a pod of the workload."""

    type: EventType
    pod: V1Pod | None
    error: str | None = None

    kind = ResourceKind.POD

    @property
    def name(self) -> str | None:
        if self.pod is None or self.pod.metadata is None:
            return None
        return self.pod.metadata.name

    @property
    def phase(self) -> str | None:
        if self.pod is None or self.pod.status is None:
            return None
        return self.pod.status.phase


WatchEvent = JobEvent | PodEvent
