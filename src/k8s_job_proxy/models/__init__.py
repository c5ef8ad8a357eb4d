"""Data models for the workload and its cluster events."""

from k8s_job_proxy.models.k8s import (
    EventType,
    JobEvent,
    JobPhase,
    PodEvent,
    ResourceKind,
    WatchEvent,
    WatcherKind,
)
from k8s_job_proxy.models.workload import (
    ENV_PREFIXES,
    WorkloadSpec,
    filter_env,
    make_claim_name,
    make_job_name,
)

__all__ = [
    "ENV_PREFIXES",
    "EventType",
    "JobEvent",
    "JobPhase",
    "PodEvent",
    "ResourceKind",
    "WatchEvent",
    "WatcherKind",
    "WorkloadSpec",
    "filter_env",
    "make_claim_name",
    "make_job_name",
]
