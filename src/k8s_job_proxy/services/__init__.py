"""Service layer: submitting the workload and following it."""

from k8s_job_proxy.services.cluster import ClusterConfigError, KubeClients
from k8s_job_proxy.services.completion import CompletionTracker, spawn_detached
from k8s_job_proxy.services.k8s_jobs import JobSubmissionError, JobSubmitter
from k8s_job_proxy.services.log_streamer import LogStreamer
from k8s_job_proxy.services.resources import ResourceLifecycleManager, StorageClaimError
from k8s_job_proxy.services.runner import JobRunner
from k8s_job_proxy.services.status import WatchStatusRegistry
from k8s_job_proxy.services.subscription import Subscription, decode_event
from k8s_job_proxy.services.watchers import JobFailedError, JobWatcher, PodWatcher, WatchError

__all__ = [
    "ClusterConfigError",
    "CompletionTracker",
    "JobFailedError",
    "JobRunner",
    "JobSubmissionError",
    "JobSubmitter",
    "JobWatcher",
    "KubeClients",
    "LogStreamer",
    "PodWatcher",
    "ResourceLifecycleManager",
    "StorageClaimError",
    "Subscription",
    "WatchError",
    "WatchStatusRegistry",
    "decode_event",
    "spawn_detached",
]
