"""Top-level orchestration of one plugin run."""

from __future__ import annotations

import logging
from typing import BinaryIO

from kubernetes import watch

from k8s_job_proxy.core.telemetry import get_tracer
from k8s_job_proxy.models.k8s import JobPhase, WatcherKind
from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients
from k8s_job_proxy.services.completion import CompletionTracker
from k8s_job_proxy.services.k8s_jobs import JobSubmitter
from k8s_job_proxy.services.log_streamer import LogStreamer
from k8s_job_proxy.services.resources import ResourceLifecycleManager
from k8s_job_proxy.services.status import WatchStatusRegistry
from k8s_job_proxy.services.subscription import WatchFactory
from k8s_job_proxy.services.watchers import JobFailedError, JobWatcher, WatchError

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


class JobRunner:
    """Submits the workload and follows it until all observable work is done.

    A run gets or creates the workspace claim, subscribes to job events,
    submits the job, and consumes job events on the calling thread. Once
    the job has ended, or its watch has failed, the run waits for
    outstanding log streams. Cleanup happens only after a successful job;
    a failed job is left in place.
    """

    def __init__(
        self,
        workload: WorkloadSpec,
        clients: KubeClients,
        cleanup_claim: bool = False,
        output: BinaryIO | None = None,
        watch_factory: WatchFactory = watch.Watch,
    ) -> None:
        self.workload = workload
        self.clients = clients
        self.cleanup_claim = cleanup_claim
        self.registry = WatchStatusRegistry()
        self.tracker = CompletionTracker()
        self.resources = ResourceLifecycleManager(workload, clients)
        self.submitter = JobSubmitter(workload, clients)
        self.log_streamer = LogStreamer(workload, clients, self.registry, output=output)
        self.job_watcher = JobWatcher(
            workload,
            clients,
            self.registry,
            self.tracker,
            self.log_streamer,
            watch_factory=watch_factory,
        )

    def run(self) -> JobPhase:
        """Run the workload to completion.

        Returns:
            The terminal phase of the job (succeeded or deleted)

        Raises:
            StorageClaimError: If the claim cannot be created
            JobSubmissionError: If the job cannot be created
            JobFailedError: If the job reports failed pods
            WatchError: If the job event stream cannot be opened or its connection fails
        """
        with tracer.start_as_current_span("k8s_job.run") as span:
            span.set_attribute("k8s.job.name", self.workload.name)
            span.set_attribute("k8s.namespace.name", self.workload.namespace)

            self.resources.get_or_create_claim()

            subscription = self.job_watcher.watch()
            with tracer.start_as_current_span("k8s_job.submit"):
                try:
                    self.submitter.submit()
                except Exception:
                    subscription.stop()
                    self.registry.release(WatcherKind.JOB)
                    raise

            with tracer.start_as_current_span("k8s_job.watch"):
                try:
                    phase = self.job_watcher.run(subscription)
                except JobFailedError:
                    span.set_attribute("k8s.job.phase", JobPhase.FAILED.value)
                    self.tracker.wait()
                    raise
                except WatchError:
                    self.tracker.wait()
                    raise

            span.set_attribute("k8s.job.phase", phase.value)
            if not phase.is_terminal:
                logger.warning("job event stream for [ %s ] ended before the job finished", self.workload.name)

            self.tracker.wait()

            with tracer.start_as_current_span("k8s_job.cleanup"):
                self.resources.cleanup(delete_claim=self.cleanup_claim)

            return phase
