"""State machines driving the job and pod subscriptions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from kubernetes import watch
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from k8s_job_proxy.models.k8s import EventType, JobEvent, JobPhase, PodEvent, WatcherKind
from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients, describe_error
from k8s_job_proxy.services.completion import CompletionTracker, spawn_detached
from k8s_job_proxy.services.log_streamer import LogStreamer
from k8s_job_proxy.services.status import WatchStatusRegistry
from k8s_job_proxy.services.subscription import Subscription, WatchFactory

logger = logging.getLogger(__name__)

Spawner = Callable[..., Any]


class JobFailedError(RuntimeError):
    """Raised when the job reports failed pods."""

    def __init__(self, failed: int) -> None:
        super().__init__(f"there are [ {failed} ] failed pods")
        self.failed = failed


class WatchError(RuntimeError):
    """Raised when the job event stream cannot be opened or its connection fails."""


class PodWatcher:
    """Follows the workload's pods and starts the log streamer.

    Runs detached from the main run: problems are logged and end the loop,
    they never decide the outcome of the run.
    """

    def __init__(
        self,
        registry: WatchStatusRegistry,
        tracker: CompletionTracker,
        log_streamer: LogStreamer,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.log_streamer = log_streamer

    def run(self, subscription: Subscription) -> None:
        """Consume pod events until the pod is deleted or the stream ends."""
        try:
            for event in subscription.events():
                if self._handle(event, subscription):
                    break
        except (ApiException, HTTPError) as e:
            logger.error("could not watch pod. err: %s", describe_error(e))
            subscription.stop()
        finally:
            self.registry.release(WatcherKind.POD)

    def _handle(self, event: PodEvent, subscription: Subscription) -> bool:
        """Apply one pod event; returns True when the loop has to end."""
        if event.type is EventType.ADDED:
            logger.debug("pod [ %s ] added, phase: [ %s ]", event.name, event.phase)
        elif event.type is EventType.MODIFIED:
            logger.debug("pod [ %s ] modified, phase: [ %s ]", event.name, event.phase)
            self._start_log_streamer(event.name)
        elif event.type is EventType.DELETED:
            logger.debug("pod [ %s ] deleted", event.name)
            subscription.stop()
            self.registry.release(WatcherKind.POD)
            return True
        elif event.type is EventType.ERROR:
            logger.debug("pod in error, phase: [ %s ], error: %s", event.phase, event.error)
        else:
            logger.debug("received (unhandled) pod event of type: [ %s ]", event.type.value)
        return False

    def _start_log_streamer(self, pod_name: str | None) -> None:
        if pod_name is None:
            return
        if self.log_streamer.has_streamed(pod_name):
            logger.debug("logs of pod [ %s ] already streamed", pod_name)
            return
        if not self.registry.claim(WatcherKind.LOG):
            logger.debug("logs already being watched")
            return
        self.tracker.spawn(f"log-{pod_name}", self.log_streamer.stream, pod_name)


class JobWatcher:
    """Drives the lifecycle of the submitted job.

    The loop runs on the calling thread and handles events strictly in
    arrival order. The first Modified event without a terminal condition
    starts a detached pod watcher; a Modified event with failed pods, with
    succeeded pods, or a Deleted event ends the loop.

    Example:
        ```python
        watcher = JobWatcher(workload, clients, registry, tracker, log_streamer)
        subscription = watcher.watch()
        submitter.submit()
        watcher.run(subscription)  # raises JobFailedError on failure
        ```
    """

    def __init__(
        self,
        workload: WorkloadSpec,
        clients: KubeClients,
        registry: WatchStatusRegistry,
        tracker: CompletionTracker,
        log_streamer: LogStreamer,
        watch_factory: WatchFactory = watch.Watch,
        spawn: Spawner = spawn_detached,
    ) -> None:
        self.workload = workload
        self.clients = clients
        self.registry = registry
        self.tracker = tracker
        self.log_streamer = log_streamer
        self.watch_factory = watch_factory
        self.spawn = spawn
        self.phase = JobPhase.PENDING
        self.pod_subscription: Subscription | None = None

    def watch(self) -> Subscription:
        """Open the job subscription and mark the job watcher active."""
        subscription = Subscription.for_jobs(self.workload, self.clients, self.watch_factory)
        self.registry.activate(WatcherKind.JOB)
        logger.debug("job watcher started")
        return subscription

    def run(self, subscription: Subscription) -> JobPhase:
        """Consume job events until a terminal event or the end of the stream.

        Returns:
            The phase the job ended in

        Raises:
            JobFailedError: If the job reports failed pods
            WatchError: If the event stream cannot be opened or its connection fails
        """
        try:
            for event in subscription.events():
                if self._handle(event, subscription):
                    break
        except (ApiException, HTTPError) as e:
            logger.error("could not watch jobs. err: %s", describe_error(e))
            subscription.stop()
            raise WatchError(
                f"Job watch for {self.workload.name} failed: {describe_error(e)}"
            ) from e
        finally:
            self.registry.release(WatcherKind.JOB)

        logger.debug("job [ %s ] finished in phase [ %s ]", self.workload.name, self.phase.value)
        return self.phase

    def _handle(self, event: JobEvent, subscription: Subscription) -> bool:
        """Apply one job event; returns True when the loop has to end."""
        if event.type is EventType.ADDED:
            logger.debug("job added; name: [ %s ]", event.name)
        elif event.type is EventType.MODIFIED:
            logger.debug(
                "job modified; failed: [ %d ], succeeded: [ %d ]",
                event.failed,
                event.succeeded,
            )
            if event.failed > 0:
                subscription.stop()
                self.phase = JobPhase.FAILED
                raise JobFailedError(event.failed)
            if event.succeeded > 0:
                subscription.stop()
                self.phase = JobPhase.SUCCEEDED
                return True
            self.phase = JobPhase.RUNNING
            self._start_pod_watcher()
        elif event.type is EventType.DELETED:
            logger.debug("job deleted; name: [ %s ]", event.name)
            subscription.stop()
            self.phase = JobPhase.DELETED
            return True
        elif event.type is EventType.ERROR:
            logger.warning("job in error; name: [ %s ], error: %s", event.name, event.error)
        else:
            logger.debug("received (unhandled) job event of type: [ %s ]", event.type.value)
        return False

    def _start_pod_watcher(self) -> None:
        if not self.registry.claim(WatcherKind.POD):
            logger.debug("pod is already being watched")
            return

        subscription = Subscription.for_pods(self.workload, self.clients, self.watch_factory)
        self.pod_subscription = subscription
        pod_watcher = PodWatcher(self.registry, self.tracker, self.log_streamer)
        logger.debug("pod watcher started")
        self.spawn("pod-watcher", pod_watcher.run, subscription)
