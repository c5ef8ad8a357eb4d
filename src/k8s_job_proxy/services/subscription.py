"""Stoppable subscriptions to the cluster's event stream."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from http import HTTPStatus
from typing import Any

from kubernetes import watch
from kubernetes.client import V1Job, V1Pod
from kubernetes.client.exceptions import ApiException

from k8s_job_proxy.models.k8s import EventType, JobEvent, PodEvent, ResourceKind, WatchEvent
from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients, describe_error

logger = logging.getLogger(__name__)

WatchFactory = Callable[[], watch.Watch]


def decode_event(kind: ResourceKind, raw: dict[str, Any]) -> WatchEvent:
    """Decode a raw watch event by the subscription's declared resource kind.

    A payload of the wrong type (e.g. a status object on an ERROR event)
    is dropped rather than passed on.
    """
    event_type = EventType.parse(raw.get("type"))
    payload = raw.get("object")
    if kind is ResourceKind.JOB:
        return JobEvent(type=event_type, job=payload if isinstance(payload, V1Job) else None)
    return PodEvent(type=event_type, pod=payload if isinstance(payload, V1Pod) else None)


def is_error_event(e: ApiException) -> bool:
    """Whether the exception stands for an ERROR event read off an open stream.

    The watch raises those without an HTTP response, so they carry no
    headers; failed requests carry the response headers, and transport
    failures have no status.
    """
    return e.headers is None and bool(e.status)


def decode_error(kind: ResourceKind, e: ApiException) -> WatchEvent:
    """Turn an ERROR event raised by the watch into a payload-less event."""
    error = describe_error(e)
    if kind is ResourceKind.JOB:
        return JobEvent(type=EventType.ERROR, job=None, error=error)
    return PodEvent(type=EventType.ERROR, pod=None, error=error)


class Subscription:
    """A live, explicitly stoppable stream of events for one resource kind.

    Events are yielded in arrival order; none are yielded once ``stop`` has
    been called.
    """

    def __init__(
        self,
        kind: ResourceKind,
        list_func: Callable[..., Any],
        namespace: str,
        label_selector: str,
        watcher: watch.Watch | None = None,
    ) -> None:
        self.kind = kind
        self.namespace = namespace
        self.label_selector = label_selector
        self._list_func = list_func
        self._watch = watcher if watcher is not None else watch.Watch()
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def events(self) -> Iterator[WatchEvent]:
        """Yield decoded events until the subscription is stopped or the stream ends.

        An ERROR event sent by the server is yielded as such and the stream
        is reopened from the last seen resource version.

        Raises:
            ApiException: If the stream cannot be opened
            HTTPError: If the connection to the API server fails
        """
        while not self._stopped:
            try:
                for raw in self._open():
                    if self._stopped:
                        return
                    yield decode_event(self.kind, raw)
                    if self._stopped:
                        return
            except ApiException as e:
                if not is_error_event(e):
                    raise
                if e.status == HTTPStatus.GONE:
                    # The last seen version expired; resume from the current state
                    self._watch.resource_version = None
                logger.debug("reopening the %s watcher after an error event", self.kind.value)
                yield decode_error(self.kind, e)
            else:
                return

    def _open(self) -> Iterator[dict[str, Any]]:
        kwargs: dict[str, Any] = {
            "namespace": self.namespace,
            "label_selector": self.label_selector,
        }
        resource_version = getattr(self._watch, "resource_version", None)
        if isinstance(resource_version, str):
            kwargs["resource_version"] = resource_version
        return self._watch.stream(self._list_func, **kwargs)

    def stop(self) -> None:
        """Stop the subscription; further calls have no effect."""
        if self._stopped:
            return
        self._stopped = True
        self._watch.stop()
        logger.debug("closing the %s watcher", self.kind.value)

    @classmethod
    def for_jobs(
        cls,
        workload: WorkloadSpec,
        clients: KubeClients,
        watch_factory: WatchFactory = watch.Watch,
    ) -> Subscription:
        """Subscribe to the workload's jobs by label selector."""
        return cls(
            ResourceKind.JOB,
            clients.batch_api.list_namespaced_job,
            namespace=workload.namespace,
            label_selector=workload.label_selector,
            watcher=watch_factory(),
        )

    @classmethod
    def for_pods(
        cls,
        workload: WorkloadSpec,
        clients: KubeClients,
        watch_factory: WatchFactory = watch.Watch,
    ) -> Subscription:
        """Subscribe to the workload's pods; their names are not known in advance."""
        return cls(
            ResourceKind.POD,
            clients.core_api.list_namespaced_pod,
            namespace=workload.namespace,
            label_selector=workload.label_selector,
            watcher=watch_factory(),
        )
