"""Pytest configuration and shared fixtures for k8s-job-proxy tests."""

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest
from kubernetes.client import V1Job, V1JobStatus, V1ObjectMeta, V1Pod, V1PodStatus
from kubernetes.client.exceptions import ApiException

from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients
from k8s_job_proxy.services.completion import CompletionTracker
from k8s_job_proxy.services.status import WatchStatusRegistry

RawEvent = dict[str, Any]


@pytest.fixture
def workload() -> WorkloadSpec:
    """Create a workload as built from a typical CI environment."""
    return WorkloadSpec(
        name="job-1",
        namespace="ci",
        image="golang:1.22",
        working_dir="/drone/src",
        env={"PLUGIN_ORIGINAL_IMAGE": "golang:1.22", "DRONE_BUILD_NUMBER": "42"},
        labels={"k8s-job-proxy/run": "job-1"},
        service_account="builder",
        claim_name="repo-42-workspace",
    )


@pytest.fixture
def mock_batch_api():
    """Create a mock BatchV1Api."""
    return MagicMock()


@pytest.fixture
def mock_core_api():
    """Create a mock CoreV1Api."""
    return MagicMock()


@pytest.fixture
def clients(mock_batch_api, mock_core_api) -> KubeClients:
    """Create KubeClients wrapping the mocked APIs."""
    return KubeClients.from_apis(mock_batch_api, mock_core_api)


@pytest.fixture
def registry() -> WatchStatusRegistry:
    return WatchStatusRegistry()


@pytest.fixture
def tracker() -> CompletionTracker:
    return CompletionTracker()


@pytest.fixture
def job_event() -> Callable[..., RawEvent]:
    """Factory for raw job watch events as yielded by kubernetes.watch."""

    def _make(
        event_type: str,
        failed: int | None = None,
        succeeded: int | None = None,
        active: int | None = None,
        name: str = "job-1",
    ) -> RawEvent:
        job = V1Job(
            metadata=V1ObjectMeta(name=name),
            status=V1JobStatus(failed=failed, succeeded=succeeded, active=active),
        )
        return {"type": event_type, "object": job, "raw_object": {}}

    return _make


@pytest.fixture
def pod_event() -> Callable[..., RawEvent]:
    """Factory for raw pod watch events as yielded by kubernetes.watch."""

    def _make(event_type: str, name: str = "job-1-x7k2p", phase: str = "Running") -> RawEvent:
        pod = V1Pod(metadata=V1ObjectMeta(name=name), status=V1PodStatus(phase=phase))
        return {"type": event_type, "object": pod, "raw_object": {}}

    return _make


def make_watch(events: list[RawEvent]) -> MagicMock:
    """Create a mock kubernetes.watch.Watch streaming the given events."""
    mock_watch = MagicMock()
    mock_watch.stream.return_value = iter(events)
    return mock_watch


@pytest.fixture
def watch_for() -> Callable[[list[RawEvent]], MagicMock]:
    return make_watch


class FakeWatchResponse:
    """A streaming list response serving newline-delimited watch events."""

    status = 200

    def __init__(self, lines: list[RawEvent]) -> None:
        self.lines = lines

    def stream(self, amt=None, decode_content=False):
        for line in self.lines:
            yield (json.dumps(line) + "\n").encode()

    def close(self) -> None:
        pass

    def release_conn(self) -> None:
        pass


class FakeListFunction:
    """A list call for a real kubernetes.watch.Watch, one response per (re)connect."""

    def __init__(self, *responses: list[RawEvent]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> FakeWatchResponse:
        self.calls.append(kwargs)
        if not self.responses:
            raise AssertionError("watch reconnected more often than expected")
        return FakeWatchResponse(self.responses.pop(0))


def raw_job(event_type: str, resource_version: str, **status: int) -> RawEvent:
    """A job event as sent on the wire."""
    return {
        "type": event_type,
        "object": {
            "apiVersion": "batch/v1",
            "kind": "Job",
            "metadata": {"name": "job-1", "resourceVersion": resource_version},
            "status": status,
        },
    }


def raw_pod(event_type: str, resource_version: str, phase: str = "Running") -> RawEvent:
    """A pod event as sent on the wire."""
    return {
        "type": event_type,
        "object": {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": "job-1-x7k2p", "resourceVersion": resource_version},
            "status": {"phase": phase},
        },
    }


def raw_error(code: int, reason: str, message: str) -> RawEvent:
    """An ERROR event carrying a Status object, as sent on the wire."""
    return {
        "type": "ERROR",
        "object": {
            "kind": "Status",
            "apiVersion": "v1",
            "status": "Failure",
            "code": code,
            "reason": reason,
            "message": message,
        },
    }


def http_api_error(status: int, reason: str) -> ApiException:
    """An ApiException as raised for a failed HTTP request."""
    response = MagicMock(status=status, reason=reason, data=b"{}")
    response.headers = {"Content-Type": "application/json"}
    return ApiException(http_resp=response)
