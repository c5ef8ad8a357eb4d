"""Proxy of the workload's pod log to standard output."""

from __future__ import annotations

import logging
import sys
import threading
from typing import BinaryIO

from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from k8s_job_proxy.models.k8s import WatcherKind
from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients, describe_error
from k8s_job_proxy.services.status import WatchStatusRegistry

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096


class LogStreamer:
    """Follows a pod's log and copies it to an output stream.

    Copying blocks until the log source closes, i.e. until the container
    exits. Failures are logged and never raised: the job watcher alone
    decides the outcome of a run.
    """

    def __init__(
        self,
        workload: WorkloadSpec,
        clients: KubeClients,
        registry: WatchStatusRegistry,
        output: BinaryIO | None = None,
    ) -> None:
        self.workload = workload
        self.clients = clients
        self.registry = registry
        self._output = output
        self._streamed: set[str] = set()
        self._lock = threading.Lock()

    @property
    def output(self) -> BinaryIO:
        if self._output is not None:
            return self._output
        return sys.stdout.buffer

    def has_streamed(self, pod_name: str) -> bool:
        """Whether the log of the pod has already been opened."""
        with self._lock:
            return pod_name in self._streamed

    def stream(self, pod_name: str) -> int:
        """Copy the pod's log to the output until the log closes.

        Args:
            pod_name: Name of the pod to follow

        Returns:
            Number of bytes written
        """
        try:
            response = self.clients.core_api.read_namespaced_pod_log(
                name=pod_name,
                namespace=self.workload.namespace,
                follow=True,
                _preload_content=False,
            )
        except (ApiException, HTTPError) as e:
            logger.warning("could not stream the logs. error: %s", describe_error(e))
            self.registry.release(WatcherKind.LOG)
            return 0

        with self._lock:
            self._streamed.add(pod_name)
        self.registry.activate(WatcherKind.LOG)
        logger.info("***** streaming the logs for pod [ %s ] *****", pod_name)

        written = 0
        try:
            for chunk in response.stream(CHUNK_SIZE):
                self.output.write(chunk)
                self.output.flush()
                written += len(chunk)
        except (HTTPError, OSError) as e:
            logger.error("log stream for pod [ %s ] broke off: %s", pod_name, e)
        finally:
            response.release_conn()
            self.registry.release(WatcherKind.LOG)

        logger.debug("Bytes written: [ %d ]", written)
        logger.info("***** end of the logs for pod [ %s ] *****", pod_name)
        return written
