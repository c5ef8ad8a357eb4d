"""Kubernetes API clients for the plugin run."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

if TYPE_CHECKING:
    from kubernetes.client import BatchV1Api, CoreV1Api

logger = logging.getLogger(__name__)


class ClusterConfigError(RuntimeError):
    """Raised when no usable Kubernetes configuration is available."""


def describe_error(e: Exception) -> str:
    """One-line description of an API or connection error."""
    if isinstance(e, ApiException):
        return f"({e.status}) {e.reason}"
    return str(e)


class KubeClients:
    """Lazily constructed Kubernetes API clients.

    The kubeconfig file is used when it exists, otherwise the in-cluster
    configuration of the pod the plugin runs in.
    """

    def __init__(self, kubeconfig_path: Path | None = None) -> None:
        self.kubeconfig_path = kubeconfig_path
        self._batch_api: BatchV1Api | None = None
        self._core_api: CoreV1Api | None = None
        self._initialized = False

    def _ensure_initialized(self) -> None:
        """Initialize Kubernetes clients if not already done."""
        if self._initialized:
            return

        try:
            if self.kubeconfig_path is not None and self.kubeconfig_path.is_file():
                logger.info("kube config path: [ %s ]", self.kubeconfig_path)
                config.load_kube_config(config_file=str(self.kubeconfig_path))
            else:
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration")
        except config.ConfigException as e:
            logger.error("could not build kubeconfig. err: %s", e)
            raise ClusterConfigError("No Kubernetes configuration available") from e

        self._batch_api = client.BatchV1Api()
        self._core_api = client.CoreV1Api()
        self._initialized = True

    @property
    def batch_api(self) -> BatchV1Api:
        """Get the BatchV1 API client."""
        self._ensure_initialized()
        assert self._batch_api is not None
        return self._batch_api

    @property
    def core_api(self) -> CoreV1Api:
        """Get the CoreV1 API client."""
        self._ensure_initialized()
        assert self._core_api is not None
        return self._core_api

    @classmethod
    def from_apis(cls, batch_api: BatchV1Api, core_api: CoreV1Api) -> KubeClients:
        """Wrap already constructed API clients."""
        clients = cls()
        clients._batch_api = batch_api
        clients._core_api = core_api
        clients._initialized = True
        return clients
