"""Lifecycle of the cluster resources backing a run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients, describe_error

if TYPE_CHECKING:
    from kubernetes.client import V1PersistentVolumeClaim

logger = logging.getLogger(__name__)

# Storage claim configuration
CLAIM_SIZE = "3Gi"
CLAIM_ACCESS_MODE = "ReadWriteOnce"

# Seconds before a deleted resource (job, claim) goes away
DELETE_GRACE_PERIOD_SECONDS = 2


class StorageClaimError(RuntimeError):
    """Raised when the workspace claim can neither be found nor created."""


class ResourceLifecycleManager:
    """Get-or-create and delete operations for the job and its storage claim.

    Nothing here is retried: creation errors are raised to the caller and
    deletion errors are logged.
    """

    def __init__(self, workload: WorkloadSpec, clients: KubeClients) -> None:
        self.workload = workload
        self.clients = clients

    def _build_claim_spec(self) -> V1PersistentVolumeClaim:
        """Build the persistent volume claim backing the workspace."""
        return client.V1PersistentVolumeClaim(
            api_version="v1",
            kind="PersistentVolumeClaim",
            metadata=client.V1ObjectMeta(
                name=self.workload.claim_name,
                namespace=self.workload.namespace,
                labels=dict(self.workload.labels),
            ),
            spec=client.V1PersistentVolumeClaimSpec(
                access_modes=[CLAIM_ACCESS_MODE],
                resources=client.V1VolumeResourceRequirements(
                    requests={"storage": CLAIM_SIZE},
                ),
            ),
        )

    def get_or_create_claim(self) -> V1PersistentVolumeClaim:
        """Return the workspace claim, creating it if the lookup fails.

        Any lookup error, not-found included, falls through to creation.

        Returns:
            The existing or newly created claim

        Raises:
            StorageClaimError: If creation fails, connection failures included
        """
        name = self.workload.claim_name
        namespace = self.workload.namespace
        try:
            claim = self.clients.core_api.read_namespaced_persistent_volume_claim(
                name=name,
                namespace=namespace,
            )
        except (ApiException, HTTPError) as e:
            logger.warning("error while getting the PVC: [ %s ], error %s", name, describe_error(e))
        else:
            logger.debug("using existing PVC: [ %s ]", name)
            return claim

        try:
            claim = self.clients.core_api.create_namespaced_persistent_volume_claim(
                namespace=namespace,
                body=self._build_claim_spec(),
            )
        except (ApiException, HTTPError) as e:
            logger.error("could not create PVC [ %s ], error %s", name, describe_error(e))
            raise StorageClaimError(f"Failed to create PVC {name}: {describe_error(e)}") from e

        logger.debug("created PVC: [ %s ]", name)
        return claim

    def _delete_options(self) -> client.V1DeleteOptions:
        return client.V1DeleteOptions(
            grace_period_seconds=DELETE_GRACE_PERIOD_SECONDS,
            propagation_policy="Background",
        )

    def delete_job(self) -> bool:
        """Delete the job and, in the background, its pods.

        Returns:
            True if deleted, False if the deletion failed
        """
        try:
            self.clients.batch_api.delete_namespaced_job(
                name=self.workload.name,
                namespace=self.workload.namespace,
                body=self._delete_options(),
            )
        except (ApiException, HTTPError) as e:
            logger.error(
                "could not delete job: [ %s ], error: %s", self.workload.name, describe_error(e)
            )
            return False
        logger.debug("deleted job: [ %s ]", self.workload.name)
        return True

    def delete_claim(self) -> bool:
        """Delete the workspace claim.

        Returns:
            True if deleted, False if the deletion failed
        """
        try:
            self.clients.core_api.delete_namespaced_persistent_volume_claim(
                name=self.workload.claim_name,
                namespace=self.workload.namespace,
                body=self._delete_options(),
            )
        except (ApiException, HTTPError) as e:
            logger.error(
                "could not delete pvc: [ %s ], error: %s",
                self.workload.claim_name,
                describe_error(e),
            )
            return False
        logger.debug("deleted PVC: [ %s ]", self.workload.claim_name)
        return True

    def cleanup(self, delete_claim: bool = False) -> None:
        """Remove the run's resources; failures are logged only."""
        self.delete_job()
        if delete_claim:
            self.delete_claim()
