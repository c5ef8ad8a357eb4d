"""Kubernetes Job submission for the workload."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients, describe_error

if TYPE_CHECKING:
    from kubernetes.client import V1Job

logger = logging.getLogger(__name__)

# Job configuration defaults
RESTART_POLICY = "Never"
IMAGE_PULL_POLICY = "IfNotPresent"
SHELL_COMMAND = ["sh", "-c"]


class JobSubmissionError(RuntimeError):
    """Raised when the job cannot be created."""


class JobSubmitter:
    """Builds the Job for a workload and creates it on the cluster.

    Example:
        ```python
        submitter = JobSubmitter(workload, clients)
        submitter.submit()
        ```
    """

    def __init__(self, workload: WorkloadSpec, clients: KubeClients) -> None:
        self.workload = workload
        self.clients = clients

    def _env_vars(self) -> list[client.V1EnvVar]:
        env = [client.V1EnvVar(name=key, value=value) for key, value in sorted(self.workload.env.items())]
        logger.debug("original env passed to the job: %s", [var.name for var in env])
        return env

    def _build_job_spec(self) -> V1Job:
        """Build the Kubernetes Job specification for the workload.

        The job runs a single unprivileged container named after the job,
        with the workspace claim mounted at the working directory.

        Returns:
            V1Job specification ready for creation
        """
        workload = self.workload

        container = client.V1Container(
            name=workload.name,
            image=workload.image,
            working_dir=workload.working_dir,
            security_context=client.V1SecurityContext(privileged=False),
            image_pull_policy=IMAGE_PULL_POLICY,
            env=self._env_vars(),
            volume_mounts=[
                client.V1VolumeMount(name=workload.name, mount_path=workload.working_dir),
            ],
        )

        pod_spec = client.V1PodSpec(
            service_account_name=workload.service_account,
            restart_policy=RESTART_POLICY,
            containers=[container],
            volumes=[
                client.V1Volume(
                    name=workload.name,
                    persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                        claim_name=workload.claim_name,
                    ),
                )
            ],
            image_pull_secrets=[],
        )

        return client.V1Job(
            api_version="batch/v1",
            kind="Job",
            metadata=client.V1ObjectMeta(
                name=workload.name,
                namespace=workload.namespace,
                labels=dict(workload.labels),
            ),
            spec=client.V1JobSpec(
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(
                        name=workload.name,
                        labels=dict(workload.labels),
                    ),
                    spec=pod_spec,
                ),
            ),
        )

    def _apply_command_override(self, job: V1Job) -> V1Job:
        """Replace the container entrypoint with a shell running the override command."""
        if not self.workload.command:
            return job

        # The job has a single container
        container = job.spec.template.spec.containers[0]
        container.command = list(SHELL_COMMAND)
        container.args = list(self.workload.command)
        logger.debug(
            "set original command: %s with argument(s): %s",
            container.command,
            container.args,
        )
        return job

    def build(self) -> V1Job:
        """Build the complete Job, command override included."""
        return self._apply_command_override(self._build_job_spec())

    def submit(self) -> V1Job:
        """Create the Job on the cluster.

        Returns:
            The created job as reported by the API server

        Raises:
            JobSubmissionError: If the API server rejects the job or cannot be reached
        """
        job = self.build()
        try:
            created = self.clients.batch_api.create_namespaced_job(
                namespace=self.workload.namespace,
                body=job,
            )
        except (ApiException, HTTPError) as e:
            logger.error("could not create job. error: %s", describe_error(e))
            raise JobSubmissionError(
                f"Failed to create job {self.workload.name}: {describe_error(e)}"
            ) from e

        logger.debug("created job: [ %s ]", self.workload.name)
        return created
