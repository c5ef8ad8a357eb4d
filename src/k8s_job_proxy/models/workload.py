"""Workload description built once per plugin run."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from k8s_job_proxy.core.config import Settings

logger = logging.getLogger(__name__)

PLUGIN_ENV_PREFIX = "PLUGIN_"
DRONE_ENV_PREFIX = "DRONE_"
ENV_PREFIXES = (PLUGIN_ENV_PREFIX, DRONE_ENV_PREFIX)

CLAIM_NAME_SUFFIX = "WORKSPACE"


def make_job_name(repo_name: str, build_number: str, now: float | None = None) -> str:
    """Assemble the job name from the repository, build number and a timestamp."""
    timestamp = int(time.time() if now is None else now)
    return "-".join([repo_name, build_number, str(timestamp)]).lower()


def make_claim_name(repo_name: str, build_number: str) -> str:
    """Assemble the storage claim name; claim names must be lowercase."""
    return "-".join([repo_name, build_number, CLAIM_NAME_SUFFIX]).lower()


def filter_env(
    environ: Mapping[str, str],
    prefixes: tuple[str, ...] = ENV_PREFIXES,
) -> dict[str, str]:
    """Select the environment entries passed on to the container.

    Args:
        environ: The full process environment
        prefixes: Key prefixes that qualify an entry

    Returns:
        Only the entries whose key starts with one of the prefixes
    """
    return {key: value for key, value in environ.items() if key.startswith(prefixes)}


class WorkloadSpec(BaseModel):
    """Declarative description of the remote task.

    Attributes:
        name: Job name, also used for the container and the volume
        namespace: Kubernetes namespace for the job, its pods and the claim
        image: Container image
        working_dir: Working directory, where the claim is mounted
        command: Optional command override, run through ``sh -c``
        env: Environment variables for the container
        labels: Labels correlating job, pods and claim
        service_account: Service account the pod runs as
        claim_name: Name of the persistent volume claim backing the workspace
    """

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str = "default"
    image: str
    working_dir: str
    command: list[str] | None = None
    env: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)
    service_account: str = "default"
    claim_name: str

    @property
    def label_selector(self) -> str:
        """The labels rendered as a Kubernetes label selector."""
        return ",".join(f"{key}={value}" for key, value in self.labels.items())

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        environ: Mapping[str, str],
        now: float | None = None,
    ) -> WorkloadSpec:
        """Build the workload from the settings and the process environment.

        Raises:
            ConfigError: If required settings are missing or the labels are malformed
        """
        settings.validate_required()
        job_name = make_job_name(settings.drone_repo_name, settings.drone_build_number, now)
        workload = cls(
            name=job_name,
            namespace=settings.job_namespace,
            image=settings.original_image,
            working_dir=settings.workspace,
            command=settings.command_override,
            env=filter_env(environ),
            labels=settings.labels(job_name),
            service_account=settings.proxy_service_account,
            claim_name=make_claim_name(settings.drone_repo_name, settings.drone_build_number),
        )
        logger.debug(
            "workload: job [ %s ], claim [ %s ], workspace [ %s ], labels %s",
            workload.name,
            workload.claim_name,
            workload.working_dir,
            workload.labels,
        )
        return workload
