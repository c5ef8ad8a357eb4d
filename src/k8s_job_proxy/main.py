"""Plugin entry point."""

import logging
import os
import sys

import click
from pydantic import ValidationError

from k8s_job_proxy import __version__
from k8s_job_proxy.core.config import Settings
from k8s_job_proxy.core.telemetry import setup_telemetry
from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients
from k8s_job_proxy.services.runner import JobRunner

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    """Log to standard output, which the pod log is proxied to as well."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    # The API client logs every request at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO)


def run(settings: Settings) -> None:
    """Run the workload described by the settings and the process environment.

    Raises:
        RuntimeError: On any failure that makes the run fail
    """
    workload = WorkloadSpec.from_settings(settings, os.environ)
    clients = KubeClients(settings.kubeconfig_path)
    runner = JobRunner(workload, clients, cleanup_claim=settings.cleanup_claim)
    runner.run()


@click.command()
@click.option("--namespace", "job_namespace", default=None, help="The namespace of the job.")
@click.option("--image", "original_image", default=None, help="The image to be run on the cluster.")
@click.option(
    "--service-account",
    "proxy_service_account",
    default=None,
    help="The service account the pod runs as.",
)
@click.option(
    "--label-selector",
    "job_label_selector",
    default=None,
    help="Labels correlating job, pod and claim, as key=value[,key=value].",
)
@click.option("--debug/--no-debug", default=None, help="Log at DEBUG level.")
@click.version_option(__version__, prog_name="k8s-job-proxy")
def main(**overrides: str | bool | None) -> None:
    """Run the build step as a Kubernetes Job and stream its log."""
    try:
        settings = Settings(**{key: value for key, value in overrides.items() if value is not None})
    except ValidationError as e:
        raise click.ClickException(f"invalid configuration: {e}") from e
    configure_logging(settings.debug)
    setup_telemetry(settings)

    try:
        run(settings)
    except RuntimeError as e:
        logger.error("plugin execution failed. error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
