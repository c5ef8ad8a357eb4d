"""Plugin configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Label used when no selector is configured; the value is the job name
DEFAULT_RUN_LABEL = "k8s-job-proxy/run"


class ConfigError(RuntimeError):
    """Raised when the plugin configuration is incomplete or malformed."""


class Settings(BaseSettings):
    """Plugin settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLUGIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Job
    job_namespace: str = "default"
    original_image: str = ""
    proxy_service_account: str = "default"
    job_workspace: str | None = None
    job_label_selector: str | None = None
    original_commands: str | None = None

    # Cluster access
    kubeconfig: Path | None = None

    # Cleanup
    cleanup_claim: bool = False

    # Logging
    debug: bool = False

    # OpenTelemetry
    otel_enabled: bool = False
    otel_service_name: str = "k8s-job-proxy"
    otel_exporter_endpoint: str = "http://localhost:4317"

    # Values provided by the CI system
    drone_repo_name: str = Field(
        default="", validation_alias=AliasChoices("DRONE_REPO_NAME", "drone_repo_name")
    )
    drone_build_number: str = Field(
        default="", validation_alias=AliasChoices("DRONE_BUILD_NUMBER", "drone_build_number")
    )
    drone_workspace: str = Field(
        default="", validation_alias=AliasChoices("DRONE_WORKSPACE", "drone_workspace")
    )

    @property
    def workspace(self) -> str:
        """Working directory of the container, also the claim mount path."""
        return self.job_workspace or self.drone_workspace

    @property
    def kubeconfig_path(self) -> Path:
        """Path of the kubeconfig file, defaulting to one inside the workspace."""
        if self.kubeconfig is not None:
            return self.kubeconfig
        return Path(self.drone_workspace) / ".kube" / "config"

    @property
    def command_override(self) -> list[str] | None:
        """The original command, passed to the container as is."""
        if not self.original_commands:
            return None
        return [self.original_commands]

    def labels(self, job_name: str) -> dict[str, str]:
        """Parse the label selector into a label map.

        Args:
            job_name: Name of the job, used as the value of the default label

        Returns:
            Mapping of label keys to values

        Raises:
            ConfigError: If an entry is not of the form ``key=value``
        """
        if not self.job_label_selector:
            return {DEFAULT_RUN_LABEL: job_name}

        labels: dict[str, str] = {}
        for entry in self.job_label_selector.split(","):
            entry = entry.strip()
            if not entry:
                continue
            key, sep, value = entry.partition("=")
            if not sep or not key.strip():
                raise ConfigError(f"invalid label selector entry: [ {entry} ]")
            labels[key.strip()] = value.strip()
        if not labels:
            raise ConfigError("label selector is empty")
        return labels

    def validate_required(self) -> None:
        """Check the settings a run cannot do without.

        Raises:
            ConfigError: If the image or the workspace is missing
        """
        if not self.original_image:
            raise ConfigError("no image configured (PLUGIN_ORIGINAL_IMAGE)")
        if not self.workspace:
            raise ConfigError("no workspace configured (PLUGIN_JOB_WORKSPACE or DRONE_WORKSPACE)")
