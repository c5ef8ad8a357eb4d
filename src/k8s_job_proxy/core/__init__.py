"""Core modules for configuration and telemetry."""

from k8s_job_proxy.core.config import ConfigError, Settings
from k8s_job_proxy.core.telemetry import get_tracer, setup_telemetry

__all__ = ["ConfigError", "Settings", "get_tracer", "setup_telemetry"]
