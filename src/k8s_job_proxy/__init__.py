"""Run a CI build step as a Kubernetes Job and proxy its logs."""

__version__ = "0.1.0"
