"""Tests for ResourceLifecycleManager."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client import V1ObjectMeta, V1PersistentVolumeClaim
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import MaxRetryError, ProtocolError

from k8s_job_proxy.models.workload import WorkloadSpec
from k8s_job_proxy.services.cluster import KubeClients
from k8s_job_proxy.services.resources import (
    CLAIM_ACCESS_MODE,
    CLAIM_SIZE,
    DELETE_GRACE_PERIOD_SECONDS,
    ResourceLifecycleManager,
    StorageClaimError,
)


@pytest.fixture
def manager(workload: WorkloadSpec, clients: KubeClients) -> ResourceLifecycleManager:
    return ResourceLifecycleManager(workload, clients)


class TestGetOrCreateClaim:
    """Tests for getting or creating the workspace claim."""

    def test_existing_claim_returned(self, manager, mock_core_api):
        """Test that an existing claim is returned without any mutation."""
        existing = V1PersistentVolumeClaim(metadata=V1ObjectMeta(name="repo-42-workspace"))
        mock_core_api.read_namespaced_persistent_volume_claim.return_value = existing

        claim = manager.get_or_create_claim()

        assert claim is existing
        mock_core_api.read_namespaced_persistent_volume_claim.assert_called_once_with(
            name="repo-42-workspace",
            namespace="ci",
        )
        mock_core_api.create_namespaced_persistent_volume_claim.assert_not_called()

    def test_missing_claim_created(self, manager, mock_core_api):
        """Test that a missing claim is created with fixed size and access mode."""
        mock_core_api.read_namespaced_persistent_volume_claim.side_effect = ApiException(
            status=404, reason="Not Found"
        )
        created = MagicMock()
        mock_core_api.create_namespaced_persistent_volume_claim.return_value = created

        claim = manager.get_or_create_claim()

        assert claim is created
        call_args = mock_core_api.create_namespaced_persistent_volume_claim.call_args
        assert call_args.kwargs["namespace"] == "ci"
        body = call_args.kwargs["body"]
        assert body.metadata.name == "repo-42-workspace"
        assert body.metadata.labels == {"k8s-job-proxy/run": "job-1"}
        assert body.spec.access_modes == [CLAIM_ACCESS_MODE]
        assert body.spec.resources.requests == {"storage": CLAIM_SIZE}

    def test_any_lookup_error_falls_through(self, manager, mock_core_api):
        """Test that lookup errors other than not-found also lead to creation."""
        mock_core_api.read_namespaced_persistent_volume_claim.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        manager.get_or_create_claim()

        mock_core_api.create_namespaced_persistent_volume_claim.assert_called_once()

    def test_creation_failure(self, manager, mock_core_api):
        mock_core_api.read_namespaced_persistent_volume_claim.side_effect = ApiException(
            status=404, reason="Not Found"
        )
        mock_core_api.create_namespaced_persistent_volume_claim.side_effect = ApiException(
            status=422, reason="Unprocessable Entity"
        )

        with pytest.raises(StorageClaimError, match="Unprocessable Entity"):
            manager.get_or_create_claim()

    def test_lost_connection_on_lookup_falls_through(self, manager, mock_core_api):
        mock_core_api.read_namespaced_persistent_volume_claim.side_effect = ProtocolError(
            "Connection aborted."
        )

        manager.get_or_create_claim()

        mock_core_api.create_namespaced_persistent_volume_claim.assert_called_once()

    def test_lost_connection_on_creation(self, manager, mock_core_api):
        """Test that connection failures on creation surface as claim errors."""
        mock_core_api.read_namespaced_persistent_volume_claim.side_effect = MaxRetryError(
            pool=None, url="/api/v1/namespaces/ci/persistentvolumeclaims/repo-42-workspace"
        )
        mock_core_api.create_namespaced_persistent_volume_claim.side_effect = MaxRetryError(
            pool=None, url="/api/v1/namespaces/ci/persistentvolumeclaims"
        )

        with pytest.raises(StorageClaimError, match="repo-42-workspace"):
            manager.get_or_create_claim()


class TestDeletion:
    """Tests for deleting the run's resources."""

    def test_delete_job(self, manager, mock_batch_api):
        assert manager.delete_job() is True

        call_args = mock_batch_api.delete_namespaced_job.call_args
        assert call_args.kwargs["name"] == "job-1"
        assert call_args.kwargs["namespace"] == "ci"
        options = call_args.kwargs["body"]
        assert options.grace_period_seconds == DELETE_GRACE_PERIOD_SECONDS
        assert options.propagation_policy == "Background"

    def test_delete_job_failure_is_not_raised(self, manager, mock_batch_api):
        mock_batch_api.delete_namespaced_job.side_effect = ApiException(status=500, reason="Boom")
        assert manager.delete_job() is False

    def test_delete_claim(self, manager, mock_core_api):
        assert manager.delete_claim() is True

        call_args = mock_core_api.delete_namespaced_persistent_volume_claim.call_args
        assert call_args.kwargs["name"] == "repo-42-workspace"
        assert call_args.kwargs["body"].grace_period_seconds == DELETE_GRACE_PERIOD_SECONDS

    def test_delete_claim_failure_is_not_raised(self, manager, mock_core_api):
        mock_core_api.delete_namespaced_persistent_volume_claim.side_effect = ApiException(
            status=404, reason="Not Found"
        )
        assert manager.delete_claim() is False

    def test_lost_connection_on_delete_is_not_raised(self, manager, mock_batch_api, mock_core_api):
        mock_batch_api.delete_namespaced_job.side_effect = MaxRetryError(
            pool=None, url="/apis/batch/v1/namespaces/ci/jobs/job-1"
        )
        mock_core_api.delete_namespaced_persistent_volume_claim.side_effect = ProtocolError(
            "Connection aborted."
        )

        assert manager.delete_job() is False
        assert manager.delete_claim() is False

    def test_cleanup_keeps_claim_by_default(self, manager, mock_batch_api, mock_core_api):
        manager.cleanup()

        mock_batch_api.delete_namespaced_job.assert_called_once()
        mock_core_api.delete_namespaced_persistent_volume_claim.assert_not_called()

    def test_cleanup_with_claim(self, manager, mock_batch_api, mock_core_api):
        mock_batch_api.delete_namespaced_job.side_effect = ApiException(status=500, reason="Boom")

        manager.cleanup(delete_claim=True)

        mock_core_api.delete_namespaced_persistent_volume_claim.assert_called_once()
