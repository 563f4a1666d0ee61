"""
Tests for the AWS Client module.
"""

import pytest

from fleet_audit.core.aws_client import AWSClient
from fleet_audit.core.exceptions import CredentialsError


class TestAWSClient:
    """Tests for AWSClient class."""

    def test_client_initialization(self, mock_aws_environment):
        """Test basic client initialization."""
        client = AWSClient(region="us-east-1")
        assert client.region == "us-east-1"
        assert client.profile is None

    def test_clients_are_cached(self, mock_aws_environment):
        """Test that a service client is created once per region."""
        client = AWSClient(region="us-east-1")
        assert client.get_ec2_client() is client.get_ec2_client()
        assert client.get_s3_client() is not None
        assert client.get_rds_client() is not None
        assert client.get_cloudwatch_client() is not None

    def test_cost_explorer_is_global(self, mock_aws_environment):
        """Test that Cost Explorer is always reached through us-east-1."""
        client = AWSClient(region="eu-west-1")
        assert client.get_ce_client().meta.region_name == "us-east-1"
        assert client.get_ec2_client().meta.region_name == "eu-west-1"

    def test_validate_credentials(self, mock_aws_environment):
        """Test credential validation."""
        client = AWSClient(region="us-east-1")
        assert client.validate_credentials() is True

    def test_get_account_id(self, mock_aws_environment):
        """Test getting account ID."""
        account_id = AWSClient(region="us-east-1").get_account_id()
        assert len(account_id) == 12

    def test_with_region(self, mock_aws_environment):
        """Test creating client for different region."""
        client = AWSClient(region="us-east-1", profile="test", max_retries=5)
        new_client = client.with_region("eu-west-1")

        assert new_client.region == "eu-west-1"
        assert new_client.profile == "test"
        assert new_client.max_retries == 5
        assert client.region == "us-east-1"

    def test_context_manager_drops_clients(self, mock_aws_environment):
        """Test that leaving the context clears cached clients."""
        with AWSClient(region="us-east-1") as client:
            first = client.get_ec2_client()
        assert client.get_ec2_client() is not first


class TestAWSClientErrors:
    """Tests for AWSClient error handling."""

    def test_unknown_profile(self, mock_aws_environment):
        """Test that a missing profile raises CredentialsError."""
        client = AWSClient(region="us-east-1", profile="nonexistent-profile-xyz")
        with pytest.raises(CredentialsError) as exc_info:
            client.get_ec2_client()
        assert "nonexistent-profile-xyz" in exc_info.value.message
