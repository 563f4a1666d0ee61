"""
Pytest configuration and shared fixtures for testing.
"""

from datetime import datetime, timedelta, timezone

import boto3
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from moto import mock_aws

from fleet_audit.core.aws_client import AWSClient


# Fixed reference time for certificate and event windows
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    import os

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def mock_aws_environment(aws_credentials):
    """Create a mocked AWS environment."""
    with mock_aws():
        yield


@pytest.fixture
def aws_client(mock_aws_environment):
    """Create an AWSClient instance for testing."""
    return AWSClient(region="us-east-1")


@pytest.fixture
def ec2_client(mock_aws_environment):
    """Create a boto3 EC2 client for setting up test resources."""
    return boto3.client("ec2", region_name="us-east-1")


@pytest.fixture
def rds_client(mock_aws_environment):
    """Create a boto3 RDS client for setting up test resources."""
    return boto3.client("rds", region_name="us-east-1")


@pytest.fixture
def s3_client(mock_aws_environment):
    """Create a boto3 S3 client for setting up test resources."""
    return boto3.client("s3", region_name="us-east-1")


@pytest.fixture
def vpc(ec2_client):
    """Create a VPC for testing."""
    response = ec2_client.create_vpc(CidrBlock="10.0.0.0/16")
    vpc_id = response["Vpc"]["VpcId"]
    return vpc_id


@pytest.fixture
def now():
    """Fixed 'now' for time-dependent classifiers."""
    return NOW


@pytest.fixture(scope="session")
def signing_key():
    """One EC key for every generated certificate."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def make_cert_pem(signing_key):
    """
    Factory for self-signed PEM certificates.

    ``days`` is the whole number of days between NOW and not-after.
    """

    def _make(days, dns_names=("example.com",), common_name="example.com"):
        # Keep the fractional day away from zero so truncation lands on ``days``
        offset = timedelta(hours=1) if days >= 0 else timedelta(hours=-1)
        not_after = NOW + timedelta(days=days) + offset
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test CA")])

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(signing_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_after - timedelta(days=365))
            .not_valid_after(not_after)
        )
        if dns_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]),
                critical=False,
            )
        cert = builder.sign(signing_key, hashes.SHA256())
        return cert.public_bytes(serialization.Encoding.PEM)

    return _make
