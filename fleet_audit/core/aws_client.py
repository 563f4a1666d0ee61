"""
AWS Client Module
=================

Per-region access to boto3 service clients.

An :class:`AWSClient` owns one lazily created boto3 session and caches a
service client per (service, region) pair. Every scan unit gets its own
AWSClient, so clients are never shared between worker threads.

Classes
-------
AWSClient
    Session holder and service client factory for one region.

Example
-------
>>> from fleet_audit.core.aws_client import AWSClient
>>>
>>> client = AWSClient(region="eu-west-1")
>>> client.validate_credentials()
True
>>> ec2 = client.get_ec2_client()
>>> ce = client.get_ce_client()  # always us-east-1

See Also
--------
RegionManager : Creates one client per region.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    ProfileNotFound,
)

from fleet_audit.core.exceptions import (
    AWSClientError,
    CredentialsError,
    RegionError,
    ServiceError,
)

# Module logger
logger = logging.getLogger(__name__)

# Cost Explorer only has an endpoint in us-east-1
COST_EXPLORER_REGION = "us-east-1"

# STS error codes that mean the keys themselves are wrong
INVALID_KEY_CODES = frozenset(
    {"InvalidClientTokenId", "SignatureDoesNotMatch", "UnrecognizedClientException"}
)

CREDENTIALS_HINT = (
    "Configure credentials using 'aws configure' or set "
    "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables"
)


class AWSClient:
    """
    Lazily built boto3 session and service clients for one region.

    Parameters
    ----------
    region : str, default="us-east-1"
        Region the service clients talk to.
    profile : str, optional
        Named profile from the shared AWS config files.
    max_retries : int, default=3
        Attempts per API call under botocore's adaptive retry mode.
    timeout : int, default=30
        Connect and read timeout in seconds.

    Examples
    --------
    >>> client = AWSClient(region="eu-west-1", profile="production")
    >>> client.get_account_id()
    '123456789012'
    >>> client.with_region("us-west-2").region
    'us-west-2'

    Notes
    -----
    Nothing touches AWS until a client is requested, so constructing an
    AWSClient never raises. Errors surface from the accessor that first
    needs the session:

    - :class:`CredentialsError` for a missing profile or missing keys
    - :class:`RegionError` when no region can be resolved
    - :class:`ServiceError` when botocore cannot build the client
    """

    def __init__(
        self,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        max_retries: int = 3,
        timeout: int = 30,
    ) -> None:
        self.region = region
        self.profile = profile
        self.max_retries = max_retries
        self.timeout = timeout

        self._session: Optional[boto3.Session] = None
        self._clients: Dict[Tuple[str, str], Any] = {}
        self._identity: Optional[Dict[str, str]] = None
        self._config = Config(
            retries={"max_attempts": max_retries, "mode": "adaptive"},
            connect_timeout=timeout,
            read_timeout=timeout,
        )

        logger.debug(f"Initialized AWSClient for {region} (profile={profile})")

    # =========================================================================
    # Session and Client Cache
    # =========================================================================

    @contextmanager
    def _translated(self, service: Optional[str] = None) -> Iterator[None]:
        """Map botocore setup failures onto the AWSClientError family."""
        try:
            yield
        except ProfileNotFound:
            raise CredentialsError(
                f"AWS profile '{self.profile}' not found",
                details={"profile": self.profile},
            )
        except NoCredentialsError:
            raise CredentialsError(
                "AWS credentials not found", details={"hint": CREDENTIALS_HINT}
            )
        except NoRegionError:
            raise RegionError(f"Invalid or missing region: {self.region}", region=self.region)
        except (BotoCoreError, ValueError) as e:
            if service is None:
                raise AWSClientError(f"Failed to create AWS session: {e}", region=self.region)
            raise ServiceError(
                f"Failed to create {service} client: {e}",
                service=service,
                region=self.region,
            )

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            kwargs = {"region_name": self.region}
            if self.profile:
                kwargs["profile_name"] = self.profile
            with self._translated():
                self._session = boto3.Session(**kwargs)
            logger.debug(f"Created boto3 session for {self.region}")
        return self._session

    def client(self, service: str, region: Optional[str] = None) -> Any:
        """
        Return the cached client for ``service``, creating it on first use.

        Parameters
        ----------
        service : str
            boto3 service name ('ec2', 'cloudwatch', ...).
        region : str, optional
            Region override; defaults to this client's region.
        """
        target = region or self.region
        key = (service, target)
        if key not in self._clients:
            with self._translated(service):
                self._clients[key] = self.session.client(
                    service, region_name=target, config=self._config
                )
            logger.debug(f"Created {service} client for {target}")
        return self._clients[key]

    def get_ec2_client(self) -> Any:
        return self.client("ec2")

    def get_rds_client(self) -> Any:
        return self.client("rds")

    def get_cloudwatch_client(self) -> Any:
        return self.client("cloudwatch")

    def get_s3_client(self) -> Any:
        return self.client("s3")

    def get_ce_client(self) -> Any:
        """Cost Explorer client, pinned to us-east-1 whatever ``region`` is."""
        return self.client("ce", region=COST_EXPLORER_REGION)

    # =========================================================================
    # Identity
    # =========================================================================

    def get_caller_identity(self) -> Dict[str, str]:
        """
        Return STS GetCallerIdentity for these credentials (cached).

        Raises
        ------
        CredentialsError
            If the keys are rejected or cannot be found.
        AWSClientError
            For any other STS failure.
        """
        if self._identity is not None:
            return self._identity

        try:
            with self._translated("sts"):
                response = self.client("sts").get_caller_identity()
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in INVALID_KEY_CODES:
                raise CredentialsError(
                    "Invalid AWS credentials",
                    details={"error_code": error_code},
                )
            raise AWSClientError(
                f"Failed to get caller identity: {e}",
                service="sts",
                details={"error_code": error_code},
            )

        self._identity = {
            "Account": response["Account"],
            "Arn": response["Arn"],
            "UserId": response["UserId"],
        }
        return self._identity

    def validate_credentials(self) -> bool:
        """
        Check the credentials with one STS call.

        Returns
        -------
        bool
            True when STS accepts them; otherwise an error is raised.
        """
        identity = self.get_caller_identity()
        logger.info(f"Credentials validated for account {identity['Account']} ({identity['Arn']})")
        return True

    def get_account_id(self) -> str:
        return self.get_caller_identity()["Account"]

    # =========================================================================
    # Derived Clients
    # =========================================================================

    def with_region(self, region: str) -> AWSClient:
        """Same profile, retries and timeout, different region."""
        return AWSClient(
            region=region,
            profile=self.profile,
            max_retries=self.max_retries,
            timeout=self.timeout,
        )

    def __enter__(self) -> AWSClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._clients.clear()
        self._session = None
        self._identity = None

    def __repr__(self) -> str:
        return (
            f"AWSClient(region='{self.region}', "
            f"profile={self.profile!r}, "
            f"max_retries={self.max_retries})"
        )
