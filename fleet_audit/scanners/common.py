"""
Record Source Helpers
=====================

Context managers that turn SDK errors raised while fetching records into
:class:`~fleet_audit.core.exceptions.ResourceFetchError`, which is fatal for
the scan unit.

Example
-------
>>> with aws_fetch(ResourceKind.VOLUME, "us-east-1", "describe volumes"):
...     response = ec2.describe_volumes()
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from botocore.exceptions import BotoCoreError, ClientError
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from fleet_audit.core.exceptions import ResourceFetchError
from fleet_audit.core.taxonomy import ResourceKind

# Module logger
logger = logging.getLogger(__name__)


def error_code(error: Exception) -> str:
    """AWS error code of a ClientError, or the class name of a transport error."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "Unknown")
    return type(error).__name__


@contextmanager
def aws_fetch(kind: ResourceKind, unit: str, action: str) -> Iterator[None]:
    """Wrap boto3 calls for one record or metric source."""
    try:
        yield
    except ClientError as e:
        logger.error(f"Failed to {action} in {unit}: {e}")
        raise ResourceFetchError(
            f"Failed to {action}: {e}",
            resource_type=kind.value,
            unit=unit,
            details={"error_code": error_code(e)},
        )
    except BotoCoreError as e:
        logger.error(f"Failed to {action} in {unit}: {e}")
        raise ResourceFetchError(
            f"Failed to {action}: {e}",
            resource_type=kind.value,
            unit=unit,
        )


@contextmanager
def kube_fetch(kind: ResourceKind, unit: str, action: str) -> Iterator[None]:
    """Wrap kubernetes API calls for one record source."""
    try:
        yield
    except ApiException as e:
        logger.error(f"Failed to {action} in {unit}: {e.status} {e.reason}")
        raise ResourceFetchError(
            f"Failed to {action}: {e.status} {e.reason}",
            resource_type=kind.value,
            unit=unit,
            details={"status": e.status},
        )
    except HTTPError as e:
        logger.error(f"Failed to {action} in {unit}: {e}")
        raise ResourceFetchError(
            f"Failed to {action}: {e}",
            resource_type=kind.value,
            unit=unit,
        )
