"""
Custom Exceptions for Fleet Audit
=================================

This module defines the exception hierarchy used throughout the
application for consistent error handling and reporting.

Exception Hierarchy
-------------------
::

    FleetAuditError (base)
    ├── AWSClientError
    │   ├── CredentialsError
    │   ├── RegionError
    │   └── ServiceError
    ├── KubernetesClientError
    ├── ScannerError
    │   ├── ResourceFetchError
    │   ├── ScanCancelledError
    │   └── RecordParseError
    ├── ConfigurationError
    └── NotificationError

A :class:`ResourceFetchError` is fatal for the scan unit that raised it.
A :class:`RecordParseError` never leaves the scanner: the offending record
is skipped and reported as a :class:`~fleet_audit.core.base_scanner.SkippedRecord`.

Example
-------
>>> from fleet_audit.core.exceptions import ResourceFetchError
>>>
>>> try:
...     scanner.scan()
... except ResourceFetchError as e:
...     print(f"Unit {e.unit} failed: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FleetAuditError(Exception):
    """
    Base exception for all Fleet Audit errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Example
    -------
    >>> raise FleetAuditError("Something went wrong", details={"code": 500})
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Client Exceptions
# =============================================================================


class AWSClientError(FleetAuditError):
    """
    Base exception for AWS client-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        The AWS service that caused the error.
    region : str, optional
        The AWS region where the error occurred.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class CredentialsError(AWSClientError):
    """Raised when AWS credentials are invalid, missing, or expired."""

    pass


class RegionError(AWSClientError):
    """Raised when there's an issue with the specified AWS region."""

    pass


class ServiceError(AWSClientError):
    """Raised when there's an error accessing a specific AWS service."""

    pass


class KubernetesClientError(FleetAuditError):
    """
    Raised when the Kubernetes API cannot be configured or reached.

    Example
    -------
    >>> raise KubernetesClientError(
    ...     "Failed to load kubeconfig",
    ...     details={"kubeconfig": "~/.kube/config"}
    ... )
    """

    pass


# =============================================================================
# Scanner Exceptions
# =============================================================================


class ScannerError(FleetAuditError):
    """
    Base exception for scanner-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    resource_type : str, optional
        The type of resource being scanned.
    unit : str, optional
        The scan unit (region or namespace) being scanned.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        unit: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.resource_type = resource_type
        self.unit = unit
        full_details = details or {}
        if resource_type:
            full_details["resource_type"] = resource_type
        if unit:
            full_details["unit"] = unit
        super().__init__(message, full_details)


class ResourceFetchError(ScannerError):
    """
    Raised when a record or metric source fails for a scan unit.

    Example
    -------
    >>> raise ResourceFetchError(
    ...     "Failed to describe volumes",
    ...     resource_type="volume",
    ...     unit="us-east-1"
    ... )
    """

    pass


class ScanCancelledError(ScannerError):
    """Raised inside a scanner when the run was cancelled."""

    pass


class RecordParseError(ScannerError):
    """
    Raised when a single record cannot be decoded.

    Scanners catch this error, skip the record and keep going.

    Example
    -------
    >>> raise RecordParseError(
    ...     "failed to decode PEM block",
    ...     resource_type="certificate",
    ...     unit="default",
    ...     details={"resource_id": "default/web-tls"}
    ... )
    """

    pass


# =============================================================================
# Configuration and Notification Exceptions
# =============================================================================


class ConfigurationError(FleetAuditError):
    """
    Raised when run options are invalid.

    Always raised before any scan unit is processed.

    Example
    -------
    >>> raise ConfigurationError(
    ...     "Unsupported output format: xml",
    ...     details={"allowed": ["table", "json", "csv"]}
    ... )
    """

    pass


class NotificationError(FleetAuditError):
    """Raised when a webhook notification cannot be delivered."""

    pass
