"""
Kubernetes Client Module
========================

Lazy wrapper around the official ``kubernetes`` Python client.

Configuration is loaded from a kubeconfig file (``$KUBECONFIG`` or
``~/.kube/config`` when no path is given) and falls back to the in-cluster
service account when no kubeconfig is usable.

Classes
-------
KubeClient
    Holds one ApiClient and hands out typed API objects.

Example
-------
>>> from fleet_audit.core.kube_client import KubeClient
>>>
>>> kube = KubeClient(context="staging")
>>> kube.list_namespaces()
['default', 'kube-system', 'payments']
>>> pods = kube.core_v1.list_namespaced_pod("payments", _request_timeout=kube.timeout)
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from fleet_audit.core.exceptions import KubernetesClientError

# Module logger
logger = logging.getLogger(__name__)


class KubeClient:
    """
    Kubernetes API access for one cluster context.

    Parameters
    ----------
    kubeconfig : str, optional
        Path to a kubeconfig file.
    context : str, optional
        Context name inside the kubeconfig; defaults to the current context.
    timeout : int, default=30
        Per-request timeout in seconds, passed as ``_request_timeout``.
    core_v1, apps_v1, policy_v1 : optional
        Pre-built API objects. When all three are given no configuration is
        loaded.

    Raises
    ------
    KubernetesClientError
        If neither the kubeconfig nor the in-cluster configuration loads.
    """

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        context: Optional[str] = None,
        timeout: int = 30,
        core_v1: Any = None,
        apps_v1: Any = None,
        policy_v1: Any = None,
    ) -> None:
        self.kubeconfig = kubeconfig
        self.context = context
        self.timeout = timeout

        self._api_client: Optional[client.ApiClient] = None
        self._core_v1 = core_v1
        self._apps_v1 = apps_v1
        self._policy_v1 = policy_v1

        logger.debug(f"Initialized KubeClient (context={context or 'current'})")

    @property
    def api_client(self) -> client.ApiClient:
        """The ApiClient, created on first access."""
        if self._api_client is None:
            self._api_client = self._create_api_client()
        return self._api_client

    def _create_api_client(self) -> client.ApiClient:
        configuration = client.Configuration()
        try:
            try:
                config.load_kube_config(
                    config_file=self.kubeconfig,
                    context=self.context,
                    client_configuration=configuration,
                )
                logger.debug(f"Loaded kubeconfig {self.kubeconfig or '(default)'}")
            except ConfigException:
                config.load_incluster_config(client_configuration=configuration)
                logger.debug("Loaded in-cluster configuration")
        except ConfigException as e:
            raise KubernetesClientError(
                f"Failed to load Kubernetes configuration: {e}",
                details={
                    "kubeconfig": self.kubeconfig or "~/.kube/config",
                    "context": self.context,
                },
            )
        return client.ApiClient(configuration)

    # =========================================================================
    # API Accessors
    # =========================================================================

    @property
    def core_v1(self) -> client.CoreV1Api:
        if self._core_v1 is None:
            self._core_v1 = client.CoreV1Api(self.api_client)
        return self._core_v1

    @property
    def apps_v1(self) -> client.AppsV1Api:
        if self._apps_v1 is None:
            self._apps_v1 = client.AppsV1Api(self.api_client)
        return self._apps_v1

    @property
    def policy_v1(self) -> client.PolicyV1Api:
        if self._policy_v1 is None:
            self._policy_v1 = client.PolicyV1Api(self.api_client)
        return self._policy_v1

    def list_namespaces(self) -> List[str]:
        """
        List namespace names, sorted.

        Raises
        ------
        KubernetesClientError
            If the API call fails.
        """
        try:
            response = self.core_v1.list_namespace(_request_timeout=self.timeout)
        except (ApiException, HTTPError) as e:
            raise KubernetesClientError(f"Failed to list namespaces: {e}")
        names = sorted(ns.metadata.name for ns in response.items)
        logger.info(f"Discovered {len(names)} namespaces")
        return names

    def __enter__(self) -> KubeClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None

    def __repr__(self) -> str:
        return (
            f"KubeClient(kubeconfig={self.kubeconfig!r}, "
            f"context={self.context!r}, timeout={self.timeout})"
        )
