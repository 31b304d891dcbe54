"""
Azure Client Module
===================

Provides a thread-safe wrapper around the Azure management SDK with
lazy credential creation, per-subscription client caching, credential
validation and subscription discovery.

Classes
-------
AzureClient
    Main client class for Azure management operations.

Example
-------
>>> from planaudit.core.azure_client import AzureClient
>>>
>>> client = AzureClient()
>>> client.validate_credentials()
>>> for subscription in client.list_subscriptions():
...     web = client.get_web_client(subscription.id)

Notes
-----
Credentials come from ``DefaultAzureCredential``: environment variables,
workload or managed identity, or an ``az login`` session.

See Also
--------
azure.identity : Credential implementations.
azure.mgmt.web : App Service management client.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential
from azure.mgmt.subscription import SubscriptionClient
from azure.mgmt.web import WebSiteManagementClient

from planaudit.core.exceptions import AzureClientError, CredentialsError, ServiceError
from planaudit.core.models import Subscription

# Module logger
logger = logging.getLogger(__name__)

MANAGEMENT_SCOPE = "https://management.azure.com/.default"


class AzureClient:
    """
    Azure management client wrapper with retry settings and client caching.

    Parameters
    ----------
    credential : TokenCredential, optional
        Credential to use. Defaults to ``DefaultAzureCredential``.
    max_retries : int, default=3
        Maximum number of retries for failed API calls.
    timeout : int, default=30
        Connection and read timeout in seconds.

    Examples
    --------
    >>> client = AzureClient(max_retries=5)
    >>> subscriptions = client.list_subscriptions()

    Raises
    ------
    CredentialsError
        If credentials are missing or rejected.
    ServiceError
        If a management client cannot be created.
    """

    def __init__(
        self,
        credential: Optional[Any] = None,
        max_retries: int = 3,
        timeout: int = 30,
    ) -> None:
        self.max_retries = max_retries
        self.timeout = timeout

        self._credential = credential
        self._subscription_client: Optional[SubscriptionClient] = None
        self._web_clients: Dict[str, WebSiteManagementClient] = {}
        self._lock = threading.Lock()

        logger.debug(f"Initialized AzureClient (max_retries={max_retries})")

    @property
    def credential(self) -> Any:
        """Get or create the credential (lazy initialization)."""
        if self._credential is None:
            try:
                self._credential = DefaultAzureCredential()
            except Exception as e:
                raise CredentialsError(
                    f"Failed to create Azure credential: {e}",
                    details={"hint": "Run 'az login' or set AZURE_* environment variables"},
                )
        return self._credential

    def _client_kwargs(self) -> Dict[str, Any]:
        return {
            "retry_total": self.max_retries,
            "connection_timeout": self.timeout,
            "read_timeout": self.timeout,
        }

    # =========================================================================
    # Service Client Accessors
    # =========================================================================

    def get_subscription_client(self) -> SubscriptionClient:
        """Get the subscription management client."""
        with self._lock:
            if self._subscription_client is None:
                try:
                    self._subscription_client = SubscriptionClient(
                        self.credential, **self._client_kwargs()
                    )
                except AzureClientError:
                    raise
                except Exception as e:
                    logger.exception("Failed to create subscription client")
                    raise ServiceError(
                        f"Failed to create subscription client: {e}",
                        service="subscription",
                    )
            return self._subscription_client

    def get_web_client(self, subscription_id: str) -> WebSiteManagementClient:
        """
        Get the App Service management client for a subscription.

        Clients are cached per subscription.

        Example
        -------
        >>> web = client.get_web_client("00000000-0000-0000-0000-000000000000")
        >>> sites = list(web.web_apps.list())
        """
        with self._lock:
            if subscription_id not in self._web_clients:
                try:
                    self._web_clients[subscription_id] = WebSiteManagementClient(
                        self.credential, subscription_id, **self._client_kwargs()
                    )
                    logger.debug(f"Created web client for {subscription_id}")
                except AzureClientError:
                    raise
                except Exception as e:
                    logger.exception("Failed to create web client")
                    raise ServiceError(
                        f"Failed to create web client: {e}",
                        service="web",
                        subscription_id=subscription_id,
                    )
            return self._web_clients[subscription_id]

    # =========================================================================
    # Credential and Subscription Operations
    # =========================================================================

    def validate_credentials(self) -> bool:
        """
        Validate credentials by requesting a management-plane token.

        Returns
        -------
        bool
            True if a token could be obtained.

        Raises
        ------
        CredentialsError
            If credentials are invalid, expired, or missing.
        """
        try:
            self.credential.get_token(MANAGEMENT_SCOPE)
            logger.info("Azure credentials validated")
            return True
        except CredentialsError:
            raise
        except ClientAuthenticationError as e:
            raise CredentialsError(
                "Azure credentials were rejected",
                details={"error": str(e), "hint": "Run 'az login' to refresh your session"},
            )
        except Exception as e:
            logger.exception("Credential validation failed")
            raise CredentialsError(f"Failed to validate credentials: {e}")

    def list_subscriptions(self) -> List[Subscription]:
        """
        Discover the enabled subscriptions visible to the credential.

        Returns
        -------
        list of Subscription
            Subscriptions in the order the API returns them.

        Raises
        ------
        AzureClientError
            If the subscription list cannot be fetched.
        """
        try:
            listed = list(self.get_subscription_client().subscriptions.list())
        except AzureClientError:
            raise
        except ClientAuthenticationError as e:
            raise CredentialsError(f"Not authorized to list subscriptions: {e}")
        except Exception as e:
            logger.exception("Failed to list subscriptions")
            raise AzureClientError(
                f"Failed to list subscriptions: {e}", service="subscription"
            )

        subscriptions: List[Subscription] = []
        for sub in listed:
            state = str(getattr(sub.state, "value", sub.state) or "")
            if state and state.lower() != "enabled":
                logger.debug(f"Skipping subscription {sub.subscription_id} ({state})")
                continue
            subscriptions.append(
                Subscription(
                    id=sub.subscription_id,
                    name=sub.display_name or "",
                    sequence=len(subscriptions),
                )
            )

        logger.info(f"Discovered {len(subscriptions)} enabled subscriptions")
        return subscriptions

    # =========================================================================
    # Context Manager Support
    # =========================================================================

    def close(self) -> None:
        """Close cached management clients."""
        with self._lock:
            clients = list(self._web_clients.values())
            if self._subscription_client is not None:
                clients.append(self._subscription_client)
            self._web_clients.clear()
            self._subscription_client = None
        for client in clients:
            client.close()

    def __enter__(self) -> AzureClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"AzureClient(max_retries={self.max_retries}, "
            f"timeout={self.timeout})"
        )
