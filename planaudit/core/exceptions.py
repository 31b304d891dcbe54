"""
Custom Exceptions for plan-audit
================================

This module defines a hierarchy of custom exceptions used throughout
the application for consistent error handling and reporting.

Exception Hierarchy
-------------------
::

    PlanAuditError (base)
    ├── AzureClientError
    │   ├── CredentialsError
    │   └── ServiceError
    ├── ConfigurationError
    │   └── PricingConfigError
    └── AuditError
        ├── NoSubscriptionsError
        ├── InventoryError
        ├── MalformedRecordError
        └── AuditTimeoutError

Fatal errors (``CredentialsError``, ``NoSubscriptionsError``,
``PricingConfigError``) abort a run before any subscription work starts.
``InventoryError`` and ``AuditTimeoutError`` are subscription-level and
``MalformedRecordError`` is resource-level: both are turned into
:class:`~planaudit.core.models.ErrorEntry` records and the run continues.

Example
-------
>>> from planaudit.core.exceptions import AzureClientError, CredentialsError
>>>
>>> try:
...     client.validate_credentials()
... except CredentialsError as e:
...     print(f"Invalid credentials: {e}")
... except AzureClientError as e:
...     print(f"Azure error: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PlanAuditError(Exception):
    """
    Base exception for all plan-audit errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.

    Example
    -------
    >>> raise PlanAuditError("Something went wrong", details={"code": 500})
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
# Azure Client Exceptions
# =============================================================================


class AzureClientError(PlanAuditError):
    """
    Base exception for Azure client-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        The management API that caused the error (e.g. ``web``).
    subscription_id : str, optional
        The subscription the call was made against.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        subscription_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.subscription_id = subscription_id
        full_details = details or {}
        if service:
            full_details["service"] = service
        if subscription_id:
            full_details["subscription_id"] = subscription_id
        super().__init__(message, full_details)


class CredentialsError(AzureClientError):
    """
    Raised when Azure credentials are invalid, missing, or expired.

    Example
    -------
    >>> raise CredentialsError(
    ...     "Azure credentials not found",
    ...     details={"hint": "Run 'az login' to sign in"}
    ... )
    """

    pass


class ServiceError(AzureClientError):
    """Raised when a management API client cannot be created or called."""

    pass


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(PlanAuditError):
    """Raised when user-supplied configuration cannot be used."""

    pass


class PricingConfigError(ConfigurationError):
    """
    Raised when a pricing table file is missing or malformed.

    Example
    -------
    >>> raise PricingConfigError(
    ...     "Pricing table has no 'tiers' section",
    ...     details={"path": "pricing.json"}
    ... )
    """

    pass


# =============================================================================
# Audit Exceptions
# =============================================================================


class AuditError(PlanAuditError):
    """
    Base exception for errors raised while auditing a subscription.

    Parameters
    ----------
    message : str
        Human-readable error message.
    subscription_id : str, optional
        The subscription being audited.
    resource_id : str, optional
        The resource the error relates to.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        subscription_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.subscription_id = subscription_id
        self.resource_id = resource_id
        full_details = details or {}
        if subscription_id:
            full_details["subscription_id"] = subscription_id
        if resource_id:
            full_details["resource_id"] = resource_id
        super().__init__(message, full_details)


class NoSubscriptionsError(AuditError):
    """Raised when there is nothing to audit."""

    pass


class InventoryError(AuditError):
    """
    Raised when a subscription's inventory cannot be fetched at all.

    Example
    -------
    >>> raise InventoryError(
    ...     "Failed to list sites",
    ...     subscription_id="00000000-0000-0000-0000-000000000000"
    ... )
    """

    pass


class MalformedRecordError(AuditError):
    """
    Raised when a raw inventory record cannot be normalized.

    Example
    -------
    >>> raise MalformedRecordError(
    ...     "Record has no 'name'",
    ...     resource_id="/subscriptions/.../sites/orders-api"
    ... )
    """

    pass


class AuditTimeoutError(AuditError):
    """
    Raised when a subscription audit is cancelled or runs out of time.

    Example
    -------
    >>> raise AuditTimeoutError(
    ...     "Audit timed out after 300 seconds",
    ...     subscription_id="sub-1",
    ...     details={"timeout_seconds": 300}
    ... )
    """

    pass
