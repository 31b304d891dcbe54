"""
Core Audit Components
=====================

This module provides the foundational components for Plan-Audit:

- :class:`AzureClient` - Manages Azure credentials and management clients
- :class:`PricingTable` - Versioned hosting-plan price list
- :class:`ResourceCorrelator` - Attaches applications to hosting plans
- :class:`SubscriptionAuditor` - Audits one subscription's inventory
- :class:`SubscriptionManager` - Orchestrates parallel subscription audits
- :class:`AuditAggregator` - Merges partial results into one report
- Exception hierarchy for error handling

Classes
-------
AzureClient
    Thread-safe Azure client wrapper with retry settings and credential handling.
InventorySource
    Abstract base class for raw inventory providers.
SubscriptionAuditResult
    Partial result of one subscription.
AuditReport
    Immutable cross-subscription report.

Exceptions
----------
PlanAuditError
    Base exception for all Plan-Audit errors.
AzureClientError
    Base exception for Azure client errors.
CredentialsError
    Raised when credentials are invalid or missing.
ConfigurationError
    Raised when configuration (such as the price list) is invalid.
AuditError
    Base exception for audit errors.

Example
-------
>>> from planaudit.core import FileInventorySource, SubscriptionManager
>>>
>>> source = FileInventorySource("inventory.json")
>>> manager = SubscriptionManager(source, max_workers=4)
>>> report = manager.audit(source.subscriptions())

See Also
--------
planaudit.analyzers : Empty-plan detection and risk scoring.
planaudit.reporters : Output formatters.
"""

from planaudit.core.exceptions import (
    AuditError,
    AuditTimeoutError,
    AzureClientError,
    ConfigurationError,
    CredentialsError,
    InventoryError,
    MalformedRecordError,
    NoSubscriptionsError,
    PlanAuditError,
    PricingConfigError,
    ServiceError,
)
from planaudit.core.models import (
    ComputeApplication,
    EmptyPlanFinding,
    ErrorEntry,
    HostingPlan,
    RiskFinding,
    Subscription,
)
from planaudit.core.pricing import PricingTable
from planaudit.core.correlator import PlanOccupancy, ResourceCorrelator
from planaudit.core.azure_client import AzureClient
from planaudit.core.inventory import (
    AzureInventorySource,
    FileInventorySource,
    InventorySource,
    SubscriptionInventory,
)
from planaudit.core.subscription_auditor import SubscriptionAuditor, SubscriptionAuditResult
from planaudit.core.aggregator import AuditAggregator, AuditReport
from planaudit.core.subscription_manager import AuditRunResult, SubscriptionManager

__all__ = [
    # Client and sources
    "AzureClient",
    "InventorySource",
    "AzureInventorySource",
    "FileInventorySource",
    "SubscriptionInventory",
    # Entities
    "Subscription",
    "ComputeApplication",
    "HostingPlan",
    "EmptyPlanFinding",
    "RiskFinding",
    "ErrorEntry",
    # Engine
    "PricingTable",
    "PlanOccupancy",
    "ResourceCorrelator",
    "SubscriptionAuditor",
    "SubscriptionAuditResult",
    "AuditAggregator",
    "AuditReport",
    "SubscriptionManager",
    "AuditRunResult",
    # Exceptions - Base
    "PlanAuditError",
    # Exceptions - Azure Client
    "AzureClientError",
    "CredentialsError",
    "ServiceError",
    # Exceptions - Configuration
    "ConfigurationError",
    "PricingConfigError",
    # Exceptions - Audit
    "AuditError",
    "NoSubscriptionsError",
    "InventoryError",
    "MalformedRecordError",
    "AuditTimeoutError",
]
