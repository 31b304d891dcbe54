"""
Plan-Audit: Azure Hosting Plan Cost & Risk Auditor
==================================================

Audits App Service and Functions inventory across Azure subscriptions to
find hosting plans that cost money while running nothing, and to rank
applications by operational and security risk.

Modules
-------
core
    Core components (Azure client, pricing, correlation, orchestration)
analyzers
    Empty-plan detection and risk scoring
reporters
    Output formatters (CLI, CSV, JSON)

Example
-------
>>> from planaudit import AzureClient, AzureInventorySource, SubscriptionManager
>>>
>>> client = AzureClient()
>>> source = AzureInventorySource(client)
>>> report = SubscriptionManager(source).audit(client.list_subscriptions())
>>> print(f"Found {report.empty_plan_count} empty plans")

Notes
-----
Requires Azure credentials resolvable by ``DefaultAzureCredential``:
- Environment variables (AZURE_CLIENT_ID, AZURE_TENANT_ID, AZURE_CLIENT_SECRET)
- Managed or workload identity
- An ``az login`` session

See Also
--------
azure-identity : Azure credential implementations
"""

__version__ = "0.1.0"
__author__ = "Plan-Audit Team"
__license__ = "MIT"

# Public API
from planaudit.core.azure_client import AzureClient
from planaudit.core.exceptions import AzureClientError, PlanAuditError
from planaudit.core.inventory import AzureInventorySource, FileInventorySource
from planaudit.core.aggregator import AuditAggregator, AuditReport
from planaudit.core.subscription_auditor import SubscriptionAuditor, SubscriptionAuditResult
from planaudit.core.subscription_manager import AuditRunResult, SubscriptionManager

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core classes
    "AzureClient",
    "AzureClientError",
    "PlanAuditError",
    "AzureInventorySource",
    "FileInventorySource",
    "SubscriptionAuditor",
    "SubscriptionAuditResult",
    "SubscriptionManager",
    "AuditRunResult",
    "AuditAggregator",
    "AuditReport",
]
