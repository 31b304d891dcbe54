"""
Inventory Sources
=================

Sources hand the audit engine one subscription's raw records at a time.
Records are plain dictionaries so that the engine does not depend on any
SDK model classes.

Record Shapes
-------------
Application record::

    {"id", "name", "kind", "state", "os_type", "location", "server_farm_id",
     "runtime", "https_only", "min_tls_version", "ftps_state",
     "identity_type", "tags"}

Hosting-plan record::

    {"id", "name", "resource_group", "location",
     "sku": {"tier", "size", "family", "capacity"}}

Classes
-------
SubscriptionInventory
    Raw records of one subscription plus per-resource lookup errors.
InventorySource
    Abstract base class for sources.
AzureInventorySource
    Reads sites and plans through the App Service management API.
FileInventorySource
    Reads a JSON export with the same record shapes.

Example
-------
>>> source = FileInventorySource("inventory.json")
>>> for subscription in source.subscriptions():
...     inventory = source.fetch(subscription)
...     print(subscription.id, len(inventory.plans))
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from planaudit.core.exceptions import AuditTimeoutError, InventoryError
from planaudit.core.models import AppKind, ErrorEntry, Subscription, parse_resource_group

# Module logger
logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]


@dataclass
class SubscriptionInventory:
    """Raw inventory of one subscription."""

    function_apps: List[RawRecord] = field(default_factory=list)
    web_apps: List[RawRecord] = field(default_factory=list)
    plans: List[RawRecord] = field(default_factory=list)
    errors: List[ErrorEntry] = field(default_factory=list)

    @property
    def total_apps(self) -> int:
        return len(self.function_apps) + len(self.web_apps)


class InventorySource(ABC):
    """
    Abstract base class for inventory sources.

    Implementations must be safe to call from several worker threads at
    once, each fetching a different subscription.
    """

    @abstractmethod
    def fetch(
        self,
        subscription: Subscription,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubscriptionInventory:
        """
        Fetch the raw inventory of one subscription.

        Raises
        ------
        InventoryError
            If the subscription's inventory cannot be read at all.
        AuditTimeoutError
            If ``cancel_event`` is set while fetching.
        """

    def subscriptions(self) -> List[Subscription]:
        """Discover subscriptions, when the source knows them."""
        raise NotImplementedError(
            f"{self.__class__.__name__} cannot discover subscriptions"
        )


def _value(obj: Any) -> Any:
    """Unwrap SDK enum members to their string value."""
    return getattr(obj, "value", obj)


def _runtime_label(config: Any) -> str:
    if config is None:
        return ""
    for attr in ("linux_fx_version", "windows_fx_version"):
        value = getattr(config, attr, None)
        if value:
            return str(value)
    framework = getattr(config, "net_framework_version", None)
    return f"dotnet|{framework}" if framework else ""


class AzureInventorySource(InventorySource):
    """
    Inventory source backed by the App Service management API.

    Parameters
    ----------
    client : AzureClient
        Client that provides per-subscription web management clients.

    Notes
    -----
    Site configuration (TLS, FTPS, runtime) needs one extra call per site.
    When that call fails the site is skipped and a resource-level error
    is recorded; the remaining sites are still collected.
    """

    def __init__(self, client) -> None:
        self.client = client

    def subscriptions(self) -> List[Subscription]:
        return self.client.list_subscriptions()

    def fetch(
        self,
        subscription: Subscription,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubscriptionInventory:
        web = self.client.get_web_client(subscription.id)
        inventory = SubscriptionInventory()

        try:
            sites = list(web.web_apps.list())
        except Exception as e:
            raise InventoryError(
                f"Failed to list sites: {e}", subscription_id=subscription.id
            )
        logger.debug(f"Listed {len(sites)} sites in {subscription.display_name}")

        for site in sites:
            if cancel_event is not None and cancel_event.is_set():
                raise AuditTimeoutError(
                    f"Inventory fetch for {subscription.display_name} was cancelled",
                    subscription_id=subscription.id,
                )
            resource_group = parse_resource_group(site.id)
            try:
                config = web.web_apps.get_configuration(resource_group, site.name)
            except Exception as e:
                message = f"Failed to read configuration of {site.name}: {e}"
                logger.warning(message)
                inventory.errors.append(
                    ErrorEntry.resource(subscription.id, site.id, message)
                )
                continue

            record = self._site_record(site, config)
            if AppKind.from_kind(record["kind"]) is AppKind.FUNCTION:
                inventory.function_apps.append(record)
            else:
                inventory.web_apps.append(record)

        try:
            plans = list(web.app_service_plans.list())
        except Exception as e:
            raise InventoryError(
                f"Failed to list hosting plans: {e}", subscription_id=subscription.id
            )
        inventory.plans = [self._plan_record(plan) for plan in plans]

        logger.info(
            f"Fetched {inventory.total_apps} apps and {len(inventory.plans)} plans "
            f"from {subscription.display_name}"
        )
        return inventory

    @staticmethod
    def _site_record(site: Any, config: Any) -> RawRecord:
        identity = getattr(site, "identity", None)
        # "reserved" is set on Linux sites
        os_type = "Linux" if getattr(site, "reserved", False) else None
        return {
            "id": site.id,
            "name": site.name,
            "kind": site.kind or "",
            "state": site.state,
            "os_type": os_type,
            "location": site.location,
            "server_farm_id": site.server_farm_id,
            "runtime": _runtime_label(config),
            "https_only": site.https_only,
            "min_tls_version": _value(getattr(config, "min_tls_version", None)),
            "ftps_state": _value(getattr(config, "ftps_state", None)),
            "identity_type": _value(identity.type) if identity else None,
            "tags": dict(site.tags or {}),
        }

    @staticmethod
    def _plan_record(plan: Any) -> RawRecord:
        sku = plan.sku
        return {
            "id": plan.id,
            "name": plan.name,
            "resource_group": getattr(plan, "resource_group", None)
            or parse_resource_group(plan.id),
            "location": plan.location,
            "sku": {
                "tier": sku.tier if sku else None,
                "size": (sku.size or sku.name) if sku else None,
                "family": sku.family if sku else None,
                "capacity": sku.capacity if sku else None,
            },
        }

    def __repr__(self) -> str:
        return f"AzureInventorySource(client={self.client!r})"


class FileInventorySource(InventorySource):
    """
    Inventory source that reads a JSON export.

    Parameters
    ----------
    path : str or Path
        JSON document of the form::

            {"subscriptions": [
                {"id": "...", "name": "...",
                 "function_apps": [...], "web_apps": [...], "plans": [...]}
            ]}

        An entry may carry ``"error": "message"`` instead of records to
        stand for a subscription whose inventory could not be read.

    Raises
    ------
    InventoryError
        If the file cannot be read or has no ``subscriptions`` list.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise InventoryError(
                f"Failed to load inventory file: {e}", details={"path": str(self.path)}
            )

        entries = data.get("subscriptions") if isinstance(data, Mapping) else None
        if not isinstance(entries, list):
            raise InventoryError(
                "Inventory file has no 'subscriptions' list",
                details={"path": str(self.path)},
            )
        self._entries: Dict[str, Mapping[str, Any]] = {}
        for entry in entries:
            if isinstance(entry, Mapping) and entry.get("id"):
                self._entries[str(entry["id"])] = entry
            else:
                logger.warning(f"Ignoring inventory entry without an id in {self.path}")

        logger.debug(f"Loaded {len(self._entries)} subscriptions from {self.path}")

    def subscriptions(self) -> List[Subscription]:
        return [
            Subscription(id=sub_id, name=str(entry.get("name") or ""), sequence=index)
            for index, (sub_id, entry) in enumerate(self._entries.items())
        ]

    def fetch(
        self,
        subscription: Subscription,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubscriptionInventory:
        entry = self._entries.get(subscription.id)
        if entry is None:
            raise InventoryError(
                f"Subscription not found in {self.path.name}",
                subscription_id=subscription.id,
            )
        if entry.get("error"):
            raise InventoryError(str(entry["error"]), subscription_id=subscription.id)

        return SubscriptionInventory(
            function_apps=list(entry.get("function_apps") or []),
            web_apps=list(entry.get("web_apps") or []),
            plans=list(entry.get("plans") or []),
        )

    def __repr__(self) -> str:
        return f"FileInventorySource(path='{self.path}')"
