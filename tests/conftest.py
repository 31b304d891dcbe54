"""
Pytest configuration and shared fixtures for testing.
"""

import json
import threading

import pytest

from planaudit.core.inventory import InventorySource, SubscriptionInventory
from planaudit.core.models import Subscription
from planaudit.core.pricing import PricingTable

SUB_ID = "00000000-0000-0000-0000-000000000001"


def site_id(resource_group, name, subscription_id=SUB_ID):
    return (
        f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.Web/sites/{name}"
    )


def plan_id(resource_group, name, subscription_id=SUB_ID):
    return (
        f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"
        f"/providers/Microsoft.Web/serverfarms/{name}"
    )


def make_app(
    name,
    resource_group="rg-web",
    plan=None,
    subscription_id=SUB_ID,
    **overrides,
):
    """Build a raw application record for a clean, running app."""
    record = {
        "id": site_id(resource_group, name, subscription_id),
        "name": name,
        "kind": "app",
        "state": "Running",
        "os_type": "Linux",
        "location": "westeurope",
        "server_farm_id": plan_id(resource_group, plan, subscription_id) if plan else None,
        "runtime": "PYTHON|3.11",
        "https_only": True,
        "min_tls_version": "1.2",
        "ftps_state": "Disabled",
        "identity_type": "SystemAssigned",
        "tags": {"owner": "platform-team"},
    }
    record.update(overrides)
    return record


def make_function(name, resource_group="rg-web", plan=None, **overrides):
    overrides.setdefault("kind", "functionapp,linux")
    return make_app(name, resource_group, plan, **overrides)


def make_plan(
    name,
    resource_group="rg-web",
    tier="Standard",
    size="S1",
    capacity=1,
    subscription_id=SUB_ID,
):
    """Build a raw hosting-plan record."""
    return {
        "id": plan_id(resource_group, name, subscription_id),
        "name": name,
        "resource_group": resource_group,
        "location": "westeurope",
        "sku": {"tier": tier, "size": size, "family": size[:1], "capacity": capacity},
    }


class StaticInventorySource(InventorySource):
    """In-memory inventory source for orchestration tests."""

    def __init__(self, inventories, failures=None, delays=None):
        self.inventories = inventories
        self.failures = failures or {}
        self.delays = delays or {}

    def fetch(self, subscription, cancel_event=None):
        if subscription.id in self.failures:
            raise self.failures[subscription.id]
        delay = self.delays.get(subscription.id)
        if delay:
            # Blocks until cancelled or the delay passes
            (cancel_event or threading.Event()).wait(delay)
        return self.inventories[subscription.id]


@pytest.fixture
def subscription():
    """The default test subscription."""
    return Subscription(id=SUB_ID, name="Production", sequence=0)


@pytest.fixture
def pricing():
    """The bundled price list."""
    return PricingTable.default()


@pytest.fixture
def mixed_inventory():
    """One subscription with an occupied plan, an empty plan and a risky app."""
    return SubscriptionInventory(
        function_apps=[make_function("orders-func", plan="plan-shared")],
        web_apps=[
            make_app("orders-api", plan="plan-shared"),
            make_app(
                "legacy-portal",
                plan="plan-shared",
                state="Stopped",
                https_only=False,
                min_tls_version="1.0",
                ftps_state="AllAllowed",
                tags={},
            ),
        ],
        plans=[
            make_plan("plan-shared"),
            make_plan("plan-idle", resource_group="rg-old", tier="Basic", size="B2"),
        ],
    )


@pytest.fixture
def inventory_file(tmp_path):
    """A JSON inventory export with two subscriptions."""
    data = {
        "subscriptions": [
            {
                "id": SUB_ID,
                "name": "Production",
                "function_apps": [make_function("orders-func", plan="plan-a")],
                "web_apps": [
                    make_app("orders-api", plan="plan-a", https_only=False),
                ],
                "plans": [make_plan("plan-a"), make_plan("plan-b")],
            },
            {
                "id": "00000000-0000-0000-0000-000000000002",
                "name": "Staging",
                "function_apps": [],
                "web_apps": [],
                "plans": [
                    make_plan(
                        "plan-staging",
                        tier="PremiumV3",
                        size="P1v3",
                        subscription_id="00000000-0000-0000-0000-000000000002",
                    )
                ],
            },
        ]
    }
    path = tmp_path / "inventory.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
