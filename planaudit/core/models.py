"""
Domain Models
=============

Immutable entities the audit engine works on, and the normalization of
raw inventory records into them.

Classes
-------
Subscription
    One audit unit (identifier, display name, discovery position).
ComputeApplication
    A function app or web app.
HostingPlan
    A billed compute plan, with its :class:`SkuDescriptor`.
CostEstimate
    Monthly and annual cost of a hosting plan.
EmptyPlanFinding
    A hosting plan with no attached applications, plus its cost.
RiskFinding
    An application with at least one matched risk rule.
ErrorEntry
    A non-fatal error recorded during a run.

Example
-------
>>> sub = Subscription(id="sub-1", name="Production")
>>> app = ComputeApplication.from_record(
...     {
...         "id": "/subscriptions/sub-1/resourceGroups/rg-web/providers/"
...               "Microsoft.Web/sites/orders-api",
...         "name": "orders-api",
...         "state": "Running",
...         "server_farm_id": "plan-a",
...         "tags": {"Owner": "payments-team"},
...     },
...     sub,
... )
>>> app.resource_group, app.owner
('rg-web', 'payments-team')

Notes
-----
Raw records are plain dictionaries (see the inventory sources
in :mod:`planaudit.core.inventory`). Normalization raises
:class:`MalformedRecordError` for records that cannot identify themselves;
every other oddity degrades to an ``Unknown``/``None`` value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from planaudit.core.exceptions import MalformedRecordError

# Module logger
logger = logging.getLogger(__name__)

# Tag keys that name an application's owner, most authoritative first.
DEFAULT_OWNER_TAG_KEYS: Tuple[str, ...] = (
    "owner",
    "createdby",
    "created-by",
    "created_by",
    "contact",
    "managedby",
    "team",
)

MONTHS_PER_YEAR = 12


# =============================================================================
# Enumerations
# =============================================================================


class AppState(Enum):
    """Running state of a compute application."""

    RUNNING = "Running"
    STOPPED = "Stopped"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Any) -> "AppState":
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.UNKNOWN


class FtpsPolicy(Enum):
    """FTP/FTPS deployment policy of an application."""

    DISABLED = "Disabled"
    FTPS_ONLY = "FtpsOnly"
    ALL_ALLOWED = "AllAllowed"

    @classmethod
    def parse(cls, value: Any) -> Optional["FtpsPolicy"]:
        """Return the matching policy, or None when not reported."""
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


class IdentityKind(Enum):
    """Managed identity attached to an application."""

    NONE = "None"
    SYSTEM_ASSIGNED = "SystemAssigned"
    USER_ASSIGNED = "UserAssigned"
    BOTH = "Both"

    @classmethod
    def parse(cls, value: Any) -> "IdentityKind":
        # The management API reports both kinds as "SystemAssigned, UserAssigned"
        text = str(value or "").replace(" ", "").replace(",", "").lower()
        if text == "systemassigneduserassigned":
            return cls.BOTH
        if text == "systemassigned":
            return cls.SYSTEM_ASSIGNED
        if text == "userassigned":
            return cls.USER_ASSIGNED
        return cls.NONE


class AppKind(Enum):
    """Whether an application is a function app or a web app."""

    FUNCTION = "function"
    WEB = "web"

    @classmethod
    def from_kind(cls, kind: Optional[str]) -> "AppKind":
        if kind and "functionapp" in kind.lower():
            return cls.FUNCTION
        return cls.WEB


class OSType(Enum):
    """Operating system family of an application."""

    LINUX = "Linux"
    WINDOWS = "Windows"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Any, kind: Optional[str] = None) -> "OSType":
        """
        Parse an OS type, falling back to the site ``kind`` string.

        Site kinds carry ``linux`` for Linux apps (``app,linux``,
        ``functionapp,linux``); any other non-empty kind is Windows.
        """
        text = str(value or "").strip().lower()
        if text == "linux":
            return cls.LINUX
        if text == "windows":
            return cls.WINDOWS
        if kind:
            return cls.LINUX if "linux" in kind.lower() else cls.WINDOWS
        return cls.UNKNOWN


class PlanTier(Enum):
    """Pricing tier of a hosting plan SKU."""

    FREE = "Free"
    SHARED = "Shared"
    BASIC = "Basic"
    STANDARD = "Standard"
    PREMIUM = "Premium"
    PREMIUM_V2 = "PremiumV2"
    PREMIUM_V3 = "PremiumV3"
    ELASTIC_PREMIUM = "ElasticPremium"
    ISOLATED = "Isolated"
    ISOLATED_V2 = "IsolatedV2"
    DYNAMIC = "Dynamic"
    FLEX_CONSUMPTION = "FlexConsumption"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Any) -> "PlanTier":
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.OTHER


class ErrorLevel(Enum):
    """Scope of a non-fatal error."""

    RUN = "run"
    SUBSCRIPTION = "subscription"
    RESOURCE = "resource"


# =============================================================================
# Helpers
# =============================================================================


def parse_resource_group(resource_id: Optional[str]) -> str:
    """
    Extract the resource group name from a resource identifier.

    Returns an empty string when the identifier has no
    ``resourceGroups`` segment (for example a bare plan name).

    Example
    -------
    >>> parse_resource_group(
    ...     "/subscriptions/s/resourceGroups/rg-web/providers/Microsoft.Web/sites/app"
    ... )
    'rg-web'
    """
    if not resource_id:
        return ""
    parts = resource_id.split("/")
    for index, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[index + 1]
    return ""


def short_name(reference: Optional[str]) -> str:
    """Return the trailing path segment of a resource reference."""
    if not reference:
        return ""
    return reference.strip().rstrip("/").split("/")[-1]


def resolve_owner(
    tags: Mapping[str, Any],
    candidate_keys: Iterable[str] = DEFAULT_OWNER_TAG_KEYS,
) -> Optional[str]:
    """
    Resolve an owner from tags using an ordered list of tag-key aliases.

    Candidates are tried in order; each one is compared case-insensitively
    against every tag key, and the first non-blank value wins.

    Parameters
    ----------
    tags : mapping
        Tag key/value pairs of the resource.
    candidate_keys : iterable of str
        Tag keys to try, most authoritative first.

    Returns
    -------
    str or None
        The owner, or None when no candidate tag carries a value.

    Example
    -------
    >>> resolve_owner({"Team": "data", "OWNER": "alice"})
    'alice'
    """
    for candidate in candidate_keys:
        wanted = candidate.casefold()
        for key, value in tags.items():
            if str(key).casefold() != wanted or value is None:
                continue
            text = str(value).strip()
            if text:
                return text
    return None


def _parse_bool(value: Any, field_name: str, resource_id: str) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise MalformedRecordError(
        f"Field '{field_name}' is not a boolean: {value!r}",
        resource_id=resource_id,
    )


def _require(raw: Mapping[str, Any], key: str, record_type: str) -> str:
    value = raw.get(key)
    if value is None or not str(value).strip():
        raise MalformedRecordError(
            f"{record_type} record has no '{key}'",
            resource_id=str(raw.get("id") or "") or None,
            details={"record_keys": sorted(str(k) for k in raw.keys())},
        )
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# Entities
# =============================================================================


@dataclass(frozen=True)
class Subscription:
    """
    A subscription to audit.

    Parameters
    ----------
    id : str
        Subscription identifier.
    name : str, optional
        Display name.
    sequence : int, default=0
        Position in the discovery order; fixes the merge order of results.
    """

    id: str
    name: str = ""
    sequence: int = 0

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class SkuDescriptor:
    """Pricing SKU of a hosting plan."""

    tier: PlanTier
    size: str
    family: str = ""
    capacity: int = 1
    tier_label: str = ""

    @property
    def label(self) -> str:
        """Human-readable ``Tier/Size xN`` label."""
        tier = self.tier_label or self.tier.value
        return f"{tier}/{self.size or '?'} x{self.capacity}"


@dataclass(frozen=True)
class ComputeApplication:
    """
    One function app or web app instance.

    Constructed once per raw inventory record by :meth:`from_record` and
    never modified afterwards.
    """

    id: str
    name: str
    resource_group: str
    kind: AppKind
    state: AppState
    https_only: Optional[bool]
    min_tls_version: Optional[str]
    ftps_policy: Optional[FtpsPolicy]
    identity: IdentityKind
    plan_reference: Optional[str] = None
    os_type: OSType = OSType.UNKNOWN
    location: str = ""
    runtime: str = ""
    owner: Optional[str] = None
    subscription_id: str = ""
    subscription_name: str = ""
    tags: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({}), compare=False
    )

    @classmethod
    def from_record(
        cls,
        raw: Mapping[str, Any],
        subscription: Subscription,
        kind: Optional[AppKind] = None,
        owner_tag_keys: Iterable[str] = DEFAULT_OWNER_TAG_KEYS,
    ) -> "ComputeApplication":
        """
        Normalize a raw application record.

        Parameters
        ----------
        raw : mapping
            Raw record with keys ``id``, ``name``, ``kind``, ``state``,
            ``os_type``, ``location``, ``server_farm_id``, ``runtime``,
            ``https_only``, ``min_tls_version``, ``ftps_state``,
            ``identity_type`` and ``tags``.
        subscription : Subscription
            Subscription the record was collected from.
        kind : AppKind, optional
            Overrides the kind derived from the record's ``kind`` string.
        owner_tag_keys : iterable of str
            Tag-key aliases used to resolve the owner.

        Raises
        ------
        MalformedRecordError
            If the record has no id or name, or carries unusable values.
        """
        if not isinstance(raw, Mapping):
            raise MalformedRecordError(
                f"Application record is not a mapping: {type(raw).__name__}",
                subscription_id=subscription.id,
            )

        resource_id = _require(raw, "id", "Application")
        name = _require(raw, "name", "Application")

        tags = raw.get("tags") or {}
        if not isinstance(tags, Mapping):
            raise MalformedRecordError(
                "Field 'tags' is not a mapping",
                subscription_id=subscription.id,
                resource_id=resource_id,
            )
        tags = {str(k): "" if v is None else str(v) for k, v in tags.items()}

        site_kind = _optional_text(raw.get("kind"))

        return cls(
            id=resource_id,
            name=name,
            resource_group=parse_resource_group(resource_id),
            kind=kind or AppKind.from_kind(site_kind),
            state=AppState.parse(raw.get("state")),
            https_only=_parse_bool(raw.get("https_only"), "https_only", resource_id),
            min_tls_version=_optional_text(raw.get("min_tls_version")),
            ftps_policy=FtpsPolicy.parse(raw.get("ftps_state")),
            identity=IdentityKind.parse(raw.get("identity_type")),
            plan_reference=_optional_text(raw.get("server_farm_id")),
            os_type=OSType.parse(raw.get("os_type"), site_kind),
            location=_optional_text(raw.get("location")) or "",
            runtime=_optional_text(raw.get("runtime")) or "",
            owner=resolve_owner(tags, owner_tag_keys),
            subscription_id=subscription.id,
            subscription_name=subscription.display_name,
            tags=MappingProxyType(tags),
        )

    @property
    def runtime_label(self) -> str:
        return self.runtime or "Unknown"

    @property
    def has_owner(self) -> bool:
        return self.owner is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "resource_group": self.resource_group,
            "kind": self.kind.value,
            "state": self.state.value,
            "https_only": self.https_only,
            "min_tls_version": self.min_tls_version,
            "ftps_policy": self.ftps_policy.value if self.ftps_policy else None,
            "identity": self.identity.value,
            "plan_reference": self.plan_reference,
            "os_type": self.os_type.value,
            "location": self.location,
            "runtime": self.runtime_label,
            "owner": self.owner,
            "subscription_id": self.subscription_id,
            "subscription_name": self.subscription_name,
            "tags": dict(sorted(self.tags.items())),
        }


@dataclass(frozen=True)
class HostingPlan:
    """A compute hosting plan."""

    id: str
    name: str
    resource_group: str
    location: str
    sku: SkuDescriptor
    subscription_id: str = ""
    subscription_name: str = ""

    @classmethod
    def from_record(
        cls,
        raw: Mapping[str, Any],
        subscription: Subscription,
    ) -> "HostingPlan":
        """
        Normalize a raw hosting-plan record.

        The resource group comes from the record's ``resource_group`` key
        and falls back to the ``resourceGroups`` segment of its id. A
        capacity below one (reported for some consumption plans) is
        raised to one worker.

        Raises
        ------
        MalformedRecordError
            If the record has no id or name, or a non-integer capacity.
        """
        if not isinstance(raw, Mapping):
            raise MalformedRecordError(
                f"Plan record is not a mapping: {type(raw).__name__}",
                subscription_id=subscription.id,
            )

        resource_id = _require(raw, "id", "Plan")
        name = _require(raw, "name", "Plan")

        sku = raw.get("sku") or {}
        if not isinstance(sku, Mapping):
            raise MalformedRecordError(
                "Field 'sku' is not a mapping",
                subscription_id=subscription.id,
                resource_id=resource_id,
            )

        raw_capacity = sku.get("capacity")
        if raw_capacity is None:
            capacity = 1
        elif isinstance(raw_capacity, bool):
            raise MalformedRecordError(
                f"SKU capacity is not an integer: {raw_capacity!r}",
                subscription_id=subscription.id,
                resource_id=resource_id,
            )
        else:
            try:
                capacity = int(raw_capacity)
            except (TypeError, ValueError):
                raise MalformedRecordError(
                    f"SKU capacity is not an integer: {raw_capacity!r}",
                    subscription_id=subscription.id,
                    resource_id=resource_id,
                )
        if capacity < 1:
            logger.debug(f"Plan {name} reports capacity {capacity}; using 1")
            capacity = 1

        tier_label = _optional_text(sku.get("tier")) or ""
        resource_group = (
            _optional_text(raw.get("resource_group"))
            or parse_resource_group(resource_id)
        )

        return cls(
            id=resource_id,
            name=name,
            resource_group=resource_group,
            location=_optional_text(raw.get("location")) or "",
            sku=SkuDescriptor(
                tier=PlanTier.parse(tier_label),
                size=_optional_text(sku.get("size")) or "",
                family=_optional_text(sku.get("family")) or "",
                capacity=capacity,
                tier_label=tier_label,
            ),
            subscription_id=subscription.id,
            subscription_name=subscription.display_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "resource_group": self.resource_group,
            "location": self.location,
            "tier": self.sku.tier.value,
            "tier_label": self.sku.tier_label,
            "size": self.sku.size,
            "family": self.sku.family,
            "capacity": self.sku.capacity,
            "subscription_id": self.subscription_id,
            "subscription_name": self.subscription_name,
        }


@dataclass(frozen=True)
class CostEstimate:
    """Recurring cost of a hosting plan, in USD."""

    monthly_usd: Decimal

    def __post_init__(self) -> None:
        if self.monthly_usd < 0:
            raise ValueError(f"monthly cost cannot be negative: {self.monthly_usd}")

    @property
    def annual_usd(self) -> Decimal:
        return self.monthly_usd * MONTHS_PER_YEAR


@dataclass(frozen=True)
class EmptyPlanFinding:
    """A hosting plan with zero attached applications."""

    plan: HostingPlan
    cost: CostEstimate
    function_app_count: int = 0
    web_app_count: int = 0

    def __post_init__(self) -> None:
        if self.function_app_count or self.web_app_count:
            raise ValueError(
                f"plan {self.plan.name} has attached applications and is not empty"
            )

    @property
    def monthly_usd(self) -> Decimal:
        return self.cost.monthly_usd

    @property
    def annual_usd(self) -> Decimal:
        return self.cost.annual_usd

    def to_dict(self) -> Dict[str, Any]:
        data = self.plan.to_dict()
        data.update(
            {
                "function_app_count": self.function_app_count,
                "web_app_count": self.web_app_count,
                "monthly_usd": f"{self.monthly_usd:.2f}",
                "annual_usd": f"{self.annual_usd:.2f}",
            }
        )
        return data


@dataclass(frozen=True)
class RiskFinding:
    """An application with at least one matched risk rule."""

    application: ComputeApplication
    issues: Tuple[str, ...]
    score: int

    def __post_init__(self) -> None:
        if not self.issues:
            raise ValueError("a risk finding needs at least one issue")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.application.id,
            "name": self.application.name,
            "resource_group": self.application.resource_group,
            "subscription_id": self.application.subscription_id,
            "subscription_name": self.application.subscription_name,
            "kind": self.application.kind.value,
            "issues": list(self.issues),
            "score": self.score,
        }


@dataclass(frozen=True)
class ErrorEntry:
    """
    A non-fatal error recorded during an audit run.

    Use the :meth:`resource`, :meth:`subscription` and :meth:`run`
    constructors rather than building entries by hand.
    """

    level: ErrorLevel
    message: str
    subscription_id: str = ""
    resource_id: Optional[str] = None

    @classmethod
    def resource(
        cls, subscription_id: str, resource_id: Optional[str], message: str
    ) -> "ErrorEntry":
        return cls(ErrorLevel.RESOURCE, message, subscription_id, resource_id)

    @classmethod
    def subscription(cls, subscription_id: str, message: str) -> "ErrorEntry":
        return cls(ErrorLevel.SUBSCRIPTION, message, subscription_id)

    @classmethod
    def run(cls, message: str) -> "ErrorEntry":
        return cls(ErrorLevel.RUN, message)

    def __str__(self) -> str:
        scope = self.subscription_id or "run"
        if self.resource_id:
            scope = f"{scope} {short_name(self.resource_id)}"
        return f"[{self.level.value}] {scope}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "subscription_id": self.subscription_id,
            "resource_id": self.resource_id,
            "message": self.message,
        }
