"""
Audit Aggregator Module
=======================

Merges per-subscription partial results into one read-only report.

Classes
-------
AuditReport
    Immutable cross-subscription report consumed by the reporters.
AuditAggregator
    Builds an :class:`AuditReport` from partial results.

Example
-------
>>> from planaudit.core.aggregator import AuditAggregator
>>>
>>> report = AuditAggregator(top_n=5).aggregate(partials, elapsed_seconds=12.4)
>>> print(report.empty_plan_monthly_usd, report.distributions["state"])

Notes
-----
Partials are put in canonical order (subscription discovery position,
then subscription id) before anything is merged, so the report does not
depend on the order in which workers finished. Top-N ties are broken by
that canonical discovery order.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from planaudit.core.models import (
    AppKind,
    ComputeApplication,
    EmptyPlanFinding,
    ErrorEntry,
    RiskFinding,
)
from planaudit.core.subscription_auditor import SubscriptionAuditResult

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 10

NOT_SET = "Not set"
OWNER_TAGGED = "Tagged"
OWNER_MISSING = "Missing"
HTTPS_ONLY = "HTTPS Only"
HTTP_ALLOWED = "HTTP Allowed"

DISTRIBUTIONS = ("state", "os", "tls", "identity", "ftps", "https", "owner")

_ZERO = Decimal("0.00")


def _labels(app: ComputeApplication) -> Dict[str, str]:
    """Distribution labels of one application."""
    return {
        "state": app.state.value,
        "os": app.os_type.value,
        "tls": app.min_tls_version or NOT_SET,
        "identity": app.identity.value,
        "ftps": app.ftps_policy.value if app.ftps_policy else NOT_SET,
        "https": _https_label(app.https_only),
        "owner": OWNER_TAGGED if app.has_owner else OWNER_MISSING,
    }


def _https_label(https_only: Optional[bool]) -> str:
    if https_only is None:
        return NOT_SET
    return HTTPS_ONLY if https_only else HTTP_ALLOWED


def _freeze_counts(counter: Counter) -> Mapping[str, int]:
    return MappingProxyType({label: counter[label] for label in sorted(counter)})


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


@dataclass(frozen=True)
class AuditReport:
    """
    Cross-subscription audit report.

    Built once by :class:`AuditAggregator` and never modified. Mappings
    are read-only views and sequences are tuples.

    Attributes
    ----------
    subscription_count : int
        Number of partial results merged.
    application_count, function_app_count, web_app_count : int
        Normalized application totals.
    plan_count : int
        Normalized hosting plans.
    empty_plan_count : int
        Empty plans found.
    empty_plan_monthly_usd, empty_plan_annual_usd : Decimal
        Summed cost of all empty plans.
    unattached_count : int
        Applications whose plan reference matched no plan.
    distributions : mapping
        Distribution name to ``label -> count`` mapping.
    top_risks : tuple of RiskFinding
        Highest-scoring risk findings.
    top_empty_plans : tuple of EmptyPlanFinding
        Most expensive empty plans.
    apps_per_subscription : mapping
        Application count per subscription id, including subscriptions
        with no applications or a failed audit.
    subscription_names : mapping
        Subscription id to display name.
    apps_per_runtime : mapping
        Application count per runtime label.
    applications, empty_plans, risk_findings : tuple
        Full merged lists in canonical order.
    errors : tuple of ErrorEntry
        Every non-fatal error of the run.
    elapsed_seconds : float
        Wall-clock duration of the run.
    interrupted : bool
        True when only part of the subscriptions completed.
    """

    subscription_count: int = 0
    application_count: int = 0
    function_app_count: int = 0
    web_app_count: int = 0
    plan_count: int = 0
    empty_plan_count: int = 0
    empty_plan_monthly_usd: Decimal = _ZERO
    empty_plan_annual_usd: Decimal = _ZERO
    unattached_count: int = 0
    distributions: Mapping[str, Mapping[str, int]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    top_risks: Tuple[RiskFinding, ...] = ()
    top_empty_plans: Tuple[EmptyPlanFinding, ...] = ()
    apps_per_subscription: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    subscription_names: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    apps_per_runtime: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    applications: Tuple[ComputeApplication, ...] = ()
    empty_plans: Tuple[EmptyPlanFinding, ...] = ()
    risk_findings: Tuple[RiskFinding, ...] = ()
    errors: Tuple[ErrorEntry, ...] = ()
    elapsed_seconds: float = 0.0
    interrupted: bool = False
    empty_plan_analysis_skipped: bool = False

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def risk_count(self) -> int:
        return len(self.risk_findings)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a JSON-safe dictionary.

        Money amounts are rendered as strings with two decimal places.
        """
        return {
            "summary": {
                "subscriptions": self.subscription_count,
                "applications": self.application_count,
                "function_apps": self.function_app_count,
                "web_apps": self.web_app_count,
                "plans": self.plan_count,
                "empty_plans": self.empty_plan_count,
                "empty_plan_monthly_usd": _money(self.empty_plan_monthly_usd),
                "empty_plan_annual_usd": _money(self.empty_plan_annual_usd),
                "unattached_applications": self.unattached_count,
                "risk_findings": self.risk_count,
                "errors": self.error_count,
                "elapsed_seconds": round(self.elapsed_seconds, 3),
                "interrupted": self.interrupted,
                "empty_plan_analysis_skipped": self.empty_plan_analysis_skipped,
            },
            "distributions": {
                name: dict(counts) for name, counts in self.distributions.items()
            },
            "apps_per_subscription": dict(self.apps_per_subscription),
            "subscription_names": dict(self.subscription_names),
            "apps_per_runtime": dict(self.apps_per_runtime),
            "top_risks": [finding.to_dict() for finding in self.top_risks],
            "top_empty_plans": [finding.to_dict() for finding in self.top_empty_plans],
            "applications": [app.to_dict() for app in self.applications],
            "empty_plans": [finding.to_dict() for finding in self.empty_plans],
            "risk_findings": [finding.to_dict() for finding in self.risk_findings],
            "errors": [error.to_dict() for error in self.errors],
        }

    def __repr__(self) -> str:
        return (
            f"AuditReport(subscriptions={self.subscription_count}, "
            f"apps={self.application_count}, empty_plans={self.empty_plan_count}, "
            f"monthly_waste=${self.empty_plan_monthly_usd}, "
            f"risks={self.risk_count}, errors={self.error_count})"
        )


class AuditAggregator:
    """
    Merges partial results into an :class:`AuditReport`.

    Parameters
    ----------
    top_n : int, default=10
        Size of the top risk and top empty-plan lists.

    Raises
    ------
    ValueError
        If ``top_n`` is negative.
    """

    def __init__(self, top_n: int = DEFAULT_TOP_N) -> None:
        if top_n < 0:
            raise ValueError(f"top_n must be non-negative, got {top_n}")
        self.top_n = top_n

    @staticmethod
    def canonical_order(
        partials: Iterable[SubscriptionAuditResult],
    ) -> List[SubscriptionAuditResult]:
        """Sort partials by subscription discovery position, then id."""
        return sorted(
            partials, key=lambda p: (p.subscription.sequence, p.subscription.id)
        )

    def aggregate(
        self,
        partials: Iterable[SubscriptionAuditResult],
        elapsed_seconds: float = 0.0,
        errors: Iterable[ErrorEntry] = (),
        interrupted: bool = False,
    ) -> AuditReport:
        """
        Merge partial results.

        Parameters
        ----------
        partials : iterable of SubscriptionAuditResult
            One result per audited subscription, in any order.
        elapsed_seconds : float, default=0.0
            Duration of the run, copied into the report.
        errors : iterable of ErrorEntry
            Run-level errors, listed after every subscription's errors.
        interrupted : bool, default=False
            Whether the run was cancelled before completing.

        Returns
        -------
        AuditReport
            The merged report. The same inputs always give an equal report.
        """
        ordered = self.canonical_order(partials)

        applications: List[ComputeApplication] = []
        empty_plans: List[EmptyPlanFinding] = []
        risk_findings: List[RiskFinding] = []
        all_errors: List[ErrorEntry] = []
        plan_count = 0
        unattached = 0

        for partial in ordered:
            applications.extend(partial.applications)
            empty_plans.extend(partial.empty_plans)
            risk_findings.extend(partial.risk_findings)
            all_errors.extend(partial.errors)
            plan_count += len(partial.plans)
            unattached += partial.unattached_count
        all_errors.extend(errors)

        tallies: Dict[str, Counter] = {name: Counter() for name in DISTRIBUTIONS}
        per_subscription: Dict[str, int] = {p.subscription.id: 0 for p in ordered}
        names: Dict[str, str] = {
            p.subscription.id: p.subscription.display_name for p in ordered
        }
        per_runtime: Counter = Counter()
        function_count = 0

        for app in applications:
            for name, label in _labels(app).items():
                tallies[name][label] += 1
            per_subscription[app.subscription_id] = (
                per_subscription.get(app.subscription_id, 0) + 1
            )
            names.setdefault(
                app.subscription_id, app.subscription_name or app.subscription_id
            )
            per_runtime[app.runtime_label] += 1
            if app.kind is AppKind.FUNCTION:
                function_count += 1

        # Subscriptions that failed outright never reached empty-plan analysis
        audited = [p for p in ordered if not p.is_failed] or ordered

        monthly = sum((finding.monthly_usd for finding in empty_plans), _ZERO)
        annual = sum((finding.annual_usd for finding in empty_plans), _ZERO)

        # sorted() is stable, so equal keys keep canonical discovery order
        top_risks = sorted(risk_findings, key=lambda f: -f.score)[: self.top_n]
        top_empty = sorted(empty_plans, key=lambda f: -f.monthly_usd)[: self.top_n]

        report = AuditReport(
            subscription_count=len(ordered),
            application_count=len(applications),
            function_app_count=function_count,
            web_app_count=len(applications) - function_count,
            plan_count=plan_count,
            empty_plan_count=len(empty_plans),
            empty_plan_monthly_usd=monthly,
            empty_plan_annual_usd=annual,
            unattached_count=unattached,
            distributions=MappingProxyType(
                {name: _freeze_counts(tallies[name]) for name in DISTRIBUTIONS}
            ),
            top_risks=tuple(top_risks),
            top_empty_plans=tuple(top_empty),
            apps_per_subscription=MappingProxyType(per_subscription),
            subscription_names=MappingProxyType(names),
            apps_per_runtime=_freeze_counts(per_runtime),
            applications=tuple(applications),
            empty_plans=tuple(empty_plans),
            risk_findings=tuple(risk_findings),
            errors=tuple(all_errors),
            elapsed_seconds=elapsed_seconds,
            interrupted=interrupted,
            empty_plan_analysis_skipped=bool(audited)
            and all(p.empty_plan_analysis_skipped for p in audited),
        )

        logger.info(
            f"Aggregated {report.subscription_count} subscriptions: "
            f"{report.application_count} apps, {report.empty_plan_count} empty plans "
            f"(${_money(monthly)}/month), {report.risk_count} risk findings, "
            f"{report.error_count} errors"
        )
        return report

    def __repr__(self) -> str:
        return f"AuditAggregator(top_n={self.top_n})"
