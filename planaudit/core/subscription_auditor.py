"""
Subscription Auditor Module
===========================

Runs the full audit pipeline over one subscription's raw inventory:
normalization, plan correlation, empty-plan detection and risk scoring.

Classes
-------
SubscriptionAuditResult
    The partial result of one subscription.
SubscriptionAuditor
    Produces a :class:`SubscriptionAuditResult` from raw records.

Example
-------
>>> from planaudit.core.subscription_auditor import SubscriptionAuditor
>>>
>>> auditor = SubscriptionAuditor()
>>> result = auditor.audit(subscription, raw_functions, raw_webs, raw_plans)
>>> print(f"{len(result.empty_plans)} empty plans, {len(result.errors)} errors")

Notes
-----
Problems with single records never abort the subscription: a malformed
record is logged, recorded as a resource-level error and skipped. The only
exception :meth:`SubscriptionAuditor.audit` raises is
:class:`AuditTimeoutError`, when its cancel event is set.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

from planaudit.analyzers.empty_plan_detector import EmptyPlanDetector
from planaudit.analyzers.risk_scorer import RiskScorer
from planaudit.core.correlator import PlanOccupancy, ResourceCorrelator
from planaudit.core.exceptions import AuditTimeoutError
from planaudit.core.models import (
    DEFAULT_OWNER_TAG_KEYS,
    AppKind,
    ComputeApplication,
    EmptyPlanFinding,
    ErrorEntry,
    ErrorLevel,
    HostingPlan,
    RiskFinding,
    Subscription,
)
from planaudit.core.pricing import PricingTable

# Module logger
logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SubscriptionAuditResult:
    """
    Partial result of auditing one subscription.

    Owned by the worker that produced it until handed to the aggregator.

    Parameters
    ----------
    subscription : Subscription
        The audited subscription.
    applications : list of ComputeApplication
        Normalized applications, function apps first, in discovery order.
    plans : list of HostingPlan
        Normalized hosting plans in discovery order.
    occupancy : dict
        Plan id to :class:`PlanOccupancy`.
    empty_plans : list of EmptyPlanFinding
        Costed plans without applications.
    risk_findings : list of RiskFinding
        Applications with at least one matched risk rule.
    unattached_count : int
        Applications whose plan reference matches no plan.
    empty_plan_analysis_skipped : bool
        True when empty-plan detection was not run.
    errors : list of ErrorEntry
        Non-fatal errors for this subscription.
    """

    subscription: Subscription
    applications: List[ComputeApplication] = field(default_factory=list)
    plans: List[HostingPlan] = field(default_factory=list)
    occupancy: Dict[str, PlanOccupancy] = field(default_factory=dict)
    empty_plans: List[EmptyPlanFinding] = field(default_factory=list)
    risk_findings: List[RiskFinding] = field(default_factory=list)
    unattached_count: int = 0
    empty_plan_analysis_skipped: bool = False
    errors: List[ErrorEntry] = field(default_factory=list)

    @classmethod
    def failed(
        cls,
        subscription: Subscription,
        message: str,
        empty_plan_analysis_skipped: bool = False,
    ) -> SubscriptionAuditResult:
        """Empty result carrying a single subscription-level error."""
        return cls(
            subscription=subscription,
            empty_plan_analysis_skipped=empty_plan_analysis_skipped,
            errors=[ErrorEntry.subscription(subscription.id, message)],
        )

    @property
    def is_failed(self) -> bool:
        """True when the subscription could not be audited at all."""
        return any(e.level is ErrorLevel.SUBSCRIPTION for e in self.errors)

    @property
    def function_app_count(self) -> int:
        return sum(1 for app in self.applications if app.kind is AppKind.FUNCTION)

    @property
    def web_app_count(self) -> int:
        return sum(1 for app in self.applications if app.kind is AppKind.WEB)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def __repr__(self) -> str:
        return (
            f"SubscriptionAuditResult(subscription='{self.subscription.id}', "
            f"apps={len(self.applications)}, plans={len(self.plans)}, "
            f"empty={len(self.empty_plans)}, risks={len(self.risk_findings)}, "
            f"errors={len(self.errors)})"
        )


class SubscriptionAuditor:
    """
    Audits the raw inventory of one subscription.

    Parameters
    ----------
    pricing : PricingTable, optional
        Price list for empty-plan cost estimates. Defaults to the bundled one.
    owner_tag_keys : iterable of str, optional
        Tag-key aliases used to resolve application owners, in priority order.

    Examples
    --------
    >>> auditor = SubscriptionAuditor(owner_tag_keys=("owner", "team"))
    >>> result = auditor.audit(sub, funcs, webs, plans, skip_empty_plan_analysis=True)
    """

    def __init__(
        self,
        pricing: Optional[PricingTable] = None,
        owner_tag_keys: Iterable[str] = DEFAULT_OWNER_TAG_KEYS,
    ) -> None:
        self.detector = EmptyPlanDetector(pricing)
        self.scorer = RiskScorer()
        self.owner_tag_keys = tuple(owner_tag_keys)

    @property
    def pricing(self) -> PricingTable:
        return self.detector.pricing

    def audit(
        self,
        subscription: Subscription,
        raw_function_apps: Iterable[Mapping[str, Any]],
        raw_web_apps: Iterable[Mapping[str, Any]],
        raw_plans: Iterable[Mapping[str, Any]],
        skip_empty_plan_analysis: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> SubscriptionAuditResult:
        """
        Audit one subscription.

        Parameters
        ----------
        subscription : Subscription
            The subscription the records belong to.
        raw_function_apps, raw_web_apps : iterable of dict
            Raw application records.
        raw_plans : iterable of dict
            Raw hosting-plan records.
        skip_empty_plan_analysis : bool, default=False
            Skip empty-plan detection (occupancy is still computed).
        cancel_event : threading.Event, optional
            Checked between records; once set, the audit stops.

        Returns
        -------
        SubscriptionAuditResult
            Entities and findings of this subscription plus its errors.

        Raises
        ------
        AuditTimeoutError
            If ``cancel_event`` is set before the audit finishes.
        """
        logger.info(f"Auditing subscription {subscription.display_name}")
        result = SubscriptionAuditResult(
            subscription=subscription,
            empty_plan_analysis_skipped=skip_empty_plan_analysis,
        )

        function_apps = self._normalize(
            raw_function_apps,
            lambda raw: ComputeApplication.from_record(
                raw, subscription, AppKind.FUNCTION, self.owner_tag_keys
            ),
            subscription,
            result.errors,
            cancel_event,
        )
        web_apps = self._normalize(
            raw_web_apps,
            lambda raw: ComputeApplication.from_record(
                raw, subscription, AppKind.WEB, self.owner_tag_keys
            ),
            subscription,
            result.errors,
            cancel_event,
        )
        result.plans = self._normalize(
            raw_plans,
            lambda raw: HostingPlan.from_record(raw, subscription),
            subscription,
            result.errors,
            cancel_event,
        )
        result.applications = function_apps + web_apps

        self._check_cancelled(subscription, cancel_event)
        correlator = ResourceCorrelator(result.plans)
        result.occupancy = correlator.correlate(function_apps, web_apps)
        result.unattached_count = len(correlator.unattached(result.applications))

        if skip_empty_plan_analysis:
            logger.debug(f"Empty plan analysis skipped for {subscription.display_name}")
        else:
            self._check_cancelled(subscription, cancel_event)
            findings, errors = self.detector.detect(result.plans, result.occupancy)
            result.empty_plans = findings
            result.errors.extend(errors)

        self._check_cancelled(subscription, cancel_event)
        result.risk_findings = self.scorer.evaluate_all(result.applications)

        logger.info(
            f"Subscription {subscription.display_name}: "
            f"{len(result.applications)} apps, {len(result.plans)} plans, "
            f"{len(result.empty_plans)} empty, {len(result.risk_findings)} at risk, "
            f"{len(result.errors)} errors"
        )
        return result

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _normalize(
        self,
        records: Iterable[Mapping[str, Any]],
        build: Callable[[Mapping[str, Any]], T],
        subscription: Subscription,
        errors: List[ErrorEntry],
        cancel_event: Optional[threading.Event],
    ) -> List[T]:
        """Build entities from raw records, skipping the ones that fail."""
        entities: List[T] = []
        for raw in records or ():
            self._check_cancelled(subscription, cancel_event)
            try:
                entities.append(build(raw))
            except Exception as e:
                resource_id = raw.get("id") if isinstance(raw, Mapping) else None
                message = f"Skipped malformed record: {getattr(e, 'message', e)}"
                logger.warning(f"{subscription.display_name}: {message}")
                errors.append(
                    ErrorEntry.resource(
                        subscription.id,
                        str(resource_id) if resource_id else None,
                        message,
                    )
                )
        return entities

    @staticmethod
    def _check_cancelled(
        subscription: Subscription,
        cancel_event: Optional[threading.Event],
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AuditTimeoutError(
                f"Audit of {subscription.display_name} was cancelled",
                subscription_id=subscription.id,
            )

    def __repr__(self) -> str:
        return f"SubscriptionAuditor(pricing={self.pricing!r})"
