"""
Resource Correlator Module
==========================

Associates compute applications with the hosting plans they run on and
counts each plan's occupancy.

Matching Rule
-------------
An application is attached to a plan when the trailing path segment of
its plan reference (the plan's short name, compared case-sensitively)
equals the plan's name **within the same resource group**. The resource
group comes from the reference when it is a full resource id, otherwise
from the application's own id. Resource-group names are compared
case-insensitively, as the platform treats them.

Scoping by resource group keeps two plans that share a short name in
different resource groups from being credited with each other's apps.

Example
-------
>>> from planaudit.core.correlator import correlate
>>>
>>> occupancy = correlate(plans, function_apps, web_apps)
>>> for plan in plans:
...     print(plan.name, occupancy[plan.id].total_count)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from planaudit.core.models import (
    ComputeApplication,
    HostingPlan,
    parse_resource_group,
    short_name,
)

# Module logger
logger = logging.getLogger(__name__)

PlanKey = Tuple[str, str]


@dataclass(frozen=True)
class PlanOccupancy:
    """Number of applications attached to one hosting plan."""

    function_app_count: int = 0
    web_app_count: int = 0

    @property
    def total_count(self) -> int:
        return self.function_app_count + self.web_app_count

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0


def _plan_key(resource_group: str, name: str) -> PlanKey:
    return (resource_group.lower(), name)


def plan_key_for(app: ComputeApplication) -> PlanKey:
    """
    Return the ``(resource group, plan name)`` key an application points at.

    Returns ``("", "")`` when the application has no plan reference.
    """
    reference = app.plan_reference
    if not reference:
        return ("", "")
    scope = parse_resource_group(reference) or app.resource_group
    return _plan_key(scope, short_name(reference))


class ResourceCorrelator:
    """
    Builds the applications-per-plan mapping for one subscription.

    Parameters
    ----------
    plans : sequence of HostingPlan
        All hosting plans of the subscription.

    Examples
    --------
    >>> correlator = ResourceCorrelator(plans)
    >>> occupancy = correlator.correlate(function_apps, web_apps)
    >>> dangling = correlator.unattached(function_apps + web_apps)

    Notes
    -----
    Plans are indexed by key once, so correlation is linear in the number
    of plans plus applications.
    """

    def __init__(self, plans: Sequence[HostingPlan]) -> None:
        self.plans = list(plans)
        self._index: Dict[PlanKey, List[str]] = {}
        for plan in self.plans:
            key = _plan_key(plan.resource_group, plan.name)
            self._index.setdefault(key, []).append(plan.id)

    def match(self, app: ComputeApplication) -> List[str]:
        """Return the ids of the plans an application is attached to."""
        key = plan_key_for(app)
        if not key[1]:
            return []
        return self._index.get(key, [])

    def correlate(
        self,
        function_apps: Iterable[ComputeApplication],
        web_apps: Iterable[ComputeApplication],
    ) -> Dict[str, PlanOccupancy]:
        """
        Count function and web apps attached to every plan.

        Parameters
        ----------
        function_apps : iterable of ComputeApplication
            Function applications of the subscription.
        web_apps : iterable of ComputeApplication
            Web applications of the subscription.

        Returns
        -------
        dict
            Plan id to :class:`PlanOccupancy`, with an entry for every plan
            (unmatched plans have ``total_count == 0``). Applications
            without a plan reference are not counted anywhere.
        """
        function_counts: Dict[str, int] = {plan.id: 0 for plan in self.plans}
        web_counts: Dict[str, int] = {plan.id: 0 for plan in self.plans}

        for counts, apps in ((function_counts, function_apps), (web_counts, web_apps)):
            for app in apps:
                for plan_id in self.match(app):
                    counts[plan_id] += 1

        occupancy = {
            plan.id: PlanOccupancy(
                function_app_count=function_counts[plan.id],
                web_app_count=web_counts[plan.id],
            )
            for plan in self.plans
        }

        logger.debug(
            f"Correlated {len(self.plans)} plans: "
            f"{sum(1 for o in occupancy.values() if o.is_empty)} without applications"
        )
        return occupancy

    def unattached(
        self, apps: Iterable[ComputeApplication]
    ) -> List[ComputeApplication]:
        """
        Return applications whose plan reference matches no known plan.

        Applications with no plan reference at all are not included.
        """
        dangling = [
            app for app in apps if app.plan_reference and not self.match(app)
        ]
        for app in dangling:
            logger.debug(
                f"Application {app.name} references unknown plan {app.plan_reference}"
            )
        return dangling


def correlate(
    plans: Sequence[HostingPlan],
    function_apps: Iterable[ComputeApplication],
    web_apps: Iterable[ComputeApplication],
) -> Dict[str, PlanOccupancy]:
    """Shortcut for ``ResourceCorrelator(plans).correlate(...)``."""
    return ResourceCorrelator(plans).correlate(function_apps, web_apps)
