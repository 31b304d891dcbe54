"""
Empty Plan Detector Module
==========================

Flags hosting plans that have no attached applications and estimates
what they cost.

A hosting plan is billed for its workers whether or not anything runs on
it, so a plan with zero function apps and zero web apps is pure waste.

Classes
-------
EmptyPlanDetector
    Turns correlation output into costed :class:`EmptyPlanFinding` objects.

Example
-------
>>> from planaudit.analyzers import EmptyPlanDetector
>>> from planaudit.core.correlator import correlate
>>>
>>> detector = EmptyPlanDetector(PricingTable.default())
>>> findings, errors = detector.detect(plans, correlate(plans, funcs, webs))
>>> for finding in findings:
...     print(f"{finding.plan.name}: ${finding.monthly_usd}/month")

Notes
-----
Findings are returned in the order of the input plans. Sorting by cost is
left to the aggregation step.

See Also
--------
ResourceCorrelator : Produces the occupancy mapping.
PricingTable : Supplies the cost estimates.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence, Tuple

from planaudit.core.correlator import PlanOccupancy
from planaudit.core.models import EmptyPlanFinding, ErrorEntry, HostingPlan
from planaudit.core.pricing import PricingTable

# Module logger
logger = logging.getLogger(__name__)


class EmptyPlanDetector:
    """
    Detector for hosting plans with zero occupancy.

    Parameters
    ----------
    pricing : PricingTable, optional
        Price list used for cost estimates. Defaults to the bundled table.

    Examples
    --------
    >>> detector = EmptyPlanDetector()
    >>> findings, errors = detector.detect(plans, occupancy)
    >>> total = sum(f.monthly_usd for f in findings)
    """

    def __init__(self, pricing: Optional[PricingTable] = None) -> None:
        self.pricing = pricing or PricingTable.default()
        logger.debug(f"Initialized EmptyPlanDetector with {self.pricing!r}")

    def evaluate(
        self,
        plan: HostingPlan,
        occupancy: Mapping[str, PlanOccupancy],
    ) -> Optional[EmptyPlanFinding]:
        """
        Evaluate one plan.

        Returns
        -------
        EmptyPlanFinding or None
            A finding when the plan has no attached applications.

        Raises
        ------
        KeyError
            If the plan is missing from the occupancy mapping.
        """
        if occupancy[plan.id].total_count > 0:
            return None
        return EmptyPlanFinding(plan=plan, cost=self.pricing.estimate(plan.sku))

    def detect(
        self,
        plans: Sequence[HostingPlan],
        occupancy: Mapping[str, PlanOccupancy],
    ) -> Tuple[List[EmptyPlanFinding], List[ErrorEntry]]:
        """
        Find and cost every plan without applications.

        Parameters
        ----------
        plans : sequence of HostingPlan
            Plans of one subscription, in discovery order.
        occupancy : mapping
            Plan id to :class:`PlanOccupancy`, from the correlator.

        Returns
        -------
        tuple
            ``(findings, errors)``. A plan that cannot be evaluated is
            skipped and reported in ``errors``; the other plans are still
            evaluated.
        """
        findings: List[EmptyPlanFinding] = []
        errors: List[ErrorEntry] = []

        for plan in plans:
            try:
                finding = self.evaluate(plan, occupancy)
            except KeyError:
                message = f"No occupancy data for plan {plan.name}"
                logger.warning(message)
                errors.append(ErrorEntry.resource(plan.subscription_id, plan.id, message))
                continue
            except Exception as e:
                message = f"Failed to evaluate plan {plan.name}: {e}"
                logger.error(message)
                errors.append(ErrorEntry.resource(plan.subscription_id, plan.id, message))
                continue

            if finding is not None:
                logger.debug(
                    f"Empty plan {plan.name} ({plan.sku.label}): "
                    f"{finding.monthly_usd} USD/month"
                )
                findings.append(finding)

        logger.info(f"Found {len(findings)} empty plans out of {len(plans)}")
        return findings, errors

    def __repr__(self) -> str:
        return f"EmptyPlanDetector(pricing={self.pricing!r})"
