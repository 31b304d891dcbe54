"""
Analyzers
=========

Pure evaluators that run over normalized inventory.

Available Analyzers
-------------------
EmptyPlanDetector
    Finds hosting plans with no attached applications and costs them.
RiskScorer
    Scores applications against the fixed risk rule set.

Example
-------
>>> from planaudit.analyzers import EmptyPlanDetector, RiskScorer
>>>
>>> findings, errors = EmptyPlanDetector().detect(plans, occupancy)
>>> risks = RiskScorer().evaluate_all(apps)

See Also
--------
planaudit.core.subscription_auditor : Runs both analyzers per subscription.
"""

from planaudit.analyzers.empty_plan_detector import EmptyPlanDetector
from planaudit.analyzers.risk_scorer import RISK_RULES, RiskRule, RiskScorer

__all__ = [
    "EmptyPlanDetector",
    "RISK_RULES",
    "RiskRule",
    "RiskScorer",
]
