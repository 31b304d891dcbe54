"""
Risk Scorer Module
==================

Scores compute applications against a fixed set of operational and
security rules.

Detection Logic
---------------
Each rule is evaluated independently and adds its weight when it matches:

=====================================  ================  ======
Rule                                   Issue             Weight
=====================================  ================  ======
Application is stopped                 ``Stopped``       20
HTTPS is not enforced                  ``HTTP Allowed``  15
Minimum TLS version is 1.0 or 1.1      ``Old TLS``       10
Plain FTP deployment is allowed        ``FTPS Risk``     5
=====================================  ================  ======

An application with no matching rule is clean and yields no finding.

Notes
-----
A missing owner tag is governance metadata, not technical risk. It is
counted in the report's ``owner`` distribution and never appears here.

Example
-------
>>> from planaudit.analyzers import RiskScorer
>>>
>>> scorer = RiskScorer()
>>> issues, score = scorer.score(app)
>>> finding = scorer.evaluate(app)  # None for clean applications
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from planaudit.core.models import AppState, ComputeApplication, FtpsPolicy, RiskFinding

# Module logger
logger = logging.getLogger(__name__)

OUTDATED_TLS_VERSIONS = frozenset({"1.0", "1.1"})


@dataclass(frozen=True)
class RiskRule:
    """A single risk predicate with its issue tag and weight."""

    issue: str
    weight: int
    predicate: Callable[[ComputeApplication], bool]

    def matches(self, app: ComputeApplication) -> bool:
        return bool(self.predicate(app))


RISK_RULES: Tuple[RiskRule, ...] = (
    RiskRule("Stopped", 20, lambda app: app.state is AppState.STOPPED),
    RiskRule("HTTP Allowed", 15, lambda app: app.https_only is False),
    RiskRule(
        "Old TLS",
        10,
        lambda app: (app.min_tls_version or "").strip() in OUTDATED_TLS_VERSIONS,
    ),
    RiskRule("FTPS Risk", 5, lambda app: app.ftps_policy is FtpsPolicy.ALL_ALLOWED),
)


class RiskScorer:
    """
    Applies :data:`RISK_RULES` to applications.

    Examples
    --------
    >>> scorer = RiskScorer()
    >>> findings = scorer.evaluate_all(apps)
    >>> worst = max(findings, key=lambda f: f.score)
    """

    def __init__(self) -> None:
        self.rules: Sequence[RiskRule] = RISK_RULES

    @property
    def max_score(self) -> int:
        return sum(rule.weight for rule in self.rules)

    def score(self, app: ComputeApplication) -> Tuple[List[str], int]:
        """
        Score one application.

        Returns
        -------
        tuple
            ``(issues, score)``: matched issue tags in rule order and the
            sum of their weights (0 when no rule matches).
        """
        matched = [rule for rule in self.rules if rule.matches(app)]
        return [rule.issue for rule in matched], sum(rule.weight for rule in matched)

    def evaluate(self, app: ComputeApplication) -> Optional[RiskFinding]:
        """Return a :class:`RiskFinding` for a risky application, else None."""
        issues, score = self.score(app)
        if not issues:
            return None
        logger.debug(f"{app.name}: {', '.join(issues)} (score {score})")
        return RiskFinding(application=app, issues=tuple(issues), score=score)

    def evaluate_all(self, apps: Sequence[ComputeApplication]) -> List[RiskFinding]:
        """Score applications in order and keep only the risky ones."""
        findings = []
        for app in apps:
            finding = self.evaluate(app)
            if finding is not None:
                findings.append(finding)
        return findings

    def __repr__(self) -> str:
        return f"RiskScorer(rules={len(self.rules)})"
