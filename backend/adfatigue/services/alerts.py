"""Urgent alert rules evaluated on one ad's latest derived metrics."""
from dataclasses import dataclass, field
from typing import Any, Optional

from adfatigue.services.metrics import NEGATIVE_RATE_CRITICAL, DerivedMetrics

FREQUENCY_ALERT_LIMIT = 4.0
MULTIPLE_ISSUES_MIN = 2

# Urgent alert type -> stored alert_type
ALERT_TYPE_MAPPING = {
    "NEGATIVE_FEEDBACK_CRITICAL": "negative_feedback",
    "ALGORITHM_PENALTY_HIGH": "cpm_increase",
    "FREQUENCY_EXCEEDED": "frequency_exceeded",
    "VIDEO_ENGAGEMENT_CRITICAL": "ctr_decline",
    "MULTIPLE_ISSUES": "multiple_factors",
}

# Primary issue -> stored alert_type for routine (score-level) alerts
ISSUE_ALERT_TYPES = {
    "audience": "frequency_exceeded",
    "creative": "ctr_decline",
    "algorithm": "cpm_increase",
}


@dataclass(frozen=True)
class UrgentAlert:
    type: str
    ad_id: str
    action: str
    severity: str  # high, critical
    metrics: dict[str, Any] = field(default_factory=dict)
    account_id: Optional[str] = None

    @property
    def stored_type(self) -> str:
        return ALERT_TYPE_MAPPING.get(self.type, "multiple_factors")

    @property
    def alert_level(self) -> str:
        return alert_level(self.severity)

    def as_dict(self) -> dict:
        return {
            "type": self.type,
            "ad_id": self.ad_id,
            "account_id": self.account_id,
            "action": self.action,
            "severity": self.severity,
            "metrics": self.metrics,
        }


def alert_level(severity: str) -> str:
    return "critical" if severity == "critical" else "warning"


def evaluate_urgent_alerts(
    metrics: DerivedMetrics,
    ad_id: str,
    account_id: Optional[str] = None,
) -> list[UrgentAlert]:
    alerts: list[UrgentAlert] = []
    feedback = metrics.negative_feedback

    if metrics.negative_rate > NEGATIVE_RATE_CRITICAL:
        alerts.append(
            UrgentAlert(
                type="NEGATIVE_FEEDBACK_CRITICAL",
                ad_id=ad_id,
                action="IMMEDIATE_PAUSE",
                severity="critical",
                metrics={
                    "negative_rate": metrics.negative_rate,
                    "hide_clicks": feedback.hide_clicks,
                    "report_spam_clicks": feedback.report_spam_clicks,
                },
                account_id=account_id,
            )
        )

    penalty = metrics.algorithm_penalty
    if penalty.penalty_detected and penalty.severity == "high":
        alerts.append(
            UrgentAlert(
                type="ALGORITHM_PENALTY_HIGH",
                ad_id=ad_id,
                action="CAMPAIGN_REBUILD_REQUIRED",
                severity="critical",
                metrics={"cpm_increase_rate": metrics.cpm_increase_rate, "severity": penalty.severity},
                account_id=account_id,
            )
        )

    if metrics.frequency > FREQUENCY_ALERT_LIMIT:
        alerts.append(
            UrgentAlert(
                type="FREQUENCY_EXCEEDED",
                ad_id=ad_id,
                action="FREQUENCY_CAP_REQUIRED",
                severity="high",
                metrics={"frequency": metrics.frequency},
                account_id=account_id,
            )
        )

    if len(alerts) >= MULTIPLE_ISSUES_MIN:
        alerts.append(
            UrgentAlert(
                type="MULTIPLE_ISSUES",
                ad_id=ad_id,
                action="REVIEW_AND_OPTIMIZE",
                severity="critical",
                metrics={"issue_count": len(alerts)},
                account_id=account_id,
            )
        )

    return alerts
