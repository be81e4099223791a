"""Threshold catalog, contextual adjustment and rationale.

The canonical catalog is an immutable, versioned value. Contextual adjustment
never mutates it; it derives a new catalog plus an audit trail of every rule
that fired, in application order.
"""
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

CATALOG_VERSION = "2024.1"

METRICS = ("frequency", "ctr_decline", "first_time_ratio", "cpm_increase", "negative_feedback")


@dataclass(frozen=True)
class ThresholdSet:
    """Three ordered cut points. higher_is_worse=False flips the comparisons (ratios)."""

    safe: float
    warning: float
    critical: float
    higher_is_worse: bool = True

    def _reached(self, value: float, cut: float) -> bool:
        return value >= cut if self.higher_is_worse else value <= cut

    def status(self, value: float) -> str:
        """critical first, then warning; anything else is safe."""
        if self._reached(value, self.critical):
            return "critical"
        if self._reached(value, self.warning):
            return "warning"
        return "safe"

    def ladder(self, points: tuple[int, int, int]) -> list[tuple[Callable[[float], bool], int]]:
        """(predicate, points) tuples for critical/warning/safe, evaluated top-down."""
        critical_pts, warning_pts, safe_pts = points
        return [
            (lambda v: self._reached(v, self.critical), critical_pts),
            (lambda v: self._reached(v, self.warning), warning_pts),
            (lambda v: self._reached(v, self.safe), safe_pts),
        ]

    def as_dict(self) -> dict:
        return {"safe": self.safe, "warning": self.warning, "critical": self.critical}


@dataclass(frozen=True)
class ThresholdCatalog:
    frequency: ThresholdSet
    ctr_decline: ThresholdSet
    first_time_ratio: ThresholdSet
    cpm_increase: ThresholdSet
    negative_feedback: ThresholdSet
    version: str = CATALOG_VERSION

    def get(self, metric: str) -> Optional[ThresholdSet]:
        """Unknown metric names return None instead of raising."""
        if metric not in METRICS:
            return None
        return getattr(self, metric)

    def as_dict(self) -> dict:
        return {m: getattr(self, m).as_dict() for m in METRICS}


DEFAULT_CATALOG = ThresholdCatalog(
    frequency=ThresholdSet(safe=2.5, warning=3.0, critical=3.5),
    ctr_decline=ThresholdSet(safe=0.15, warning=0.25, critical=0.40),
    first_time_ratio=ThresholdSet(safe=0.5, warning=0.4, critical=0.3, higher_is_worse=False),
    cpm_increase=ThresholdSet(safe=0.20, warning=0.35, critical=0.50),
    negative_feedback=ThresholdSet(safe=0.002, warning=0.005, critical=0.01),
)


# --- Context multipliers ---
INDUSTRY_ADJUSTMENTS = {
    "b2c_ecommerce": {
        "frequency": 1.0,
        "ctr_decline": 1.0,
        "description": "Standard e-commerce. Impulse purchases dominate, so fatigue sets in quickly",
    },
    "b2b_saas": {
        "frequency": 1.5,
        "ctr_decline": 1.3,
        "description": "Long consideration cycles tolerate higher exposure frequency",
    },
    "fmcg": {
        "frequency": 0.8,
        "ctr_decline": 0.9,
        "description": "Everyday goods fatigue fast; freshness matters",
    },
    "luxury": {
        "frequency": 1.2,
        "ctr_decline": 1.4,
        "description": "High-ticket items are considered at length and viewed repeatedly",
    },
    "entertainment": {
        "frequency": 0.7,
        "ctr_decline": 0.8,
        "description": "Entertainment rewards novelty; repeated ads wear out quickly",
    },
}

SEASONAL_ADJUSTMENTS = {
    "normal": {"multiplier": 1.0, "description": "Regular period"},
    "black_friday": {"multiplier": 0.7, "description": "Ad saturation makes fatigue progress 3.5x faster"},
    "christmas": {"multiplier": 0.8, "description": "Holiday season intensifies ad competition"},
    "new_year": {"multiplier": 1.1, "description": "Tolerance to ads recovers at the start of the year"},
}

HIGH_PRICE = 500
LOW_PRICE = 20


@dataclass(frozen=True)
class ThresholdContext:
    industry: str = "b2c_ecommerce"
    product_price: float = 100.0
    campaign_goal: str = "conversions"
    season: str = "normal"

    def as_dict(self) -> dict:
        return {
            "industry": self.industry,
            "product_price": self.product_price,
            "campaign_goal": self.campaign_goal,
            "season": self.season,
        }


@dataclass
class ContextualThresholds:
    thresholds: ThresholdCatalog
    context: ThresholdContext
    adjustments: list[dict] = field(default_factory=list)
    explanation: str = ""

    def as_dict(self) -> dict:
        return {
            "thresholds": self.thresholds.as_dict(),
            "version": self.thresholds.version,
            "context": self.context.as_dict(),
            "adjustments": self.adjustments,
            "explanation": self.explanation,
        }


def _with(catalog: ThresholdCatalog, metric: str, **cuts: float) -> ThresholdCatalog:
    return replace(catalog, **{metric: replace(getattr(catalog, metric), **cuts)})


def _audit(kind: str, metric: str, reason: str, old: float, new: float) -> dict:
    return {
        "type": kind,
        "metric": metric,
        "reason": reason,
        "old_value": round(old, 4),
        "new_value": round(new, 4),
    }


def adjust_catalog(
    base: ThresholdCatalog,
    context: ThresholdContext,
) -> tuple[ThresholdCatalog, list[dict]]:
    """
    Apply industry -> price tier -> season -> campaign goal, in that order.
    Later rules overwrite earlier ones. Returns the adjusted copy and the audit trail.
    """
    catalog = base
    adjustments: list[dict] = []

    industry_adj = INDUSTRY_ADJUSTMENTS.get(context.industry)
    if industry_adj:
        reason = industry_adj["description"]
        freq = catalog.frequency
        catalog = _with(
            catalog, "frequency",
            warning=freq.warning * industry_adj["frequency"],
            critical=freq.critical * industry_adj["frequency"],
        )
        adjustments.append(_audit("industry", "Frequency", reason, freq.critical, catalog.frequency.critical))

        ctr = catalog.ctr_decline
        catalog = _with(
            catalog, "ctr_decline",
            warning=ctr.warning * industry_adj["ctr_decline"],
            critical=ctr.critical * industry_adj["ctr_decline"],
        )
        adjustments.append(_audit("industry", "CTR decline", reason, ctr.critical, catalog.ctr_decline.critical))

    if context.product_price > HIGH_PRICE:
        old_freq = catalog.frequency.critical
        catalog = _with(catalog, "frequency", warning=3.8, critical=4.5)
        adjustments.append(_audit(
            "product_price", "Frequency",
            "High-ticket products have long consideration periods; higher frequency is tolerated",
            old_freq, 4.5,
        ))
        old_ctr = catalog.ctr_decline.critical
        catalog = _with(catalog, "ctr_decline", critical=0.5)
        adjustments.append(_audit(
            "product_price", "CTR decline",
            "High-ticket purchases are deliberate, so CTR declines are better tolerated",
            old_ctr, 0.5,
        ))

    if context.product_price <= LOW_PRICE:
        old_freq = catalog.frequency.critical
        catalog = _with(catalog, "frequency", warning=2.3, critical=2.8)
        adjustments.append(_audit(
            "product_price", "Frequency",
            "Low-priced products sell on impulse; overexposure backfires",
            old_freq, 2.8,
        ))

    seasonal_adj = SEASONAL_ADJUSTMENTS.get(context.season)
    if seasonal_adj and seasonal_adj["multiplier"] != 1.0:
        m = seasonal_adj["multiplier"]
        reason = seasonal_adj["description"]
        freq = catalog.frequency
        catalog = _with(catalog, "frequency", warning=freq.warning * m, critical=freq.critical * m)
        adjustments.append(_audit("season", "Frequency", reason, freq.critical, catalog.frequency.critical))

        ftr = catalog.first_time_ratio
        catalog = _with(
            catalog, "first_time_ratio",
            warning=ftr.warning * (2 - m),
            critical=ftr.critical * (2 - m),
        )
        adjustments.append(_audit(
            "season", "First-time impression ratio", reason, ftr.critical, catalog.first_time_ratio.critical,
        ))

    if context.campaign_goal == "brand_awareness":
        old_freq = catalog.frequency.critical
        catalog = _with(catalog, "frequency", warning=4.0, critical=5.0)
        adjustments.append(_audit(
            "campaign_goal", "Frequency",
            "Brand awareness campaigns need repeated exposure",
            old_freq, 5.0,
        ))

    if context.campaign_goal == "app_installs":
        old_freq = catalog.frequency.critical
        catalog = _with(catalog, "frequency", warning=2.0, critical=2.5)
        adjustments.append(_audit(
            "campaign_goal", "Frequency",
            "App installs are decided on the spot; repeated exposure backfires",
            old_freq, 2.5,
        ))

    return catalog, adjustments


def explain_adjustments(adjustments: list[dict], context: ThresholdContext) -> str:
    if not adjustments:
        return "Using the standard thresholds."

    lines = [
        "Thresholds were adjusted for your settings:",
        "",
        "[Context]",
        f"- Industry: {context.industry.replace('_', ' ').upper()}",
        f"- Product price: ${context.product_price:g}",
        f"- Campaign goal: {context.campaign_goal.replace('_', ' ')}",
        f"- Season: {context.season}",
        "",
        "[Adjustments]",
    ]
    for adj in adjustments:
        lines.append(f"- {adj['metric']}: {adj['old_value']:g} -> {adj['new_value']:g}")
        lines.append(f"  Reason: {adj['reason']}")
    return "\n".join(lines)


def get_contextual_thresholds(
    context: Optional[ThresholdContext] = None,
    base: ThresholdCatalog = DEFAULT_CATALOG,
) -> ContextualThresholds:
    context = context or ThresholdContext()
    catalog, adjustments = adjust_catalog(base, context)
    return ContextualThresholds(
        thresholds=catalog,
        context=context,
        adjustments=adjustments,
        explanation=explain_adjustments(adjustments, context),
    )


# --- Rationale ---
THRESHOLD_RATIONALE = {
    "frequency": {
        "critical": "Conversion rate drops sharply around four exposures; past 3.5 the return on spend turns negative",
        "warning": "Marginal utility starts falling at the third exposure as the mere-exposure effect peaks",
        "safe": "Optimal awareness-building range; favourability still rises up to 2.5 exposures",
    },
    "ctr_decline": {
        "critical": "A 40% drop pushes ROAS into the red; users are actively avoiding the ad",
        "warning": "A 25% drop is a meaningful decline; active ignoring has started",
        "safe": "Up to 15% is normal day-to-day variation",
    },
    "first_time_ratio": {
        "critical": "70% of impressions are repeats; new-audience acquisition has effectively stopped",
        "warning": "The audience pool is starting to saturate",
        "safe": "New reach is still the majority; healthy growth",
    },
    "cpm_increase": {
        "critical": "Severe delivery penalty; the auction is pricing the ad out",
        "warning": "Delivery system has started rating the ad as low quality; bid competitiveness drops",
        "safe": "Cost changes are within normal auction movement",
    },
    "negative_feedback": {
        "critical": "Three in a thousand viewers are actively rejecting the ad; brand damage risk",
        "warning": "Negative word-of-mouth effects start appearing",
        "safe": "Negative feedback is at background level",
    },
}

METRIC_ACTIONS = {
    "frequency": {
        "critical": ["Pause the ad set immediately", "Prepare new creatives", "Broaden or change the audience"],
        "warning": ["Plan a creative refresh", "Consider broadening the audience", "Adjust delivery pacing"],
        "safe": ["Keep the current setup", "Keep monitoring performance"],
    },
    "ctr_decline": {
        "critical": ["Replace the creative now", "Rewrite the ad copy", "Re-evaluate targeting"],
        "warning": ["A/B test a new version", "Update parts of the ad", "Adjust delivery hours"],
        "safe": ["Keep fine-tuning", "Analyse what works and reuse it"],
    },
    "first_time_ratio": {
        "critical": ["Create lookalike audiences", "Broaden interest targeting", "Expand the geography"],
        "warning": ["Check audience size", "Review exclusions", "Test new segments"],
        "safe": ["Keep the audience strategy", "Look for expansion opportunities"],
    },
}


def interpret_threshold(metric: str, status: str) -> str:
    """Rationale text for a metric tier. Unknown metric or status returns ''."""
    return THRESHOLD_RATIONALE.get(metric, {}).get(status, "")


def recommended_metric_actions(metric: str, status: str) -> list[str]:
    return list(METRIC_ACTIONS.get(metric, {}).get(status, []))


INDUSTRY_RECOMMENDATIONS = {
    "b2c_ecommerce": {
        "frequency": {"min": 2.0, "max": 3.5, "optimal": 2.8},
        "budget_allocation": "70% prospecting, 30% retargeting",
        "creative_refresh": "every 2 weeks",
        "tips": [
            "Use different creatives per product category",
            "Serve cart abandoners as a separate, higher-frequency segment",
            "Tighten fatigue thresholds by 20% for seasonal products",
        ],
    },
    "b2b_saas": {
        "frequency": {"min": 3.0, "max": 5.0, "optimal": 4.0},
        "budget_allocation": "40% prospecting, 60% retargeting",
        "creative_refresh": "monthly",
        "tips": [
            "Tailor the message to the decision maker's role",
            "Use staged calls to action such as whitepaper downloads",
            "Plan delivery around long-term nurturing",
        ],
    },
    "fmcg": {
        "frequency": {"min": 1.5, "max": 2.8, "optimal": 2.2},
        "budget_allocation": "90% prospecting, 10% retargeting",
        "creative_refresh": "twice a week",
        "tips": [
            "Push new products hard at launch",
            "Keep established products at low frequency",
            "Adjust delivery by region for store-visit goals",
        ],
    },
    "luxury": {
        "frequency": {"min": 2.5, "max": 4.5, "optimal": 3.5},
        "budget_allocation": "50% prospecting, 50% retargeting",
        "creative_refresh": "every 3 weeks",
        "tips": [
            "Keep creatives at a quality that protects the brand image",
            "Match delivery length to the customer's consideration period",
            "Manage VIP segments separately",
        ],
    },
}


def industry_recommendations(industry: str) -> dict:
    return INDUSTRY_RECOMMENDATIONS.get(industry, INDUSTRY_RECOMMENDATIONS["b2c_ecommerce"])
