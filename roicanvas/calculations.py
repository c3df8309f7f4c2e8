"""Per-initiative financial metrics.

Every initiative is scored on its own, with no reference to the rest of the
batch:

- ``benefit_mid`` / ``cost_mid``: midpoints of the estimate ranges
- ``roi``: ``(benefit_mid - cost_mid) / cost_mid``
- ``npv``: ``benefit_mid * NPV_MULTIPLIER - cost_mid``
- ``payback``: ``cost_mid / benefit_mid`` in years
- ``value_score``: ``npv * risk_multiplier / effort_score``, the ranking key

Division by zero never raises; each guarded ratio falls back to 0.
"""
from __future__ import annotations

from roicanvas.models import ComputedInitiative, EffortLevel, RawInitiative, RiskLevel

# Present value of a 3-year annuity discounted at 10%.
NPV_MULTIPLIER = 2.48685

EFFORT_SCORES: dict[EffortLevel, int] = {
    EffortLevel.LOW: 1,
    EffortLevel.MEDIUM: 2,
    EffortLevel.HIGH: 3,
}

RISK_MULTIPLIERS: dict[RiskLevel, float] = {
    RiskLevel.LOW: 0.9,
    RiskLevel.MEDIUM: 1.0,
    RiskLevel.HIGH: 1.2,
}


def safe_ratio(numerator: float, denominator: float) -> float:
    """Return ``numerator / denominator``, or 0 when the denominator is 0."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def effort_score(effort: EffortLevel) -> int:
    return EFFORT_SCORES[EffortLevel(effort)]


def risk_multiplier(risk: RiskLevel) -> float:
    return RISK_MULTIPLIERS[RiskLevel(risk)]


def calculate_metrics(raw: RawInitiative) -> ComputedInitiative:
    """Compute the financial and ranking metrics for one initiative.

    Selection and schedule fields are left unset for the later stages.
    Negative estimates are not rejected; they flow through the arithmetic.
    """
    benefit_mid = (raw.benefit_low + raw.benefit_high) / 2
    cost_mid = (raw.cost_low + raw.cost_high) / 2

    roi = safe_ratio(benefit_mid - cost_mid, cost_mid)
    npv = benefit_mid * NPV_MULTIPLIER - cost_mid
    payback = safe_ratio(cost_mid, benefit_mid)

    effort = effort_score(raw.effort)
    risk = risk_multiplier(raw.risk)
    value_score = safe_ratio(npv * risk, effort)

    return ComputedInitiative(
        raw=raw,
        benefit_mid=benefit_mid,
        cost_mid=cost_mid,
        roi=roi,
        npv=npv,
        payback=payback,
        effort_score=effort,
        risk_multiplier=risk,
        value_score=value_score,
    )
