# risk_core/tiers.py
from __future__ import annotations
from typing import Dict, List, Optional

from .catalog import CriteriaCatalog
from .responses import ResponseSet
from .scoring import StaleHook, score
from .types import AssessmentResult, RiskTier, ThresholdTable


def classify(total_score: int, thresholds: ThresholdTable) -> RiskTier:
    # high_threshold does not take part; HIGH starts at moderate_threshold
    s = int(total_score)
    if s >= thresholds.moderate_threshold: return RiskTier.HIGH
    if s >= thresholds.low_threshold: return RiskTier.MODERATE
    return RiskTier.LOW


def compute_result(
    responses: ResponseSet,
    catalog: CriteriaCatalog,
    thresholds: ThresholdTable,
    on_stale: Optional[StaleHook] = None,
) -> AssessmentResult:
    total = score(responses, catalog, on_stale=on_stale)
    return AssessmentResult(
        total_score=total,
        risk_tier=classify(total, thresholds),
        selected_option_ids=responses.option_ids(),
    )


def describe_bands(thresholds: ThresholdTable) -> List[Dict[str, object]]:
    """The three classification bands as half-open ``[lower, upper)`` ranges."""
    t = thresholds
    return [
        {"tier": RiskTier.LOW.value, "lower": 0, "upper": t.low_threshold,
         "text": f"Less than {t.low_threshold} points"},
        {"tier": RiskTier.MODERATE.value, "lower": t.low_threshold, "upper": t.moderate_threshold,
         "text": f"{t.low_threshold} to less than {t.moderate_threshold} points"},
        {"tier": RiskTier.HIGH.value, "lower": t.moderate_threshold, "upper": None,
         "text": f"{t.moderate_threshold} or more points"},
    ]


def preview_bands(thresholds: ThresholdTable) -> List[Dict[str, object]]:
    """Four display bands shown while editing thresholds; only this uses high_threshold."""
    t = thresholds
    return [
        {"label": "Low", "lower": 0, "upper": t.low_threshold,
         "text": f"Less than {t.low_threshold} points"},
        {"label": "Moderate", "lower": t.low_threshold, "upper": t.moderate_threshold,
         "text": f"{t.low_threshold} to less than {t.moderate_threshold} points"},
        {"label": "High", "lower": t.moderate_threshold, "upper": t.high_threshold,
         "text": f"{t.moderate_threshold} to less than {t.high_threshold} points"},
        {"label": "Critical", "lower": t.high_threshold, "upper": None,
         "text": f"{t.high_threshold} or more points"},
    ]
